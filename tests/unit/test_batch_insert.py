from __future__ import annotations

import pytest

from labdata_ingest.db.batch_insert import BatchInsertError, InsertResult, batch_insert


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.pages: list[int] = []

# We monkeypatch execute_values symbol inside module to avoid needing
# a live database for logic tests

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import labdata_ingest.db.batch_insert as bi
    def fake_execute_values(cursor, sql, rows, page_size=1000):
        cursor.queries.append(sql)
        cursor.pages.append(page_size)
    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_batch_insert_basic():
    cur = DummyCursor()
    res = batch_insert(
        cur,
        table="sample_metadata",
        columns=["mra_no", "batch_diss"],
        rows=[["MRA00012", "ABC12-3D45"], ["MRA00099", None]],
    )
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 2
    assert cur.queries == ['INSERT INTO sample_metadata ("mra_no","batch_diss") VALUES %s']


def test_batch_insert_page_size_passed_through():
    cur = DummyCursor()
    batch_insert(cur, table="t", columns=["c"], rows=[[1]], page_size=50)
    assert cur.pages == [50]


def test_batch_insert_accepts_generator():
    cur = DummyCursor()
    res = batch_insert(cur, table="t", columns=["c"], rows=([i] for i in range(3)))
    assert res.inserted_rows == 3


def test_batch_insert_empty_rows():
    cur = DummyCursor()
    res = batch_insert(cur, table="t", columns=["c"], rows=[])
    assert res.inserted_rows == 0
    assert cur.queries == []


def test_batch_insert_missing_driver(monkeypatch):
    import labdata_ingest.db.batch_insert as bi
    # Force execute_values None path
    monkeypatch.setattr(bi, "execute_values", None)
    with pytest.raises(BatchInsertError, match="psycopg2 not available"):
        batch_insert(DummyCursor(), table="t", columns=["c"], rows=[[1]])


def test_batch_insert_wraps_driver_errors(monkeypatch):
    import labdata_ingest.db.batch_insert as bi

    def failing(cursor, sql, rows, page_size=1000):
        raise RuntimeError("duplicate key value violates unique constraint")

    monkeypatch.setattr(bi, "execute_values", failing)
    with pytest.raises(BatchInsertError, match="duplicate key"):
        batch_insert(DummyCursor(), table="t", columns=["c"], rows=[[1]])
