from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest

from labdata_ingest.cli import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL
from labdata_ingest.cli import main as cli_main
from labdata_ingest.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    # setup_logging binds the handler to the sys.stdout that capsys installed
    reset_logging()
    yield
    reset_logging()


def test_cli_no_files_success(write_config, temp_workdir: Path, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert " - SUMMARY - files=0 success=0 failed=0 method_records=0" in out


def test_cli_scans_source_directory(write_config, temp_workdir: Path, dissolution_workbook, capsys):
    (temp_workdir / "data" / "run.xlsx").write_bytes(dissolution_workbook)
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "SUMMARY - files=1 success=1 failed=0 method_records=1 sample_rows=9" in out
    assert "mode=mock files=1" in out


def test_cli_directory_missing(write_config, temp_workdir: Path, capsys):
    text = write_config.read_text(encoding="utf-8").replace("./data", "./missing_dir")
    write_config.write_text(text, encoding="utf-8")
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert " - ERROR - Directory not found:" in out


def test_cli_bad_config(temp_workdir: Path, capsys):
    (temp_workdir / "config" / "ingest.yml").write_text("file_patterns: []\n", encoding="utf-8")
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert " - ERROR - config: config validation failed" in out


def test_cli_explicit_files_partial_failure(write_config, temp_workdir: Path, particle_csv, capsys):
    good = temp_workdir / "export.csv"
    good.write_bytes(particle_csv())
    bad = temp_workdir / "notes.txt"
    bad.write_text("x")
    code = cli_main([str(good), str(bad)])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "files=2 success=1 failed=1 method_records=0 sample_rows=0 metadata_rows=2 size_class_rows=6" in out
    assert list((temp_workdir / "logs").glob("errors-*.log"))


def test_cli_inspect_prints_tables(write_config, temp_workdir: Path, particle_csv, capsys):
    path = temp_workdir / "export.csv"
    path.write_bytes(particle_csv())
    code = cli_main(["--inspect", str(path)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "FILE: export.csv kind=particle" in out
    assert "  TABLE: metadata rows=2" in out
    assert "  TABLE: size_class rows=6" in out
    assert '"mra_no": "MRA00012"' in out


def test_cli_debug_mode(write_config, temp_workdir: Path, capsys):
    code = cli_main(["--debug"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert " - DEBUG - debug mode enabled" in out


def test_cli_db_failure_falls_back_to_mock(
    write_config, temp_workdir: Path, particle_csv, monkeypatch, capsys
):
    import labdata_ingest.cli.runner as cli_module

    @contextmanager
    def broken_connection(cfg):
        raise RuntimeError("could not connect to server")
        yield  # pragma: no cover

    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    monkeypatch.setattr(cli_module, "_db_connection", broken_connection)
    path = temp_workdir / "export.csv"
    path.write_bytes(particle_csv())

    code = cli_main([str(path)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "DB connection failed -> fallback to mock mode: could not connect to server" in out
    assert "mode=mock files=1" in out


def test_cli_live_mode_uses_cursor(
    write_config, temp_workdir: Path, particle_csv, dummy_cursor_cls, monkeypatch, capsys
):
    import labdata_ingest.cli.runner as cli_module
    import labdata_ingest.db.batch_insert as bi

    cur = dummy_cursor_cls()

    @contextmanager
    def fake_connection(cfg):
        yield cur

    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    monkeypatch.setattr(cli_module, "_db_connection", fake_connection)
    monkeypatch.setattr(bi, "execute_values", lambda cursor, sql, rows, page_size=1000: None)
    path = temp_workdir / "export.csv"
    path.write_bytes(particle_csv())

    code = cli_main([str(path)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "mode=live files=1" in out
    assert cur.statements[0] == "SELECT api0, api1 FROM active_ingredient"
    assert cur.statements[1] == "BEGIN"
    assert cur.statements[-1] == "COMMIT"
    assert any(s.startswith("SELECT mra_no FROM sample_metadata") for s in cur.statements)


class AbortingCursor:
    """Mimics PostgreSQL: after a failed statement inside BEGIN, everything fails until ROLLBACK."""

    def __init__(self) -> None:
        self.statements: list[str] = []
        self.in_transaction = False
        self.aborted = False

    def execute(self, sql: str, params=None) -> None:
        self.statements.append(sql)
        if sql in ("ROLLBACK", "COMMIT"):
            self.in_transaction = self.aborted = False
            return
        if self.aborted:
            raise RuntimeError("current transaction is aborted")
        if sql == "BEGIN":
            self.in_transaction = True
            return
        if sql.startswith("SELECT api0"):
            self.aborted = self.in_transaction
            raise RuntimeError('relation "active_ingredient" does not exist')

    def fetchall(self):
        return []


def test_cli_vocabulary_failure_keeps_metadata_writes(
    write_config, temp_workdir: Path, dissolution_workbook, monkeypatch, capsys
):
    import labdata_ingest.cli.runner as cli_module
    import labdata_ingest.db.batch_insert as bi

    cur = AbortingCursor()

    @contextmanager
    def fake_connection(cfg):
        yield cur

    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    monkeypatch.setattr(cli_module, "_db_connection", fake_connection)
    monkeypatch.setattr(
        bi, "execute_values", lambda cursor, sql, rows, page_size=1000: cursor.execute(sql, rows)
    )
    for name in ("a.xlsx", "b.xlsx"):
        (temp_workdir / name).write_bytes(dissolution_workbook)

    code = cli_main([str(temp_workdir / "a.xlsx"), str(temp_workdir / "b.xlsx")])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "mode=live files=2" in out
    assert "failed to fetch reference ingredients" in out
    assert "current transaction is aborted" not in out
    assert "Failed to save MRA numbers" not in out
    assert out.count("Successfully saved MRA numbers to sample_metadata table") == 2
    assert [s for s in cur.statements if s.startswith("SELECT api0")] == [
        "SELECT api0, api1 FROM active_ingredient"
    ]
    assert "ROLLBACK" not in cur.statements
    assert cur.statements.count("COMMIT") == 2
