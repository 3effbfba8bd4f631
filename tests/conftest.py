# Shared pytest fixtures: workbook / export builders and a temp working directory
from __future__ import annotations

import io
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from labdata_ingest.logging.init import capture_log_lines


def _grid(n_rows: int, n_cols: int) -> list[list[Any]]:
    return [[None] * n_cols for _ in range(n_rows)]


def build_workbook(sheets: dict[str, list[list[Any]]], hidden: Iterable[str] = ()) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
        for name in hidden:
            writer.book[name].sheet_state = "hidden"
    return buf.getvalue()


def build_method_sheet(**overrides: Any) -> list[list[Any]]:
    """Calculation sheet with every field group filled; overrides keyed 'r_c'."""
    rows = _grid(72, 12)
    cells = {
        (0, 0): "Izračun raztapljanja",
        (1, 1): "da",
        (4, 2): "Paracetamol",
        (5, 2): "500 mg",
        (4, 10): "12.03.2024",
        (20, 0): "Ap. I - košarice",
        (20, 1): "100 obr./min",
        (20, 2): "10 mesh",
        (20, 3): "set A",
        (20, 4): "da",
        (20, 5): "steklena",
        (20, 7): "brez",
        (20, 9): "Sotax AT7",
        (20, 10): "DT-01",
        (21, 4): "150 obr./min",
        (22, 4): 30,
        (23, 4): 15,
        (26, 0): "PBS",
        (26, 1): 6.8,
        (26, 2): 37,
        (26, 3): 37.5,
        (26, 4): "SDS",
        (26, 5): 0.5,
        (26, 7): "da",
        (28, 1): 900,
        (30, 1): 5,
        (30, 3): "0.45 µm",
        (30, 5): "ročno",
        (30, 7): "UV",
        (30, 8): "Agilent",
        (30, 9): "UV-02",
        (31, 9): 243,
        (30, 10): "1 cm",
        (62, 3): 1,
        (63, 3): 10,
        (62, 5): "redčeno",
        (66, 1): "Ana",
        (67, 1): "Bojan",
        (68, 1): "AP-123",
        (69, 1): "DL-1",
        (70, 1): "HL-2",
    }
    for key, value in overrides.items():
        r, c = (int(x) for x in key.lstrip("_").split("_"))
        cells[(r, c)] = value
    for (r, c), value in cells.items():
        rows[r][c] = value
    return rows


def build_sample_sheet(
    counts: tuple[int, int, int, int] = (2, 0, 1, 0),
    times: tuple[Any, ...] = (5, 10, 15),
    active: Any = "Paracetamol",
) -> list[list[Any]]:
    """Result sheet: four sample groups, vessel counts in column M, time block at row 24.

    Dissolved value of vessel v at time t is ``t * 10 + v``.
    """
    rows = _grid(24 + 1 + len(times), 13)
    rows[0][0] = "Izvid"
    rows[2][2] = active
    rows[3][0] = "Jakost"
    rows[3][2] = "500 mg"
    groups = [
        ("Vzorec 1", "ABC12-3D45, tablete", "MRA00012345XYZ"),
        ("Vzorec 2", "DEF34-5G67", "MRA00056"),
        ("Vzorec 3", "XYZ98-7K65", "MRA00099"),
        ("Vzorec 4", "GHI11-2B33", "MRA00077"),
    ]
    for i, (name, batch, mra) in enumerate(groups):
        base = 3 + 4 * i + 2
        rows[base][2] = name
        rows[base + 1][2] = batch
        rows[base + 2][2] = mra
        rows[base + 1][12] = counts[i]
    rows[21][0] = "Opombe"
    rows[24][1:7] = [1, 2, 3, 4, 5, 6]
    for j, t in enumerate(times):
        row = rows[25 + j]
        row[0] = t
        if t is None:
            continue
        for v in range(1, 7):
            row[v] = t * 10 + v
    return rows


PARTICLE_LINES = [
    "Instrument\tQICPIC",
    "Operator\tAna",
    "",
    "Field\tS1\tS2",
    "x(Q3=10.0 %) [µm]\t12,5\t13,1",
    "x(Q3=50.0 %) [µm]\t45,0\t47,2",
    "SPAN3\t1,2\tabc",
    "Q3(20.0 µm) [%]\t3\t4",
    "Comment 1\tMRA00012\tMRA00099",
    "Comment 2\tM1; ABC12-3D45A granulat\tXYZ98-7K65 tablete",
    "\t\t",
    "Size classes",
    "[µm]",
    "Class\tx\tS1\tS2\tS1",
    "1\t20,0\t1,5\tbad",
    "2\t10,0\t0,5\t0,7",
    "3\tnope\t1\t2",
    "4\t5,0",
]


def build_particle_csv(lines: list[str] | None = None) -> bytes:
    return "\r\n".join(PARTICLE_LINES if lines is None else lines).encode("utf-16")


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
file_patterns: ["*.xlsx", "*.xls", "*.csv"]
matching:
  threshold: 80
  lenient_threshold: 60
particle:
  size_class_window: 103
features:
  materialira_lookup: false
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: labdata
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_workbook() -> Callable[..., bytes]:
    return build_workbook


@pytest.fixture()
def method_sheet() -> Callable[..., list[list[Any]]]:
    return build_method_sheet


@pytest.fixture()
def sample_sheet() -> Callable[..., list[list[Any]]]:
    return build_sample_sheet


@pytest.fixture()
def particle_csv() -> Callable[..., bytes]:
    return build_particle_csv


@pytest.fixture()
def dissolution_workbook() -> bytes:
    """Valid workbook: one calculation sheet, one result sheet, one excluded result sheet."""
    return build_workbook(
        {
            "izračun": build_method_sheet(),
            "izvid": build_sample_sheet(),
            "izvid_profil": build_sample_sheet(),
        }
    )


@pytest.fixture()
def captured_lines():
    """Formatted log lines emitted below the package logger during the test."""
    lines: list[str] = []
    with capture_log_lines(lines.append):
        yield lines


class DummyCursor:
    """Records executed statements; fetchall() returns the queued result."""

    def __init__(self, fetched: list[tuple] | None = None) -> None:
        self.queries: list[tuple[str, Any]] = []
        self.fetched = fetched or []

    def execute(self, sql: str, params: Any = None) -> None:
        self.queries.append((sql, params))

    def fetchall(self):
        return self.fetched

    @property
    def statements(self) -> list[str]:
        return [q for q, _ in self.queries]


@pytest.fixture()
def dummy_cursor_cls():
    return DummyCursor


@pytest.fixture(autouse=True)
def _no_db_env(monkeypatch):
    # keep developer .env / PG settings out of the tests
    for var in ("DATABASE_URL", "PGDSN"):
        monkeypatch.delenv(var, raising=False)
    if os.getenv("DISABLE_DB_CONNECT") is None:
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


@pytest.fixture()
def particle_lines() -> list[str]:
    return list(PARTICLE_LINES)
