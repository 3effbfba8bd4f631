from __future__ import annotations

import json
import re
from pathlib import Path

from labdata_ingest.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "sheet", "field_group", "error_type", "message"}


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f1.xlsx", "izračun", "FIELD_GROUP_ERROR", "bad", "media"))
    buf.append(ErrorRecord.create("f1.xlsx", "izvid", "SHEET_PROCESSING_ERROR", "worse"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("logs")
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)

    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw)) == KEYS
    # non-ASCII sheet names are written as-is
    assert "izračun" in lines[0]
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f.xlsx", "S", "FIELD_GROUP_ERROR", "one"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("f.xlsx", "S", "FIELD_GROUP_ERROR", "two"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1


def test_flush_without_records_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_records_returns_copy():
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f.xlsx", "S", "X", "m"))
    buf.records.clear()
    assert len(buf.records) == 1
