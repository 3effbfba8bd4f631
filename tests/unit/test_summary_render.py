from __future__ import annotations

from datetime import UTC, datetime

from labdata_ingest.models.processing_result import FileStat, FileStatus, ProcessingResult
from labdata_ingest.services.summary import render_summary_line


def _result(elapsed: float, *stats: FileStat) -> ProcessingResult:
    now = datetime.now(UTC)
    return ProcessingResult(start_time=now, end_time=now, elapsed_seconds=elapsed, file_stats=list(stats))


def test_render_summary_counts_every_kind():
    line = render_summary_line(
        _result(
            1.5,
            FileStat("a.xlsx", FileStatus.SUCCESS, 1.0, "workbook", method_records=2, sample_rows=30),
            FileStat("b.csv", FileStatus.SUCCESS, 0.3, "particle", metadata_rows=4, size_class_rows=80),
            FileStat("c.txt", FileStatus.FAILED, 0.2, error="Unsupported file type: txt"),
        )
    )
    assert line == (
        "SUMMARY files=3 success=2 failed=1 method_records=2 sample_rows=30 "
        "metadata_rows=4 size_class_rows=80 elapsed_sec=1.5"
    )


def test_render_summary_empty_run():
    assert render_summary_line(_result(0)) == (
        "SUMMARY files=0 success=0 failed=0 method_records=0 sample_rows=0 "
        "metadata_rows=0 size_class_rows=0 elapsed_sec=0"
    )


def test_elapsed_formatting():
    assert render_summary_line(_result(2.0)).endswith("elapsed_sec=2")
    assert render_summary_line(_result(0.12345)).endswith("elapsed_sec=0.123")
    assert render_summary_line(_result(0.0005)).endswith("elapsed_sec=0.0005")


def test_file_stat_total_rows():
    stat = FileStat("a.xlsx", FileStatus.SUCCESS, 0.1, "workbook", method_records=1, sample_rows=9)
    assert stat.total_rows == 10
