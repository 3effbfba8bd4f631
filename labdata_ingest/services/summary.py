from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering for a batch run."""

__all__ = [
    "render_summary_line",
]


def _format_seconds(seconds: float) -> str:
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # avoid scientific notation for very small values
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ProcessingResult) -> str:
    """Render the one-line run summary.

    Format::

        SUMMARY files=N success=S failed=F method_records=M sample_rows=R
        metadata_rows=P size_class_rows=C elapsed_sec=E

    (a single line; wrapped here for readability)
    """
    return (
        f"SUMMARY files={result.total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"method_records={result.total('method_records')} "
        f"sample_rows={result.total('sample_rows')} "
        f"metadata_rows={result.total('metadata_rows')} "
        f"size_class_rows={result.total('size_class_rows')} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
