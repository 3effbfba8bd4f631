from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from ..models.records import MraBatchEntry
from .batch_insert import BatchInsertError, batch_insert

"""Sample-metadata sink: MRA number -> best-known batch codes.

Both parser paths hand their deduplicated MRA map to a SampleMetadataSink.
The PostgreSQL store upserts by mra_no: unknown numbers are inserted with
``execute_values``, known numbers get their batch codes and latest file name
updated. A sink never raises; failures come back as PersistResult(False, ...).
"""

__all__ = [
    "PersistResult",
    "SampleMetadataSink",
    "NullSampleMetadataSink",
    "PostgresSampleMetadataStore",
    "build_mra_map",
    "forward_mra_entries",
]

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "sample_metadata"
INSERT_COLUMNS = ("file_name", "mra_no", "batch_diss", "batch_cam", "created_at")


@dataclass(frozen=True)
class PersistResult:
    success: bool
    message: str


class SampleMetadataSink(Protocol):
    def persist(self, file_name: str, mapping: Mapping[str, MraBatchEntry]) -> PersistResult: ...


class NullSampleMetadataSink:
    """Mock-mode sink: remembers what it was given, writes nothing."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, MraBatchEntry]]] = []

    def persist(self, file_name: str, mapping: Mapping[str, MraBatchEntry]) -> PersistResult:
        self.calls.append((file_name, dict(mapping)))
        return PersistResult(True, f"Recorded {len(mapping)} MRA numbers (no database)")


class PostgresSampleMetadataStore:
    def __init__(
        self,
        cursor: Any,
        table: str = DEFAULT_TABLE,
        *,
        materialira_lookup: bool = False,
    ) -> None:
        self.cursor = cursor
        self.table = table
        self.materialira_lookup = materialira_lookup

    def _existing_mra_numbers(self, mra_numbers: Sequence[str]) -> set[str]:
        self.cursor.execute(
            f"SELECT mra_no FROM {self.table} WHERE mra_no = ANY(%s)",
            (list(mra_numbers),),
        )
        return {row[0] for row in self.cursor.fetchall()}

    def persist(self, file_name: str, mapping: Mapping[str, MraBatchEntry]) -> PersistResult:
        valid = {k: v for k, v in mapping.items() if k and k.strip()}
        if not valid:
            return PersistResult(True, "No valid MRA numbers found to save")
        try:
            existing = self._existing_mra_numbers(list(valid))
            now = datetime.now(UTC)

            new_rows = [
                (file_name, mra_no, entry.batch_diss, entry.batch_cam, now)
                for mra_no, entry in valid.items()
                if mra_no not in existing
            ]
            batch_insert(self.cursor, self.table, INSERT_COLUMNS, new_rows)

            updated = 0
            for mra_no in sorted(existing):
                entry = valid[mra_no]
                # only overwrite when this file actually knows a batch code
                if not (entry.batch_diss or entry.batch_cam):
                    continue
                assignments = ["file_name = %s", "updated_at = %s"]
                params: list[Any] = [file_name, now]
                if entry.batch_diss:
                    assignments.append("batch_diss = %s")
                    params.append(entry.batch_diss)
                if entry.batch_cam:
                    assignments.append("batch_cam = %s")
                    params.append(entry.batch_cam)
                params.append(mra_no)
                self.cursor.execute(
                    f"UPDATE {self.table} SET {', '.join(assignments)} WHERE mra_no = %s",
                    tuple(params),
                )
                updated += 1

            if self.materialira_lookup and new_rows:
                # external MaterialiRA service is not wired up; keep the hook visible
                logger.info(
                    "MaterialiRA lookup requested for %d new MRA numbers (service not configured)",
                    len(new_rows),
                )
        except BatchInsertError as e:
            return PersistResult(False, f"Failed to insert sample metadata: {e}")
        except Exception as e:
            return PersistResult(False, f"Failed to save sample metadata: {e}")

        return PersistResult(
            True,
            f"Saved {len(new_rows)} new MRA numbers and updated {updated} existing records",
        )


def build_mra_map(entries: Sequence[MraBatchEntry]) -> dict[str, MraBatchEntry]:
    """Deduplicate by mra_no; the last occurrence wins. Entries without mra_no are dropped."""
    mapping: dict[str, MraBatchEntry] = {}
    for entry in entries:
        if entry.mra_no:
            mapping[entry.mra_no] = entry
    return mapping


def forward_mra_entries(
    sink: SampleMetadataSink | None,
    file_name: str,
    mapping: Mapping[str, MraBatchEntry],
    log: logging.Logger,
) -> None:
    """Hand the MRA map to the sink; a failure is logged, never raised."""
    if not mapping:
        return
    log.info("Found %d unique MRA numbers: %s", len(mapping), ", ".join(mapping))
    if sink is None:
        return
    try:
        result = sink.persist(file_name, mapping)
    except Exception as e:
        log.error("Failed to save MRA numbers: %s", e)
        return
    if result.success:
        log.info("Successfully saved MRA numbers to sample_metadata table")
    else:
        log.error("Failed to save MRA numbers: %s", result.message)
