from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

import pandas as pd

from ..db.sample_metadata import SampleMetadataSink, build_mra_map, forward_mra_entries
from ..errors import ParticleFormatError
from ..models.parse_result import ParticleParseResult
from ..models.records import MraBatchEntry, ParticleMetadataRow, SizeClassRow
from ..text.normalize import (
    extract_batch_code_without_letter,
    extract_method_short_prefix,
    format_number,
    split_trial_code_lenient,
)

"""Particle-size analyser export parser.

The export is UTF-16, tab-delimited, and split into three zones by the first
two blank lines (empty, or starting with a tab):

    zone 1   instrument preamble (ignored)
    <blank>
    zone 2   "Table 2": one row per measured field, one column per sample id
    <blank>
    title, units
    zone 3   "Table 3": header row of file ids, then size-class rows

Zone 2 is transposed into one metadata row per sample id; zone 3 is melted
into (file_no, size_class, size_value) rows. Any zone problem fails the file.
"""

__all__ = [
    "SIZE_CLASS_WINDOW",
    "COLUMN_MAPPING",
    "EXCLUDED_FIELDS",
    "find_blank_lines",
    "parse_metadata_table",
    "parse_size_class_table",
    "parse_particle_csv",
]

logger = logging.getLogger(__name__)

SIZE_CLASS_WINDOW = 103
# lines between the second blank line and the Table 3 header: title and units
TABLE3_SKIP_LINES = 3

COLUMN_MAPPING = {
    "x(Q3=10.0 %) [µm]": "x_q3_10",
    "x(Q3=50.0 %) [µm]": "x_q3_50",
    "x(Q3=90.0 %) [µm]": "x_q3_90",
    "Mv3(x) [µm]": "mv3_x",
    "Sigma3(x) [µm]": "sigma3_x",
    "SPAN3": "span3",
    "Sv [1/mm]": "sv",
    "Mean value SPHT3": "mean_value_spht3",
    "Mean value Symm3": "mean_value_symm3",
    "Mean value b/l3": "mean_value_b_l3",
}
MRA_FIELD = "Comment 1"
LABEL_FIELD = "Comment 2"

EXCLUDED_FIELDS = frozenset(
    {
        "Q3 (SPHT=0.900) [%]",
        "p3 (SPHT=80.0 %) [%]",
        "SPHT (Q3=10.0 %)",
        "SPHT (Q3=50.0 %)",
        "SPHT (Q3=90.0 %)",
        "Q3(20.0 µm) [%]",
        "Q3(30.0 µm) [%]",
        "Q3(40.0 µm) [%]",
        "Q3(500.0 µm) [%]",
        "Q3(710.0 µm) [%]",
        "Q3(1000.0 µm) [%]",
        "Q3(1250.0 µm) [%]",
        "Q3(100.0 µm) [%]",
        "Q3(200.0 µm) [%]",
        "Q3(50.0 µm) [%]",
        "p3(50 µm, 150 µm) [%]",
        "p3(150 µm, 250 µm) [%]",
        "p3(250 µm, 350 µm) [%]",
    }
)

ZERO_ANCHOR_SIZE_CLASS = 0.1
MIN_SIZE_CLASS_FIELDS = 3

_LINE_SPLIT_RE = re.compile(r"\r?\n")


def _to_float(value: Any) -> float | None:
    """Decimal-comma tolerant float conversion; None when not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    try:
        number = float(str(value).strip().replace(",", ".", 1))
    except ValueError:
        return None
    return None if math.isnan(number) else number


def _decode(data: bytes | str) -> str:
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-16")
    except UnicodeDecodeError as e:
        raise ParticleFormatError(f"CSV input is not valid UTF-16 text: {e}") from e


def _is_blank(line: str) -> bool:
    return not line.strip() or line.startswith("\t")


def find_blank_lines(lines: list[str]) -> tuple[int, int]:
    """0-based indices of the first two blank lines.

    Raises:
        ParticleFormatError: fewer than two blank lines
    """
    blanks: list[int] = []
    for i, line in enumerate(lines):
        if _is_blank(line):
            blanks.append(i)
            if len(blanks) == 2:
                return blanks[0], blanks[1]
    raise ParticleFormatError("Could not locate two blank rows - check file format.")


def _metadata_row(sample_id: str, attrs: dict[str, Any], file_name: str) -> ParticleMetadataRow:
    values: dict[str, Any] = {
        COLUMN_MAPPING[name]: value
        for name, value in attrs.items()
        if name in COLUMN_MAPPING and name not in EXCLUDED_FIELDS
    }
    # mapped fields are numeric; anything that does not parse is kept verbatim
    for key, value in values.items():
        number = _to_float(value)
        if number is not None:
            values[key] = number

    mra_no = attrs.get(MRA_FIELD) or None
    label = attrs.get(LABEL_FIELD) or None
    method_short = trial = intermediate_form = batch_cam = None
    if label:
        prefix, label = extract_method_short_prefix(str(label))
        method_short = prefix or ""
        trial, intermediate_form = split_trial_code_lenient(label)
        batch_cam = extract_batch_code_without_letter(trial)

    return ParticleMetadataRow(
        index=sample_id,
        file_name=file_name,
        file_name_file_no=f"{file_name}_{sample_id}",
        mra_no=mra_no,
        label_ou_sr=label,
        method_short=method_short,
        trial=trial,
        intermediate_form=intermediate_form,
        batch_cam=batch_cam,
        **{field: values.get(field) for field in COLUMN_MAPPING.values()},
    )


def parse_metadata_table(
    lines: list[str], file_name: str, *, log: logging.Logger = logger
) -> list[ParticleMetadataRow]:
    """Transpose zone 2 (fields x samples) into one ParticleMetadataRow per sample id.

    Raises:
        ParticleFormatError: the zone is empty
    """
    if not lines:
        raise ParticleFormatError("No data in Table2 section.")

    header = lines[0].split("\t")
    sample_ids = list(dict.fromkeys(s for s in header[1:] if s.strip()))

    by_field: dict[str, dict[str, str]] = {}
    for line in lines[1:]:
        values = line.split("\t")
        field_values = by_field.setdefault(values[0].strip(), {})
        for i, sample_id in enumerate(header[1:], start=1):
            if i < len(values):
                field_values[sample_id] = values[i]

    frame = pd.DataFrame(
        [[values.get(s) for s in sample_ids] for values in by_field.values()],
        index=list(by_field),
        columns=sample_ids,
        dtype=object,
    )

    rows: list[ParticleMetadataRow] = []
    for sample_id, attrs in frame.T.iterrows():
        present = {name: value for name, value in attrs.items() if value is not None}
        row = _metadata_row(str(sample_id), present, file_name)
        log.debug("Cleaned metadata row: %s", json.dumps(row.as_dict(), ensure_ascii=False))
        rows.append(row)
    return rows


def parse_size_class_table(
    lines: list[str], file_name: str, *, log: logging.Logger = logger
) -> list[SizeClassRow]:
    """Melt zone 3 into SizeClassRows plus one zero-anchor row per file id.

    Raises:
        ParticleFormatError: the window is empty or holds no data line
    """
    if not lines:
        raise ParticleFormatError("No data in Table3 section.")
    if len(lines) < 2:
        raise ParticleFormatError("Not enough lines to parse Table3 header + data.")

    file_nos: list[str] = []
    for name in (c.strip() for c in lines[0].split("\t")[2:]):
        if not name:
            continue
        if name in file_nos:
            break
        file_nos.append(name)

    records: list[list[float]] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        cols = [c.strip() for c in line.split("\t")]
        if len(cols) < MIN_SIZE_CLASS_FIELDS:
            continue
        size_class = _to_float(cols[1])
        if size_class is None:
            continue
        padded = cols[2:] + [""] * len(file_nos)
        values = [_to_float(v) for v in padded[: len(file_nos)]]
        records.append([size_class, *(0.0 if v is None else v for v in values)])

    frame = pd.DataFrame(records, columns=["size_class", *file_nos])
    melted = frame.melt(id_vars="size_class", var_name="file_no", value_name="size_value")
    if melted.empty:
        log.info("Parsed 0 size-class row(s) for 0 file id(s)")
        return []

    anchors = pd.DataFrame(
        {
            "file_no": melted["file_no"].unique(),
            "size_class": ZERO_ANCHOR_SIZE_CLASS,
            "size_value": 0.0,
        }
    )
    combined = pd.concat([anchors, melted], ignore_index=True).sort_values(
        ["file_no", "size_class"], kind="stable"
    )
    log.info("Parsed %d size-class row(s) for %d file id(s)", len(combined), len(anchors))

    return [
        SizeClassRow(
            file_no=str(row.file_no),
            size_class=format_number(float(row.size_class)),
            size_value=format_number(float(row.size_value)),
            file_name=file_name,
            file_name_file_no=f"{file_name}_{row.file_no}",
        )
        for row in combined.itertuples(index=False)
    ]


def parse_particle_csv(
    data: bytes | str,
    file_name: str,
    *,
    sink: SampleMetadataSink | None = None,
    log: logging.Logger = logger,
    size_class_window: int = SIZE_CLASS_WINDOW,
) -> ParticleParseResult:
    """Parse both zones of a particle-size export.

    The MRA map is forwarded to ``sink`` only after both zones parsed.

    Raises:
        ParticleFormatError: missing blank lines, empty zones, undecodable input
    """
    size = len(data.encode("utf-16")) if isinstance(data, str) else len(data)
    log.info("Starting parse of %s (%d bytes)", file_name, size)

    try:
        lines = _LINE_SPLIT_RE.split(_decode(data))
        first_blank, second_blank = find_blank_lines(lines)
        log.info(
            "Blank rows at lines %d & %d; rows between: %d",
            first_blank + 1,
            second_blank + 1,
            second_blank - first_blank - 1,
        )

        metadata_rows = parse_metadata_table(
            lines[first_blank + 1 : second_blank], file_name, log=log
        )
        window_start = second_blank + TABLE3_SKIP_LINES
        size_class_rows = parse_size_class_table(
            lines[window_start : window_start + size_class_window], file_name, log=log
        )
    except ParticleFormatError as e:
        log.error("%s", e)
        raise

    log.info("Parsing completed successfully.")

    mra_entries = build_mra_map(
        [
            MraBatchEntry(mra_no=str(row.mra_no), batch_cam=row.batch_cam or None)
            for row in metadata_rows
            if row.mra_no
        ]
    )
    forward_mra_entries(sink, file_name, mra_entries, log)

    return ParticleParseResult(
        file_name=file_name,
        metadata_rows=metadata_rows,
        size_class_rows=size_class_rows,
        mra_entries=mra_entries,
    )
