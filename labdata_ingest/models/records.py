from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any

"""Record models produced by the parsers.

Every record kind is an explicit frozen dataclass; fields that could not be
extracted are None rather than missing, so downstream writers can rely on a
stable column set.
"""

__all__ = [
    "MethodRecord",
    "SampleRow",
    "ParticleMetadataRow",
    "SizeClassRow",
    "MraBatchEntry",
    "method_record_fields",
]


class _RecordMixin:
    def as_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]


@dataclass(frozen=True)
class MethodRecord(_RecordMixin):
    """One dissolution method, read from one 'izračun' sheet."""
    file_name: str
    sheet_name: str
    active_ingredient_diss: Any
    api_strength_diss: Any
    file_name_active_ing: str  # downstream join key (file_name, active ingredient)
    # apparatus
    mixing_element: Any = None
    rotation_speed: int | None = None
    basket_type: Any = None
    basket_set: Any = None
    sinker: Any = None
    dissolution_apparatus: Any = None
    diss_apparatus_internal_code: Any = None
    # increased rpm ramp
    increased_rpm: Any = None
    increased_rpm_speed: int | None = None
    increased_rpm_start_time: int | None = None
    increased_rpm_duration: int | None = None
    # medium
    media_short_code: Any = None
    media_ph: Any = None
    media_temperature: Any = None
    media_bath_temperature: Any = None
    media_surfactant: Any = None
    media_surfactant_percentage: Any = None
    media_heating: Any = None
    # dilution
    dilution_counter: Any = None
    dilution_denominator: Any = None
    dilution_note: Any = None
    # volumetric / sampling
    vessel_type: Any = None
    volume: Any = None
    aliquot: Any = None
    filters: Any = None
    sampling: Any = None
    media_return: Any = None
    # instrumentation
    evaluation: Any = None
    hplc: Any = None
    hplc_internal_code: Any = None
    hplc_wavelength: Any = None
    uv_cuvette: Any = None
    # personnel / dates
    diss_operator: Any = None
    hplc_operator: Any = None
    analytical_procedure: Any = None
    diss_log: Any = None
    hplc_log: Any = None
    analysis_date: datetime | None = None
    # derived
    apparatus_short: Any = None
    combined_apparatus: str | None = None
    combined_apparatus_without_baskets: str | None = None
    combined_diss_apparatus: str | None = None
    combined_evaluation: str | None = None
    combined_media: str | None = None
    combined_increased_rpm: str | None = None

    @property
    def key(self) -> tuple[str, Any]:
        return (self.file_name, self.active_ingredient_diss)


def method_record_fields() -> set[str]:
    return {f.name for f in fields(MethodRecord)}


@dataclass(frozen=True)
class SampleRow(_RecordMixin):
    """One measured value for one vessel at one time point."""
    file_name: str
    sheet_name: str
    sample_diss: Any
    active_ingredient_diss: Any
    api_strength_diss: Any
    batch_diss: Any
    mra_no: str | None
    vessel_no: int
    time: Any
    dissolved_value: Any
    file_name_active_ing: str
    batch_diss_short: Any = None
    batch_diss_description: str | None = None


@dataclass(frozen=True)
class ParticleMetadataRow(_RecordMixin):
    """Per-measurement metadata ("Table 2") from a particle-size export."""
    index: str  # sample / file-id column header
    file_name: str
    file_name_file_no: str
    x_q3_10: Any = None
    x_q3_50: Any = None
    x_q3_90: Any = None
    mv3_x: Any = None
    sigma3_x: Any = None
    span3: Any = None
    sv: Any = None
    mean_value_spht3: Any = None
    mean_value_symm3: Any = None
    mean_value_b_l3: Any = None
    mra_no: Any = None
    label_ou_sr: Any = None
    method_short: str | None = None
    trial: Any = None
    intermediate_form: str | None = None
    batch_cam: Any = None


@dataclass(frozen=True)
class SizeClassRow(_RecordMixin):
    """One (file_no, size_class) -> size_value cell of the size distribution ("Table 3")."""
    file_no: str
    size_class: str
    size_value: str
    file_name: str
    file_name_file_no: str


@dataclass(frozen=True)
class MraBatchEntry(_RecordMixin):
    """Best-known batch codes for one MRA sample reference."""
    mra_no: str
    batch_diss: str | None = None
    batch_cam: str | None = None
