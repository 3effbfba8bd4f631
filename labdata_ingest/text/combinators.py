from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .normalize import cell_text, is_brez, is_present

"""Rule functions deriving combined display strings for method records.

Every combinator receives a field mapping (MethodRecord.as_dict() or a raw
dict) and returns the combined string, or None when nothing qualifies.
"""

__all__ = [
    "BASKET_APPARATUS",
    "combine_apparatus",
    "combine_apparatus_without_baskets",
    "combine_diss_apparatus",
    "combine_media",
    "combine_increased_rpm",
    "combine_evaluation",
]

# Mixing elements that carry a basket; only these get basket type/set appended
BASKET_APPARATUS = frozenset(
    {
        "Ap. I - košarice",
        "Ap. II + stranska košarica",
        "Ap. II - stranska košarica",
    }
)

YES_TOKEN = "da"
UV_EVALUATION = "uv"


def _usable(value: Any) -> bool:
    return is_present(value) and not is_brez(value)


def _media_valid(value: Any) -> bool:
    return _usable(value) and cell_text(value) != "/"


def _append_sinker(result: str, sinker: Any) -> str:
    if _usable(sinker):
        if result:
            result += ", "
        result += cell_text(sinker)
    return result


def combine_apparatus(row: Mapping[str, Any]) -> str | None:
    """Mixing element, basket type (basket set) and sinker, skipping 'brez' entries."""
    mixing_element = row.get("mixing_element")
    basket_type = row.get("basket_type")
    basket_set = row.get("basket_set")

    result = ""
    if _usable(mixing_element):
        result += cell_text(mixing_element)
        if mixing_element in BASKET_APPARATUS and _usable(basket_type):
            result += f", {cell_text(basket_type)}"
            if _usable(basket_set):
                result += f" ({cell_text(basket_set)})"

    result = _append_sinker(result, row.get("sinker"))
    return result or None


def combine_apparatus_without_baskets(row: Mapping[str, Any]) -> str | None:
    """Ranking-key variant: no basket set, and only the sinker is filtered for 'brez'."""
    mixing_element = row.get("mixing_element")
    basket_type = row.get("basket_type")

    result = ""
    if is_present(mixing_element):
        result += cell_text(mixing_element)
        if mixing_element in BASKET_APPARATUS and is_present(basket_type):
            result += f", {cell_text(basket_type)}"

    result = _append_sinker(result, row.get("sinker"))
    return result or None


def combine_diss_apparatus(row: Mapping[str, Any]) -> str | None:
    apparatus = row.get("dissolution_apparatus")
    internal_code = row.get("diss_apparatus_internal_code")

    if is_present(apparatus) and is_present(internal_code):
        return f"{cell_text(apparatus)}, {cell_text(internal_code)}"
    if is_present(apparatus):
        return cell_text(apparatus)
    if is_present(internal_code):
        return cell_text(internal_code)
    return None


def combine_media(row: Mapping[str, Any]) -> str | None:
    """Build e.g. ``'PBS, pH 6.8, 37°C + 0.5% SDS'``; everything hangs off the short code."""
    short_code = row.get("media_short_code")
    if not _media_valid(short_code):
        return None

    ph = row.get("media_ph")
    temperature = row.get("media_temperature")
    surfactant = row.get("media_surfactant")
    percentage = row.get("media_surfactant_percentage")

    result = cell_text(short_code)
    if _media_valid(ph):
        result += f", pH {cell_text(ph)}"
    if _media_valid(temperature):
        result += f", {cell_text(temperature)}°C"
    if _media_valid(surfactant) and _media_valid(percentage):
        result += f" + {cell_text(percentage)}% {cell_text(surfactant)}"
    return result


def _as_int(value: Any) -> int | None:
    if value is None or is_brez(value):
        return None
    try:
        return int(float(cell_text(value).strip()))
    except ValueError:
        return None


def combine_increased_rpm(row: Mapping[str, Any]) -> str | None:
    """``'{speed} obr./min (start → start+duration min)'`` when the ramp flag reads 'da'."""
    flag = row.get("increased_rpm")
    flag_text = cell_text(flag).strip().lower() if is_present(flag) else ""
    speed = _as_int(row.get("increased_rpm_speed"))
    if flag_text != YES_TOKEN or speed is None:
        return None

    result = f"{speed} obr./min"
    start = _as_int(row.get("increased_rpm_start_time"))
    duration = _as_int(row.get("increased_rpm_duration"))
    if start is not None and duration is not None:
        result += f" ({start} → {start + duration}min)"
    return result


def combine_evaluation(row: Mapping[str, Any]) -> str | None:
    evaluation = row.get("evaluation")
    parts = [
        cell_text(value)
        for value in (evaluation, row.get("hplc"), row.get("hplc_internal_code"))
        if is_present(value)
    ]

    uv_cuvette = row.get("uv_cuvette")
    evaluation_text = cell_text(evaluation).strip().lower() if is_present(evaluation) else ""
    if is_present(uv_cuvette) and evaluation_text == UV_EVALUATION:
        parts.append(f"kiveta: {cell_text(uv_cuvette)}")

    return ", ".join(parts) if parts else None
