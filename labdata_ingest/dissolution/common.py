from __future__ import annotations

import logging
from typing import Any

from ..matching.ingredients import IngredientMatcher

__all__ = [
    "match_active_ingredient",
]


def match_active_ingredient(
    raw: Any, matcher: IngredientMatcher | None, log: logging.Logger
) -> Any:
    """Resolve a sheet's active ingredient against the reference vocabulary.

    Non-string cells and a missing matcher leave the value untouched.
    """
    if matcher is None or not isinstance(raw, str) or not raw:
        return raw
    log.info('Attempting to match active ingredient: "%s"', raw)
    matched = matcher.find_closest_match(raw)
    if matched != raw:
        log.info(
            'Successfully matched active ingredient "%s" to "%s" from reference list', raw, matched
        )
    else:
        log.warning('No match found for active ingredient "%s" in reference list', raw)
    return matched
