from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

from rapidfuzz import fuzz, process

"""Fuzzy resolution of free-text active ingredient names.

The reference vocabulary is fetched once through an IngredientProvider and
kept in an IngredientCache that the caller constructs once per process and
shares between parse calls. The matcher never raises: a failed vocabulary
fetch simply leaves every input unmatched.
"""

__all__ = [
    "DEFAULT_THRESHOLD",
    "LENIENT_THRESHOLD",
    "IngredientProvider",
    "StaticIngredientProvider",
    "IngredientCache",
    "IngredientMatcher",
]

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 80
LENIENT_THRESHOLD = 60

_WHITESPACE_RE = re.compile(r"\s+")


class IngredientProvider(Protocol):
    def fetch_reference_ingredients(self) -> Sequence[str]: ...


class StaticIngredientProvider:
    """Vocabulary from a fixed list, optionally read from a one-name-per-line file."""

    def __init__(self, names: Sequence[str] | None = None) -> None:
        self._names = [n for n in (names or []) if n]

    @classmethod
    def from_file(cls, path: Path) -> StaticIngredientProvider:
        lines = path.read_text(encoding="utf-8").splitlines()
        return cls([line.strip() for line in lines if line.strip()])

    def fetch_reference_ingredients(self) -> Sequence[str]:
        return list(self._names)


def _normalize(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value.lower()).strip()


class IngredientCache:
    """One-fetch-then-reuse holder for the reference vocabulary.

    A fetch that raises or returns nothing is not cached, so the next lookup
    retries the provider.
    """

    def __init__(self, provider: IngredientProvider) -> None:
        self._provider = provider
        self._names: list[str] | None = None

    @property
    def loaded(self) -> bool:
        return self._names is not None

    def get(self) -> list[str]:
        if self._names is not None:
            return self._names
        try:
            fetched = [n for n in self._provider.fetch_reference_ingredients() if n]
        except Exception as e:
            logger.error("failed to fetch reference ingredients: %s", e)
            return []
        if not fetched:
            logger.warning("reference ingredient vocabulary is empty")
            return []
        self._names = fetched
        logger.debug("cached %d reference ingredient names", len(fetched))
        return self._names


class IngredientMatcher:
    def __init__(
        self,
        cache: IngredientCache,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        lenient_threshold: int = LENIENT_THRESHOLD,
        scorer: Callable[..., float] = fuzz.token_sort_ratio,
    ) -> None:
        self.cache = cache
        self.threshold = threshold
        self.lenient_threshold = lenient_threshold
        self._scorer = scorer

    def find_closest_match(self, value: str, threshold_percent: int | None = None) -> str:
        """Return the canonical vocabulary spelling closest to ``value``.

        Steps:
        1. empty input is returned unchanged
        2. case/whitespace-insensitive exact match wins outright
        3. best fuzzy candidate (whole string, word order ignored) is accepted
           when its similarity reaches ``threshold_percent`` (default: the
           matcher's ``threshold``)
        4. otherwise it is accepted at the lenient threshold
        5. otherwise the input comes back unchanged
        """
        if not value:
            return value
        try:
            names = self.cache.get()
            if not names:
                return value

            normalized = _normalize(value)
            for name in names:
                if _normalize(name) == normalized:
                    return name

            best = process.extractOne(
                normalized,
                names,
                scorer=self._scorer,
                processor=_normalize,
            )
            if best is None:
                return value
            candidate, score, _ = best
            if score >= (self.threshold if threshold_percent is None else threshold_percent):
                return candidate
            if score >= self.lenient_threshold:
                logger.debug(
                    "lenient ingredient match %r -> %r score=%.1f", value, candidate, score
                )
                return candidate
            return value
        except Exception as e:
            logger.error("fuzzy ingredient matching failed for %r: %s", value, e)
            return value
