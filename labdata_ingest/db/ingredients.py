from __future__ import annotations

import logging
from typing import Any

"""Reference vocabulary of active ingredients read from PostgreSQL.

Each row of the ``active_ingredient`` table carries two spellings (``api0``,
``api1``); both are offered to the matcher.
"""

__all__ = [
    "PostgresIngredientProvider",
]

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "active_ingredient"


class PostgresIngredientProvider:
    def __init__(self, cursor: Any, table: str = DEFAULT_TABLE) -> None:
        self.cursor = cursor
        self.table = table

    def fetch_reference_ingredients(self) -> list[str]:
        """Distinct non-empty api0/api1 names in first-seen order."""
        self.cursor.execute(f"SELECT api0, api1 FROM {self.table}")
        names: dict[str, None] = {}
        for row in self.cursor.fetchall():
            for value in row[:2]:
                if isinstance(value, str) and value.strip():
                    names.setdefault(value.strip(), None)
        logger.debug("Fetched %d reference ingredient name(s) from %s", len(names), self.table)
        return list(names)
