from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config/ingest.yml
- Validate against the packaged JSON schema (ingest_schema.json)
- Apply defaults for every optional section
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "DatabaseConfig",
    "MatchingConfig",
    "TableConfig",
    "IngestConfig",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/ingest.yml")
SCHEMA_PATH = Path(__file__).with_name("ingest_schema.json")

DEFAULT_FILE_PATTERNS = ("*.xlsx", "*.xlsm", "*.xls", "*.csv")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class MatchingConfig:
    threshold: int = 80
    lenient_threshold: int = 60
    ingredients_file: str | None = None


@dataclass(frozen=True)
class TableConfig:
    active_ingredient: str = "active_ingredient"
    sample_metadata: str = "sample_metadata"


@dataclass(frozen=True)
class IngestConfig:
    source_directory: str
    file_patterns: tuple[str, ...] = DEFAULT_FILE_PATTERNS
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    size_class_window: int = 103
    materialira_lookup: bool = False
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tables: TableConfig = field(default_factory=TableConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: the schema file is missing or invalid, or the data fails validation
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    matching = data.get("matching") or {}
    particle = data.get("particle") or {}
    features = data.get("features") or {}
    return IngestConfig(
        source_directory=data["source_directory"],
        file_patterns=tuple(data.get("file_patterns") or DEFAULT_FILE_PATTERNS),
        matching=MatchingConfig(**matching),
        size_class_window=particle.get("size_class_window", 103),
        materialira_lookup=bool(features.get("materialira_lookup", False)),
        database=DatabaseConfig(**(data.get("database") or {})),
        tables=TableConfig(**(data.get("tables") or {})),
    )
