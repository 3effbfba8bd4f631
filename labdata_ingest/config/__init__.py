from .loader import ConfigError, IngestConfig, load_config

__all__ = [
    "ConfigError",
    "IngestConfig",
    "load_config",
]
