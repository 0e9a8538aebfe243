from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, ImportConfig, ImportSettings

"""Config loader.

Responsibilities:
- Load YAML config (config/import.yml by default)
- Validate against config_schema.json shipped next to this module
- Apply defaults for everything optional
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the config
            data fails schema validation (missing keys, wrong types, unknown keys).
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


def _build_settings(data: dict[str, Any]) -> ImportSettings:
    defaults = ImportSettings()
    raw = data.get("import") or {}
    sentinels = frozenset(
        s.strip().upper() for s in (data.get("null_sentinels") or []) if s.strip()
    )
    return ImportSettings(
        batch_size=raw.get("batch_size", defaults.batch_size),
        error_cap=raw.get("error_cap", defaults.error_cap),
        header_min_filled_cells=raw.get("header_min_filled_cells", defaults.header_min_filled_cells),
        check_imei_checksum=raw.get("check_imei_checksum", defaults.check_imei_checksum),
        sheet_name=data.get("sheet_name"),
        null_sentinels=sentinels,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        source_directory=data["source_directory"],
        settings=_build_settings(data),
        database=db,
    )
