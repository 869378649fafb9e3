from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from catalog_ingest.models.config_models import (
    ImageConfig,
    IngestConfig,
    LayoutConfig,
    MatchingConfig,
    UploadConfig,
)

"""Config loader.

Responsibilities:
- Load the YAML config file
- Validate it against the bundled JSON schema (schema.json next to this module)
- Fill every missing key with the IngestConfig defaults
"""

__all__ = [
    "SCHEMA_PATH",
    "ConfigError",
    "default_config",
    "config_from_dict",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {where}: {e.message}") from e


def default_config() -> IngestConfig:
    return IngestConfig()


def config_from_dict(data: dict[str, Any]) -> IngestConfig:
    """Validated mapping -> IngestConfig; absent keys keep their defaults."""
    _validate_config_schema(data)
    matching = dict(data.get("matching", {}))
    if "row_drift" in matching:
        matching["row_drift"] = tuple(matching["row_drift"])
    kwargs: dict[str, Any] = {
        "layout": LayoutConfig(**data.get("layout", {})),
        "images": ImageConfig(**data.get("images", {})),
        "matching": MatchingConfig(**matching),
        "upload": UploadConfig(**data.get("upload", {})),
    }
    if "logs_directory" in data:
        kwargs["logs_directory"] = data["logs_directory"]
    return IngestConfig(**kwargs)


def load_config(path: Path) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return config_from_dict(data)
