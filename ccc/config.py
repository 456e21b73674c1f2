"""User configuration loaded from ``<home>/config.yaml``.

Every key is optional::

    cleanup_days: 30
    cleanup_keep: 5
    essential_files:
      - settings.json
"""

from __future__ import annotations

from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from ccc.errors import ConfigError
from ccc.paths import StoragePaths

DEFAULT_CLEANUP_DAYS = 30
DEFAULT_ESSENTIAL_FILES = ["settings.json"]


class CccConfig(BaseModel):
    cleanup_days: int = Field(default=DEFAULT_CLEANUP_DAYS, ge=0)
    cleanup_keep: Optional[int] = Field(default=None, ge=0)
    essential_files: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ESSENTIAL_FILES)
    )


def load_config(paths: StoragePaths) -> CccConfig:
    """Load the config file, falling back to defaults when it is absent."""
    path = paths.config_file
    if not path.exists():
        return CccConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        return CccConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e
