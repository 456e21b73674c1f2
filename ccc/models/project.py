"""Project provenance record stored alongside each storage tree."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone

from pydantic import BaseModel, field_validator

PROJECT_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")

EXISTING_TEMPLATE_TYPE = "existing"
NO_TEMPLATE_VERSION = "none"

# Metadata file key -> record field, in the order keys are written.
METADATA_KEYS = {
    "PROJECT_NAME": "name",
    "PROJECT_PATH": "path",
    "PROJECT_TYPE": "template_type",
    "TEMPLATE_VERSION": "template_version",
    "SETUP_DATE": "setup_date",
    "LAST_UPDATE": "last_update",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_valid_project_name(name: str) -> bool:
    return bool(PROJECT_NAME_PATTERN.match(name))


class ProjectRecord(BaseModel):
    """Where a project lives and which template version its storage holds."""

    name: str
    path: str
    template_type: str
    template_version: str
    setup_date: str
    last_update: str

    @field_validator("name")
    @classmethod
    def _slug(cls, value: str) -> str:
        if not is_valid_project_name(value):
            raise ValueError(
                "project name must use lowercase letters, numbers, and hyphens only"
            )
        return value

    @field_validator("path")
    @classmethod
    def _absolute(cls, value: str) -> str:
        if not os.path.isabs(value):
            raise ValueError(f"project path must be absolute, got {value!r}")
        return value

    @property
    def is_existing(self) -> bool:
        return self.template_type == EXISTING_TEMPLATE_TYPE
