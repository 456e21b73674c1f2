"""Template bundles used to seed and update storage trees."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Describe the template itself; never copied into storage.
TEMPLATE_META_FILES = frozenset({"meta.json", "meta.yaml", "meta.yml"})


class TemplateMeta(BaseModel):
    """Contents of a template's ``meta.json`` / ``meta.yaml``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = Field(min_length=1)
    display_name: str = Field(default="", alias="displayName")
    description: str = ""
    icon: str = ""
    category: str = ""

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value):
        # YAML reads `version: 1.0` as a float
        if isinstance(value, (int, float)):
            return str(value)
        return value


@dataclass
class Template:
    """A named, versioned directory of default configuration files."""

    name: str
    path: Path
    meta: TemplateMeta
    files: list[str] = field(default_factory=list)  # Relative POSIX paths, meta excluded

    @property
    def version(self) -> str:
        return self.meta.version

    @property
    def label(self) -> str:
        icon = f"{self.meta.icon} " if self.meta.icon else ""
        return f"{icon}{self.name} v{self.meta.version}"
