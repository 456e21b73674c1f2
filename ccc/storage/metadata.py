"""Metadata store: the ``.project-info`` record inside each storage tree.

The file is newline-separated ``KEY=VALUE`` pairs::

    PROJECT_NAME=my-app
    PROJECT_PATH=/home/me/src/my-app
    PROJECT_TYPE=web-dev
    TEMPLATE_VERSION=1.2.0
    SETUP_DATE=2026-01-02T10:00:00+00:00
    LAST_UPDATE=2026-01-02T10:00:00+00:00

Parsing happens once, here, and yields either a validated ``ProjectRecord``,
``None`` when the file is absent, or ``MalformedMetadataError``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from ccc.errors import MalformedMetadataError
from ccc.models.project import METADATA_KEYS, ProjectRecord
from ccc.paths import StoragePaths

logger = logging.getLogger(__name__)


def serialize_record(record: ProjectRecord) -> str:
    return "\n".join(
        f"{key}={getattr(record, attr)}" for key, attr in METADATA_KEYS.items()
    )


def parse_record(content: str, source: str = "<string>") -> ProjectRecord:
    """Parse ``KEY=VALUE`` lines into a record.

    Lines are split on the first ``=`` and values are kept verbatim, empty
    ones included. Unknown keys and lines without ``=`` are ignored; any
    missing required key is an error.
    """
    fields: dict[str, str] = {}
    for line in content.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        attr = METADATA_KEYS.get(key.strip())
        if attr:
            fields[attr] = value

    missing = [key for key, attr in METADATA_KEYS.items() if attr not in fields]
    if missing:
        raise MalformedMetadataError(source, f"missing keys {', '.join(missing)}")

    try:
        return ProjectRecord(**fields)
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise MalformedMetadataError(source, errors) from e


class MetadataStore:
    """Reads and writes project records under a storage root."""

    def __init__(self, paths: StoragePaths):
        self.paths = paths

    def path_for(self, name: str) -> Path:
        return self.paths.project_info_path(name)

    def read(self, name: str) -> ProjectRecord | None:
        path = self.path_for(name)
        if not path.is_file():
            logger.debug("No project info for %s at %s", name, path)
            return None
        return parse_record(path.read_text(encoding="utf-8"), source=str(path))

    def write(self, record: ProjectRecord) -> Path:
        path = self.path_for(record.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(serialize_record(record), encoding="utf-8")
        logger.debug("Wrote project info for %s", record.name)
        return path

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()
