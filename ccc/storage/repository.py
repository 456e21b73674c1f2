"""Storage repository: owns every project's storage tree.

Creates trees from templates or from a project's existing configuration,
applies template upgrades (backup first, then merge), and snapshots or
deletes trees. The symlink manager only ever points at these trees.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path

from ccc.errors import InvalidProjectNameError, MalformedMetadataError, ProjectNotFoundError
from ccc.models.project import (
    EXISTING_TEMPLATE_TYPE,
    NO_TEMPLATE_VERSION,
    ProjectRecord,
    is_valid_project_name,
    utc_now_iso,
)
from ccc.models.template import TEMPLATE_META_FILES, Template
from ccc.paths import (
    BACKUPS_DIR,
    CLAUDE_DIR,
    CLAUDE_FILE,
    PROJECT_INFO_FILE,
    StoragePaths,
    resolve_project_path,
)
from ccc.storage.merge import merge_claude_file
from ccc.storage.metadata import MetadataStore
from ccc.utils.file_scanner import copy_tree, directory_size, scan_files

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup-"
BACKUP_TIME_FORMAT = "%Y-%m-%d-%H-%M-%S"

SETTINGS_FILE = "settings.json"

DEFAULT_SETTINGS = {
    "permissions": {
        "allow": [],
        "deny": [],
    },
    "env": {},
}

PLACEHOLDER_CLAUDE_MD = (
    "# Project Guidelines\n"
    "\n"
    "## Overview\n"
    "\n"
    "This project uses its existing configuration.\n"
    "\n"
    "## Custom Configuration\n"
    "\n"
    "Add your project-specific guidelines here.\n"
)


def write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


class StorageRepository:
    """File-based storage for project configuration trees.

    Storage path: ``<home>/storage/<name>/`` holding the configuration files,
    the ``.project-info`` record and a ``backups/`` directory of snapshots.
    """

    def __init__(self, paths: StoragePaths, metadata: MetadataStore | None = None):
        self.paths = paths
        self.metadata = metadata or MetadataStore(paths)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_project(
        self,
        name: str,
        template: Template,
        project_path: str | Path | None = None,
    ) -> ProjectRecord:
        """Seed storage from a template without overwriting existing files."""
        _check_name(name)
        storage_dir = self.paths.ensure_dir(self.paths.project_storage_dir(name))
        logger.debug("Creating storage for project: %s", name)

        copied = copy_tree(template.path, storage_dir, skip_top_level=TEMPLATE_META_FILES)
        logger.debug("Seeded %d file(s) from template %s", len(copied), template.name)

        now = utc_now_iso()
        record = ProjectRecord(
            name=name,
            path=str(resolve_project_path(project_path)),
            template_type=template.name,
            template_version=template.meta.version,
            setup_date=now,
            last_update=now,
        )
        self.metadata.write(record)
        logger.info("Created storage directory for %s", name)
        return record

    def create_project_from_existing(self, name: str, project_path: str | Path) -> ProjectRecord:
        """Adopt a project's own ``.claude/`` and ``CLAUDE.md`` into storage."""
        _check_name(name)
        project_path = resolve_project_path(project_path)
        storage_dir = self.paths.ensure_dir(self.paths.project_storage_dir(name))
        logger.debug("Creating storage from existing project: %s", name)

        existing_dir = project_path / CLAUDE_DIR
        existing_file = project_path / CLAUDE_FILE
        stored_file = storage_dir / CLAUDE_FILE

        if existing_dir.is_dir():
            copy_tree(existing_dir, storage_dir)
        else:
            settings_path = storage_dir / SETTINGS_FILE
            if not settings_path.exists():
                write_json(settings_path, DEFAULT_SETTINGS)

        if existing_file.is_file():
            if not (stored_file.exists() and os.path.samefile(existing_file, stored_file)):
                shutil.copy2(existing_file, stored_file)
        elif not stored_file.exists():
            stored_file.write_text(PLACEHOLDER_CLAUDE_MD, encoding="utf-8")

        now = utc_now_iso()
        record = ProjectRecord(
            name=name,
            path=str(project_path),
            template_type=EXISTING_TEMPLATE_TYPE,
            template_version=NO_TEMPLATE_VERSION,
            setup_date=now,
            last_update=now,
        )
        self.metadata.write(record)
        logger.info("Created storage directory for %s with existing configuration", name)
        return record

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_project(self, name: str, template: Template) -> ProjectRecord | None:
        """Back up, then merge a template onto an existing storage tree.

        Non-CLAUDE.md files are overwritten; CLAUDE.md keeps its custom
        section. Returns the updated record, or None when the tree has no
        record to update.
        """
        storage_dir = self.require_storage_dir(name)

        self.create_backup(name)

        for rel in scan_files(template.path, TEMPLATE_META_FILES):
            source = template.path / rel
            target = storage_dir / rel
            if rel == CLAUDE_FILE:
                if merge_claude_file(source, target):
                    logger.debug("Preserved custom section in %s", target)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)

        record = self.metadata.read(name)
        if record is None:
            logger.warning("No project info for %s; template version not recorded", name)
            return None

        record = record.model_copy(
            update={
                "template_version": template.meta.version,
                "last_update": utc_now_iso(),
            }
        )
        self.metadata.write(record)
        logger.info("Updated project %s to %s", name, template.meta.version)
        return record

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def create_backup(self, name: str) -> Path:
        """Snapshot the storage tree, minus ``backups/``, into a timestamped dir.

        Two snapshots taken in the same second share a directory.
        """
        storage_dir = self.require_storage_dir(name)

        backups_dir = self.paths.ensure_dir(self.paths.project_backups_dir(name))
        backup_name = BACKUP_PREFIX + datetime.now().strftime(BACKUP_TIME_FORMAT)
        backup_path = backups_dir / backup_name

        def ignore(directory: str, names: list[str]) -> set[str]:
            if Path(directory) == storage_dir and BACKUPS_DIR in names:
                return {BACKUPS_DIR}
            return set()

        shutil.copytree(
            storage_dir, backup_path, symlinks=True, ignore=ignore, dirs_exist_ok=True
        )
        logger.info("Created backup: %s", backup_name)
        return backup_path

    def backup_count(self, name: str) -> int:
        backups_dir = self.paths.project_backups_dir(name)
        if not backups_dir.is_dir():
            return 0
        return sum(
            1 for p in backups_dir.iterdir() if p.is_dir() and p.name.startswith(BACKUP_PREFIX)
        )

    # ------------------------------------------------------------------
    # Removal and migration
    # ------------------------------------------------------------------

    def delete_project(self, name: str) -> bool:
        """Remove the storage tree, backups included. Returns False if absent."""
        _check_name(name)
        storage_dir = self.paths.project_storage_dir(name)
        if not storage_dir.exists():
            return False
        shutil.rmtree(storage_dir)
        logger.info("Removed storage for %s", name)
        return True

    remove_project = delete_project

    def restore_to_project(self, name: str, project_path: str | Path) -> None:
        """Copy storage contents back into the project as real files.

        The project's symlinks must be removed first, otherwise the copy
        would write through them into storage.
        """
        storage_dir = self.require_storage_dir(name)

        project_path = resolve_project_path(project_path)
        for link in (project_path / CLAUDE_DIR, project_path / CLAUDE_FILE):
            if link.is_symlink():
                raise FileExistsError(f"Remove the symlink at {link} before restoring")

        copy_tree(
            storage_dir,
            project_path / CLAUDE_DIR,
            overwrite=True,
            skip_top_level={BACKUPS_DIR, PROJECT_INFO_FILE},
        )
        stored_file = storage_dir / CLAUDE_FILE
        if stored_file.is_file():
            shutil.copy2(stored_file, project_path / CLAUDE_FILE)
        logger.info("Restored configuration for %s into %s", name, project_path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def require_storage_dir(self, name: str) -> Path:
        """Storage dir for a valid, existing project.

        The name is checked first: ``""`` or ``..`` would resolve to the storage
        root or the ccc home.
        """
        _check_name(name)
        storage_dir = self.paths.project_storage_dir(name)
        if not storage_dir.is_dir():
            raise ProjectNotFoundError(name)
        return storage_dir

    def list_projects(self) -> list[str]:
        storage_dir = self.paths.storage_dir
        if not storage_dir.is_dir():
            return []
        return sorted(entry.name for entry in storage_dir.iterdir() if entry.is_dir())

    def get_project_info(self, name: str) -> ProjectRecord | None:
        return self.metadata.read(name)

    def require_project_info(self, name: str) -> ProjectRecord:
        _check_name(name)
        record = self.metadata.read(name)
        if record is None:
            raise ProjectNotFoundError(name)
        return record

    def find_project_by_path(self, project_path: str | Path) -> str | None:
        """Name of the project recorded at ``project_path``, if any."""
        wanted = os.path.normpath(str(resolve_project_path(project_path)))
        for name in self.list_projects():
            try:
                record = self.metadata.read(name)
            except MalformedMetadataError as e:
                logger.warning("Skipping %s: %s", name, e)
                continue
            if record and os.path.normpath(record.path) == wanted:
                return name
        return None

    def project_size(self, name: str) -> int:
        return directory_size(self.paths.project_storage_dir(name))


def _check_name(name: str) -> None:
    if not is_valid_project_name(name):
        raise InvalidProjectNameError(name)
