"""Symlink manager: connects a project work tree to its storage tree.

Each project gets two links, handled independently:

- ``<project>/.claude``   -> ``storage/<name>/``           (directory link)
- ``<project>/CLAUDE.md`` -> ``storage/<name>/CLAUDE.md``  (file link)

Link text is always relative to the link's parent directory so a moved
home directory or a synced dotfiles tree keeps working.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ccc.errors import SymlinkPermissionError
from ccc.paths import CLAUDE_DIR, CLAUDE_FILE, StoragePaths

logger = logging.getLogger(__name__)


class LinkState(Enum):
    ABSENT = "absent"  # Nothing at the link path
    VALID = "valid"  # Symlink whose target resolves
    STALE = "stale"  # Symlink to the wrong or an unreachable target
    FOREIGN = "foreign"  # A real file or directory occupies the path


@dataclass
class ProjectLink:
    """One of the two links a managed project carries."""

    link_path: Path
    target: Path
    is_directory: bool

    @property
    def label(self) -> str:
        return self.link_path.name

    @property
    def relative_target(self) -> str:
        return relative_link_text(self.link_path, self.target)


def relative_link_text(link_path: Path, target: Path) -> str:
    """Relative POSIX path from the link's parent directory to ``target``."""
    rel = os.path.relpath(os.path.abspath(target), os.path.abspath(link_path.parent))
    return Path(rel).as_posix()


class SymlinkManager:
    """Creates, removes, and inspects project symlinks."""

    def __init__(self, paths: StoragePaths):
        self.paths = paths

    def project_links(self, project_path: str | Path, name: str) -> list[ProjectLink]:
        project_path = Path(project_path)
        storage_dir = self.paths.project_storage_dir(name)
        return [
            ProjectLink(project_path / CLAUDE_DIR, storage_dir, is_directory=True),
            ProjectLink(project_path / CLAUDE_FILE, storage_dir / CLAUDE_FILE, is_directory=False),
        ]

    def create_project_symlinks(self, project_path: str | Path, name: str) -> None:
        """Point both links at the project's storage tree.

        The links are attempted one after the other, not as a pair: if the
        first fails the second is still tried, then the first error is raised.
        """
        first_error: OSError | None = None
        for link in self.project_links(project_path, name):
            try:
                self._create_symlink(link)
            except OSError as e:
                logger.error("Could not link %s: %s", link.link_path, e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
        logger.info("Created project symlinks in %s", project_path)

    def remove_project_symlinks(self, project_path: str | Path) -> list[Path]:
        """Unlink ``.claude`` and ``CLAUDE.md`` if, and only if, they are symlinks."""
        project_path = Path(project_path)
        removed = []
        for link_path in (project_path / CLAUDE_DIR, project_path / CLAUDE_FILE):
            if link_path.is_symlink():
                link_path.unlink()
                removed.append(link_path)
                logger.info("Removed %s symlink", link_path.name)
            elif link_path.exists():
                logger.debug("Leaving %s alone: not a symlink", link_path)
        return removed

    def validate_symlinks(self, project_path: str | Path) -> bool:
        """True when both links are symlinks whose targets exist."""
        project_path = Path(project_path)
        return all(
            self.link_state(link_path) == LinkState.VALID
            for link_path in (project_path / CLAUDE_DIR, project_path / CLAUDE_FILE)
        )

    is_managed = validate_symlinks

    def get_symlink_target(self, link_path: str | Path) -> str | None:
        """Raw, unresolved link text, or None if ``link_path`` is not a symlink."""
        link_path = Path(link_path)
        try:
            if link_path.is_symlink():
                return os.readlink(link_path)
        except OSError:
            logger.debug("Failed to read symlink: %s", link_path)
        return None

    def link_state(self, link_path: str | Path, expected_target: str | None = None) -> LinkState:
        """Classify ``link_path``.

        With ``expected_target`` (relative link text) a symlink pointing
        anywhere else is STALE even if it resolves.
        """
        link_path = Path(link_path)
        if not link_path.is_symlink():
            return LinkState.FOREIGN if link_path.exists() else LinkState.ABSENT

        current = self.get_symlink_target(link_path)
        if current is None:
            return LinkState.STALE
        if expected_target is not None and current != expected_target:
            return LinkState.STALE
        resolved = link_path.parent / current
        return LinkState.VALID if os.path.exists(resolved) else LinkState.STALE

    def project_link_states(self, project_path: str | Path, name: str) -> dict[str, LinkState]:
        return {
            link.label: self.link_state(link.link_path, link.relative_target)
            for link in self.project_links(project_path, name)
        }

    def _create_symlink(self, link: ProjectLink) -> None:
        link_path = link.link_path
        relative_target = link.relative_target

        if link_path.is_symlink():
            if os.readlink(link_path) == relative_target:
                logger.debug("Symlink already exists: %s", link_path)
                return
            link_path.unlink()
        elif link_path.exists():
            backup_path = link_path.with_name(
                f"{link_path.name}.backup-{int(time.time() * 1000)}"
            )
            link_path.rename(backup_path)
            kind = "directory" if backup_path.is_dir() else "file"
            logger.warning("Backed up existing %s to %s", kind, backup_path)

        link_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.symlink(relative_target, link_path, target_is_directory=link.is_directory)
        except PermissionError as e:
            raise SymlinkPermissionError(str(link_path)) from e
        logger.debug("Created symlink: %s -> %s", link_path, relative_target)
