"""Path layout for the ccc home directory.

Layout::

    <home>/
        config.yaml
        templates/<template>/...
        agents/<agent>.md, commands/<command>.md, hooks/<bundle>/settings.json
        storage/<project>/
            .project-info
            settings.json, CLAUDE.md, commands/, agents/, hooks/
            backups/backup-YYYY-MM-DD-HH-mm-ss/
"""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV_VAR = "CCC_HOME"

PROJECT_INFO_FILE = ".project-info"
BACKUPS_DIR = "backups"
CLAUDE_DIR = ".claude"
CLAUDE_FILE = "CLAUDE.md"
CONFIG_FILE = "config.yaml"

AGENTS_DIR = "agents"
COMMANDS_DIR = "commands"
HOOKS_DIR = "hooks"


def default_home() -> Path:
    env_home = os.environ.get(HOME_ENV_VAR, "")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".ccc"


class StoragePaths:
    """Derives every storage location from a single home directory."""

    def __init__(self, home: str | Path | None = None):
        self.home = Path(home).expanduser() if home else default_home()

    @property
    def storage_dir(self) -> Path:
        return self.home / "storage"

    @property
    def templates_dir(self) -> Path:
        return self.home / "templates"

    def library_dir(self, kind: str) -> Path:
        """Home-level directory of installable agents, commands or hooks."""
        return self.home / kind

    @property
    def config_file(self) -> Path:
        return self.home / CONFIG_FILE

    def project_storage_dir(self, name: str) -> Path:
        return self.storage_dir / name

    def project_backups_dir(self, name: str) -> Path:
        return self.project_storage_dir(name) / BACKUPS_DIR

    def project_info_path(self, name: str) -> Path:
        return self.project_storage_dir(name) / PROJECT_INFO_FILE

    @staticmethod
    def ensure_dir(path: str | Path) -> Path:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def exists(path: str | Path) -> bool:
        """True when ``path`` exists; dangling symlinks count as missing."""
        return os.path.exists(path)


def resolve_project_path(project_path: str | Path | None = None) -> Path:
    return Path(os.path.abspath(project_path or os.getcwd()))
