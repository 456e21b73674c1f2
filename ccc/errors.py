"""Error taxonomy for ccc.

Filesystem errors other than symlink permission failures are not wrapped;
they propagate as the ``OSError`` subclasses Python raises.
"""

from __future__ import annotations


class CccError(Exception):
    """Base class for errors the CLI reports to the user and exits on."""


class ProjectNotFoundError(CccError):
    def __init__(self, name: str):
        super().__init__(f"Project not found: {name}")
        self.name = name


class TemplateNotFoundError(CccError):
    def __init__(self, name: str):
        super().__init__(f"Template not found: {name}")
        self.name = name


class InvalidProjectNameError(CccError):
    def __init__(self, name: str):
        super().__init__(
            f"Invalid project name {name!r}: use lowercase letters, numbers, and hyphens only"
        )
        self.name = name


class MalformedMetadataError(CccError):
    """A ``.project-info`` file exists but cannot be turned into a record."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Malformed project metadata at {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(CccError):
    """The user config file could not be parsed or validated."""


class SymlinkPermissionError(CccError, PermissionError):
    """Creating a project symlink was refused by the OS (EACCES/EPERM)."""

    HINT = "Try running with elevated privileges (e.g. sudo)."

    def __init__(self, link_path: str):
        super().__init__(
            f"Permission denied: Cannot create symlink at {link_path}. {self.HINT}"
        )
        self.link_path = link_path
        self.hint = self.HINT


class ComponentNotFoundError(CccError):
    """No agent, command or hook with this name in any library directory."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind.capitalize()} not found: {name}")
        self.kind = kind
        self.name = name
