"""Install agents, commands and hooks into a project's storage tree.

Agents and commands become ``<storage>/{agents,commands}/<name>.md`` with
YAML frontmatter. A hook becomes an executable ``hooks/<name>.sh`` plus an
entry in the ``hooks`` map of ``<storage>/settings.json`` pointing at it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ccc.errors import CccError
from ccc.models.component import Agent, Command, Hook
from ccc.paths import AGENTS_DIR, COMMANDS_DIR, HOOKS_DIR
from ccc.storage.repository import SETTINGS_FILE, StorageRepository, write_json

logger = logging.getLogger(__name__)

HOOK_SCRIPT_MODE = 0o755
HOOK_SCRIPT_REFERENCE = "$CLAUDE_PROJECT_DIR/.claude/hooks/{}"
MATCH_ALL = "*"


@dataclass
class InstallResult:
    """What one install did to the storage tree."""

    kind: str
    name: str
    path: Path
    written: bool = False
    config_updated: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.written or self.config_updated


def render_frontmatter(fields: dict[str, str], body: str) -> str:
    if not fields:
        return body
    header = yaml.safe_dump(fields, sort_keys=False, allow_unicode=True, width=1_000_000)
    return f"---\n{header}---\n\n{body}"


def render_agent(agent: Agent) -> str:
    fields = {"name": agent.name, "description": agent.description}
    for key in ("model", "color", "tools"):
        value = getattr(agent, key)
        if value:
            fields[key] = value
    return render_frontmatter(fields, agent.content)


def render_command(command: Command) -> str:
    fields = {}
    for key, value in (
        ("description", command.description),
        ("allowed-tools", command.allowed_tools),
        ("argument-hint", command.argument_hint),
    ):
        if value:
            fields[key] = value
    return render_frontmatter(fields, command.content)


def render_hook_script(hook: Hook) -> str:
    return f"#!/bin/bash\n# {hook.description}\n{hook.command}\n"


def add_hook_to_settings(settings: dict, hook: Hook, command_ref: str) -> bool:
    """Register ``command_ref`` for the hook's event. Returns False if already there.

    A hook with a matcher goes into the list layout, in the group for that
    matcher. A hook without one goes into the map layout under ``*`` unless
    the event already uses the list layout, where it joins the group that has
    no matcher. A map entry is converted to groups when a matcher is needed.
    """
    hooks = settings.get("hooks")
    if not isinstance(hooks, dict):
        hooks = settings["hooks"] = {}
    existing = hooks.get(hook.event_type)

    if not hook.matcher and not isinstance(existing, list):
        if not isinstance(existing, dict):
            existing = hooks[hook.event_type] = {}
        if existing.get(MATCH_ALL) == command_ref:
            return False
        existing[MATCH_ALL] = command_ref
        return True

    if isinstance(existing, dict):
        existing = [
            {"matcher": pattern, "hooks": [{"type": "command", "command": command}]}
            for pattern, command in existing.items()
        ]
    elif not isinstance(existing, list):
        existing = []
    hooks[hook.event_type] = existing

    group = next(
        (g for g in existing if isinstance(g, dict) and g.get("matcher") == hook.matcher),
        None,
    )
    if group is None:
        group = {"matcher": hook.matcher} if hook.matcher else {}
        existing.append(group)
    if not isinstance(group.get("hooks"), list):
        group["hooks"] = []
    if any(isinstance(h, dict) and h.get("command") == command_ref for h in group["hooks"]):
        return False

    entry = {"type": "command", "command": command_ref, "description": hook.description}
    if hook.timeout:
        entry["timeout"] = hook.timeout
    group["hooks"].append(entry)
    return True


class ComponentInstaller:
    """Writes components into project storage through the repository."""

    def __init__(self, repository: StorageRepository):
        self.repository = repository

    def install(self, kind: str, project: str, item, overwrite: bool = False) -> InstallResult:
        if kind == AGENTS_DIR:
            return self.install_agent(project, item, overwrite)
        if kind == COMMANDS_DIR:
            return self.install_command(project, item, overwrite)
        if kind == HOOKS_DIR:
            return self.install_hook(project, item, overwrite)
        raise ValueError(f"Unknown component kind: {kind}")

    def install_agent(self, project: str, agent: Agent, overwrite: bool = False) -> InstallResult:
        storage_dir = self.repository.require_storage_dir(project)
        path = storage_dir / AGENTS_DIR / _file_name("agent", agent.name, ".md")
        return _write_file("agent", agent.name, path, render_agent(agent), overwrite)

    def install_command(
        self, project: str, command: Command, overwrite: bool = False
    ) -> InstallResult:
        storage_dir = self.repository.require_storage_dir(project)
        path = storage_dir / COMMANDS_DIR / _file_name("command", command.name, ".md")
        return _write_file("command", command.name, path, render_command(command), overwrite)

    def install_hook(self, project: str, hook: Hook, overwrite: bool = False) -> InstallResult:
        storage_dir = self.repository.require_storage_dir(project)
        script = storage_dir / HOOKS_DIR / _file_name("hook", hook.name, ".sh")
        settings_path = storage_dir / SETTINGS_FILE
        settings = _read_settings(settings_path)

        result = _write_file("hook", hook.name, script, render_hook_script(hook), overwrite)
        if result.written:
            script.chmod(HOOK_SCRIPT_MODE)

        if add_hook_to_settings(settings, hook, HOOK_SCRIPT_REFERENCE.format(script.name)):
            write_json(settings_path, settings)
            result.config_updated = True
            logger.info("Registered %s hook %s in %s", hook.event_type, hook.name, settings_path)
        else:
            result.warnings.append(f"Hook configuration already exists in {SETTINGS_FILE}")
        return result


def _file_name(kind: str, name: str, suffix: str) -> str:
    if not name or name.startswith(".") or "/" in name or "\\" in name:
        raise CccError(f"Invalid {kind} name: {name!r}")
    return f"{name}{suffix}"


def _read_settings(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        settings = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise CccError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(settings, dict):
        raise CccError(f"{path} must contain a JSON object")
    return settings


def _write_file(kind: str, name: str, path: Path, content: str, overwrite: bool) -> InstallResult:
    result = InstallResult(kind=kind, name=name, path=path)
    if path.exists():
        if path.read_text(encoding="utf-8").strip() == content.strip():
            result.warnings.append(f"{path.name} already exists with the same content")
            return result
        if not overwrite:
            result.warnings.append(f"{path.name} already exists with different content; left unchanged")
            return result

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    result.written = True
    logger.info("Installed %s %s at %s", kind, name, path)
    return result
