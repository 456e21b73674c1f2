"""Component library: agents, commands and hooks available for installation.

Each kind has its own directory under every library root::

    <root>/agents/<name>.md        or  <root>/agents/<name>/<name>.md
    <root>/commands/<name>.md      or  <root>/commands/<name>/*.md
    <root>/hooks/<bundle>/settings.json

Roots are the ``extra_dirs`` ("system") followed by the ccc home ("user").
A later root overrides an earlier one on name clashes. The ``commands/ccc``
directory holds ccc's own commands and is not offered for installation.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Union

import yaml

from ccc.errors import ComponentNotFoundError
from ccc.models.component import HOOK_EVENTS, SYSTEM_SOURCE, USER_SOURCE, Agent, Command, Hook
from ccc.paths import AGENTS_DIR, COMMANDS_DIR, HOOKS_DIR, StoragePaths

logger = logging.getLogger(__name__)

Component = Union[Agent, Command, Hook]

KIND_LABELS = {
    AGENTS_DIR: "agent",
    COMMANDS_DIR: "command",
    HOOKS_DIR: "hook",
}

RESERVED_COMMAND_DIR = "ccc"
HOOK_SETTINGS_FILE = "settings.json"

FRONTMATTER_PATTERN = re.compile(r"\A---\n(.*?)\n---(?:\n(.*))?\Z", re.DOTALL)


def split_frontmatter(content: str, label: str = "") -> tuple[dict[str, str], str]:
    """Split ``---`` YAML frontmatter from a markdown body.

    Unparseable frontmatter is logged and the whole text is kept as the body.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content.strip()

    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse frontmatter for %s: %s", label, e)
        return {}, content.strip()
    if not isinstance(data, dict):
        logger.warning("Frontmatter for %s is not a mapping", label)
        return {}, content.strip()

    fields = {str(k): str(v) for k, v in data.items() if v is not None}
    return fields, (match.group(2) or "").strip()


def parse_agent(name: str, content: str, source: str = USER_SOURCE) -> Agent:
    fields, body = split_frontmatter(content, name)
    return Agent(
        name=fields.get("name") or name,
        description=fields.get("description", ""),
        model=fields.get("model"),
        color=fields.get("color"),
        tools=fields.get("tools"),
        content=body,
        source=source,
    )


def parse_command(name: str, content: str, source: str = USER_SOURCE) -> Command:
    fields, body = split_frontmatter(content, name)
    return Command(
        name=name,
        description=fields.get("description"),
        allowed_tools=fields.get("allowed-tools"),
        argument_hint=fields.get("argument-hint"),
        content=body,
        source=source,
    )


def parse_hook_bundle(bundle: str, settings: dict, source: str = USER_SOURCE) -> list[Hook]:
    """Every command hook in a bundle's ``settings.json``.

    Two layouts are read. The list layout
    ``{"Event": [{"matcher": "Bash", "hooks": [{"type": "command", ...}]}]}``
    yields ``<bundle>-<Event>-<group>-<index>``; the map layout
    ``{"Event": {"Bash": "command"}}`` yields ``<bundle>-<Event>-<pattern>``.
    """
    event_map = settings.get("hooks")
    if not isinstance(event_map, dict):
        return []

    hooks = []
    for event_type, entries in event_map.items():
        if event_type not in HOOK_EVENTS:
            logger.warning("Unknown hook event %s in bundle %s", event_type, bundle)
        if isinstance(entries, list):
            for i, group in enumerate(entries):
                if not isinstance(group, dict) or not isinstance(group.get("hooks"), list):
                    continue
                for j, config in enumerate(group["hooks"]):
                    if not isinstance(config, dict):
                        continue
                    if config.get("type") != "command" or not config.get("command"):
                        continue
                    hooks.append(
                        Hook(
                            name=f"{bundle}-{event_type}-{i}-{j}",
                            event_type=event_type,
                            command=config["command"],
                            description=config.get("description") or f"{event_type} hook",
                            matcher=group.get("matcher"),
                            timeout=config.get("timeout"),
                            source=source,
                        )
                    )
        elif isinstance(entries, dict):
            for pattern, command in entries.items():
                if isinstance(command, str):
                    hooks.append(
                        Hook(
                            name=f"{bundle}-{event_type}-{pattern}",
                            event_type=event_type,
                            command=command,
                            description=f"{event_type} hook for {pattern}",
                            matcher=pattern,
                            source=source,
                        )
                    )
    return hooks


class ComponentLoader:
    """Discovers installable components across the library roots."""

    def __init__(self, paths: StoragePaths, extra_dirs: list[str | Path] | None = None):
        self.paths = paths
        self.extra_dirs = [Path(d) for d in (extra_dirs or [])]
        self._cache: dict[str, dict[str, Component]] = {}

    def load(self, kind: str) -> list[Component]:
        if kind == AGENTS_DIR:
            items = self._load_markdown(kind, parse_agent)
        elif kind == COMMANDS_DIR:
            items = self._load_markdown(
                kind, parse_command, exclude=frozenset({RESERVED_COMMAND_DIR})
            )
        elif kind == HOOKS_DIR:
            items = self._load_hooks()
        else:
            raise ValueError(f"Unknown component kind: {kind}")

        self._cache[kind] = {item.name: item for item in items}
        logger.debug("Loaded %d %s", len(items), kind)
        return list(self._cache[kind].values())

    def get(self, kind: str, name: str) -> Component | None:
        if name not in self._cache.get(kind, {}):
            self.load(kind)
        return self._cache[kind].get(name)

    def require(self, kind: str, name: str) -> Component:
        item = self.get(kind, name)
        if item is None:
            raise ComponentNotFoundError(KIND_LABELS[kind], name)
        return item

    def _library_entries(
        self, kind: str, allow_files: bool, exclude: frozenset[str] = frozenset()
    ) -> dict[str, tuple[Path, str]]:
        entries: dict[str, tuple[Path, str]] = {}
        roots = [(d / kind, SYSTEM_SOURCE) for d in self.extra_dirs]
        roots.append((self.paths.library_dir(kind), USER_SOURCE))
        for directory, source in roots:
            if not directory.is_dir():
                continue
            for entry in sorted(directory.iterdir()):
                if entry.name in exclude:
                    continue
                if entry.is_dir():
                    entries[entry.name] = (entry, source)
                elif allow_files and entry.suffix == ".md":
                    entries[entry.stem] = (entry, source)
        return entries

    def _load_markdown(self, kind: str, parse, exclude: frozenset[str] = frozenset()) -> list:
        items = []
        for name, (path, source) in self._library_entries(kind, True, exclude).items():
            try:
                content = _read_markdown(name, path)
            except OSError as e:
                logger.error("Failed to load %s %s: %s", KIND_LABELS[kind], name, e)
                continue
            if content is not None:
                items.append(parse(name, content, source))
        return items

    def _load_hooks(self) -> list[Hook]:
        hooks = []
        for bundle, (path, source) in self._library_entries(HOOKS_DIR, False).items():
            settings_path = path / HOOK_SETTINGS_FILE
            if not settings_path.is_file():
                continue
            try:
                settings = json.loads(settings_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.error("Failed to parse hooks from %s: %s", settings_path, e)
                continue
            if isinstance(settings, dict):
                hooks.extend(parse_hook_bundle(bundle, settings, source))
        return hooks


def _read_markdown(name: str, path: Path) -> str | None:
    """Text of a markdown item: the file itself, or the best file in its dir."""
    if path.is_file():
        return path.read_text(encoding="utf-8")

    md_files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix == ".md")
    if not md_files:
        logger.warning("%s has no markdown files", path)
        return None
    chosen = next((p for p in md_files if p.name == f"{name}.md"), md_files[0])
    return chosen.read_text(encoding="utf-8")
