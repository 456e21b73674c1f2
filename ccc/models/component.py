"""Installable agents, slash commands and hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

HOOK_EVENTS = (
    "PreToolUse",
    "PostToolUse",
    "Notification",
    "UserPromptSubmit",
    "Stop",
    "SubagentStop",
    "PreCompact",
    "SessionStart",
)

SYSTEM_SOURCE = "system"
USER_SOURCE = "user"


@dataclass
class Agent:
    """A subagent definition, written to ``agents/<name>.md``."""

    name: str
    description: str = ""
    model: Optional[str] = None
    color: Optional[str] = None
    tools: Optional[str] = None
    content: str = ""
    source: str = USER_SOURCE


@dataclass
class Command:
    """A slash command, written to ``commands/<name>.md``.

    ``content`` may contain the ``{$ARGUMENTS}`` placeholder.
    """

    name: str
    description: Optional[str] = None
    allowed_tools: Optional[str] = None
    argument_hint: Optional[str] = None
    content: str = ""
    source: str = USER_SOURCE


@dataclass
class Hook:
    """One hook command taken from a hook bundle's ``settings.json``."""

    name: str
    event_type: str
    command: str
    description: str = ""
    matcher: Optional[str] = None
    timeout: Optional[int] = None
    source: str = USER_SOURCE
