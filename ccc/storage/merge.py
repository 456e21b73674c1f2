"""CLAUDE.md merge: keep the user's custom section across template upgrades.

The split point is found by plain substring search, so a marker quoted in a
code block or inline text also counts.
"""

from __future__ import annotations

import shutil
from pathlib import Path

# Earliest match in the text wins; on equal offsets the earlier marker here wins.
CUSTOM_MARKERS = (
    "## Project-Specific",
    "# Custom",
    "## Custom Configuration",
)


def find_custom_marker(content: str) -> int:
    """Offset of the first custom-section marker in ``content``, or -1."""
    hits = [i for i in (content.find(m) for m in CUSTOM_MARKERS) if i != -1]
    return min(hits) if hits else -1


def extract_custom_section(content: str) -> str | None:
    """Return everything from the first marker to the end, if any."""
    index = find_custom_marker(content)
    if index == -1:
        return None
    return content[index:]


def merge_claude_content(new_content: str, old_content: str) -> str:
    custom = extract_custom_section(old_content)
    if custom is None:
        return new_content
    return f"{new_content}\n\n{custom}"


def merge_claude_file(source: Path, target: Path) -> bool:
    """Merge the template's CLAUDE.md into the stored one.

    Returns True when a custom section was carried over.
    """
    if not target.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return False

    new_content = source.read_text(encoding="utf-8")
    old_content = target.read_text(encoding="utf-8")
    merged = merge_claude_content(new_content, old_content)
    target.write_text(merged, encoding="utf-8")
    return merged != new_content
