"""Tests for the CLAUDE.md custom-section merge."""

import tempfile
from pathlib import Path

from ccc.storage.merge import (
    extract_custom_section,
    merge_claude_content,
    merge_claude_file,
)


def test_merge_preserves_custom_configuration():
    old = "Old body\n\n## Custom Configuration\nMy notes"
    assert merge_claude_content("New body", old) == "New body\n\n## Custom Configuration\nMy notes"


def test_merge_without_marker_replaces_everything():
    old = "Old body\n\n## Notes\nnothing special"
    assert merge_claude_content("New body", old) == "New body"


def test_project_specific_marker():
    old = "Intro\n## Project-Specific\nUse tabs.\n## More\nstuff"
    assert extract_custom_section(old) == "## Project-Specific\nUse tabs.\n## More\nstuff"


def test_plain_custom_heading():
    old = "Intro\n# Custom\nmine"
    assert merge_claude_content("New", old) == "New\n\n# Custom\nmine"


def test_earliest_marker_wins():
    old = "A\n# Custom rules\nx\n## Project-Specific\ny"
    assert extract_custom_section(old) == "# Custom rules\nx\n## Project-Specific\ny"


def test_marker_inside_code_block_still_splits():
    old = "Body\n```\n## Custom Configuration\n```\ntail"
    assert extract_custom_section(old) == "## Custom Configuration\n```\ntail"


def test_merge_file_copies_when_target_missing():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "template" / "CLAUDE.md"
        source.parent.mkdir()
        source.write_text("Template body")
        target = Path(tmpdir) / "storage" / "CLAUDE.md"

        preserved = merge_claude_file(source, target)

        assert not preserved
        assert target.read_text() == "Template body"


def test_merge_file_writes_merged_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "new.md"
        source.write_text("New body")
        target = Path(tmpdir) / "old.md"
        target.write_text("Old body\n\n## Custom Configuration\nMy notes")

        assert merge_claude_file(source, target)
        assert target.read_text() == "New body\n\n## Custom Configuration\nMy notes"
