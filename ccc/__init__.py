"""ccc: central storage and symlink sync for Claude project configuration.

Keeps one canonical configuration tree per project under ``~/.ccc/storage``
and links each work tree's ``.claude/`` and ``CLAUDE.md`` into it.
"""

__version__ = "1.0.0"
