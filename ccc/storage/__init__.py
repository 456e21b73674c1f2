"""Storage: the tool-owned configuration tree for each project.

This package provides:
- Metadata: the ``.project-info`` provenance record
- Repository: create, update, back up, and delete storage trees
- Merge: carry custom CLAUDE.md sections across template upgrades
"""
