"""Components: agents, slash commands and hooks installed into project storage.

This package provides:
- Loader: discover components in the library directories
- Installer: write a component into a project's storage tree
"""
