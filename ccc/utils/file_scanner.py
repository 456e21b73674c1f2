"""File scanner: walk configuration trees and measure them."""

from __future__ import annotations

import os
import shutil
from pathlib import Path


def scan_files(root: Path, skip_top_level: set[str] | frozenset[str] = frozenset()) -> list[str]:
    """List files under ``root`` as sorted relative POSIX paths.

    Entries named in ``skip_top_level`` are only skipped directly under
    ``root``; a nested ``backups`` directory is an ordinary directory.
    """
    files = []
    for item in root.rglob("*"):
        rel = item.relative_to(root)
        if rel.parts[0] in skip_top_level:
            continue
        if item.is_file():
            files.append(rel.as_posix())
    return sorted(files)


def copy_tree(
    src: Path,
    dst: Path,
    overwrite: bool = False,
    skip_top_level: set[str] | frozenset[str] = frozenset(),
) -> list[str]:
    """Copy every file under ``src`` into ``dst``.

    With ``overwrite=False`` files already present in ``dst`` are kept.
    Returns the relative paths actually written.
    """
    written = []
    for rel in scan_files(src, skip_top_level):
        target = dst / rel
        if target.exists() and not overwrite:
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        source = src / rel
        if target.exists() and os.path.samefile(source, target):
            continue
        shutil.copy2(source, target)
        written.append(rel)
    return written


def directory_size(path: Path) -> int:
    """Total size in bytes of the regular files under ``path``."""
    if not path.exists():
        return 0
    if path.is_file():
        return path.stat().st_size
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for filename in filenames:
            file_path = os.path.join(dirpath, filename)
            if not os.path.islink(file_path):
                total += os.path.getsize(file_path)
    return total


def format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{round(num_bytes / 1024)} KB"
    if num_bytes < 1024 * 1024 * 1024:
        return f"{num_bytes / 1024 / 1024:.1f} MB"
    return f"{num_bytes / 1024 / 1024 / 1024:.2f} GB"
