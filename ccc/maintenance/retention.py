"""Backup retention: prune old snapshots under an age/count policy.

A backup is a deletion candidate when it is older than ``days_threshold``
whole days. With ``keep_count`` the N most recent backups are exempt even if
they are past the threshold::

    candidates = {age > days_threshold} - {keep_count most recent}
"""

from __future__ import annotations

import logging
import math
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ccc.errors import CccError
from ccc.storage.repository import BACKUP_PREFIX, StorageRepository
from ccc.utils.file_scanner import directory_size, format_size

logger = logging.getLogger(__name__)

DEFAULT_DAYS_THRESHOLD = 30

BACKUP_NAME_PATTERN = re.compile(r"^backup-(\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2})")

SECONDS_PER_DAY = 86400


@dataclass
class BackupInfo:
    """A snapshot found in a project's ``backups/`` directory."""

    path: Path
    name: str
    date: datetime
    size: int
    age: int  # Whole days


@dataclass
class CleanupReport:
    """Outcome of pruning one project's backups."""

    project: str
    total_backups: int
    candidates: list[BackupInfo] = field(default_factory=list)
    dry_run: bool = False
    deleted: int = 0
    freed: int = 0
    failed: int = 0

    @property
    def size_to_free(self) -> int:
        return sum(b.size for b in self.candidates)

    @property
    def needs_cleanup(self) -> bool:
        return len(self.candidates) > 0

    def summary(self) -> str:
        if self.dry_run:
            return (
                f"{self.project}: {len(self.candidates)} of {self.total_backups} backup(s) "
                f"would be deleted ({format_size(self.size_to_free)})"
            )
        status = "" if not self.failed else f", {self.failed} failed"
        return (
            f"{self.project}: deleted {self.deleted} of {len(self.candidates)} backup(s), "
            f"freed {format_size(self.freed)}{status}"
        )


def parse_backup_timestamp(name: str) -> datetime | None:
    """Timestamp encoded in ``backup-YYYY-MM-DD-HH-mm-ss``, or None."""
    match = BACKUP_NAME_PATTERN.match(name)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y-%m-%d-%H-%M-%S")
    except ValueError:
        return None


def backup_age_days(date: datetime, now: datetime) -> int:
    return math.floor((now - date).total_seconds() / SECONDS_PER_DAY)


def select_for_deletion(
    backups: list[BackupInfo],
    days_threshold: int = DEFAULT_DAYS_THRESHOLD,
    keep_count: Optional[int] = None,
) -> list[BackupInfo]:
    """Pick the backups to delete.

    ``backups`` must be ordered newest first, which is how
    ``RetentionPruner.list_backups`` returns them.
    """
    kept: list[BackupInfo] = []
    if keep_count is not None:
        kept = backups[: max(keep_count, 0)]
    return [
        b for b in backups
        if b.age > days_threshold and not any(b is k for k in kept)
    ]


class RetentionPruner:
    """Finds and deletes old backups for managed projects."""

    def __init__(
        self,
        repository: StorageRepository,
        now: Callable[[], datetime] | None = None,
    ):
        self.repository = repository
        self.paths = repository.paths
        self._now = now or datetime.now

    def list_backups(self, name: str) -> list[BackupInfo]:
        """Backups for ``name``, newest first. Empty if there is no backups dir."""
        backups_dir = self.paths.project_backups_dir(name)
        if not backups_dir.is_dir():
            return []

        now = self._now()
        backups = []
        for entry in sorted(backups_dir.iterdir(), key=lambda p: p.name):
            if not entry.name.startswith(BACKUP_PREFIX):
                continue
            date = parse_backup_timestamp(entry.name)
            if date is None:
                date = datetime.fromtimestamp(entry.stat().st_mtime)
            backups.append(
                BackupInfo(
                    path=entry,
                    name=entry.name,
                    date=date,
                    size=directory_size(entry),
                    age=backup_age_days(date, now),
                )
            )

        # sorted() is stable, so equal timestamps keep listing order
        return sorted(backups, key=lambda b: b.date, reverse=True)

    def plan(
        self,
        name: str,
        days_threshold: int = DEFAULT_DAYS_THRESHOLD,
        keep_count: Optional[int] = None,
    ) -> CleanupReport:
        backups = self.list_backups(name)
        return CleanupReport(
            project=name,
            total_backups=len(backups),
            candidates=select_for_deletion(backups, days_threshold, keep_count),
        )

    def cleanup(
        self,
        name: str,
        days_threshold: int = DEFAULT_DAYS_THRESHOLD,
        keep_count: Optional[int] = None,
        dry_run: bool = False,
    ) -> CleanupReport:
        """Delete the selected backups, or only report them with ``dry_run``.

        Each deletion is attempted independently; failures are logged and
        counted, and the rest continue.
        """
        self.repository.require_storage_dir(name)
        report = self.plan(name, days_threshold, keep_count)
        report.dry_run = dry_run
        if dry_run:
            return report

        for backup in report.candidates:
            try:
                _remove(backup.path)
            except OSError as e:
                report.failed += 1
                logger.warning("Could not delete backup %s: %s", backup.path, e)
                continue
            report.deleted += 1
            report.freed += backup.size
            logger.debug("Deleted backup %s", backup.name)

        if report.deleted:
            logger.info(report.summary())
        return report

    def cleanup_all(
        self,
        days_threshold: int = DEFAULT_DAYS_THRESHOLD,
        keep_count: Optional[int] = None,
        dry_run: bool = False,
    ) -> list[CleanupReport]:
        """Run ``cleanup`` for every project, one at a time, in list order.

        Projects without backups are left out of the result. A project that
        cannot be cleaned is logged and skipped.
        """
        reports = []
        for name in self.repository.list_projects():
            try:
                report = self.cleanup(name, days_threshold, keep_count, dry_run)
            except CccError as e:
                logger.warning("Skipping cleanup of %s: %s", name, e)
                continue
            if report.total_backups:
                reports.append(report)
        return reports


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
