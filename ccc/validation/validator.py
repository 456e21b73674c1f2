"""Project validator: read-only health checks with an optional repair pass.

Checks, in order, for one project:
1. The project directory exists (nothing else is checked if it does not)
2. The storage directory exists
3. ``.claude`` exists and is a valid symlink into storage
4. ``CLAUDE.md`` exists
5. Essential files (``settings.json``) exist in storage
6. The storage directory is readable and writable

Repairs only touch issues marked ``fixable`` and go back through the
storage repository and symlink manager.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ccc.config import DEFAULT_ESSENTIAL_FILES
from ccc.errors import CccError, MalformedMetadataError
from ccc.models.project import utc_now_iso
from ccc.paths import CLAUDE_DIR, CLAUDE_FILE
from ccc.storage.repository import StorageRepository, write_json
from ccc.symlinks.manager import LinkState, SymlinkManager

logger = logging.getLogger(__name__)


class Severity(Enum):
    ERROR = "error"  # Project is not usable as-is
    WARNING = "warning"  # Degraded but linked
    INFO = "info"  # Suggestion


class IssueCategory(Enum):
    SYMLINK = "symlink"
    STORAGE = "storage"
    TEMPLATE = "template"
    PERMISSION = "permission"


@dataclass
class Issue:
    """A single problem found while validating a project."""

    severity: Severity
    category: IssueCategory
    message: str
    path: str = ""
    fixable: bool = False


@dataclass
class ProjectValidation:
    """All issues found for one project."""

    name: str
    path: str
    issues: list[Issue] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.issues

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def fixable(self) -> list[Issue]:
        return [i for i in self.issues if i.fixable]

    def summary(self) -> str:
        if self.passed:
            return f"[PASS] {self.name}: all checks passed"
        return (
            f"[FAIL] {self.name}: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s), {len(self.fixable)} fixable"
        )


@dataclass
class RepairReport:
    attempted: int = 0
    fixed: int = 0
    failed: int = 0

    def summary(self) -> str:
        return f"Fixed {self.fixed} of {self.attempted} issue(s)"


def default_essential_content() -> dict:
    """JSON written when an essential file is missing from storage."""
    return {
        "version": "1.0.0",
        "created": utc_now_iso(),
    }


class ProjectValidator:
    """Cross-checks a project's work tree, links and storage."""

    def __init__(
        self,
        repository: StorageRepository,
        symlinks: SymlinkManager,
        essential_files: list[str] | None = None,
    ):
        self.repository = repository
        self.symlinks = symlinks
        self.paths = repository.paths
        self.essential_files = list(
            essential_files if essential_files is not None else DEFAULT_ESSENTIAL_FILES
        )

    def validate_project(self, name: str, project_path: str | Path) -> ProjectValidation:
        result = ProjectValidation(name=name, path=str(project_path))
        project_path = Path(project_path)
        storage_dir = self.paths.project_storage_dir(name)

        if not _check_project_path(project_path, result):
            return result

        storage_present = _check_storage_dir(storage_dir, result)
        self._check_claude_dir(project_path, result)
        _check_claude_file(project_path, result)
        for file_name in self.essential_files:
            _check_essential_file(storage_dir / file_name, file_name, result)
        if storage_present:
            _check_permissions(storage_dir, result)

        return result

    def validate_all(self) -> list[ProjectValidation]:
        """Validate every stored project, one at a time, in list order."""
        results = []
        for name in self.repository.list_projects():
            storage_dir = str(self.paths.project_storage_dir(name))
            try:
                record = self.repository.get_project_info(name)
            except MalformedMetadataError as e:
                results.append(_metadata_failure(name, storage_dir, str(e)))
                continue

            if record is None:
                results.append(
                    _metadata_failure(name, storage_dir, "Missing .project-info file")
                )
                continue

            results.append(self.validate_project(name, record.path))
        return results

    def repair(self, results: list[ProjectValidation]) -> RepairReport:
        """Attempt every fixable issue independently and tally the outcome."""
        report = RepairReport()
        for result in results:
            for issue in result.fixable:
                report.attempted += 1
                try:
                    self._fix(result, issue)
                except (OSError, CccError) as e:
                    report.failed += 1
                    logger.warning("Failed to fix: %s (%s)", issue.message, e)
                    continue
                report.fixed += 1
                logger.info("Fixed: %s", issue.message)
        return report

    def _fix(self, result: ProjectValidation, issue: Issue) -> None:
        if issue.category == IssueCategory.SYMLINK:
            self.symlinks.create_project_symlinks(result.path, result.name)
        elif issue.category == IssueCategory.STORAGE:
            self.paths.ensure_dir(self.paths.project_storage_dir(result.name))
        elif issue.category == IssueCategory.TEMPLATE:
            target = Path(issue.path)
            write_json(target, default_essential_content())
        else:
            raise CccError(f"No automatic fix for {issue.category.value} issues")

    def _check_claude_dir(self, project_path: Path, result: ProjectValidation):
        """``.claude`` must exist and be a symlink that resolves."""
        claude_dir = project_path / CLAUDE_DIR
        if not os.path.exists(claude_dir):
            result.issues.append(
                Issue(
                    severity=Severity.ERROR,
                    category=IssueCategory.SYMLINK,
                    message=".claude directory missing",
                    path=str(claude_dir),
                    fixable=True,
                )
            )
        elif self.symlinks.link_state(claude_dir) != LinkState.VALID:
            result.issues.append(
                Issue(
                    severity=Severity.ERROR,
                    category=IssueCategory.SYMLINK,
                    message=".claude symlink is broken or invalid",
                    path=str(claude_dir),
                    fixable=True,
                )
            )


def _check_project_path(project_path: Path, result: ProjectValidation) -> bool:
    if project_path.is_dir():
        return True
    result.issues.append(
        Issue(
            severity=Severity.ERROR,
            category=IssueCategory.STORAGE,
            message="Project path does not exist",
            path=str(project_path),
        )
    )
    return False


def _check_storage_dir(storage_dir: Path, result: ProjectValidation) -> bool:
    if storage_dir.is_dir():
        return True
    result.issues.append(
        Issue(
            severity=Severity.ERROR,
            category=IssueCategory.STORAGE,
            message="Storage directory missing",
            path=str(storage_dir),
            fixable=True,
        )
    )
    return False


def _check_claude_file(project_path: Path, result: ProjectValidation):
    claude_file = project_path / CLAUDE_FILE
    if not os.path.exists(claude_file):
        result.issues.append(
            Issue(
                severity=Severity.ERROR,
                category=IssueCategory.SYMLINK,
                message="CLAUDE.md file missing",
                path=str(claude_file),
                fixable=True,
            )
        )


def _check_essential_file(file_path: Path, file_name: str, result: ProjectValidation):
    if not file_path.exists():
        result.issues.append(
            Issue(
                severity=Severity.WARNING,
                category=IssueCategory.TEMPLATE,
                message=f"Essential file missing: {file_name}",
                path=str(file_path),
                fixable=True,
            )
        )


def _check_permissions(storage_dir: Path, result: ProjectValidation):
    if not os.access(storage_dir, os.R_OK | os.W_OK):
        result.issues.append(
            Issue(
                severity=Severity.ERROR,
                category=IssueCategory.PERMISSION,
                message="No read/write access to storage directory",
                path=str(storage_dir),
            )
        )


def _metadata_failure(name: str, storage_dir: str, message: str) -> ProjectValidation:
    return ProjectValidation(
        name=name,
        path="",
        issues=[
            Issue(
                severity=Severity.ERROR,
                category=IssueCategory.STORAGE,
                message=message,
                path=storage_dir,
            )
        ],
    )
