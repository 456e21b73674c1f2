"""Tests for the project validator."""

import json
import os
import tempfile
from pathlib import Path

from ccc.models.project import ProjectRecord, utc_now_iso
from ccc.paths import StoragePaths
from ccc.storage.repository import StorageRepository
from ccc.symlinks.manager import SymlinkManager
from ccc.validation.validator import IssueCategory, ProjectValidator, Severity


def _healthy_project(tmpdir: str, name: str = "my-app"):
    """Storage with settings.json and CLAUDE.md, linked into a project dir."""
    root = Path(tmpdir)
    paths = StoragePaths(root / "home")
    repo = StorageRepository(paths)
    symlinks = SymlinkManager(paths)

    storage = paths.project_storage_dir(name)
    storage.mkdir(parents=True)
    (storage / "settings.json").write_text("{}")
    (storage / "CLAUDE.md").write_text("rules")

    project = root / "work" / name
    project.mkdir(parents=True)
    now = utc_now_iso()
    repo.metadata.write(
        ProjectRecord(
            name=name,
            path=str(project),
            template_type="web-dev",
            template_version="1.0.0",
            setup_date=now,
            last_update=now,
        )
    )
    symlinks.create_project_symlinks(project, name)
    return ProjectValidator(repo, symlinks), project, storage


def test_healthy_project_passes():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, project, _storage = _healthy_project(tmpdir)

        result = validator.validate_project("my-app", project)

        assert result.passed
        assert result.summary() == "[PASS] my-app: all checks passed"


def test_missing_settings_is_single_fixable_warning():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, project, storage = _healthy_project(tmpdir)
        (storage / "settings.json").unlink()

        result = validator.validate_project("my-app", project)

        assert len(result.issues) == 1
        issue = result.issues[0]
        assert issue.severity == Severity.WARNING
        assert issue.category == IssueCategory.TEMPLATE
        assert issue.message == "Essential file missing: settings.json"
        assert issue.fixable


def test_missing_project_path_short_circuits():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, _project, _storage = _healthy_project(tmpdir)

        result = validator.validate_project("my-app", Path(tmpdir) / "gone")

        assert len(result.issues) == 1
        assert result.issues[0].message == "Project path does not exist"
        assert not result.issues[0].fixable


def test_missing_links_are_reported():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, project, _storage = _healthy_project(tmpdir)
        validator.symlinks.remove_project_symlinks(project)

        result = validator.validate_project("my-app", project)

        messages = [i.message for i in result.errors]
        assert messages == [".claude directory missing", "CLAUDE.md file missing"]
        assert all(i.category == IssueCategory.SYMLINK for i in result.errors)


def test_real_claude_dir_is_invalid():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, project, _storage = _healthy_project(tmpdir)
        os.unlink(project / ".claude")
        (project / ".claude").mkdir()

        result = validator.validate_project("my-app", project)

        assert [i.message for i in result.issues] == [".claude symlink is broken or invalid"]


def test_missing_storage_skips_permission_check():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, project, _storage = _healthy_project(tmpdir, name="my-app")

        result = validator.validate_project("other", project)

        categories = [i.category for i in result.issues]
        assert IssueCategory.PERMISSION not in categories
        assert result.issues[0].message == "Storage directory missing"
        assert result.issues[0].fixable


def test_repair_restores_links_and_essential_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, project, storage = _healthy_project(tmpdir)
        validator.symlinks.remove_project_symlinks(project)
        (storage / "settings.json").unlink()

        results = [validator.validate_project("my-app", project)]
        report = validator.repair(results)

        assert report.attempted == 3
        assert report.fixed == 3
        assert report.failed == 0
        assert json.loads((storage / "settings.json").read_text())["version"] == "1.0.0"
        assert validator.validate_project("my-app", project).passed


def test_validate_all_reports_missing_metadata():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, _project, _storage = _healthy_project(tmpdir)
        validator.paths.project_storage_dir("orphan").mkdir()

        results = validator.validate_all()

        assert [r.name for r in results] == ["my-app", "orphan"]
        assert results[0].passed
        orphan = results[1].issues
        assert len(orphan) == 1
        assert orphan[0].message == "Missing .project-info file"
        assert orphan[0].severity == Severity.ERROR
        assert not orphan[0].fixable


def test_validate_all_reports_malformed_metadata():
    with tempfile.TemporaryDirectory() as tmpdir:
        validator, _project, _storage = _healthy_project(tmpdir)
        validator.paths.project_info_path("my-app").write_text("PROJECT_NAME=my-app\n")

        results = validator.validate_all()

        assert len(results) == 1
        assert "Malformed project metadata" in results[0].issues[0].message
