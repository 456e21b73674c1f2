"""Tests for the project symlink manager."""

import os
import tempfile
from pathlib import Path

import pytest

from ccc.errors import SymlinkPermissionError
from ccc.paths import StoragePaths
from ccc.symlinks.manager import LinkState, SymlinkManager, relative_link_text


def _setup(tmpdir: str, name: str = "my-app"):
    root = Path(tmpdir)
    paths = StoragePaths(root / "home")
    storage = paths.project_storage_dir(name)
    storage.mkdir(parents=True)
    (storage / "CLAUDE.md").write_text("stored")
    (storage / "settings.json").write_text("{}")
    project = root / "work" / name
    project.mkdir(parents=True)
    return SymlinkManager(paths), project, storage


def test_relative_link_text():
    text = relative_link_text(Path("/a/work/app/.claude"), Path("/a/home/storage/app"))
    assert text == "../../home/storage/app"


def test_create_links_are_relative_and_resolve():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, storage = _setup(tmpdir)

        manager.create_project_symlinks(project, "my-app")

        assert os.readlink(project / ".claude") == "../../home/storage/my-app"
        assert os.readlink(project / "CLAUDE.md") == "../../home/storage/my-app/CLAUDE.md"
        assert (project / "CLAUDE.md").read_text() == "stored"
        assert (project / ".claude" / "settings.json").exists()
        assert manager.validate_symlinks(project)


def test_create_twice_is_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, _storage = _setup(tmpdir)

        manager.create_project_symlinks(project, "my-app")
        manager.create_project_symlinks(project, "my-app")

        assert not [p for p in project.iterdir() if ".backup-" in p.name]
        assert manager.validate_symlinks(project)


def test_stale_link_is_replaced_without_backup():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, _storage = _setup(tmpdir)
        os.symlink("../somewhere-else", project / ".claude")
        assert manager.link_state(project / ".claude") == LinkState.STALE

        manager.create_project_symlinks(project, "my-app")

        assert os.readlink(project / ".claude") == "../../home/storage/my-app"
        assert not [p for p in project.iterdir() if ".backup-" in p.name]


def test_foreign_entries_are_moved_aside():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, _storage = _setup(tmpdir)
        (project / ".claude").mkdir()
        (project / ".claude" / "local.json").write_text("mine")
        (project / "CLAUDE.md").write_text("local rules")
        assert manager.link_state(project / ".claude") == LinkState.FOREIGN

        manager.create_project_symlinks(project, "my-app")

        dir_backups = [p for p in project.iterdir() if p.name.startswith(".claude.backup-")]
        file_backups = [p for p in project.iterdir() if p.name.startswith("CLAUDE.md.backup-")]
        assert len(dir_backups) == 1
        assert (dir_backups[0] / "local.json").read_text() == "mine"
        assert len(file_backups) == 1
        assert file_backups[0].read_text() == "local rules"
        assert manager.validate_symlinks(project)


def test_remove_leaves_real_files_alone():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, storage = _setup(tmpdir)
        manager.create_project_symlinks(project, "my-app")
        (project / "CLAUDE.md").unlink()
        (project / "CLAUDE.md").write_text("real file")

        removed = manager.remove_project_symlinks(project)

        assert removed == [project / ".claude"]
        assert not (project / ".claude").exists()
        assert (project / "CLAUDE.md").read_text() == "real file"
        assert (storage / "settings.json").exists()


def test_validate_flips_when_target_disappears():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, storage = _setup(tmpdir)
        manager.create_project_symlinks(project, "my-app")
        assert manager.validate_symlinks(project)

        (storage / "CLAUDE.md").unlink()

        assert not manager.validate_symlinks(project)
        assert manager.link_state(project / "CLAUDE.md") == LinkState.STALE
        assert manager.link_state(project / ".claude") == LinkState.VALID


def test_link_states_with_expected_target():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, _storage = _setup(tmpdir)
        assert manager.project_link_states(project, "my-app") == {
            ".claude": LinkState.ABSENT,
            "CLAUDE.md": LinkState.ABSENT,
        }

        manager.create_project_symlinks(project, "my-app")
        assert manager.project_link_states(project, "my-app") == {
            ".claude": LinkState.VALID,
            "CLAUDE.md": LinkState.VALID,
        }


def test_get_symlink_target():
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, _storage = _setup(tmpdir)
        (project / "plain.txt").write_text("x")
        manager.create_project_symlinks(project, "my-app")

        assert manager.get_symlink_target(project / ".claude") == "../../home/storage/my-app"
        assert manager.get_symlink_target(project / "plain.txt") is None
        assert manager.get_symlink_target(project / "missing") is None


def test_permission_error_is_wrapped(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        manager, project, _storage = _setup(tmpdir)
        calls = []

        def refuse(src, dst, target_is_directory=False):
            calls.append(dst)
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(os, "symlink", refuse)

        with pytest.raises(SymlinkPermissionError) as exc:
            manager.create_project_symlinks(project, "my-app")

        assert len(calls) == 2
        assert exc.value.link_path == str(project / ".claude")
        assert "elevated privileges" in str(exc.value)
        assert isinstance(exc.value, PermissionError)
