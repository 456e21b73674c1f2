"""Tests for template discovery and project type detection."""

import json
import tempfile
from pathlib import Path

import pytest

from ccc.errors import TemplateNotFoundError
from ccc.paths import StoragePaths
from ccc.templates.loader import TemplateLoader, detect_project_type, load_template


def _write_template(base: Path, name: str, meta_name: str = "meta.json", meta: str | None = None):
    path = base / name
    path.mkdir(parents=True)
    if meta is None:
        meta = json.dumps({"version": "1.0.0", "displayName": name.title(), "icon": "*"})
    (path / meta_name).write_text(meta)
    (path / "settings.json").write_text("{}")
    (path / "commands").mkdir()
    (path / "commands" / "test.md").write_text("run tests")
    return path


def test_load_template_reads_meta_and_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_template(Path(tmpdir), "web-dev")

        template = load_template(path)

        assert template.name == "web-dev"
        assert template.version == "1.0.0"
        assert template.meta.display_name == "Web-Dev"
        assert template.files == ["commands/test.md", "settings.json"]
        assert template.label == "* web-dev v1.0.0"


def test_yaml_meta_with_numeric_version():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_template(
            Path(tmpdir), "devops", meta_name="meta.yaml", meta="version: 2.1\ndescription: Ops\n"
        )

        template = load_template(path)

        assert template.version == "2.1"
        assert template.meta.description == "Ops"


def test_template_without_usable_meta_is_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        (base / "no-meta").mkdir()
        _write_template(base, "no-version", meta=json.dumps({"description": "x"}))
        _write_template(base, "broken", meta="{not json")

        assert load_template(base / "no-meta") is None
        assert load_template(base / "no-version") is None
        assert load_template(base / "broken") is None


def test_loader_lists_and_requires_templates():
    with tempfile.TemporaryDirectory() as tmpdir:
        paths = StoragePaths(Path(tmpdir) / "home")
        _write_template(paths.templates_dir, "web-dev")
        _write_template(paths.templates_dir, "data-science")
        (paths.templates_dir / "README.md").write_text("not a template")

        loader = TemplateLoader(paths)

        assert [t.name for t in loader.load_templates()] == ["data-science", "web-dev"]
        assert loader.require_template("web-dev").version == "1.0.0"
        with pytest.raises(TemplateNotFoundError):
            loader.require_template("missing")


def test_home_templates_override_extra_dirs():
    with tempfile.TemporaryDirectory() as tmpdir:
        paths = StoragePaths(Path(tmpdir) / "home")
        extra = Path(tmpdir) / "shared"
        _write_template(extra, "web-dev", meta=json.dumps({"version": "0.9.0"}))
        _write_template(paths.templates_dir, "web-dev", meta=json.dumps({"version": "2.0.0"}))
        _write_template(extra, "devops")

        loader = TemplateLoader(paths, extra_dirs=[extra])

        assert loader.require_template("web-dev").version == "2.0.0"
        assert loader.get_template("devops") is not None


@pytest.mark.parametrize(
    "files, expected",
    [
        ({"package.json": '{"dependencies": {"react": "18"}}'}, "web-dev"),
        ({"package.json": '{"dependencies": {"express": "4"}}'}, "engineering"),
        ({"pyproject.toml": ""}, "data-science"),
        ({"Dockerfile": ""}, "devops"),
        ({"go.mod": ""}, "engineering"),
        ({"package.json": "{}"}, "custom"),
        ({}, "custom"),
    ],
)
def test_detect_project_type(files, expected):
    with tempfile.TemporaryDirectory() as tmpdir:
        for name, content in files.items():
            (Path(tmpdir) / name).write_text(content)

        assert detect_project_type(tmpdir) == expected
