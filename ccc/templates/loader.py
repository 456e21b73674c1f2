"""Template loader: discover template bundles on disk.

A template is a directory holding a ``meta.json`` or ``meta.yaml`` next to
the files it seeds into storage. Both are read with ``yaml.safe_load``
(JSON is valid YAML).
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from ccc.errors import TemplateNotFoundError
from ccc.models.template import TEMPLATE_META_FILES, Template, TemplateMeta
from ccc.paths import StoragePaths
from ccc.utils.file_scanner import scan_files

logger = logging.getLogger(__name__)

META_FILE_ORDER = ("meta.json", "meta.yaml", "meta.yml")

DEFAULT_TEMPLATE = "custom"

# (marker files, package.json must mention one of, template)
DETECTION_RULES = [
    (["package.json", "tsconfig.json"], ["react", "vue", "angular"], "web-dev"),
    (["package.json"], ["express", "fastify", "koa"], "engineering"),
    (["requirements.txt", "setup.py", "pyproject.toml"], [], "data-science"),
    (["Dockerfile", "docker-compose.yml", "kubernetes.yml"], [], "devops"),
    (["Gemfile", "Rakefile"], [], "engineering"),
    (["go.mod", "go.sum"], [], "engineering"),
    (["Cargo.toml"], [], "engineering"),
]


class TemplateLoader:
    """Loads templates from the ccc templates directory plus any extra dirs.

    Later directories override earlier ones on name clashes.
    """

    def __init__(self, paths: StoragePaths, extra_dirs: list[str | Path] | None = None):
        self.search_dirs = [Path(d) for d in (extra_dirs or [])] + [paths.templates_dir]
        self._cache: dict[str, Template] = {}

    def load_templates(self) -> list[Template]:
        templates: dict[str, Template] = {}
        for directory in self.search_dirs:
            if not directory.is_dir():
                continue
            for entry in sorted(directory.iterdir()):
                if entry.is_dir():
                    template = load_template(entry)
                    if template:
                        templates[template.name] = template

        self._cache = templates
        logger.debug("Loaded %d templates", len(templates))
        return list(templates.values())

    def get_template(self, name: str) -> Template | None:
        if name not in self._cache:
            self.load_templates()
        return self._cache.get(name)

    def require_template(self, name: str) -> Template:
        template = self.get_template(name)
        if template is None:
            raise TemplateNotFoundError(name)
        return template


def load_template(template_dir: Path) -> Template | None:
    """Read one template directory. Returns None if it has no usable meta."""
    meta_path = next(
        (template_dir / f for f in META_FILE_ORDER if (template_dir / f).is_file()), None
    )
    if meta_path is None:
        logger.warning("Template %s missing meta.json", template_dir.name)
        return None

    try:
        with open(meta_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        meta = TemplateMeta(**data)
    except (yaml.YAMLError, ValidationError, TypeError) as e:
        logger.error("Failed to load template %s: %s", template_dir.name, e)
        return None

    return Template(
        name=template_dir.name,
        path=template_dir,
        meta=meta,
        files=scan_files(template_dir, TEMPLATE_META_FILES),
    )


def detect_project_type(project_path: str | Path) -> str:
    """Guess a template name from marker files in the project."""
    project_path = Path(project_path)
    for markers, packages, template in DETECTION_RULES:
        if not any((project_path / m).exists() for m in markers):
            continue
        if not packages:
            return template
        package_json = project_path / "package.json"
        if package_json.is_file():
            content = package_json.read_text(encoding="utf-8", errors="replace")
            if any(pkg in content for pkg in packages):
                return template
    return DEFAULT_TEMPLATE
