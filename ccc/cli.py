"""ccc CLI: manage centrally stored Claude configuration for projects."""

from __future__ import annotations

import functools
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ccc import __version__
from ccc.components.installer import ComponentInstaller, InstallResult
from ccc.components.loader import KIND_LABELS, ComponentLoader
from ccc.config import CccConfig, load_config
from ccc.errors import CccError, MalformedMetadataError
from ccc.maintenance.retention import RetentionPruner
from ccc.paths import (
    AGENTS_DIR,
    CLAUDE_DIR,
    CLAUDE_FILE,
    COMMANDS_DIR,
    HOOKS_DIR,
    StoragePaths,
    resolve_project_path,
)
from ccc.storage.repository import StorageRepository
from ccc.symlinks.manager import SymlinkManager
from ccc.templates.loader import TemplateLoader, detect_project_type
from ccc.utils.file_scanner import format_size
from ccc.validation.validator import ProjectValidator, Severity

console = Console()
err_console = Console(stderr=True)


@dataclass
class Services:
    """Everything a command needs, wired once per invocation."""

    paths: StoragePaths
    config: CccConfig
    repository: StorageRepository
    symlinks: SymlinkManager
    pruner: RetentionPruner
    validator: ProjectValidator
    templates: TemplateLoader
    components: ComponentLoader
    installer: ComponentInstaller

    @classmethod
    def create(cls, home: str | None = None) -> "Services":
        paths = StoragePaths(home)
        config = load_config(paths)
        repository = StorageRepository(paths)
        symlinks = SymlinkManager(paths)
        return cls(
            paths=paths,
            config=config,
            repository=repository,
            symlinks=symlinks,
            pruner=RetentionPruner(repository),
            validator=ProjectValidator(repository, symlinks, config.essential_files),
            templates=TemplateLoader(paths),
            components=ComponentLoader(paths),
            installer=ComponentInstaller(repository),
        )


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    handler = RichHandler(console=err_console, show_time=False, show_path=verbose)
    logger = logging.getLogger("ccc")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False


def _reports_errors(func):
    """Turn ccc and filesystem errors into a red message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (CccError, OSError) as e:
            console.print(f"[red]{e}[/]")
            raise SystemExit(1)

    return wrapper


def _default_project_name(project_path: Path) -> str:
    name = re.sub(r"[^a-z0-9-]+", "-", project_path.name.lower()).strip("-")
    return name or "my-project"


def _current_project(services: Services, project: str | None) -> tuple[str, str]:
    """Resolve ``--project`` or the current directory to (name, project path)."""
    if project:
        record = services.repository.require_project_info(project)
        return project, record.path

    cwd = resolve_project_path()
    name = services.repository.find_project_by_path(cwd)
    if not name:
        raise CccError("Current directory is not ccc-managed. Use --project or --all.")
    return name, str(cwd)


def _project_info(repo: StorageRepository, name: str):
    """Record for a listing row; malformed metadata is logged and shown as unknown."""
    try:
        return repo.get_project_info(name)
    except MalformedMetadataError as e:
        logging.getLogger("ccc.cli").warning("%s", e)
        return None


def _format_date(value: str | None) -> str:
    if not value:
        return "N/A"
    try:
        date = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    days = (datetime.now(date.tzinfo) - date).days
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    return date.strftime("%Y-%m-%d")


@click.group()
@click.version_option(version=__version__)
@click.option("--home", default=None, help="ccc home directory (default: $CCC_HOME or ~/.ccc)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and errors")
@click.pass_context
def main(ctx: click.Context, home: str | None, verbose: bool, quiet: bool):
    """ccc: centrally stored Claude configuration, linked into your projects.

    Each project's .claude/ directory and CLAUDE.md live under
    ~/.ccc/storage/<name>/ and are symlinked into the work tree.
    """
    _configure_logging(verbose, quiet)
    try:
        ctx.obj = Services.create(home)
    except CccError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)


# ── Setup ────────────────────────────────────────────────────────────


@main.command()
@click.argument("project_path", default=".", type=click.Path(file_okay=False))
@click.option("--template", "-t", default=None, help="Template to seed storage from")
@click.option("--existing", is_flag=True, help="Keep the project's current configuration")
@click.option("--name", "-n", default=None, help="Project name (lowercase, digits, hyphens)")
@click.option("--force", is_flag=True, help="Back up and reuse storage that already exists")
@click.pass_obj
@_reports_errors
def setup(
    services: Services,
    project_path: str,
    template: str | None,
    existing: bool,
    name: str | None,
    force: bool,
):
    """Move a project's Claude configuration into central storage and link it."""
    path = resolve_project_path(project_path)
    if not path.is_dir():
        raise CccError(f"Project directory does not exist: {path}")
    name = name or _default_project_name(path)

    console.print(f"\n[bold blue]ccc[/] Setting up: {name}\n")

    if services.paths.project_storage_dir(name).exists():
        if not force:
            raise CccError(
                f"Storage for {name} already exists. Use --force to back it up and "
                "reuse it, or 'ccc update' to apply a newer template."
            )
        backup = services.repository.create_backup(name)
        console.print(f"  Backed up existing storage to {backup.name}")

    if existing:
        services.repository.create_project_from_existing(name, path)
        setup_info = "Existing configuration preserved"
    else:
        template_name = template or detect_project_type(path)
        tpl = services.templates.require_template(template_name)
        services.repository.create_project(name, tpl, project_path=path)
        setup_info = tpl.label

    services.symlinks.create_project_symlinks(path, name)

    console.print(
        Panel(
            "\n".join(
                [
                    f"Project: [bold]{name}[/]",
                    f"Setup: {setup_info}",
                    f"Storage: [dim]{services.paths.project_storage_dir(name)}[/]",
                    "",
                    f"  [green]v[/] {CLAUDE_DIR}/",
                    f"  [green]v[/] {CLAUDE_FILE}",
                ]
            ),
            title="Setup Complete",
        )
    )


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Print project records as JSON")
@click.pass_obj
@_reports_errors
def list_projects(services: Services, as_json: bool):
    """List managed projects."""
    repo = services.repository
    projects = repo.list_projects()

    if as_json:
        data = []
        for project in projects:
            info = _project_info(repo, project)
            entry = {"name": project}
            if info:
                entry.update(info.model_dump())
            entry["storage_size"] = repo.project_size(project)
            entry["storage_path"] = str(services.paths.project_storage_dir(project))
            data.append(entry)
        click.echo(json.dumps(data, indent=2))
        return

    if not projects:
        console.print("[yellow]No projects currently managed.[/] Run 'ccc setup' to add one.")
        return

    table = Table(title=f"Managed Projects ({len(projects)})")
    table.add_column("Name", style="cyan")
    table.add_column("Template")
    table.add_column("Version")
    table.add_column("Updated")
    table.add_column("Size", justify="right")
    table.add_column("Backups", justify="right")

    total_size = 0
    for project in projects:
        info = _project_info(repo, project)
        size = repo.project_size(project)
        total_size += size
        table.add_row(
            project,
            info.template_type if info else "unknown",
            info.template_version if info else "N/A",
            _format_date(info.last_update if info else None),
            format_size(size),
            str(repo.backup_count(project)),
        )

    console.print(table)
    console.print(f"  Total: [bold]{format_size(total_size)}[/] across {len(projects)} projects")


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.option("--project", "-p", default=None, help="Project name (default: current directory)")
@click.pass_obj
@_reports_errors
def status(services: Services, project: str | None):
    """Show whether a project is linked and where its links point."""
    if project:
        record = services.repository.require_project_info(project)
        name, path = project, Path(record.path)
    else:
        path = resolve_project_path()
        name = services.repository.find_project_by_path(path)
        record = services.repository.get_project_info(name) if name else None

    lines = [f"[bold]Project:[/] {name or path.name}", f"[bold]Path:[/] [dim]{path}[/]"]

    if not path.exists():
        lines.append("[bold]Status:[/] [red]x Path missing[/]")
        console.print(Panel("\n".join(lines), title="Status"))
        return

    links = {
        CLAUDE_DIR: services.symlinks.get_symlink_target(path / CLAUDE_DIR),
        CLAUDE_FILE: services.symlinks.get_symlink_target(path / CLAUDE_FILE),
    }
    if not any(links.values()):
        lines.append("[bold]Status:[/] [yellow]Not currently linked[/]")
        if name:
            lines.append("[dim]Storage exists but symlinks are missing. Run 'ccc validate --fix'.[/]")
        else:
            lines.append("[dim]Run 'ccc setup' to manage this project with ccc.[/]")
        console.print(Panel("\n".join(lines), title="Status"))
        return

    valid = services.symlinks.validate_symlinks(path)
    lines.append("[bold]Status:[/] [green]v ccc-managed[/]")
    lines.append(
        f"[bold]Symlinks:[/] {'[green]v Valid[/]' if valid else '[red]x Invalid or broken[/]'}"
    )
    if record:
        lines.append(f"[bold]Template:[/] {record.template_type} v{record.template_version}")
        lines.append(f"[bold]Setup:[/] {_format_date(record.setup_date)}")

    lines.append("")
    lines.append("[bold]Symlink Targets:[/]")
    for label, target in links.items():
        if target:
            lines.append(f"  [cyan]{label}[/] -> [dim]{target}[/]")

    console.print(Panel("\n".join(lines), title="Status"))


# ── Update ───────────────────────────────────────────────────────────


@main.command()
@click.option("--project", "-p", default=None, help="Project to update (default: current directory)")
@click.option("--all", "update_all", is_flag=True, help="Update every project with a newer template")
@click.option("--preview", is_flag=True, help="Show what would change without updating")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@_reports_errors
def update(services: Services, project: str | None, update_all: bool, preview: bool, yes: bool):
    """Apply the latest version of a project's template (backup first)."""
    repo = services.repository

    if update_all:
        pending = []
        for name in repo.list_projects():
            info = _project_info(repo, name)
            if not info or info.is_existing:
                continue
            tpl = services.templates.get_template(info.template_type)
            if tpl and tpl.version != info.template_version:
                pending.append((name, info, tpl))
        if not pending:
            console.print("[green]All projects are up to date.[/]")
            return
    else:
        name, _path = _current_project(services, project)
        info = repo.require_project_info(name)
        if info.is_existing:
            raise CccError(f"{name} was set up from existing configuration; no template to update from.")
        pending = [(name, info, services.templates.require_template(info.template_type))]

    table = Table(title="Updates")
    table.add_column("Project", style="cyan")
    table.add_column("Template")
    table.add_column("Current")
    table.add_column("New", style="green")
    for name, info, tpl in pending:
        table.add_row(name, tpl.name, info.template_version, tpl.version)
    console.print(table)

    if preview:
        return
    if not yes and not click.confirm(f"Update {len(pending)} project(s)?", default=True):
        console.print("Update cancelled")
        return

    failed = 0
    for name, _info, tpl in pending:
        try:
            repo.update_project(name, tpl)
        except (CccError, OSError) as e:
            failed += 1
            console.print(f"  [red]x[/] {name}: {e}")
            continue
        console.print(f"  [green]v[/] Updated {name} to {tpl.version}")
    if failed:
        raise SystemExit(1)


# ── Cleanup ──────────────────────────────────────────────────────────


@main.command()
@click.option("--project", "-p", default=None, help="Only clean this project")
@click.option("--days", type=int, default=None, help="Delete backups older than N days")
@click.option("--keep", type=int, default=None, help="Always keep the N most recent backups")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@_reports_errors
def cleanup(
    services: Services,
    project: str | None,
    days: int | None,
    keep: int | None,
    dry_run: bool,
    yes: bool,
):
    """Delete old backups."""
    days = services.config.cleanup_days if days is None else days
    keep = services.config.cleanup_keep if keep is None else keep
    pruner = services.pruner

    if project:
        services.repository.require_project_info(project)
        names = [project]
    else:
        names = services.repository.list_projects()

    plans = [pruner.plan(name, days, keep) for name in names]
    plans = [p for p in plans if p.needs_cleanup]
    if not plans:
        console.print("[green]No backups need cleanup.[/]")
        return

    table = Table(title="Cleanup Preview (Dry Run)" if dry_run else "Cleanup Summary")
    table.add_column("Project", style="cyan")
    table.add_column("Backup")
    table.add_column("Age", justify="right")
    table.add_column("Size", justify="right")
    for plan in plans:
        for backup in plan.candidates:
            table.add_row(plan.project, backup.name, f"{backup.age} days", format_size(backup.size))
    console.print(table)

    total = sum(len(p.candidates) for p in plans)
    console.print(f"  To delete: {total}, space to free: {format_size(sum(p.size_to_free for p in plans))}")

    if dry_run:
        console.print("[dim]Run without --dry-run to perform cleanup.[/]")
        return
    if not yes and not click.confirm(f"Delete {total} old backups?", default=True):
        console.print("Cleanup cancelled")
        return

    deleted = freed = 0
    for plan in plans:
        report = pruner.cleanup(plan.project, days, keep)
        deleted += report.deleted
        freed += report.freed
    console.print(f"[green]Deleted {deleted} backups, freed {format_size(freed)}[/]")


# ── Validate ─────────────────────────────────────────────────────────


@main.command()
@click.option("--project", "-p", default=None, help="Only validate this project")
@click.option("--fix", is_flag=True, help="Attempt to repair fixable issues")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation before fixing")
@click.pass_obj
@_reports_errors
def validate(services: Services, project: str | None, fix: bool, yes: bool):
    """Check symlinks, storage, and permissions for managed projects."""
    validator = services.validator
    if project:
        record = services.repository.require_project_info(project)
        results = [validator.validate_project(project, record.path)]
    else:
        name = services.repository.find_project_by_path(resolve_project_path())
        if name:
            results = [validator.validate_project(name, str(resolve_project_path()))]
        else:
            results = validator.validate_all()

    if not results:
        console.print("[yellow]No projects to validate.[/]")
        return

    icons = {Severity.ERROR: "[red]x[/]", Severity.WARNING: "[yellow]![/]", Severity.INFO: "[blue]i[/]"}
    for result in results:
        if result.passed:
            console.print(f"  [green]OK[/] {result.name}")
            continue
        console.print(f"  [red]Issues:[/] {result.name}")
        for issue in result.issues:
            fixable = " [dim](fixable)[/]" if issue.fixable else ""
            console.print(f"    {icons[issue.severity]} {issue.message}{fixable}")

    total = sum(len(r.issues) for r in results)
    fixable_count = sum(len(r.fixable) for r in results)
    console.print(
        f"\nProjects validated: {len(results)}, total issues: {total}, fixable: {fixable_count}"
    )

    if not fixable_count:
        return
    if not fix:
        console.print("[dim]Run with --fix to attempt automatic repairs.[/]")
        return
    if not yes and not click.confirm(f"Attempt to fix {fixable_count} fixable issues?", default=True):
        return

    report = validator.repair(results)
    console.print(f"[green]{report.summary()}[/]")


# ── Unlink ───────────────────────────────────────────────────────────


@main.command()
@click.argument("project_path", default=".", type=click.Path(file_okay=False))
@click.option(
    "--mode",
    type=click.Choice(["symlinks", "migrate", "full"]),
    default="symlinks",
    help="symlinks: keep storage; migrate: copy config back then delete storage; "
    "full: delete storage",
)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@_reports_errors
def unlink(services: Services, project_path: str, mode: str, yes: bool):
    """Stop managing a project."""
    path = resolve_project_path(project_path)
    name = services.repository.find_project_by_path(path)
    if not name:
        raise CccError(f"{path} is not ccc-managed")

    if mode != "symlinks" and not yes:
        if not click.confirm(f"Delete central storage for {name}?", default=False):
            console.print("Unlink cancelled")
            return

    services.symlinks.remove_project_symlinks(path)
    if mode == "migrate":
        services.repository.restore_to_project(name, path)
    if mode in ("migrate", "full"):
        services.repository.delete_project(name)

    done = {
        "symlinks": f"Symlinks removed; storage kept at {services.paths.project_storage_dir(name)}",
        "migrate": "Configuration copied back into the project; central storage removed",
        "full": "Symlinks and central storage removed",
    }
    console.print(f"[green]{done[mode]}[/]")


# ── Agents, commands, hooks ──────────────────────────────────────────


def _print_library(services: Services, kind: str) -> None:
    items = services.components.load(kind)
    if not items:
        console.print(
            f"[yellow]No {kind} available.[/] Add them under {services.paths.library_dir(kind)}"
        )
        return

    table = Table(title=f"Available {kind.capitalize()} ({len(items)})")
    table.add_column("Name", style="cyan")
    if kind == HOOKS_DIR:
        table.add_column("Event")
        table.add_column("Matcher")
    table.add_column("Description")
    table.add_column("Source", style="dim")
    for item in items:
        row = [item.name]
        if kind == HOOKS_DIR:
            row += [item.event_type, item.matcher or "-"]
        row += [item.description or "No description", item.source]
        table.add_row(*row)
    console.print(table)


def _print_install(project: str, result: InstallResult) -> None:
    lines = [f"Project: [bold]{project}[/]", f"File: [dim]{result.path}[/]", ""]
    if result.written:
        lines.append(f"  [green]v[/] Wrote {result.path.name}")
    if result.config_updated:
        lines.append("  [green]v[/] Updated settings.json")
    for warning in result.warnings:
        lines.append(f"  [yellow]![/] {warning}")
    title = f"{result.kind.capitalize()} Installed" if result.changed else "Nothing Changed"
    console.print(Panel("\n".join(lines), title=title))


def _add_component(
    services: Services,
    kind: str,
    name: str | None,
    project: str | None,
    list_only: bool,
    force: bool,
) -> None:
    if list_only:
        _print_library(services, kind)
        return
    if not name:
        raise click.UsageError(f"Missing {KIND_LABELS[kind]} NAME (or use --list)")

    project_name, _path = _current_project(services, project)
    item = services.components.require(kind, name)
    result = services.installer.install(kind, project_name, item, overwrite=force)
    _print_install(project_name, result)


@main.command(name="add-agent")
@click.argument("name", required=False)
@click.option("--project", "-p", default=None, help="Project name (default: current directory)")
@click.option("--list", "list_only", is_flag=True, help="List available agents")
@click.option("--force", is_flag=True, help="Replace an installed agent with different content")
@click.pass_obj
@_reports_errors
def add_agent(services: Services, name: str | None, project: str | None, list_only: bool, force: bool):
    """Install an agent into a project's storage (agents/<name>.md)."""
    _add_component(services, AGENTS_DIR, name, project, list_only, force)


@main.command(name="add-command")
@click.argument("name", required=False)
@click.option("--project", "-p", default=None, help="Project name (default: current directory)")
@click.option("--list", "list_only", is_flag=True, help="List available commands")
@click.option("--force", is_flag=True, help="Replace an installed command with different content")
@click.pass_obj
@_reports_errors
def add_command(services: Services, name: str | None, project: str | None, list_only: bool, force: bool):
    """Install a slash command into a project's storage (commands/<name>.md)."""
    _add_component(services, COMMANDS_DIR, name, project, list_only, force)


@main.command(name="add-hook")
@click.argument("name", required=False)
@click.option("--project", "-p", default=None, help="Project name (default: current directory)")
@click.option("--list", "list_only", is_flag=True, help="List available hooks")
@click.option("--force", is_flag=True, help="Replace an installed hook script with different content")
@click.pass_obj
@_reports_errors
def add_hook(services: Services, name: str | None, project: str | None, list_only: bool, force: bool):
    """Install a hook script and register it in the project's settings.json."""
    _add_component(services, HOOKS_DIR, name, project, list_only, force)


if __name__ == "__main__":
    main()
