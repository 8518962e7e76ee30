"""CLI entry point: cpm-migrate.

Subcommands:
    cpm-migrate analyze /path/to/repo              # dry run: what would be migrated
    cpm-migrate migrate /path/to/repo [--yes]      # write Directory.Packages.props, strip versions
    cpm-migrate show path/to/App.csproj            # CPM status and version source per package
    cpm-migrate discover /path/to/repo             # list .csproj/.fsproj/.vbproj files
    cpm-migrate set-version Directory.Packages.props Serilog 3.1.1
    cpm-migrate remove-version Directory.Packages.props Serilog
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from cpm_migrator.core.config import MigrationConfig
from cpm_migrator.core.logging import setup_logging
from cpm_migrator.exceptions import ManifestEntryNotFoundError, ProjectParseError
from cpm_migrator.manifest import remove_package_version, update_package_version
from cpm_migrator.migrator import CpmMigrator
from cpm_migrator.models import AnalysisPlan
from cpm_migrator.reader import read_project
from cpm_migrator.scanner import discover_projects
from cpm_migrator.schemas import AnalysisPlanSchema, MigrationOutcomeSchema, ProjectFileSchema

_STATUS_ICONS = {
    "completed": "+",
    "failed": "!",
    "skipped": "-",
    "running": "~",
}


def _print_plan(plan: AnalysisPlan) -> None:
    click.echo(f"Projects to migrate: {len(plan.to_migrate)}")
    for project in plan.to_migrate:
        click.echo(f"  {project.name:30s}  {len(project.inline_refs)} inline version(s)  {project.path}")

    if plan.skipped:
        click.echo(f"\nSkipped: {len(plan.skipped)}")
        for project in plan.skipped:
            click.echo(f"  {project.name:30s}  {project.skip_reason}")

    if plan.resolved_versions:
        click.echo(
            f"\nResolved versions ({len(plan.resolved_versions)} package(s), "
            f"{plan.conflict_count} conflict(s)):"
        )
        for package_id, version in sorted(plan.resolved_versions.items(), key=lambda kv: kv[0].lower()):
            click.echo(f"  {package_id:40s}  {version}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """cpm-migrate: move .NET projects to Central Package Management."""
    setup_logging("DEBUG" if verbose else None)


@main.command("analyze")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def analyze(root: Path, as_json: bool) -> None:
    """Show what a migration would do. No file is modified."""
    plan = asyncio.run(CpmMigrator(MigrationConfig.from_env()).analyze(root))
    if as_json:
        click.echo(AnalysisPlanSchema.from_plan(plan).model_dump_json(indent=2))
        return
    _print_plan(plan)


@main.command("migrate")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def migrate(root: Path, yes: bool, as_json: bool) -> None:
    """Create or update Directory.Packages.props and strip inline versions."""
    migrator = CpmMigrator(MigrationConfig.from_env())
    plan = asyncio.run(migrator.analyze(root))

    if not as_json:
        _print_plan(plan)
    if plan.is_empty:
        if as_json:
            click.echo(json.dumps({"plan": AnalysisPlanSchema.from_plan(plan).model_dump(mode="json"),
                                   "outcome": None}, indent=2))
        else:
            click.echo("\nNothing to migrate.")
        return

    if not yes:
        click.confirm(
            f"\nMigrate {len(plan.to_migrate)} project(s) to central package management?",
            abort=True,
            err=True,
        )

    progress = None if as_json else (lambda msg: click.echo(f"  {msg}"))
    outcome = asyncio.run(migrator.migrate(root, plan, progress=progress))
    summary = migrator.tracker.get_summary() if migrator.tracker else {"phases": []}

    if as_json:
        click.echo(
            json.dumps(
                {
                    "plan": AnalysisPlanSchema.from_plan(plan).model_dump(mode="json"),
                    "outcome": MigrationOutcomeSchema.model_validate(outcome).model_dump(mode="json"),
                    "phases": summary["phases"],
                },
                indent=2,
            )
        )
    else:
        if outcome.success:
            click.echo("\nMigration complete:")
            click.echo(f"  Projects migrated: {outcome.projects_migrated}")
            click.echo(f"  Packages centralized: {outcome.packages_centralized}")
            click.echo(f"  Conflicts resolved: {outcome.conflicts_resolved}")
            click.echo(f"  Manifest: {outcome.manifest_path}")
        else:
            click.echo(f"\nMigration failed: {outcome.error}", err=True)

        click.echo("\nPhases:")
        for p in summary["phases"]:
            icon = _STATUS_ICONS.get(p["status"], "?")
            detail = f" - {p['detail']}" if p["detail"] else ""
            error = f" ({p['error']})" if p["error"] else ""
            click.echo(f"  [{icon}] {p['phase']}{detail}{error}")

    if not outcome.success:
        sys.exit(1)


@main.command("show")
@click.argument("project", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(project: Path, as_json: bool) -> None:
    """Show CPM status and the version source of every package."""
    info = read_project(project)
    if info is None:
        click.echo(f"Error: cannot parse {project}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(ProjectFileSchema.model_validate(info).model_dump_json(indent=2))
        return

    click.echo(f"Project: {info.name}")
    click.echo(f"Target framework(s): {', '.join(info.target_frameworks) or 'unknown'}")
    if info.cpm_enabled:
        click.echo(f"CPM: enabled ({info.manifest_path})")
    else:
        click.echo("CPM: disabled")
    if info.uses_legacy_manifest:
        click.echo(f"Legacy packages.config: {info.legacy_manifest_path}")
    click.echo(f"\nPackages ({len(info.packages)}):")
    for pkg in info.packages:
        click.echo(f"  {pkg.package_id:40s}  {pkg.version or '?':15s}  [{pkg.source.value}]")


@main.command("discover")
@click.argument("root", type=click.Path(path_type=Path))
def discover(root: Path) -> None:
    """List .NET project files below ROOT."""
    projects = discover_projects(root, MigrationConfig.from_env().skip_dirs)
    if not projects:
        click.echo("No project files found.")
        return
    for path in projects:
        click.echo(str(path))


@main.command("set-version")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("package_id")
@click.argument("version")
def set_version(manifest: Path, package_id: str, version: str) -> None:
    """Change the version of an existing manifest entry."""
    try:
        update_package_version(manifest, package_id, version)
    except ManifestEntryNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ProjectParseError as e:
        click.echo(f"Error: cannot parse {manifest}: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"{package_id} -> {version}")


@main.command("remove-version")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("package_id")
def remove_version(manifest: Path, package_id: str) -> None:
    """Remove an entry from the manifest."""
    try:
        removed = remove_package_version(manifest, package_id)
    except ProjectParseError as e:
        click.echo(f"Error: cannot parse {manifest}: {e.message}", err=True)
        sys.exit(1)
    if not removed:
        click.echo(f"Error: no entry for '{package_id}' in {manifest}", err=True)
        sys.exit(1)
    click.echo(f"Removed {package_id}")


if __name__ == "__main__":
    main()
