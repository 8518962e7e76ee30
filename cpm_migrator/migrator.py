"""CpmMigrator — two-phase analyze / migrate pipeline over a directory tree."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from cpm_migrator.analyzer import analyze_project
from cpm_migrator.core.config import MigrationConfig
from cpm_migrator.models import AnalysisPlan, MigrationOutcome, ProjectAnalysis
from cpm_migrator.progress import ProgressCallback, ProgressTracker
from cpm_migrator.resolver import VersionResolver
from cpm_migrator.scanner import ProjectScanner
from cpm_migrator.transaction import CancellationToken, MigrationTransaction

log = structlog.get_logger("cpm_migrator.engine")


def build_plan(root: Path, analyses: list[ProjectAnalysis]) -> AnalysisPlan:
    """Fold per-project analyses (in scan order) into an immutable plan."""
    resolver = VersionResolver()
    to_migrate: list[ProjectAnalysis] = []
    skipped: list[ProjectAnalysis] = []
    for analysis in analyses:
        if analysis.migratable:
            to_migrate.append(analysis)
            resolver.add(analysis)
        else:
            skipped.append(analysis)

    resolved, conflicts = resolver.resolve()
    log.info(
        "engine.analyzed",
        root=str(root),
        to_migrate=len(to_migrate),
        skipped=len(skipped),
        packages=len(resolved),
        conflicts=conflicts,
    )
    return AnalysisPlan(
        root=root,
        to_migrate=tuple(to_migrate),
        skipped=tuple(skipped),
        resolved_versions=resolved,
        conflict_count=conflicts,
    )


def analyze_tree(
    root: Path | str,
    config: MigrationConfig | None = None,
    cancel: CancellationToken | None = None,
) -> AnalysisPlan:
    """Read-only analysis of every project below *root* (synchronous)."""
    config = config or MigrationConfig()
    root = Path(root).absolute()
    analyses: list[ProjectAnalysis] = []
    for path in ProjectScanner(root, config.project_extensions, config.skip_dirs):
        if cancel is not None:
            cancel.raise_if_cancelled()
        analyses.append(analyze_project(path))
    return build_plan(root, analyses)


def migrate_tree(
    root: Path | str,
    plan: AnalysisPlan,
    config: MigrationConfig | None = None,
    cancel: CancellationToken | None = None,
    tracker: ProgressTracker | None = None,
) -> MigrationOutcome:
    """Apply *plan*: manifest at ``root/Directory.Packages.props`` (synchronous)."""
    config = config or MigrationConfig()
    transaction = MigrationTransaction(
        plan,
        Path(root).absolute() / config.manifest_name,
        backup_suffix=config.backup_suffix,
        cancel=cancel,
        tracker=tracker,
    )
    return transaction.run()


class CpmMigrator:
    """Async facade: analysis fans out to worker threads, migration runs on one."""

    def __init__(self, config: MigrationConfig | None = None) -> None:
        self.config = config or MigrationConfig()
        self.tracker: ProgressTracker | None = None

    async def analyze(
        self,
        root: Path | str,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> AnalysisPlan:
        """Scan *root* and classify every project. No file is modified.

        Raises ``MigrationCancelledError`` if *cancel* fires before all
        projects were analyzed.
        """
        root = Path(root).absolute()
        if progress:
            progress("Scanning for project files...")

        scanner = ProjectScanner(root, self.config.project_extensions, self.config.skip_dirs)
        paths = await asyncio.to_thread(list, scanner)
        semaphore = asyncio.Semaphore(self.config.max_workers)

        async def _one(path: Path) -> ProjectAnalysis:
            async with semaphore:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                return await asyncio.to_thread(analyze_project, path)

        tasks = [asyncio.create_task(_one(p)) for p in paths]
        try:
            analyses = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        if cancel is not None:
            cancel.raise_if_cancelled()
        if progress:
            progress(f"Analyzed {len(analyses)} project(s).")
        return build_plan(root, list(analyses))

    async def migrate(
        self,
        root: Path | str,
        plan: AnalysisPlan,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> MigrationOutcome:
        """Apply a plan produced by :meth:`analyze`. Never raises for I/O errors.

        Cancel through *cancel*: cancelling the awaiting task does not stop the
        worker thread, which runs the transaction to completion or rollback.
        """
        self.tracker = ProgressTracker(on_message=progress)
        return await asyncio.to_thread(
            migrate_tree, root, plan, self.config, cancel, self.tracker
        )
