"""Backup → write manifest → rewrite projects, with rollback on failure.

States::

    IDLE → BACKING_UP → WRITING_MANIFEST → REWRITING_PROJECTS → COMMITTED
                 └──────────────┴──────────────────┴──→ ROLLING_BACK → FAILED

Cancellation is checked before each project backup, before the manifest
write and before each project rewrite, never in the middle of writing a file.
Projects are handled one at a time in plan order.
"""

from __future__ import annotations

import enum
import shutil
import threading
from pathlib import Path

import structlog

from cpm_migrator.core.config import BACKUP_SUFFIX
from cpm_migrator.exceptions import MigrationCancelledError
from cpm_migrator.manifest import ManifestWriter
from cpm_migrator.models import AnalysisPlan, MigrationOutcome
from cpm_migrator.progress import ProgressTracker
from cpm_migrator.rewriter import ProjectRewriter

log = structlog.get_logger("cpm_migrator.transaction")

CANCELLED_MESSAGE = "Migration cancelled."


class CancellationToken:
    """Cooperative, thread-safe cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise MigrationCancelledError()


class TransactionState(str, enum.Enum):
    IDLE = "idle"
    BACKING_UP = "backing_up"
    WRITING_MANIFEST = "writing_manifest"
    REWRITING_PROJECTS = "rewriting_projects"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


def backup_path(path: Path, suffix: str = BACKUP_SUFFIX) -> Path:
    return path.with_name(path.name + suffix)


class MigrationTransaction:
    """Apply one :class:`AnalysisPlan` to disk, all or nothing.

    Backups of project files stay on disk after a successful run. A manifest
    that already existed is snapshotted in memory and restored byte for byte
    on rollback; a manifest created by this run is deleted on rollback.
    """

    def __init__(
        self,
        plan: AnalysisPlan,
        manifest_path: Path,
        *,
        backup_suffix: str = BACKUP_SUFFIX,
        cancel: CancellationToken | None = None,
        tracker: ProgressTracker | None = None,
        writer: ManifestWriter | None = None,
        rewriter: ProjectRewriter | None = None,
    ) -> None:
        self.plan = plan
        self.manifest_path = Path(manifest_path)
        self.backup_suffix = backup_suffix
        self.cancel = cancel or CancellationToken()
        self.tracker = tracker or ProgressTracker()
        self.writer = writer or ManifestWriter(self.manifest_path)
        self.rewriter = rewriter or ProjectRewriter()

        self.state = TransactionState.IDLE
        self.backed_up: list[Path] = []
        self.modified: list[Path] = []
        self._manifest_existed: bool | None = None
        self._manifest_snapshot: bytes | None = None
        self._cancelled = False

    def run(self) -> MigrationOutcome:
        if self.state is not TransactionState.IDLE:
            raise RuntimeError(f"transaction already ran (state={self.state.value})")

        if self.plan.is_empty:
            self.state = TransactionState.COMMITTED
            self.tracker.skip_phase("backup", "nothing to migrate")
            self.tracker.report("Nothing to migrate.")
            existing = self.manifest_path if self.manifest_path.is_file() else None
            return MigrationOutcome(success=True, manifest_path=existing)

        try:
            error = self._backup()
            if error is None:
                error = self._write_manifest()
            if error is None:
                error = self._rewrite_projects()
        except Exception as exc:
            log.exception("transaction.unexpected_error", state=self.state.value)
            error = str(exc) or type(exc).__name__

        if error is not None:
            return self._rollback(error)

        self.state = TransactionState.COMMITTED
        count = len(self.plan.to_migrate)
        self.tracker.report(f"Done: {count} project(s) migrated.")
        log.info(
            "transaction.committed",
            projects=count,
            packages=len(self.plan.resolved_versions),
            conflicts=self.plan.conflict_count,
        )
        return MigrationOutcome(
            success=True,
            projects_migrated=count,
            packages_centralized=len(self.plan.resolved_versions),
            conflicts_resolved=self.plan.conflict_count,
            modified_paths=list(self.modified),
            manifest_path=self.manifest_path,
        )

    # ── steps ────────────────────────────────────────────────────────────

    def _backup(self) -> str | None:
        self._enter(TransactionState.BACKING_UP, "backup")
        for project in self.plan.to_migrate:
            if self.cancel.cancelled:
                return self._on_cancel()
            try:
                shutil.copyfile(project.path, backup_path(project.path, self.backup_suffix))
            except OSError as exc:
                return str(exc)
            self.backed_up.append(project.path)
            self.tracker.report(f"Backed up {project.path.name}")
        self.tracker.complete_phase("backup", f"{len(self.backed_up)} project(s)")
        return None

    def _write_manifest(self) -> str | None:
        self._enter(TransactionState.WRITING_MANIFEST, "manifest")
        self.tracker.report(f"Writing {self.manifest_path.name}...")
        if self.cancel.cancelled:
            return self._on_cancel()

        self._manifest_existed = self.manifest_path.is_file()
        if self._manifest_existed:
            try:
                self._manifest_snapshot = self.manifest_path.read_bytes()
            except OSError as exc:
                return str(exc)

        result = self.writer.write(self.plan.resolved_versions)
        if not result.ok:
            return result.error
        detail = "created" if result.created else (
            f"added {len(result.added)}, upgraded {len(result.upgraded)}, kept {len(result.kept)}"
        )
        self.tracker.complete_phase("manifest", detail)
        return None

    def _rewrite_projects(self) -> str | None:
        self._enter(TransactionState.REWRITING_PROJECTS, "rewrite")
        for project in self.plan.to_migrate:
            if self.cancel.cancelled:
                return self._on_cancel()
            self.tracker.report(f"Updating {project.name}...")
            result = self.rewriter.rewrite(project.path, project.inline_refs)
            if not result.ok:
                return result.error
            self.modified.append(project.path)
        self.tracker.complete_phase("rewrite", f"{len(self.modified)} project(s)")
        return None

    # ── rollback ─────────────────────────────────────────────────────────

    def _rollback(self, error: str) -> MigrationOutcome:
        current = self.tracker.current
        if current is not None:
            self.tracker.fail_phase(current.phase, error)

        self.state = TransactionState.ROLLING_BACK
        self.tracker.start_phase("rollback")
        self.tracker.report("Rolling back changes...")
        log.warning("transaction.rollback", error=error, backed_up=len(self.backed_up))

        failures = 0
        for path in self.backed_up:
            backup = backup_path(path, self.backup_suffix)
            try:
                if backup.is_file():
                    shutil.copyfile(backup, path)
            except OSError as exc:
                failures += 1
                log.warning("transaction.restore_failed", path=str(path), error=str(exc))

        if self._manifest_existed is False:
            try:
                if self.manifest_path.is_file():
                    self.manifest_path.unlink()
            except OSError as exc:
                failures += 1
                log.warning(
                    "transaction.manifest_delete_failed",
                    path=str(self.manifest_path),
                    error=str(exc),
                )
        elif self._manifest_snapshot is not None:
            try:
                self.manifest_path.write_bytes(self._manifest_snapshot)
            except OSError as exc:
                failures += 1
                log.warning(
                    "transaction.manifest_restore_failed",
                    path=str(self.manifest_path),
                    error=str(exc),
                )

        if failures:
            self.tracker.fail_phase("rollback", f"{failures} restore step(s) failed")
        else:
            self.tracker.complete_phase("rollback", f"restored {len(self.backed_up)} project(s)")
        self.state = TransactionState.FAILED
        return MigrationOutcome.failed(error, cancelled=self._cancelled)

    def _on_cancel(self) -> str:
        self._cancelled = True
        log.info("transaction.cancelled", state=self.state.value)
        return CANCELLED_MESSAGE

    def _enter(self, state: TransactionState, phase: str) -> None:
        self.state = state
        self.tracker.start_phase(phase)
        log.debug("transaction.state", state=state.value)
