"""Migration settings — defaults plus environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass

MANIFEST_NAME = "Directory.Packages.props"
LEGACY_MANIFEST_NAME = "packages.config"
BACKUP_SUFFIX = ".bak"

PROJECT_EXTENSIONS: tuple[str, ...] = (".csproj", ".fsproj", ".vbproj")
MIGRATION_EXTENSIONS: tuple[str, ...] = (".csproj",)

# Build output, version control and dependency cache directories.
DEFAULT_SKIP_DIRS: frozenset[str] = frozenset({"bin", "obj", ".git", "node_modules"})


@dataclass(frozen=True)
class MigrationConfig:
    """Settings for one analyze/migrate run."""

    skip_dirs: frozenset[str] = DEFAULT_SKIP_DIRS
    project_extensions: tuple[str, ...] = MIGRATION_EXTENSIONS
    manifest_name: str = MANIFEST_NAME
    backup_suffix: str = BACKUP_SUFFIX
    max_workers: int = 8

    @classmethod
    def from_env(cls) -> MigrationConfig:
        """Build a config, reading overrides from environment variables:

        CPM_MIGRATOR_SKIP_DIRS      — comma separated directory names
        CPM_MIGRATOR_BACKUP_SUFFIX  — suffix appended to backed-up project paths
        CPM_MIGRATOR_MAX_WORKERS    — analysis worker threads (default: 8)
        """
        skip_env = os.environ.get("CPM_MIGRATOR_SKIP_DIRS")
        skip_dirs = DEFAULT_SKIP_DIRS
        if skip_env:
            skip_dirs = frozenset(d.strip() for d in skip_env.split(",") if d.strip())

        suffix = os.environ.get("CPM_MIGRATOR_BACKUP_SUFFIX") or BACKUP_SUFFIX
        workers = int(os.environ.get("CPM_MIGRATOR_MAX_WORKERS", "8"))

        return cls(
            skip_dirs=skip_dirs,
            backup_suffix=suffix,
            max_workers=max(1, workers),
        )
