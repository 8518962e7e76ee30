"""cpm-migrator: migrate .NET projects to Central Package Management."""

__version__ = "0.1.0"

from cpm_migrator.analyzer import analyze_project
from cpm_migrator.manifest import (
    ManifestWriter,
    read_package_versions,
    remove_package_version,
    update_package_version,
)
from cpm_migrator.migrator import CpmMigrator, analyze_tree, migrate_tree
from cpm_migrator.models import (
    AnalysisPlan,
    InlineRef,
    MigrationOutcome,
    PackageReference,
    ProjectAnalysis,
    ProjectFile,
    VersionSource,
)
from cpm_migrator.reader import find_manifest, read_project
from cpm_migrator.resolver import resolve_versions
from cpm_migrator.rewriter import ProjectRewriter
from cpm_migrator.scanner import ProjectScanner, discover_projects
from cpm_migrator.transaction import CancellationToken, MigrationTransaction

__all__ = [
    "AnalysisPlan",
    "CancellationToken",
    "CpmMigrator",
    "InlineRef",
    "ManifestWriter",
    "MigrationOutcome",
    "MigrationTransaction",
    "PackageReference",
    "ProjectAnalysis",
    "ProjectFile",
    "ProjectRewriter",
    "ProjectScanner",
    "VersionSource",
    "analyze_project",
    "analyze_tree",
    "discover_projects",
    "find_manifest",
    "migrate_tree",
    "read_package_versions",
    "read_project",
    "remove_package_version",
    "resolve_versions",
    "update_package_version",
]
