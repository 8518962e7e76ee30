"""Data models for the CPM migration engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


class VersionSource(str, enum.Enum):
    """Where a package reference's effective version comes from."""

    INLINE = "inline"
    CENTRAL = "central"
    OVERRIDE = "override"


@dataclass(frozen=True)
class InlineRef:
    """A package id / version pair declared directly in a project file."""

    package_id: str
    version: str


@dataclass(frozen=True)
class ProjectAnalysis:
    """Classification of a single project file.

    ``skip_reason`` is set iff the project is excluded from migration.
    """

    path: Path
    name: str
    inline_refs: tuple[InlineRef, ...] = ()
    skip_reason: str | None = None

    @property
    def migratable(self) -> bool:
        return self.skip_reason is None

    @classmethod
    def skipped(cls, path: Path, reason: str) -> ProjectAnalysis:
        return cls(path=path, name=path.stem, skip_reason=reason)


@dataclass(frozen=True)
class AnalysisPlan:
    """Immutable result of the analyze phase."""

    root: Path
    to_migrate: tuple[ProjectAnalysis, ...]
    skipped: tuple[ProjectAnalysis, ...]
    resolved_versions: Mapping[str, str]
    conflict_count: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "resolved_versions", MappingProxyType(dict(self.resolved_versions))
        )

    @property
    def is_empty(self) -> bool:
        return not self.to_migrate


@dataclass
class MigrationOutcome:
    """Result of the migrate phase."""

    success: bool
    projects_migrated: int = 0
    packages_centralized: int = 0
    conflicts_resolved: int = 0
    modified_paths: list[Path] = field(default_factory=list)
    manifest_path: Path | None = None
    error: str | None = None
    cancelled: bool = False

    @classmethod
    def failed(cls, error: str, cancelled: bool = False) -> MigrationOutcome:
        return cls(success=False, error=error, cancelled=cancelled)


@dataclass
class ManifestWriteResult:
    """What the manifest writer did (or why it could not)."""

    path: Path
    created: bool = False
    added: list[str] = field(default_factory=list)
    upgraded: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RewriteResult:
    """Outcome of stripping inline versions from one project file."""

    path: Path
    removed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PackageReference:
    """A package reference as seen by the project reader."""

    package_id: str
    version: str | None
    source: VersionSource


@dataclass
class ProjectFile:
    """Project metadata read back from disk."""

    path: Path
    name: str
    target_frameworks: list[str] = field(default_factory=list)
    packages: list[PackageReference] = field(default_factory=list)
    cpm_enabled: bool = False
    manifest_path: Path | None = None
    legacy_manifest_path: Path | None = None

    @property
    def target_framework(self) -> str:
        return self.target_frameworks[0] if self.target_frameworks else "unknown"

    @property
    def uses_legacy_manifest(self) -> bool:
        return self.legacy_manifest_path is not None

    def package(self, package_id: str) -> PackageReference | None:
        key = package_id.casefold()
        for pkg in self.packages:
            if pkg.package_id.casefold() == key:
                return pkg
        return None
