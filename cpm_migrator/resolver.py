"""Cross-project version conflict resolution."""

from __future__ import annotations

from typing import Iterable

import structlog

from cpm_migrator.models import ProjectAnalysis
from cpm_migrator.versioning import max_version

log = structlog.get_logger("cpm_migrator.resolver")


class VersionResolver:
    """Fold inline refs of migratable projects into one version per package.

    Package ids are grouped case-insensitively; the first spelling seen is
    kept as the manifest key. The fold is a per-key max, so the resolved
    versions do not depend on the order projects are added in.
    """

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self._versions: dict[str, list[str]] = {}

    def add(self, analysis: ProjectAnalysis) -> None:
        for ref in analysis.inline_refs:
            key = ref.package_id.casefold()
            self._names.setdefault(key, ref.package_id)
            self._versions.setdefault(key, []).append(ref.version)

    def resolve(self) -> tuple[dict[str, str], int]:
        """Return ``(resolved_versions, conflict_count)``."""
        resolved: dict[str, str] = {}
        conflicts = 0
        for key, versions in self._versions.items():
            distinct = set(versions)
            chosen = max_version(distinct)
            if len(distinct) > 1:
                conflicts += 1
                log.info(
                    "resolver.conflict",
                    package=self._names[key],
                    versions=sorted(distinct),
                    chosen=chosen,
                )
            resolved[self._names[key]] = chosen
        return resolved, conflicts


def resolve_versions(projects: Iterable[ProjectAnalysis]) -> tuple[dict[str, str], int]:
    """Convenience wrapper: resolve versions across *projects*."""
    resolver = VersionResolver()
    for project in projects:
        resolver.add(project)
    return resolver.resolve()
