"""Read project files back, resolving where each package version comes from."""

from __future__ import annotations

from pathlib import Path

import structlog

from cpm_migrator.analyzer import inline_version, package_references
from cpm_migrator.core.config import LEGACY_MANIFEST_NAME, MANIFEST_NAME
from cpm_migrator.exceptions import ProjectParseError
from cpm_migrator.manifest import CPM_PROPERTY, cpm_flag, read_package_versions
from cpm_migrator.models import PackageReference, ProjectFile, VersionSource
from cpm_migrator.xmlsource import SourceDocument

log = structlog.get_logger("cpm_migrator.reader")


def find_manifest(project_path: Path | str, manifest_name: str = MANIFEST_NAME) -> Path | None:
    """Nearest *manifest_name* in the project's directory or any parent.

    Follows the MSBuild lookup convention: the closest file wins.
    """
    directory = Path(project_path).absolute().parent
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / manifest_name
        if candidate.is_file():
            return candidate
    return None


def _manifest_enables_cpm(manifest_path: Path) -> bool:
    try:
        return cpm_flag(SourceDocument.load(manifest_path)) is True
    except (OSError, ProjectParseError):
        return False


def read_project(project_path: Path | str) -> ProjectFile | None:
    """Parse a project file; None when it cannot be read or parsed."""
    path = Path(project_path)
    try:
        doc = SourceDocument.load(path)
    except (OSError, ProjectParseError) as exc:
        log.warning("reader.parse_failed", path=str(path), error=str(exc))
        return None

    project = ProjectFile(path=path, name=path.stem)

    single = next(doc.iter("TargetFramework"), None)
    multi = next(doc.iter("TargetFrameworks"), None)
    if single is not None and (single.text or "").strip():
        project.target_frameworks = [single.text.strip()]
    elif multi is not None and multi.text:
        project.target_frameworks = [tf.strip() for tf in multi.text.split(";") if tf.strip()]

    legacy = path.parent / LEGACY_MANIFEST_NAME
    if legacy.is_file():
        project.legacy_manifest_path = legacy

    project.manifest_path = find_manifest(path)
    project_flag = any(
        (el.text or "").strip().lower() == "true" for el in doc.iter(CPM_PROPERTY)
    )
    project.cpm_enabled = project_flag or (
        project.manifest_path is not None and _manifest_enables_cpm(project.manifest_path)
    )

    central = (
        read_package_versions(project.manifest_path)
        if project.cpm_enabled and project.manifest_path is not None
        else {}
    )

    for ref in package_references(doc):
        package_id = ref.get("Include", "")
        override = ref.get("VersionOverride")
        if override is not None:
            project.packages.append(
                PackageReference(package_id, override, VersionSource.OVERRIDE)
            )
            continue
        version = inline_version(ref)
        if version is not None:
            project.packages.append(PackageReference(package_id, version, VersionSource.INLINE))
            continue
        project.packages.append(
            PackageReference(package_id, central.get(package_id), VersionSource.CENTRAL)
        )

    return project
