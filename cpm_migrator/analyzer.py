"""Per-project classification — migratable (with inline refs) or skipped."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import structlog

from cpm_migrator.core.config import LEGACY_MANIFEST_NAME
from cpm_migrator.exceptions import ProjectParseError
from cpm_migrator.models import InlineRef, ProjectAnalysis
from cpm_migrator.xmlsource import SourceDocument, local_name

log = structlog.get_logger("cpm_migrator.analyzer")

SKIP_LEGACY_MANIFEST = "legacy packages.config present; migrate to PackageReference first"
SKIP_NO_REFERENCES = "no PackageReference elements"
SKIP_ALREADY_CENTRAL = "already centrally managed (CPM)"


def inline_version(ref: ET.Element) -> str | None:
    """Version declared on *ref* itself, attribute first, then ``<Version>`` child.

    Blank values count as absent.
    """
    attr = ref.get("Version")
    if attr is not None and attr.strip():
        return attr.strip()
    for child in ref:
        if local_name(child.tag) == "Version":
            text = child.text or ""
            if text.strip():
                return text.strip()
    return None


def package_references(doc: SourceDocument) -> list[ET.Element]:
    """``PackageReference`` elements with an ``Include`` and no ``Update``."""
    return [
        el
        for el in doc.iter("PackageReference")
        if el.get("Include") is not None and el.get("Update") is None
    ]


def analyze_project(
    path: Path | str,
    legacy_manifest_name: str = LEGACY_MANIFEST_NAME,
) -> ProjectAnalysis:
    """Classify one project file. Never raises for file content problems."""
    path = Path(path)

    if (path.parent / legacy_manifest_name).exists():
        return _skip(path, SKIP_LEGACY_MANIFEST)

    try:
        doc = SourceDocument.load(path)
    except ProjectParseError as exc:
        return _skip(path, f"parse error: {exc.message}")
    except OSError as exc:
        return _skip(path, f"read error: {exc.strerror or exc}")

    refs = package_references(doc)
    if not refs:
        return _skip(path, SKIP_NO_REFERENCES)

    inline: list[InlineRef] = []
    for ref in refs:
        # VersionOverride is an intentional per-project exception
        if ref.get("VersionOverride") is not None:
            continue
        version = inline_version(ref)
        if version is None:
            continue  # already central
        inline.append(InlineRef(package_id=ref.get("Include", ""), version=version))

    if not inline:
        return _skip(path, SKIP_ALREADY_CENTRAL)

    log.debug("analyzer.project_migratable", path=str(path), inline_refs=len(inline))
    return ProjectAnalysis(path=path, name=path.stem, inline_refs=tuple(inline))


def _skip(path: Path, reason: str) -> ProjectAnalysis:
    log.debug("analyzer.project_skipped", path=str(path), reason=reason)
    return ProjectAnalysis.skipped(path, reason)
