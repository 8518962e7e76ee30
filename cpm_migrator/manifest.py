"""Directory.Packages.props — read, create, merge and maintain entries."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, Mapping

import structlog

from cpm_migrator.exceptions import ManifestEntryNotFoundError, ProjectParseError
from cpm_migrator.models import ManifestWriteResult
from cpm_migrator.versioning import is_higher
from cpm_migrator.xmlsource import SourceDocument, local_name, render_element

log = structlog.get_logger("cpm_migrator.manifest")

CPM_PROPERTY = "ManagePackageVersionsCentrally"


class PackageVersions(Mapping[str, str]):
    """Read-only package id → version mapping with case-insensitive keys."""

    def __init__(self, items: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, tuple[str, str]] = {}
        for key, value in (items or {}).items():
            self._data[key.casefold()] = (key, value)

    def __getitem__(self, key: str) -> str:
        return self._data[key.casefold()][1]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._data

    def __repr__(self) -> str:
        return f"PackageVersions({dict(self.items())!r})"


def entry_version(entry: ET.Element) -> str | None:
    """Version of a ``PackageVersion`` entry — attribute or child element."""
    attr = entry.get("Version")
    if attr is not None:
        return attr
    for child in entry:
        if local_name(child.tag) == "Version":
            return (child.text or "").strip()
    return None


def find_entry(doc: SourceDocument, package_id: str) -> ET.Element | None:
    key = package_id.casefold()
    for el in doc.iter("PackageVersion"):
        if (el.get("Include") or "").casefold() == key:
            return el
    return None


def cpm_flag(doc: SourceDocument) -> bool | None:
    """Value of ``ManagePackageVersionsCentrally``; None when not declared."""
    flag: bool | None = None
    for el in doc.iter(CPM_PROPERTY):
        flag = (el.text or "").strip().lower() == "true"
    return flag


def read_package_versions(path: Path | str) -> PackageVersions:
    """All entries of a manifest. Missing or malformed files give an empty mapping."""
    try:
        doc = SourceDocument.load(path)
    except (OSError, ProjectParseError) as exc:
        log.debug("manifest.read_failed", path=str(path), error=str(exc))
        return PackageVersions()

    versions: dict[str, str] = {}
    for el in doc.iter("PackageVersion"):
        package_id = el.get("Include")
        version = entry_version(el)
        if package_id and version:
            versions[package_id] = version
    return PackageVersions(versions)


def update_package_version(path: Path | str, package_id: str, version: str) -> None:
    """Set the version of an existing entry, keeping the file's formatting.

    Raises ``ManifestEntryNotFoundError`` if the entry does not exist.
    """
    doc = SourceDocument.load(path)
    entry = find_entry(doc, package_id)
    if entry is None:
        raise ManifestEntryNotFoundError(package_id, str(path))
    _set_entry_version(doc, entry, version)
    doc.save()
    log.info("manifest.version_updated", path=str(path), package=package_id, version=version)


def remove_package_version(path: Path | str, package_id: str) -> bool:
    """Remove an entry if present. Returns whether anything was removed."""
    doc = SourceDocument.load(path)
    entry = find_entry(doc, package_id)
    if entry is None:
        return False
    doc.remove_element(entry)
    doc.save()
    log.info("manifest.version_removed", path=str(path), package=package_id)
    return True


def _set_entry_version(doc: SourceDocument, entry: ET.Element, version: str) -> None:
    if entry.get("Version") is None:
        children = SourceDocument.children(entry, "Version")
        if children:
            doc.set_text(children[0], version)
            return
    doc.set_attribute(entry, "Version", version)


def render_new_manifest(resolved: Mapping[str, str], newline: str = "\n") -> str:
    lines = [
        "<Project>",
        "  <PropertyGroup>",
        f"    <{CPM_PROPERTY}>true</{CPM_PROPERTY}>",
        "  </PropertyGroup>",
        "  <ItemGroup>",
    ]
    for package_id, version in resolved.items():
        lines.append("    " + render_element("PackageVersion", {"Include": package_id, "Version": version}))
    lines += ["  </ItemGroup>", "</Project>", ""]
    return newline.join(lines)


class ManifestWriter:
    """Create or merge the central manifest; never downgrades an entry."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def write(self, resolved: Mapping[str, str]) -> ManifestWriteResult:
        try:
            if self.path.is_file():
                return self._merge(resolved)
            return self._create(resolved)
        except ProjectParseError as exc:
            return ManifestWriteResult(path=self.path, error=f"{self.path.name}: {exc.message}")
        except OSError as exc:
            return ManifestWriteResult(path=self.path, error=str(exc))

    def _create(self, resolved: Mapping[str, str]) -> ManifestWriteResult:
        self.path.write_text(render_new_manifest(resolved), encoding="utf-8")
        log.info("manifest.created", path=str(self.path), entries=len(resolved))
        return ManifestWriteResult(path=self.path, created=True, added=list(resolved))

    def _merge(self, resolved: Mapping[str, str]) -> ManifestWriteResult:
        doc = SourceDocument.load(self.path)
        result = ManifestWriteResult(path=self.path)
        new_entries: list[str] = []

        for package_id, version in resolved.items():
            entry = find_entry(doc, package_id)
            if entry is None:
                new_entries.append(
                    render_element("PackageVersion", {"Include": package_id, "Version": version})
                )
                result.added.append(package_id)
                continue

            existing = entry_version(entry)
            if not existing or is_higher(version, existing):
                _set_entry_version(doc, entry, version)
                result.upgraded.append(package_id)
                log.info(
                    "manifest.entry_upgraded",
                    package=package_id,
                    old_version=existing,
                    new_version=version,
                )
            else:
                result.kept.append(package_id)

        root_fragments: list[str] = []
        flag = cpm_flag(doc)
        if flag is None:
            root_fragments.append(
                f"<PropertyGroup>\n  <{CPM_PROPERTY}>true</{CPM_PROPERTY}>\n</PropertyGroup>"
            )
        elif flag is False:
            log.warning("manifest.cpm_disabled", path=str(self.path))

        if new_entries:
            group = self._entry_group(doc)
            if group is None:
                body = "\n".join("  " + e for e in new_entries)
                root_fragments.append(f"<ItemGroup>\n{body}\n</ItemGroup>")
            else:
                doc.append_children(group, new_entries)

        if root_fragments:
            doc.append_children(doc.root, root_fragments)

        if doc.changed:
            doc.save()
        log.info(
            "manifest.merged",
            path=str(self.path),
            added=len(result.added),
            upgraded=len(result.upgraded),
            kept=len(result.kept),
        )
        return result

    @staticmethod
    def _entry_group(doc: SourceDocument) -> ET.Element | None:
        """First top-level ItemGroup holding entries, else the first top-level ItemGroup."""
        groups = SourceDocument.children(doc.root, "ItemGroup")
        for group in groups:
            if SourceDocument.children(group, "PackageVersion"):
                return group
        return groups[0] if groups else None
