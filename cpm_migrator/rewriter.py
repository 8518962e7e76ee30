"""Strip inline package versions from a project file."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import structlog

from cpm_migrator.exceptions import ProjectParseError
from cpm_migrator.models import InlineRef, RewriteResult
from cpm_migrator.xmlsource import SourceDocument

log = structlog.get_logger("cpm_migrator.rewriter")


class ProjectRewriter:
    """Remove ``Version`` attributes and ``<Version>`` children from references.

    A reference is edited when its ``Include`` id (case-insensitive) is among
    the migrated refs, whatever its current inline value. ``VersionOverride``,
    ``Update`` references and everything else in the file are left alone.
    """

    def rewrite(self, path: Path | str, refs: Iterable[InlineRef]) -> RewriteResult:
        path = Path(path)
        ids = {ref.package_id.casefold() for ref in refs}
        try:
            doc = SourceDocument.load(path)
            removed = 0
            for el in doc.iter("PackageReference"):
                package_id = el.get("Include")
                if package_id is None or package_id.casefold() not in ids:
                    continue
                if el.get("Update") is not None or el.get("VersionOverride") is not None:
                    continue
                if doc.remove_attribute(el, "Version"):
                    removed += 1
                for child in SourceDocument.children(el, "Version"):
                    doc.remove_element(child)
                    removed += 1
            if doc.changed:
                doc.save()
        except ProjectParseError as exc:
            return RewriteResult(path=path, error=f"{path.name}: {exc.message}")
        except OSError as exc:
            return RewriteResult(path=path, error=str(exc))

        log.debug("rewriter.project_rewritten", path=str(path), removed=removed)
        return RewriteResult(path=path, removed=removed)
