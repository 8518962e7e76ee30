"""Project file discovery — breadth-first walk with directory pruning."""

from __future__ import annotations

import os
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator

import structlog

from cpm_migrator.core.config import DEFAULT_SKIP_DIRS, MIGRATION_EXTENSIONS, PROJECT_EXTENSIONS

log = structlog.get_logger("cpm_migrator.scanner")


class ProjectScanner:
    """Iterable over project files below *root*, as absolute paths.

    Every call to ``iter()`` restarts the walk. Directories whose name matches
    *skip_dirs* (case-insensitive) are never entered, and unreadable
    directories are skipped. Entries are visited in sorted order so repeated
    scans of an unchanged tree yield the same sequence.
    """

    def __init__(
        self,
        root: Path | str,
        extensions: Iterable[str] = MIGRATION_EXTENSIONS,
        skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
    ) -> None:
        self.root = Path(root).absolute()
        self.extensions = tuple(e.lower() for e in extensions)
        self.skip_dirs = frozenset(d.casefold() for d in skip_dirs)

    def __iter__(self) -> Iterator[Path]:
        queue: deque[Path] = deque([self.root])
        while queue:
            directory = queue.popleft()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                log.debug("scanner.dir_unreadable", path=str(directory), error=str(exc))
                continue

            subdirs: list[Path] = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name.casefold() not in self.skip_dirs:
                            subdirs.append(Path(entry.path))
                    elif entry.is_file() and entry.name.lower().endswith(self.extensions):
                        yield Path(entry.path)
                except OSError:
                    continue
            queue.extend(subdirs)


def discover_projects(
    root: Path | str,
    skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
) -> list[Path]:
    """Return every .csproj / .fsproj / .vbproj below *root*, sorted."""
    root = Path(root)
    if not root.is_dir():
        return []
    return sorted(ProjectScanner(root, PROJECT_EXTENSIONS, skip_dirs))
