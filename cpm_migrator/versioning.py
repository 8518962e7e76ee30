"""NuGet version ordering with a lexicographic fallback for non-version text.

Versions follow NuGet's SemVer 2.0 rules: one to four numeric release parts
(missing parts count as 0), an optional ``-prerelease`` label and optional
``+metadata``. A release sorts above any of its pre-releases. Pre-release
labels compare identifier by identifier: numeric identifiers numerically and
below alphanumeric ones, alphanumeric identifiers by ordinal text ignoring
case, and a shorter label below a longer one it is a prefix of. Metadata
does not affect order.

Anything that is not a version, such as the range ``[1.0.0, 2.0.0)``, is
compared code point by code point on the raw text. The fallback is not
range-aware.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache, total_ordering
from typing import Iterable

_IDENT = r"[0-9A-Za-z-]+"
_VERSION_RE = re.compile(
    rf"^(?P<release>\d+(?:\.\d+){{0,3}})"
    rf"(?:-(?P<pre>{_IDENT}(?:\.{_IDENT})*))?"
    rf"(?:\+(?P<meta>{_IDENT}(?:\.{_IDENT})*))?$",
    re.ASCII,
)


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier.casefold())


@total_ordering
@dataclass(frozen=True, eq=False)
class NuGetVersion:
    """A parsed NuGet package version."""

    release: tuple[int, int, int, int]
    prerelease: tuple[str, ...] = ()
    metadata: str = ""

    @classmethod
    def parse(cls, text: str) -> NuGetVersion:
        """Parse *text*; raises ``ValueError`` when it is not a version."""
        m = _VERSION_RE.match(text.strip())
        if m is None:
            raise ValueError(f"not a NuGet version: {text!r}")
        parts = [int(p) for p in m.group("release").split(".")]
        parts += [0] * (4 - len(parts))
        pre = m.group("pre")
        return cls(
            release=(parts[0], parts[1], parts[2], parts[3]),
            prerelease=tuple(pre.split(".")) if pre else (),
            metadata=m.group("meta") or "",
        )

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def sort_key(self) -> tuple:
        if not self.prerelease:
            return (self.release, 1, ())
        return (self.release, 0, tuple(_identifier_key(i) for i in self.prerelease))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self.sort_key == other.sort_key

    def __lt__(self, other: NuGetVersion) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __hash__(self) -> int:
        return hash(self.sort_key)

    def __str__(self) -> str:
        parts = list(self.release) if self.release[3] else list(self.release[:3])
        text = ".".join(str(p) for p in parts)
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.metadata:
            text += "+" + self.metadata
        return text


@lru_cache(maxsize=1024)
def parse_version(text: str) -> NuGetVersion | None:
    """Return the parsed version, or None when *text* is not a plain version."""
    try:
        return NuGetVersion.parse(text)
    except ValueError:
        return None


def compare_versions(a: str, b: str) -> int:
    """Three-way compare two version texts (-1, 0 or 1).

    Uses version precedence when both sides parse, raw-text ordering otherwise.
    """
    va, vb = parse_version(a), parse_version(b)
    if va is not None and vb is not None:
        if va != vb:
            return -1 if va < vb else 1
        return 0
    if a == b:
        return 0
    return -1 if a < b else 1


def is_higher(candidate: str, existing: str) -> bool:
    """True when *candidate* is strictly greater than *existing*."""
    return compare_versions(candidate, existing) > 0


def max_version(versions: Iterable[str]) -> str:
    """Pick the highest of *versions*.

    If every text parses, the maximum by precedence wins; texts of equal
    precedence (``1.0`` and ``1.0.0``) tie-break on raw text. If any text fails
    to parse the whole group falls back to the lexicographic maximum, so the
    result depends only on the multiset of inputs, never on their order.
    """
    texts = list(versions)
    if not texts:
        raise ValueError("max_version() arg is an empty sequence")

    parsed = [parse_version(t) for t in texts]
    if all(v is not None for v in parsed):
        return max(zip(parsed, texts))[1]
    return max(texts)
