"""Formatting-preserving edits of MSBuild XML files.

``xml.etree.ElementTree`` parses the document (well-formedness, entity
decoding, namespaces). A lexer over the decoded text records where every
start tag, end tag and attribute sits, and the two are paired by document
order. Edits are recorded as span replacements and applied on save, so every
byte outside an edited span (BOM, declaration, comments, indentation, line
endings, attribute quoting) is written back unchanged.
"""

from __future__ import annotations

import codecs
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator
from xml.sax.saxutils import escape

from cpm_migrator.exceptions import ProjectParseError

_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

_TOKEN_RE = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    r"|<\?.*?\?>"
    r"|<!DOCTYPE(?:[^\[>]|\[.*?\])*>"
    r"|</(?P<end>[^\s>]+)\s*>"
    r"|<(?P<start>[^\s/>!?]+)"
    r"(?P<attrs>(?:\s+[^\s=/>]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*)"
    r"\s*(?P<close>/?)>",
    re.DOTALL,
)

_ATTR_RE = re.compile(r"\s+(?P<name>[^\s=/>]+)\s*=\s*(?P<q>[\"'])(?P<value>.*?)(?P=q)", re.DOTALL)

_DEFAULT_INDENT = "  "


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` or ``prefix:`` part of a tag or attribute name."""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    return tag.rsplit(":", 1)[-1]


@dataclass
class _AttrSpan:
    name: str
    start: int  # includes the leading whitespace
    end: int
    value_start: int
    value_end: int
    quote: str


@dataclass
class _TagSpan:
    name: str
    start: int
    end: int
    self_closing: bool
    attrs: list[_AttrSpan] = field(default_factory=list)
    close_start: int | None = None
    close_end: int | None = None

    def attr(self, name: str) -> _AttrSpan | None:
        for a in self.attrs:
            if local_name(a.name) == name:
                return a
        return None

    @property
    def outer_end(self) -> int:
        return self.close_end if self.close_end is not None else self.end


@dataclass(order=True)
class _Edit:
    start: int
    seq: int
    end: int = field(compare=False)
    text: str = field(compare=False)


def _lex(text: str) -> list[_TagSpan]:
    tags: list[_TagSpan] = []
    stack: list[_TagSpan] = []
    for m in _TOKEN_RE.finditer(text):
        if m.group("end") is not None:
            if stack:
                span = stack.pop()
                span.close_start, span.close_end = m.start(), m.end()
            continue
        name = m.group("start")
        if name is None:
            continue  # comment, CDATA, PI or doctype
        span = _TagSpan(
            name=name,
            start=m.start(),
            end=m.end(),
            self_closing=bool(m.group("close")),
        )
        attrs_offset = m.start("attrs")
        for a in _ATTR_RE.finditer(m.group("attrs")):
            span.attrs.append(
                _AttrSpan(
                    name=a.group("name"),
                    start=attrs_offset + a.start(),
                    end=attrs_offset + a.end(),
                    value_start=attrs_offset + a.start("value"),
                    value_end=attrs_offset + a.end("value"),
                    quote=a.group("q"),
                )
            )
        tags.append(span)
        if not span.self_closing:
            stack.append(span)
    return tags


def _decode(raw: bytes) -> tuple[str, bytes, str]:
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            return raw[len(bom):].decode(encoding), bom, encoding
    return raw.decode("utf-8"), b"", "utf-8"


class SourceDocument:
    """An XML document that can be edited without reformatting it."""

    def __init__(self, raw: bytes, path: Path | None = None) -> None:
        self.path = path
        label = str(path) if path is not None else "<memory>"
        try:
            self.root = ET.fromstring(raw)
            self._text, self._bom, self._encoding = _decode(raw)
        except ET.ParseError as exc:
            raise ProjectParseError(label, str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise ProjectParseError(label, f"cannot decode file: {exc}") from exc

        elements = list(self.root.iter())
        spans = _lex(self._text)
        if len(elements) != len(spans):
            raise ProjectParseError(label, "unsupported markup: element spans do not line up")
        self._elements = elements
        self._spans = {id(el): span for el, span in zip(elements, spans)}
        self._parents = {id(child): parent for parent in elements for child in parent}
        self._edits: list[_Edit] = []
        self._newline = "\r\n" if "\r\n" in self._text else "\n"

    @classmethod
    def load(cls, path: Path | str) -> SourceDocument:
        path = Path(path)
        return cls(path.read_bytes(), path)

    # ── queries ──────────────────────────────────────────────────────────

    def iter(self, name: str) -> Iterator[ET.Element]:
        """Yield elements with local name *name* in document order."""
        for el in self._elements:
            if local_name(el.tag) == name:
                yield el

    @staticmethod
    def children(el: ET.Element, name: str) -> list[ET.Element]:
        return [child for child in el if local_name(child.tag) == name]

    def parent(self, el: ET.Element) -> ET.Element | None:
        return self._parents.get(id(el))

    @property
    def changed(self) -> bool:
        return bool(self._edits)

    # ── edits ────────────────────────────────────────────────────────────

    def remove_attribute(self, el: ET.Element, name: str) -> bool:
        attr = self._span(el).attr(name)
        if attr is None:
            return False
        self._add(attr.start, attr.end, "")
        return True

    def set_attribute(self, el: ET.Element, name: str, value: str) -> None:
        span = self._span(el)
        attr = span.attr(name)
        if attr is not None:
            self._add(attr.value_start, attr.value_end, _escape_attr(value, attr.quote))
            return
        pos = span.attrs[-1].end if span.attrs else span.start + 1 + len(span.name)
        self._add(pos, pos, f' {name}="{_escape_attr(value, chr(34))}"')

    def set_text(self, el: ET.Element, value: str) -> None:
        span = self._span(el)
        if span.close_start is None:
            start_tag = self._text[span.start:span.end]
            opened = start_tag[:-2].rstrip() + ">"
            self._add(span.start, span.end, f"{opened}{escape(value)}</{span.name}>")
            return
        self._add(span.end, span.close_start, escape(value))

    def remove_element(self, el: ET.Element) -> None:
        """Remove *el* together with the indentation line it sits on."""
        span = self._span(el)
        start = span.start
        j = start
        while j > 0 and self._text[j - 1] in " \t":
            j -= 1
        if j > 0 and self._text[j - 1] == "\n":
            j -= 1
            if j > 0 and self._text[j - 1] == "\r":
                j -= 1
            start = j
        self._add(start, span.outer_end, "")

    def append_children(self, parent: ET.Element, fragments: list[str]) -> None:
        """Append markup *fragments* as the last children of *parent*.

        Multi-line fragments are re-indented to the child level.
        """
        if not fragments:
            return
        span = self._span(parent)
        nl = self._newline
        kids = list(parent)
        if kids:
            last = self._span(kids[-1])
            indent = self._line_indent(last.start)
            body = "".join(nl + _indent_block(f, indent, nl) for f in fragments)
            self._add(last.outer_end, last.outer_end, body)
            return

        parent_indent = self._line_indent(span.start)
        indent = parent_indent + self._indent_unit()
        body = "".join(nl + _indent_block(f, indent, nl) for f in fragments)
        if span.close_start is None:
            start_tag = self._text[span.start:span.end]
            opened = start_tag[:-2].rstrip() + ">"
            closing = nl + parent_indent + f"</{span.name}>"
            self._add(span.start, span.end, opened + body + closing)
        else:
            # keep comments or text already inside, replace trailing whitespace only
            inner = self._text[span.end:span.close_start]
            keep = span.end + len(inner.rstrip())
            self._add(keep, span.close_start, body + nl + parent_indent)

    # ── output ───────────────────────────────────────────────────────────

    def render(self) -> str:
        text = self._text
        edits = sorted(self._edits, reverse=True)
        for prev, cur in zip(edits, edits[1:]):
            if cur.end > prev.start and cur.start != prev.start:
                raise ValueError("overlapping XML edits")
        for edit in edits:
            text = text[: edit.start] + edit.text + text[edit.end :]
        return text

    def to_bytes(self) -> bytes:
        return self._bom + self.render().encode(self._encoding)

    def save(self, path: Path | str | None = None) -> None:
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("no path to save to")
        target.write_bytes(self.to_bytes())

    # ── internals ────────────────────────────────────────────────────────

    def _span(self, el: ET.Element) -> _TagSpan:
        return self._spans[id(el)]

    def _add(self, start: int, end: int, text: str) -> None:
        self._edits.append(_Edit(start=start, seq=len(self._edits), end=end, text=text))

    def _line_indent(self, pos: int) -> str:
        line_start = self._text.rfind("\n", 0, pos) + 1
        prefix = self._text[line_start:pos]
        return prefix if prefix.strip() == "" else ""

    def _indent_unit(self) -> str:
        kids = list(self.root)
        if kids:
            unit = self._line_indent(self._span(kids[0]).start)
            if unit:
                return unit
        return _DEFAULT_INDENT


def _escape_attr(value: str, quote: str) -> str:
    if quote == '"':
        return escape(value, {'"': "&quot;"})
    return escape(value, {"'": "&apos;"})


def _indent_block(fragment: str, indent: str, nl: str) -> str:
    return nl.join(indent + line if line else line for line in fragment.split("\n"))


def render_element(tag: str, attrs: dict[str, str]) -> str:
    """Render a self-closing element, e.g. ``<PackageVersion Include="x" Version="1" />``."""
    rendered = "".join(f' {k}="{_escape_attr(v, chr(34))}"' for k, v in attrs.items())
    return f"<{tag}{rendered} />"
