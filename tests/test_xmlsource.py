"""Tests for formatting-preserving XML edits."""

from __future__ import annotations

import codecs

import pytest

from cpm_migrator.exceptions import ProjectParseError
from cpm_migrator.xmlsource import SourceDocument, local_name, render_element

ITEMS = (
    "<Project>\n"
    "  <ItemGroup>\n"
    "    <PackageReference Include=\"A\" Version=\"1.0\" />\n"
    "    <PackageReference Include=\"B\" Version=\"2.0\" />\n"
    "  </ItemGroup>\n"
    "</Project>\n"
)


def _doc(text: str) -> SourceDocument:
    return SourceDocument(text.encode("utf-8"))


def _ref(doc: SourceDocument, package_id: str):
    return next(el for el in doc.iter("PackageReference") if el.get("Include") == package_id)


class TestLocalName:
    def test_plain(self):
        assert local_name("PackageReference") == "PackageReference"

    def test_clark_namespace(self):
        assert local_name("{http://schemas.microsoft.com/developer/msbuild/2003}Project") == "Project"

    def test_prefixed(self):
        assert local_name("msb:Project") == "Project"


# ── round trip ──


class TestRoundTrip:
    def test_unchanged_bytes(self):
        raw = (
            codecs.BOM_UTF8
            + b'<?xml version="1.0" encoding="utf-8"?>\r\n'
            + b"<!-- build settings -->\r\n"
            + b"<Project Sdk='Microsoft.NET.Sdk'>\r\n"
            + b"\t<ItemGroup>\r\n"
            + b'\t\t<PackageReference   Include="A"   Version="1.0"/>\r\n'
            + b"\t</ItemGroup>\r\n"
            + b"</Project>"
        )
        doc = SourceDocument(raw)
        assert not doc.changed
        assert doc.to_bytes() == raw

    def test_utf16_with_bom(self):
        text = '<?xml version="1.0" encoding="utf-16"?>\n<Project>\n  <ItemGroup />\n</Project>\n'
        raw = codecs.BOM_UTF16_LE + text.encode("utf-16-le")
        assert SourceDocument(raw).to_bytes() == raw

    def test_save_writes_to_loaded_path(self, write):
        path = write("App.csproj", ITEMS)
        doc = SourceDocument.load(path)
        doc.remove_attribute(_ref(doc, "A"), "Version")
        doc.save()
        assert '<PackageReference Include="A" />' in path.read_text()

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            _doc(ITEMS).save()


class TestParsing:
    def test_malformed(self, write):
        path = write("Bad.csproj", "<Project><ItemGroup></Project>")
        with pytest.raises(ProjectParseError) as exc_info:
            SourceDocument.load(path)
        assert exc_info.value.path == str(path)

    def test_undecodable(self):
        with pytest.raises(ProjectParseError):
            SourceDocument(b'<?xml version="1.0" encoding="ISO-8859-1"?><Project A="\xe9" />')

    def test_namespaced_document(self):
        doc = _doc(
            '<Project xmlns="http://schemas.microsoft.com/developer/msbuild/2003">'
            '<ItemGroup><PackageReference Include="A" Version="1.0" /></ItemGroup>'
            "</Project>"
        )
        assert [el.get("Include") for el in doc.iter("PackageReference")] == ["A"]

    def test_parent_and_children(self):
        doc = _doc(ITEMS)
        group = next(doc.iter("ItemGroup"))
        assert doc.parent(group) is doc.root
        assert len(SourceDocument.children(group, "PackageReference")) == 2
        assert doc.parent(doc.root) is None

    def test_comments_and_cdata_ignored_by_lexer(self):
        text = (
            "<Project>\n"
            "  <!-- <PackageReference Include=\"Ghost\" /> -->\n"
            "  <PropertyGroup><Notes><![CDATA[<Fake />]]></Notes></PropertyGroup>\n"
            "  <ItemGroup>\n"
            "    <PackageReference Include=\"A\" Version=\"1.0\" />\n"
            "  </ItemGroup>\n"
            "</Project>\n"
        )
        doc = _doc(text)
        doc.remove_attribute(_ref(doc, "A"), "Version")
        assert doc.render() == text.replace(' Version="1.0"', "")


# ── edits ──


class TestAttributeEdits:
    def test_remove_attribute(self):
        doc = _doc(ITEMS)
        assert doc.remove_attribute(_ref(doc, "A"), "Version")
        assert doc.changed
        assert doc.render() == ITEMS.replace('Include="A" Version="1.0"', 'Include="A"')

    def test_remove_missing_attribute(self):
        doc = _doc(ITEMS)
        assert not doc.remove_attribute(_ref(doc, "A"), "VersionOverride")
        assert not doc.changed

    def test_set_existing_keeps_quote_style(self):
        doc = _doc("<Project><PackageVersion Include='A' Version='1.0' /></Project>")
        doc.set_attribute(next(doc.iter("PackageVersion")), "Version", "2.0")
        assert doc.render() == "<Project><PackageVersion Include='A' Version='2.0' /></Project>"

    def test_set_new_attribute(self):
        doc = _doc('<Project><PackageVersion Include="A" /></Project>')
        doc.set_attribute(next(doc.iter("PackageVersion")), "Version", "1.0")
        assert doc.render() == '<Project><PackageVersion Include="A" Version="1.0" /></Project>'

    def test_set_escapes_value(self):
        doc = _doc('<Project><P Include="A" Version="1" /></Project>')
        doc.set_attribute(next(doc.iter("P")), "Version", '[1.0,2.0)&"')
        assert 'Version="[1.0,2.0)&amp;&quot;"' in doc.render()


class TestTextEdits:
    def test_set_text(self):
        doc = _doc("<Project><PackageVersion Include=\"A\"><Version>1.0</Version></PackageVersion></Project>")
        doc.set_text(next(doc.iter("Version")), "2.0")
        assert "<Version>2.0</Version>" in doc.render()

    def test_set_text_on_self_closing(self):
        doc = _doc("<Project><Version /></Project>")
        doc.set_text(next(doc.iter("Version")), "1.0")
        assert doc.render() == "<Project><Version>1.0</Version></Project>"


class TestRemoveElement:
    def test_removes_whole_line(self):
        doc = _doc(ITEMS)
        doc.remove_element(_ref(doc, "B"))
        assert doc.render() == ITEMS.replace(
            '\n    <PackageReference Include="B" Version="2.0" />', ""
        )

    def test_removes_element_with_body(self):
        text = (
            "<Project>\n"
            "  <ItemGroup>\n"
            "    <PackageReference Include=\"A\">\n"
            "      <Version>1.0</Version>\n"
            "    </PackageReference>\n"
            "  </ItemGroup>\n"
            "</Project>\n"
        )
        doc = _doc(text)
        doc.remove_element(next(doc.iter("Version")))
        assert doc.render() == text.replace("\n      <Version>1.0</Version>", "")

    def test_crlf(self):
        text = ITEMS.replace("\n", "\r\n")
        doc = _doc(text)
        doc.remove_element(_ref(doc, "A"))
        assert doc.render() == text.replace(
            '\r\n    <PackageReference Include="A" Version="1.0" />', ""
        )

    def test_overlapping_edits_rejected(self):
        doc = _doc(ITEMS)
        ref = _ref(doc, "A")
        doc.remove_attribute(ref, "Version")
        doc.remove_element(ref)
        with pytest.raises(ValueError):
            doc.render()


class TestAppendChildren:
    def test_after_last_child(self):
        doc = _doc(ITEMS)
        doc.append_children(next(doc.iter("ItemGroup")), ['<PackageReference Include="C" />'])
        assert doc.render() == ITEMS.replace(
            'Version="2.0" />\n',
            'Version="2.0" />\n    <PackageReference Include="C" />\n',
        )

    def test_expands_self_closing_parent(self):
        text = "<Project>\n  <ItemGroup />\n</Project>\n"
        doc = _doc(text)
        doc.append_children(next(doc.iter("ItemGroup")), ['<PackageVersion Include="A" Version="1" />'])
        assert doc.render() == (
            "<Project>\n"
            "  <ItemGroup>\n"
            '    <PackageVersion Include="A" Version="1" />\n'
            "  </ItemGroup>\n"
            "</Project>\n"
        )

    def test_empty_parent_keeps_comment(self):
        text = "<Project>\n  <ItemGroup>\n    <!-- pinned -->\n  </ItemGroup>\n</Project>\n"
        doc = _doc(text)
        doc.append_children(next(doc.iter("ItemGroup")), ["<X />"])
        assert doc.render() == (
            "<Project>\n"
            "  <ItemGroup>\n"
            "    <!-- pinned -->\n"
            "    <X />\n"
            "  </ItemGroup>\n"
            "</Project>\n"
        )

    def test_multiline_fragment_reindented(self):
        text = "<Project>\n\t<ItemGroup />\n</Project>\n"
        doc = _doc(text)
        doc.append_children(doc.root, ["<PropertyGroup>\n  <A>true</A>\n</PropertyGroup>"])
        assert doc.render() == (
            "<Project>\n"
            "\t<ItemGroup />\n"
            "\t<PropertyGroup>\n"
            "\t  <A>true</A>\n"
            "\t</PropertyGroup>\n"
            "</Project>\n"
        )

    def test_uses_crlf(self):
        text = ITEMS.replace("\n", "\r\n")
        doc = _doc(text)
        doc.append_children(next(doc.iter("ItemGroup")), ["<X />"])
        assert '\r\n    <X />\r\n  </ItemGroup>' in doc.render()

    def test_no_fragments(self):
        doc = _doc(ITEMS)
        doc.append_children(doc.root, [])
        assert not doc.changed


class TestRenderElement:
    def test_self_closing(self):
        assert (
            render_element("PackageVersion", {"Include": "A", "Version": "1.0"})
            == '<PackageVersion Include="A" Version="1.0" />'
        )

    def test_escapes(self):
        assert render_element("P", {"Include": "a&b"}) == '<P Include="a&amp;b" />'
