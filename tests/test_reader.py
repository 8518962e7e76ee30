"""Tests for reading project files back."""

from __future__ import annotations

from cpm_migrator.models import VersionSource
from cpm_migrator.reader import find_manifest, read_project
from samples import cpm_csproj, csproj, packages_config, props

MIXED = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFrameworks>net8.0; net9.0</TargetFrameworks>
  </PropertyGroup>
  <ItemGroup>
    <PackageReference Include="Serilog" />
    <PackageReference Include="Polly" VersionOverride="7.2.4" />
    <PackageReference Include="Dapper" Version="2.1.0" />
    <PackageReference Update="Serilog" Version="1.0.0" />
  </ItemGroup>
</Project>
"""


class TestFindManifest:
    def test_same_directory(self, write):
        manifest = write("App/Directory.Packages.props", props())
        project = write("App/App.csproj", csproj())
        assert find_manifest(project) == manifest

    def test_nearest_parent_wins(self, write):
        write("Directory.Packages.props", props())
        nearer = write("src/Directory.Packages.props", props())
        project = write("src/App/App.csproj", csproj())
        assert find_manifest(project) == nearer

    def test_none(self, write):
        project = write("App/App.csproj", csproj())
        assert find_manifest(project) is None


class TestReadProject:
    def test_inline_project(self, write):
        path = write("App/App.csproj", csproj(("Serilog", "3.1.1"), tfm="net8.0"))

        info = read_project(path)
        assert info.name == "App"
        assert info.target_frameworks == ["net8.0"]
        assert info.target_framework == "net8.0"
        assert not info.cpm_enabled
        assert info.manifest_path is None
        assert not info.uses_legacy_manifest
        assert [(p.package_id, p.version, p.source) for p in info.packages] == [
            ("Serilog", "3.1.1", VersionSource.INLINE)
        ]

    def test_mixed_sources(self, write):
        write("Directory.Packages.props", props(("Serilog", "3.1.1"), ("Polly", "8.2.0")))
        path = write("App/App.csproj", MIXED)

        info = read_project(path)
        assert info.cpm_enabled
        assert info.target_frameworks == ["net8.0", "net9.0"]
        assert [(p.package_id, p.version, p.source) for p in info.packages] == [
            ("Serilog", "3.1.1", VersionSource.CENTRAL),
            ("Polly", "7.2.4", VersionSource.OVERRIDE),
            ("Dapper", "2.1.0", VersionSource.INLINE),
        ]
        assert info.package("serilog").version == "3.1.1"
        assert info.package("Missing") is None

    def test_central_version_lookup_case_insensitive(self, write):
        write("Directory.Packages.props", props(("newtonsoft.json", "13.0.1")))
        path = write("App/App.csproj", cpm_csproj("Newtonsoft.Json"))

        assert read_project(path).package("Newtonsoft.Json").version == "13.0.1"

    def test_manifest_without_flag(self, write):
        write("Directory.Packages.props", "<Project><ItemGroup /></Project>")
        path = write("App/App.csproj", cpm_csproj("Serilog"))

        info = read_project(path)
        assert not info.cpm_enabled
        assert info.manifest_path is not None
        assert info.package("Serilog").version is None

    def test_flag_in_project(self, write):
        path = write(
            "App/App.csproj",
            "<Project><PropertyGroup>"
            "<ManagePackageVersionsCentrally>true</ManagePackageVersionsCentrally>"
            "</PropertyGroup></Project>",
        )
        assert read_project(path).cpm_enabled

    def test_legacy_manifest(self, write):
        path = write("App/App.csproj", csproj())
        legacy = write("App/packages.config", packages_config(("log4net", "2.0.15", "net48")))

        info = read_project(path)
        assert info.uses_legacy_manifest
        assert info.legacy_manifest_path == legacy

    def test_unknown_framework(self, write):
        path = write("App/App.csproj", "<Project />")
        assert read_project(path).target_framework == "unknown"

    def test_malformed(self, write):
        assert read_project(write("Bad/Bad.csproj", "<Project>")) is None

    def test_missing(self, tmp_path):
        assert read_project(tmp_path / "Missing.csproj") is None
