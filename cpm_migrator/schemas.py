"""JSON output schemas for the CLI."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from cpm_migrator.models import AnalysisPlan, ProjectAnalysis, VersionSource


class InlineRefSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    package_id: str
    version: str


class ProjectAnalysisSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    path: Path
    name: str
    inline_refs: list[InlineRefSchema] = Field(default_factory=list)
    skip_reason: str | None = None


class AnalysisPlanSchema(BaseModel):
    root: Path
    to_migrate: list[ProjectAnalysisSchema]
    skipped: list[ProjectAnalysisSchema]
    resolved_versions: dict[str, str]
    conflict_count: int

    @classmethod
    def from_plan(cls, plan: AnalysisPlan) -> AnalysisPlanSchema:
        return cls(
            root=plan.root,
            to_migrate=[_project(p) for p in plan.to_migrate],
            skipped=[_project(p) for p in plan.skipped],
            resolved_versions=dict(plan.resolved_versions),
            conflict_count=plan.conflict_count,
        )


class MigrationOutcomeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    projects_migrated: int
    packages_centralized: int
    conflicts_resolved: int
    modified_paths: list[Path]
    manifest_path: Path | None = None
    error: str | None = None
    cancelled: bool = False


class PackageReferenceSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    package_id: str
    version: str | None
    source: VersionSource


class ProjectFileSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    path: Path
    name: str
    target_frameworks: list[str]
    cpm_enabled: bool
    manifest_path: Path | None = None
    legacy_manifest_path: Path | None = None
    packages: list[PackageReferenceSchema]


def _project(analysis: ProjectAnalysis) -> ProjectAnalysisSchema:
    return ProjectAnalysisSchema.model_validate(analysis)
