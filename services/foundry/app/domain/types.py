"""Domain-level enumerations and dataclasses for artifact generation."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from .schemas import BackendSpec, FrontendSpec, RequirementsDoc, UISpec


class ArtifactType(str, enum.Enum):
    requirements_doc = "RequirementsDoc"
    backend_spec = "BackendSpec"
    frontend_spec = "FrontendSpec"
    ui_spec = "UISpec"
    flow_diagram = "FlowDiagram"
    er_diagram = "ERDiagram"
    export_cursor = "ExportPack_Cursor"
    export_claude = "ExportPack_Claude"
    export_lovable = "ExportPack_Lovable"
    export_bolt = "ExportPack_Bolt"


class ExportTarget(str, enum.Enum):
    cursor = "cursor"
    claude = "claude"
    lovable = "lovable"
    bolt = "bolt"

    @property
    def artifact_type(self) -> ArtifactType:
        return EXPORT_ARTIFACT_TYPES[self]


EXPORT_ARTIFACT_TYPES: dict[ExportTarget, ArtifactType] = {
    ExportTarget.cursor: ArtifactType.export_cursor,
    ExportTarget.claude: ArtifactType.export_claude,
    ExportTarget.lovable: ArtifactType.export_lovable,
    ExportTarget.bolt: ArtifactType.export_bolt,
}


@dataclass
class GenerationBundle:
    requirements_doc: RequirementsDoc
    backend_spec: BackendSpec
    frontend_spec: FrontendSpec
    ui_spec: UISpec
    warnings: list[str] = field(default_factory=list)


@dataclass
class ExportArtifacts:
    """Inputs an export pack may draw from; only the requirements doc is always present."""

    requirements_doc: RequirementsDoc
    backend_spec: BackendSpec | None = None
    frontend_spec: FrontendSpec | None = None
    ui_spec: UISpec | None = None
    flow_diagram: str | None = None
    er_diagram: str | None = None


@dataclass
class ArtifactVersion:
    project_id: str
    type: ArtifactType
    version: int


@dataclass
class StoredArtifact:
    project_id: str
    type: ArtifactType
    content: str
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = [
    "ArtifactType",
    "ExportTarget",
    "EXPORT_ARTIFACT_TYPES",
    "GenerationBundle",
    "ExportArtifacts",
    "ArtifactVersion",
    "StoredArtifact",
]
