"""Artifact and export pack retrieval API."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..domain.errors import ValidationError
from ..domain.pipeline import FoundryPipeline
from ..domain.types import ArtifactType, StoredArtifact
from .deps import get_pipeline

router = APIRouter(prefix="/projects/{project_id}", tags=["artifacts"])


class ArtifactSummary(BaseModel):
    type: str
    version: int
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ArtifactResponse(ArtifactSummary):
    project_id: str = Field(alias="projectId")
    content: str


class ExportResponse(BaseModel):
    target: str
    version: int
    content: str
    ref: str | None = None


def _summary(artifact: StoredArtifact) -> ArtifactSummary:
    return ArtifactSummary(
        type=artifact.type.value,
        version=artifact.version,
        updatedAt=artifact.updated_at.isoformat() if artifact.updated_at else None,
    )


@router.get("/artifacts", response_model=List[ArtifactSummary])
async def list_artifacts(project_id: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    return [_summary(artifact) for artifact in await pipeline.list_artifacts(project_id)]


@router.get("/artifacts/{artifact_type}", response_model=ArtifactResponse)
async def get_artifact(project_id: str, artifact_type: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    try:
        resolved = ArtifactType(artifact_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown artifact type '{artifact_type}'") from exc
    artifact = await pipeline.get_artifact(project_id, resolved)
    return ArtifactResponse(
        projectId=artifact.project_id,
        type=artifact.type.value,
        version=artifact.version,
        content=artifact.content,
        updatedAt=artifact.updated_at.isoformat() if artifact.updated_at else None,
    )


@router.get("/exports/{target}", response_model=ExportResponse)
async def export_pack(project_id: str, target: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    outcome = await pipeline.export(project_id, target)
    return ExportResponse(target=outcome.target.value, version=outcome.version, content=outcome.content, ref=outcome.ref)


__all__ = ["router"]
