"""Project creation and regeneration API."""
from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ..domain.pipeline import FoundryPipeline, GenerationOutcome
from ..domain.schemas import Idea, parse_input
from ..persistence.models import Project
from .deps import get_pipeline

router = APIRouter(prefix="/projects", tags=["projects"])


class ArtifactVersionItem(BaseModel):
    type: str
    version: int


class ProjectResponse(BaseModel):
    id: str
    title: str
    pitch: str | None = None
    platforms: List[str] = Field(default_factory=list)
    idea: dict[str, Any] = Field(default_factory=dict)
    artifacts: List[ArtifactVersionItem] = Field(default_factory=list)
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class GenerationResponse(BaseModel):
    project_id: str = Field(alias="projectId")
    document_version: str = Field(alias="documentVersion")
    artifacts: List[ArtifactVersionItem]
    warnings: List[str] = Field(default_factory=list)
    graph: dict[str, Any]

    model_config = ConfigDict(populate_by_name=True)


def _generation_response(outcome: GenerationOutcome) -> GenerationResponse:
    return GenerationResponse(
        projectId=outcome.project_id,
        documentVersion=outcome.document_version,
        artifacts=[ArtifactVersionItem(type=v.type.value, version=v.version) for v in outcome.versions],
        warnings=outcome.warnings,
        graph=outcome.graph.to_wire(),
    )


def _project_response(project: Project, artifacts: List[ArtifactVersionItem]) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        title=project.title,
        pitch=project.pitch,
        platforms=project.platforms,
        idea=project.idea,
        artifacts=artifacts,
        createdAt=project.created_at.isoformat() if project.created_at else None,
        updatedAt=project.updated_at.isoformat() if project.updated_at else None,
    )


@router.post("", response_model=GenerationResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: dict[str, Any] = Body(...),
    pipeline: FoundryPipeline = Depends(get_pipeline),
):
    idea = parse_input(Idea, payload)
    outcome = await pipeline.create_project(idea, principal="api")
    return _generation_response(outcome)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    project = await pipeline.get_project(project_id)
    artifacts = await pipeline.list_artifacts(project_id)
    return _project_response(
        project,
        [ArtifactVersionItem(type=artifact.type.value, version=artifact.version) for artifact in artifacts],
    )


@router.post("/{project_id}/generate", response_model=GenerationResponse)
async def regenerate_project(project_id: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    outcome = await pipeline.regenerate(project_id, principal="api")
    return _generation_response(outcome)


__all__ = ["router"]
