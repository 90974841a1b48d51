"""Module graph API."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..domain.pipeline import FoundryPipeline
from ..domain.schemas import ProjectGraph, parse_input
from .deps import get_pipeline

router = APIRouter(prefix="/projects/{project_id}/graph", tags=["graph"])


@router.get("")
async def get_graph(project_id: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    graph = await pipeline.get_graph(project_id)
    return graph.to_wire()


@router.put("")
async def replace_graph(
    project_id: str,
    payload: dict[str, Any] = Body(...),
    pipeline: FoundryPipeline = Depends(get_pipeline),
):
    graph = parse_input(ProjectGraph, payload)
    stored = await pipeline.update_graph(project_id, graph)
    return stored.to_wire()


@router.post("/regenerate")
async def regenerate_graph(project_id: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    graph = await pipeline.regenerate_graph(project_id)
    return graph.to_wire()


@router.post("/reclassify")
async def reclassify_graph(project_id: str, pipeline: FoundryPipeline = Depends(get_pipeline)):
    graph = await pipeline.reclassify_graph(project_id)
    return graph.to_wire()


__all__ = ["router"]
