"""FastAPI dependency helpers."""
from __future__ import annotations

from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..domain.ai_client import GenerationBackend, GenerationConfig, OpenAIChatBackend
from ..domain.graph_builder import ModuleGraphBuilder
from ..domain.orchestrator import ArtifactOrchestrator
from ..domain.pipeline import FoundryPipeline
from ..domain.validator import SchemaValidator
from ..persistence.artifact_store import SqlArtifactStore
from ..persistence.db import get_session_factory
from ..persistence.repository import ProjectRepository
from ..persistence.storage import ExportBundleStorage


async def get_db_session() -> AsyncIterator[AsyncSession]:
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_generation_backend() -> GenerationBackend:
    return OpenAIChatBackend(get_settings().generation)


def get_pipeline(backend: GenerationBackend = Depends(get_generation_backend)) -> FoundryPipeline:
    settings = get_settings()
    session_factory = get_session_factory()
    orchestrator = ArtifactOrchestrator(
        backend,
        SchemaValidator(),
        GenerationConfig.from_settings(settings.generation),
    )
    return FoundryPipeline(
        orchestrator=orchestrator,
        store=SqlArtifactStore(session_factory),
        projects=ProjectRepository(session_factory),
        graph_builder=ModuleGraphBuilder(),
        settings=settings,
        export_storage=ExportBundleStorage(settings.storage) if settings.storage.publish_exports else None,
    )


__all__ = ["get_db_session", "get_generation_backend", "get_pipeline"]
