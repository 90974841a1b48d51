"""Project and module graph persistence."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import NotFoundError, PersistenceError
from ..domain.schemas import Idea, ProjectGraph
from .db import session_scope
from .models import Artifact, AuditLog, Project, ProjectGraphRecord

logger = structlog.get_logger(__name__)


class ProjectRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, idea: Idea, principal: str = "system", correlation_id: str = "system") -> Project:
        """Create a project together with its empty module graph."""
        project = Project(
            title=idea.title,
            pitch=idea.pitch or None,
            platforms=list(idea.platforms),
            idea=idea.to_wire(),
        )
        try:
            async with session_scope(self._session_factory) as session:
                session.add(project)
                await session.flush()
                session.add(ProjectGraphRecord(project_id=project.id, graph=_dump_graph(ProjectGraph.empty())))
                session.add(
                    AuditLog(
                        project_id=project.id,
                        principal=principal,
                        action="project.created",
                        new_val={"projectId": project.id, "title": project.title},
                        correlation_id=correlation_id,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to create project '{idea.title}'") from exc
        logger.info("projects.created", project_id=project.id, title=project.title)
        return project

    async def get(self, project_id: str) -> Project:
        try:
            async with self._session_factory() as session:
                project = await session.get(Project, project_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load project {project_id}") from exc
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def get_idea(self, project_id: str) -> Idea:
        project = await self.get(project_id)
        return Idea.model_validate(project.idea)

    async def delete(self, project_id: str) -> None:
        """Remove the project with its graph and artifacts."""
        try:
            async with session_scope(self._session_factory) as session:
                await session.execute(delete(Artifact).where(Artifact.project_id == project_id))
                await session.execute(delete(ProjectGraphRecord).where(ProjectGraphRecord.project_id == project_id))
                await session.execute(delete(Project).where(Project.id == project_id))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete project {project_id}") from exc
        logger.info("projects.deleted", project_id=project_id)

    async def get_graph(self, project_id: str) -> ProjectGraph:
        await self.get(project_id)
        try:
            async with self._session_factory() as session:
                record = await session.get(ProjectGraphRecord, project_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load graph for project {project_id}") from exc
        if record is None:
            return ProjectGraph.empty()
        return ProjectGraph.model_validate(json.loads(record.graph))

    async def replace_graph(self, project_id: str, graph: ProjectGraph) -> ProjectGraph:
        """Store ``graph`` wholesale; concurrent writers resolve as last-writer-wins."""
        await self.get(project_id)
        try:
            async with session_scope(self._session_factory) as session:
                record = await session.get(ProjectGraphRecord, project_id)
                if record is None:
                    session.add(ProjectGraphRecord(project_id=project_id, graph=_dump_graph(graph)))
                else:
                    record.graph = _dump_graph(graph)
                    record.updated_at = datetime.utcnow()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to store graph for project {project_id}") from exc
        logger.info("projects.graph_replaced", project_id=project_id, nodes=len(graph.nodes), edges=len(graph.edges))
        return graph

    async def record_audit(
        self,
        project_id: str | None,
        action: str,
        new_val: dict[str, Any] | None = None,
        old_val: dict[str, Any] | None = None,
        principal: str = "system",
        correlation_id: str = "system",
    ) -> None:
        try:
            async with session_scope(self._session_factory) as session:
                session.add(
                    AuditLog(
                        project_id=project_id,
                        principal=principal,
                        action=action,
                        old_val=old_val,
                        new_val=new_val,
                        correlation_id=correlation_id,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to record audit entry '{action}'") from exc

    async def audit_trail(self, project_id: str) -> list[AuditLog]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AuditLog).where(AuditLog.project_id == project_id).order_by(AuditLog.created_at)
            )
            return list(result.scalars().all())


def _dump_graph(graph: ProjectGraph) -> str:
    return json.dumps(graph.to_wire(), sort_keys=True)


__all__ = ["ProjectRepository"]
