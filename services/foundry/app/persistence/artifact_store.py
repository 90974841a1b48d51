"""Versioned artifact store keyed by (project, artifact type)."""
from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import NotFoundError, PersistenceError
from ..domain.types import ArtifactType, ArtifactVersion, StoredArtifact
from ..domain.versioning import next_store_version
from .db import session_scope
from .models import Artifact

logger = structlog.get_logger(__name__)


def _to_stored(row: Artifact) -> StoredArtifact:
    return StoredArtifact(
        project_id=row.project_id,
        type=ArtifactType(row.type),
        content=row.content,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlArtifactStore:
    """Each upsert commits in its own session, so a later failure never undoes an earlier write."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert(self, project_id: str, type: ArtifactType, content: str) -> ArtifactVersion:
        artifact_type = ArtifactType(type)
        try:
            try:
                version = await self._write(project_id, artifact_type, content)
            except IntegrityError:
                # Lost a race on the first insert; the row exists now.
                version = await self._write(project_id, artifact_type, content)
        except SQLAlchemyError as exc:
            logger.error("artifact_store.upsert_failed", project_id=project_id, type=artifact_type.value, error=str(exc))
            raise PersistenceError(f"Failed to store {artifact_type.value} for project {project_id}") from exc

        logger.info("artifact_store.upserted", project_id=project_id, type=artifact_type.value, version=version)
        return ArtifactVersion(project_id=project_id, type=artifact_type, version=version)

    async def _write(self, project_id: str, artifact_type: ArtifactType, content: str) -> int:
        """Increment the stored version in SQL, inserting version 1 when the key is new."""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(Artifact)
                .where(Artifact.project_id == project_id, Artifact.type == artifact_type.value)
                .values(content=content, version=Artifact.version + 1, updated_at=datetime.utcnow())
                .returning(Artifact.version)
                .execution_options(synchronize_session=False)
            )
            version = result.scalar_one_or_none()
            if version is None:
                version = next_store_version(None)
                session.add(
                    Artifact(
                        project_id=project_id,
                        type=artifact_type.value,
                        content=content,
                        version=version,
                    )
                )
                await session.flush()
        return version

    async def get(self, project_id: str, type: ArtifactType) -> StoredArtifact:
        artifact_type = ArtifactType(type)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Artifact).where(Artifact.project_id == project_id, Artifact.type == artifact_type.value)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {artifact_type.value} for project {project_id}") from exc
        if row is None:
            raise NotFoundError(f"Artifact {artifact_type.value} not found for project {project_id}")
        return _to_stored(row)

    async def find(self, project_id: str, type: ArtifactType) -> StoredArtifact | None:
        try:
            return await self.get(project_id, type)
        except NotFoundError:
            return None

    async def list(self, project_id: str) -> list[StoredArtifact]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Artifact).where(Artifact.project_id == project_id).order_by(Artifact.type)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list artifacts for project {project_id}") from exc
        return [_to_stored(row) for row in rows]


__all__ = ["SqlArtifactStore"]
