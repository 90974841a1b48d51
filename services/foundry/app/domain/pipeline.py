"""Project generation use cases tying the orchestrator to persistence."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

from ..config import FoundrySettings, get_settings
from .diagrams import render_erd, render_flow
from .errors import GenerationError, NotFoundError, PersistenceError, ValidationError
from .export_packs import build_pack, resolve_target
from .graph_builder import ModuleGraphBuilder
from .orchestrator import ArtifactOrchestrator
from .schemas import BackendSpec, FrontendSpec, Idea, ProjectGraph, RequirementsDoc, UISpec
from .types import ArtifactType, ArtifactVersion, ExportArtifacts, ExportTarget, GenerationBundle, StoredArtifact
from .versioning import next_document_version

if TYPE_CHECKING:
    from ..persistence.artifact_store import SqlArtifactStore
    from ..persistence.models import Project
    from ..persistence.repository import ProjectRepository
    from ..persistence.storage import ExportBundleStorage

logger = structlog.get_logger(__name__)


@dataclass
class GenerationOutcome:
    project_id: str
    document_version: str
    graph: ProjectGraph
    versions: list[ArtifactVersion] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ExportOutcome:
    project_id: str
    target: ExportTarget
    content: str
    version: int
    ref: str | None = None


def _serialize(document: BaseModel) -> str:
    return document.model_dump_json(by_alias=True, indent=2)


class FoundryPipeline:
    def __init__(
        self,
        orchestrator: ArtifactOrchestrator,
        store: "SqlArtifactStore",
        projects: "ProjectRepository",
        graph_builder: ModuleGraphBuilder | None = None,
        settings: FoundrySettings | None = None,
        export_storage: "ExportBundleStorage | None" = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._store = store
        self._projects = projects
        self._graph_builder = graph_builder or ModuleGraphBuilder()
        self._settings = settings or get_settings()
        self._export_storage = export_storage

    async def create_project(self, idea: Idea, principal: str = "system") -> GenerationOutcome:
        correlation_id = str(uuid.uuid4())
        project = await self._projects.create(idea, principal=principal, correlation_id=correlation_id)
        log = logger.bind(project_id=project.id, correlation_id=correlation_id)
        try:
            bundle = await self._orchestrator.generate(
                idea,
                ProjectGraph.empty(),
                deadline_seconds=self._settings.pipeline.deadline_seconds,
            )
        except GenerationError as exc:
            if self._settings.pipeline.rollback_on_generation_failure:
                log.warning("pipeline.create.rolled_back", stage=exc.stage, error=exc.message)
                await self._projects.delete(project.id)
            else:
                log.warning("pipeline.create.kept_partial_project", stage=exc.stage, error=exc.message)
            raise

        graph = self._graph_builder.build(bundle.requirements_doc.features)
        await self._projects.replace_graph(project.id, graph)
        outcome = await self._persist_bundle(project.id, bundle, graph)
        await self._projects.record_audit(
            project.id,
            "project.generated",
            new_val={"documentVersion": outcome.document_version, "artifacts": len(outcome.versions)},
            principal=principal,
            correlation_id=correlation_id,
        )
        return outcome

    async def regenerate(self, project_id: str, principal: str = "system") -> GenerationOutcome:
        """Re-run generation; the project is never deleted when this fails."""
        correlation_id = str(uuid.uuid4())
        idea = await self._projects.get_idea(project_id)
        graph = await self._projects.get_graph(project_id)
        previous = await self._store.find(project_id, ArtifactType.requirements_doc)
        previous_version = None
        if previous is not None:
            previous_version = json.loads(previous.content).get("version")
        document_version = next_document_version(previous_version)

        bundle = await self._orchestrator.generate(
            idea,
            graph,
            document_version=document_version,
            deadline_seconds=self._settings.pipeline.deadline_seconds,
        )
        if not graph.nodes:
            graph = self._graph_builder.build(bundle.requirements_doc.features)
            await self._projects.replace_graph(project_id, graph)
        outcome = await self._persist_bundle(project_id, bundle, graph)
        await self._projects.record_audit(
            project_id,
            "project.regenerated",
            old_val={"documentVersion": previous_version},
            new_val={"documentVersion": document_version},
            principal=principal,
            correlation_id=correlation_id,
        )
        return outcome

    async def regenerate_graph(self, project_id: str) -> ProjectGraph:
        """Rebuild the graph wholesale from the stored requirements features."""
        requirements = await self._load_requirements(project_id)
        graph = self._graph_builder.build(requirements.features)
        return await self._store_graph(project_id, graph, "graph.regenerated")

    async def reclassify_graph(self, project_id: str) -> ProjectGraph:
        graph = self._graph_builder.reclassify(await self._projects.get_graph(project_id))
        return await self._store_graph(project_id, graph, "graph.reclassified")

    async def update_graph(self, project_id: str, graph: ProjectGraph) -> ProjectGraph:
        return await self._store_graph(project_id, graph, "graph.updated")

    async def export(self, project_id: str, target: ExportTarget | str) -> ExportOutcome:
        resolved = resolve_target(target)
        artifacts = await self._load_export_artifacts(project_id, resolved)
        content = build_pack(resolved, artifacts)
        version = await self._store.upsert(project_id, resolved.artifact_type, content)

        ref = None
        if self._settings.storage.publish_exports and self._export_storage is not None:
            ref = await self._export_storage.put_pack(project_id, resolved, content)
            await self._projects.record_audit(
                project_id,
                "export.published",
                new_val={"target": resolved.value, "ref": ref, "version": version.version},
            )
        logger.info("pipeline.export.built", project_id=project_id, target=resolved.value, version=version.version)
        return ExportOutcome(project_id=project_id, target=resolved, content=content, version=version.version, ref=ref)

    async def get_project(self, project_id: str) -> "Project":
        return await self._projects.get(project_id)

    async def get_graph(self, project_id: str) -> ProjectGraph:
        return await self._projects.get_graph(project_id)

    async def list_artifacts(self, project_id: str) -> list[StoredArtifact]:
        await self._projects.get(project_id)
        return await self._store.list(project_id)

    async def get_artifact(self, project_id: str, type: ArtifactType) -> StoredArtifact:
        await self._projects.get(project_id)
        return await self._store.get(project_id, type)

    async def _store_graph(self, project_id: str, graph: ProjectGraph, action: str) -> ProjectGraph:
        await self._projects.replace_graph(project_id, graph)
        await self._write(project_id, [(ArtifactType.flow_diagram, render_flow(graph))])
        await self._projects.record_audit(
            project_id,
            action,
            new_val={"nodes": len(graph.nodes), "edges": len(graph.edges)},
        )
        return graph

    async def _persist_bundle(self, project_id: str, bundle: GenerationBundle, graph: ProjectGraph) -> GenerationOutcome:
        flow = render_flow(graph)
        erd = render_erd(bundle.backend_spec)
        artifacts = ExportArtifacts(
            requirements_doc=bundle.requirements_doc,
            backend_spec=bundle.backend_spec,
            frontend_spec=bundle.frontend_spec,
            ui_spec=bundle.ui_spec,
            flow_diagram=flow,
            er_diagram=erd,
        )
        writes = [
            (ArtifactType.requirements_doc, _serialize(bundle.requirements_doc)),
            (ArtifactType.backend_spec, _serialize(bundle.backend_spec)),
            (ArtifactType.frontend_spec, _serialize(bundle.frontend_spec)),
            (ArtifactType.ui_spec, _serialize(bundle.ui_spec)),
            (ArtifactType.flow_diagram, flow),
            (ArtifactType.er_diagram, erd),
        ]
        writes += [(target.artifact_type, build_pack(target, artifacts)) for target in ExportTarget]
        versions = await self._write(project_id, writes)
        return GenerationOutcome(
            project_id=project_id,
            document_version=bundle.requirements_doc.version,
            graph=graph,
            versions=versions,
            warnings=list(bundle.warnings),
        )

    async def _write(self, project_id: str, writes: list[tuple[ArtifactType, str]]) -> list[ArtifactVersion]:
        """Upsert one artifact at a time; earlier writes stay committed if a later one fails."""
        versions: list[ArtifactVersion] = []
        for artifact_type, content in writes:
            try:
                versions.append(await self._store.upsert(project_id, artifact_type, content))
            except PersistenceError as exc:
                committed = [version.type.value for version in versions]
                logger.error(
                    "pipeline.artifacts.partial_write",
                    project_id=project_id,
                    failed=artifact_type.value,
                    committed=committed,
                )
                raise PersistenceError(
                    f"Failed to persist {artifact_type.value} for project {project_id}",
                    committed=committed,
                    details={"failed": artifact_type.value},
                ) from exc
        logger.info("pipeline.artifacts.persisted", project_id=project_id, count=len(versions))
        return versions

    async def _load_requirements(self, project_id: str) -> RequirementsDoc:
        await self._projects.get(project_id)
        stored = await self._store.find(project_id, ArtifactType.requirements_doc)
        if stored is None:
            raise NotFoundError(f"Project {project_id} has no requirements document yet")
        return RequirementsDoc.model_validate_json(stored.content)

    async def _load_export_artifacts(self, project_id: str, target: ExportTarget) -> ExportArtifacts:
        await self._projects.get(project_id)
        stored = {artifact.type: artifact.content for artifact in await self._store.list(project_id)}
        if ArtifactType.requirements_doc not in stored:
            raise ValidationError(
                f"Export target '{target.value}' requires missing artifact(s): requirements_doc",
                details={"target": target.value, "missing": ["requirements_doc"]},
            )
        requirements = RequirementsDoc.model_validate_json(stored[ArtifactType.requirements_doc])

        def document(artifact_type: ArtifactType, schema: type[BaseModel]) -> BaseModel | None:
            content = stored.get(artifact_type)
            return schema.model_validate_json(content) if content is not None else None

        return ExportArtifacts(
            requirements_doc=requirements,
            backend_spec=document(ArtifactType.backend_spec, BackendSpec),
            frontend_spec=document(ArtifactType.frontend_spec, FrontendSpec),
            ui_spec=document(ArtifactType.ui_spec, UISpec),
            flow_diagram=stored.get(ArtifactType.flow_diagram),
            er_diagram=stored.get(ArtifactType.er_diagram),
        )


__all__ = ["FoundryPipeline", "GenerationOutcome", "ExportOutcome"]
