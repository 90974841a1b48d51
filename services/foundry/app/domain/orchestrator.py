"""Sequencing of generation stages into a validated document bundle."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, TypeVar

import structlog
from opentelemetry import trace
from pydantic import BaseModel

from ..config import get_settings
from .ai_client import GenerationBackend, GenerationConfig
from .errors import GenerationError, GenerationTimeoutError
from .prompts import backend_prompts, frontend_prompts, requirements_prompts, ui_prompts
from .schemas import BackendSpec, FrontendSpec, Idea, ProjectGraph, RequirementsDoc, UISpec
from .types import GenerationBundle
from .validator import SchemaValidator
from .versioning import INITIAL_DOCUMENT_VERSION, utc_timestamp

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

STAGE_REQUIREMENTS = "requirements"
STAGE_BACKEND = "backend_spec"
STAGE_FRONTEND = "frontend_spec"
STAGE_UI = "ui_spec"


class ArtifactOrchestrator:
    """Run the requirements stage, then the three spec stages concurrently.

    The requirements document is the single root every spec depends on.
    Any stage failure aborts the whole run; no partial bundle is returned.
    Retries are the backend's business, never the orchestrator's.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        validator: SchemaValidator | None = None,
        config: GenerationConfig | None = None,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._backend = backend
        self._config = config or GenerationConfig.from_settings(get_settings().generation)
        self._validator = validator or SchemaValidator()
        self._clock = clock

    async def generate(
        self,
        idea: Idea,
        graph: ProjectGraph | None = None,
        *,
        document_version: str = INITIAL_DOCUMENT_VERSION,
        deadline_seconds: float | None = None,
    ) -> GenerationBundle:
        if graph is None:
            graph = ProjectGraph.empty()
        run = self._run(idea, graph, document_version)
        if deadline_seconds is None:
            return await run
        try:
            return await asyncio.wait_for(run, timeout=deadline_seconds)
        except asyncio.TimeoutError as exc:
            logger.error("orchestrator.deadline_exceeded", title=idea.title, deadline_seconds=deadline_seconds)
            raise GenerationTimeoutError(f"Generation exceeded the {deadline_seconds:g}s deadline") from exc

    async def _run(self, idea: Idea, graph: ProjectGraph, document_version: str) -> GenerationBundle:
        with tracer.start_as_current_span("orchestrator.generate") as span:
            span.set_attribute("foundry.idea.title", idea.title)
            requirements = await self._requirements(idea, graph, document_version)

            stages = [
                (STAGE_BACKEND, BackendSpec, backend_prompts),
                (STAGE_FRONTEND, FrontendSpec, frontend_prompts),
                (STAGE_UI, UISpec, ui_prompts),
            ]
            tasks = [
                asyncio.create_task(
                    self._stage(name, schema, *prompts(idea, requirements, graph)),
                    name=f"foundry-{name}",
                )
                for name, schema, prompts in stages
            ]
            try:
                backend_spec, frontend_spec, ui_spec = await asyncio.gather(*tasks)
            except Exception:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

            warnings = self._validator.check_consistency(backend_spec, frontend_spec, ui_spec)
            for warning in warnings:
                logger.warning("orchestrator.consistency", detail=warning)
            span.set_attribute("foundry.features", len(requirements.features))
            return GenerationBundle(
                requirements_doc=requirements,
                backend_spec=backend_spec,
                frontend_spec=frontend_spec,
                ui_spec=ui_spec,
                warnings=warnings,
            )

    async def _requirements(self, idea: Idea, graph: ProjectGraph, document_version: str) -> RequirementsDoc:
        system_prompt, user_prompt = requirements_prompts(idea, graph)

        def stamp(raw: Any) -> Any:
            # Version and timestamp belong to the pipeline, not to the model.
            if isinstance(raw, dict):
                raw = {**raw, "version": document_version, "lastUpdated": self._clock()}
                raw.setdefault("title", idea.title)
            return raw

        return await self._stage(STAGE_REQUIREMENTS, RequirementsDoc, system_prompt, user_prompt, prepare=stamp)

    async def _stage(
        self,
        name: str,
        schema: type[_ModelT],
        system_prompt: str,
        user_prompt: str,
        prepare: Callable[[Any], Any] | None = None,
    ) -> _ModelT:
        with tracer.start_as_current_span(f"orchestrator.stage.{name}"):
            logger.info("orchestrator.stage.started", stage=name)
            start = time.perf_counter()
            try:
                raw = await self._backend.generate_structured(schema, system_prompt, user_prompt, self._config)
            except GenerationError as exc:
                logger.error("orchestrator.stage.failed", stage=name, error=exc.message)
                exc.stage = name
                raise
            except Exception as exc:
                logger.error("orchestrator.stage.failed", stage=name, error=repr(exc))
                raise GenerationError(f"Generation backend failed during '{name}': {exc}", stage=name) from exc

            if prepare is not None:
                raw = prepare(raw)
            document = self._validator.validate(name, schema, raw)
            logger.info(
                "orchestrator.stage.completed",
                stage=name,
                latency_ms=int((time.perf_counter() - start) * 1000),
            )
            return document


__all__ = [
    "ArtifactOrchestrator",
    "STAGE_REQUIREMENTS",
    "STAGE_BACKEND",
    "STAGE_FRONTEND",
    "STAGE_UI",
]
