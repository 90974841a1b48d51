import asyncio

import httpx
import pytest

from services.foundry.app.config import GenerationSettings
from services.foundry.app.domain.ai_client import OpenAIChatBackend
from services.foundry.app.domain.errors import GenerationError, GenerationTimeoutError
from services.foundry.app.domain.schemas import Idea, ModuleNode, ModuleStatus, ProjectGraph


@pytest.fixture
def idea(idea_payload) -> Idea:
    return Idea.model_validate(idea_payload)


@pytest.mark.asyncio
async def test_requirements_run_before_specs(idea, fake_backend, orchestrator_factory, fixed_timestamp):
    bundle = await orchestrator_factory(fake_backend).generate(idea)
    assert fake_backend.calls[0] == "RequirementsDoc"
    assert sorted(fake_backend.calls[1:]) == ["BackendSpec", "FrontendSpec", "UISpec"]
    assert bundle.requirements_doc.version == "1.0"
    assert bundle.requirements_doc.last_updated == fixed_timestamp
    assert [feature.title for feature in bundle.requirements_doc.features][0] == "Sign Up"
    assert bundle.warnings == []


@pytest.mark.asyncio
async def test_document_version_is_stamped(idea, backend_factory, documents, orchestrator_factory):
    documents["RequirementsDoc"]["version"] = "9.9"
    backend = backend_factory(documents)
    bundle = await orchestrator_factory(backend).generate(idea, document_version="1.3")
    assert bundle.requirements_doc.version == "1.3"


@pytest.mark.asyncio
async def test_spec_stages_run_concurrently(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(delays={"BackendSpec": 0.05, "FrontendSpec": 0.05, "UISpec": 0.05})
    await orchestrator_factory(backend).generate(idea)
    assert backend.max_active == 3


@pytest.mark.asyncio
async def test_failed_stage_cancels_siblings(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(
        delays={"BackendSpec": 0.01, "FrontendSpec": 5, "UISpec": 5},
        failures={"BackendSpec": GenerationError("model refused")},
    )
    with pytest.raises(GenerationError) as excinfo:
        await orchestrator_factory(backend).generate(idea)
    assert excinfo.value.stage == "backend_spec"
    assert backend.cancelled == {"FrontendSpec", "UISpec"}


@pytest.mark.asyncio
async def test_http_backend_failure_reports_orchestrator_stage(idea, orchestrator_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "bad request"}})

    backend = OpenAIChatBackend(
        GenerationSettings(api_key="secret", max_retries=0),
        transport=httpx.MockTransport(handler),
        backoff_multiplier=0,
    )
    with pytest.raises(GenerationError) as excinfo:
        await orchestrator_factory(backend).generate(idea)
    assert excinfo.value.stage == "requirements"


@pytest.mark.asyncio
async def test_backend_stage_name_is_replaced(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(failures={"FrontendSpec": GenerationError("refused", stage="FrontendSpec")})
    with pytest.raises(GenerationError) as excinfo:
        await orchestrator_factory(backend).generate(idea)
    assert excinfo.value.stage == "frontend_spec"


@pytest.mark.asyncio
async def test_requirements_failure_stops_pipeline(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(failures={"RequirementsDoc": GenerationError("no PRD")})
    with pytest.raises(GenerationError):
        await orchestrator_factory(backend).generate(idea)
    assert backend.calls == ["RequirementsDoc"]


@pytest.mark.asyncio
async def test_unexpected_backend_error_is_wrapped(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(failures={"UISpec": RuntimeError("socket closed")})
    with pytest.raises(GenerationError, match="ui_spec") as excinfo:
        await orchestrator_factory(backend).generate(idea)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_invalid_stage_output_aborts(idea, backend_factory, documents, orchestrator_factory):
    del documents["UISpec"]["designSystem"]
    backend = backend_factory(documents)
    with pytest.raises(GenerationError) as excinfo:
        await orchestrator_factory(backend).generate(idea)
    assert excinfo.value.stage == "ui_spec"
    assert excinfo.value.details


@pytest.mark.asyncio
async def test_deadline_expiry_raises_timeout(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(delays={"BackendSpec": 5, "FrontendSpec": 5, "UISpec": 5})
    with pytest.raises(GenerationTimeoutError):
        await orchestrator_factory(backend).generate(idea, deadline_seconds=0.2)
    assert backend.cancelled == {"BackendSpec", "FrontendSpec", "UISpec"}


@pytest.mark.asyncio
async def test_timeout_is_a_generation_error(idea, backend_factory, orchestrator_factory):
    backend = backend_factory(delays={"RequirementsDoc": 5})
    with pytest.raises(GenerationError):
        await orchestrator_factory(backend).generate(idea, deadline_seconds=0.05)


@pytest.mark.asyncio
async def test_prompts_list_in_scope_modules(idea, fake_backend, orchestrator_factory):
    graph = ProjectGraph(
        nodes=[
            ModuleNode(id="m1", label="Kanban Board", description="Drag cards"),
            ModuleNode(id="m2", label="Time Tracking", status=ModuleStatus.out_of_scope),
        ]
    )
    await orchestrator_factory(fake_backend).generate(idea, graph)
    for prompt in fake_backend.prompts.values():
        assert "- Kanban Board: Drag cards" in prompt
        assert "Time Tracking" not in prompt


@pytest.mark.asyncio
async def test_requirements_prompt_includes_optional_idea_lists(idea_payload, fake_backend, orchestrator_factory):
    idea = Idea.model_validate(
        {**idea_payload, "competitors": ["Trello"], "inspiration": ["Linear keyboard shortcuts"]}
    )
    await orchestrator_factory(fake_backend).generate(idea)
    prompt = fake_backend.prompts["RequirementsDoc"]
    assert "## Competitors\n- Trello" in prompt
    assert "## Inspiration\n- Linear keyboard shortcuts" in prompt


@pytest.mark.asyncio
async def test_consistency_warnings_are_collected(idea, backend_factory, documents, orchestrator_factory):
    documents["FrontendSpec"]["components"][1]["apis"] = ["/api/boards"]
    bundle = await orchestrator_factory(backend_factory(documents)).generate(idea)
    assert bundle.warnings == ["Component BoardPage references unknown API: /api/boards"]


@pytest.mark.asyncio
async def test_concurrent_generations_do_not_interfere(idea, fake_backend, orchestrator_factory):
    orchestrator = orchestrator_factory(fake_backend)
    first, second = await asyncio.gather(orchestrator.generate(idea), orchestrator.generate(idea))
    assert first.requirements_doc == second.requirements_doc
