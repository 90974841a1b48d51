import asyncio
import copy
import os
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

os.environ.setdefault("FOUNDRY_STORAGE__DATABASE_URL", "sqlite+aiosqlite:///./test_foundry.db")
os.environ.setdefault("FOUNDRY_GENERATION__API_KEY", "test-key")

from services.foundry.app.config import FoundrySettings, PipelineSettings, StorageSettings  # noqa: E402
from services.foundry.app.domain.ai_client import GenerationConfig  # noqa: E402
from services.foundry.app.domain.errors import GenerationError  # noqa: E402
from services.foundry.app.domain.orchestrator import ArtifactOrchestrator  # noqa: E402
from services.foundry.app.domain.pipeline import FoundryPipeline  # noqa: E402
from services.foundry.app.persistence.artifact_store import SqlArtifactStore  # noqa: E402
from services.foundry.app.persistence.db import init_db  # noqa: E402
from services.foundry.app.persistence.repository import ProjectRepository  # noqa: E402

FIXED_TIMESTAMP = "2025-01-15T09:30:00+00:00"

IDEA = {
    "title": "TaskFlow",
    "pitch": "Kanban for small teams",
    "problem": "Small teams lose track of who is doing what.",
    "solution": "A shared board with comments and gentle reminders.",
    "targetUsers": ["team leads", "members"],
    "platforms": ["Web", "ios"],
    "coreFeatures": ["Sign Up", "Board View", "Task Comments", "Admin Dashboard", "Notification Settings"],
}

REQUIREMENTS = {
    "title": "TaskFlow",
    "overview": "TaskFlow keeps a small team's work on one shared board.",
    "goals": ["Everyone sees the current state of work"],
    "features": [
        {"title": "Sign Up", "description": "Create an account with an email address", "priority": "P0"},
        {"title": "Board View", "description": "Kanban board showing tasks by column", "priority": "P0"},
        {"title": "Task Comments", "description": "Discuss a task inline", "priority": "P1"},
        {"title": "Admin Dashboard", "description": "Manage workspace members", "priority": "P2"},
        {"title": "Notification Settings", "description": "Choose which alerts to receive", "priority": "P3"},
    ],
    "userStories": [
        {
            "id": "US-1",
            "persona": "Member",
            "story": "As a member I want to see my tasks so that I know what to do next",
            "acceptanceCriteria": ["Tasks assigned to me are highlighted"],
        }
    ],
}

BACKEND = {
    "entities": [
        {
            "name": "User",
            "fields": [
                {"name": "id", "type": "string", "required": True, "unique": True},
                {"name": "email", "type": "string", "required": True, "unique": True},
            ],
        },
        {
            "name": "Task",
            "fields": [
                {"name": "id", "type": "string"},
                {"name": "ownerId", "type": "string", "relation": "User.id"},
                {"name": "estimate", "type": "number", "required": False},
                {"name": "dueDate", "type": "date", "required": False},
            ],
        },
        {
            "name": "Comment",
            "fields": [
                {"name": "taskId", "type": "string", "relation": "Task.id"},
                {"name": "authorId", "type": "string", "relation": "User.id"},
                {"name": "editorId", "type": "string", "relation": "User.id"},
            ],
        },
    ],
    "apis": [
        {"method": "POST", "path": "/api/auth/signup", "description": "Create an account"},
        {"method": "GET", "path": "/api/tasks", "description": "List tasks on the board", "auth": True},
    ],
}

FRONTEND = {
    "routes": [
        {"path": "/signup", "component": "SignUpPage"},
        {"path": "/board", "component": "BoardPage", "auth": True},
    ],
    "components": [
        {"name": "SignUpPage", "type": "page", "description": "Registration form", "apis": ["/api/auth/signup"]},
        {"name": "BoardPage", "type": "page", "description": "Kanban board", "apis": ["/api/tasks"]},
    ],
    "stateManagement": "zustand",
    "styling": "tailwind",
}

UI = {
    "designSystem": {
        "colors": [
            {"name": "Primary", "hex": "#2563EB", "usage": "Buttons and links"},
            {"name": "Surface", "hex": "#FFFFFF"},
        ],
        "typography": [{"name": "Body", "fontSize": 16, "lineHeight": 1.5, "fontWeight": 400}],
        "spacing": [4, 8, 16],
    },
    "components": [{"name": "Button", "type": "button", "variants": ["primary", "ghost"], "states": ["hover"]}],
    "screens": [{"name": "Board", "path": "/board", "components": ["BoardPage", "Button"], "layout": "sidebar"}],
}

DOCUMENTS = {
    "RequirementsDoc": REQUIREMENTS,
    "BackendSpec": BACKEND,
    "FrontendSpec": FRONTEND,
    "UISpec": UI,
}


class FakeBackend:
    """Deterministic generation backend keyed by schema name."""

    def __init__(
        self,
        documents: dict[str, Any] | None = None,
        delays: dict[str, float] | None = None,
        failures: dict[str, BaseException] | None = None,
    ) -> None:
        self.documents = copy.deepcopy(documents or DOCUMENTS)
        self.delays = delays or {}
        self.failures = failures or {}
        self.calls: list[str] = []
        self.prompts: dict[str, str] = {}
        self.cancelled: set[str] = set()
        self.active = 0
        self.max_active = 0

    async def generate_structured(self, schema, system_prompt, user_prompt, config):
        name = schema.__name__
        self.calls.append(name)
        self.prompts[name] = user_prompt
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(name, 0.01))
            if name in self.failures:
                raise self.failures[name]
            return copy.deepcopy(self.documents[name])
        except asyncio.CancelledError:
            self.cancelled.add(name)
            raise
        finally:
            self.active -= 1


def make_orchestrator(backend: FakeBackend) -> ArtifactOrchestrator:
    return ArtifactOrchestrator(
        backend,
        config=GenerationConfig(model="test-model"),
        clock=lambda: FIXED_TIMESTAMP,
    )


def make_settings(**pipeline: Any) -> FoundrySettings:
    return FoundrySettings(
        pipeline=PipelineSettings(**{"deadline_seconds": 5.0, **pipeline}),
        storage=StorageSettings(database_url="sqlite+aiosqlite://"),
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def failing_backend() -> FakeBackend:
    return FakeBackend(failures={"BackendSpec": GenerationError("backend stage exploded")})


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'foundry.db'}", future=True)
    await init_db(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlArtifactStore:
    return SqlArtifactStore(session_factory)


@pytest.fixture
def projects(session_factory) -> ProjectRepository:
    return ProjectRepository(session_factory)


@pytest.fixture
def make_pipeline(store, projects):
    def _make(backend: FakeBackend, settings: FoundrySettings | None = None, **kwargs: Any) -> FoundryPipeline:
        return FoundryPipeline(
            orchestrator=make_orchestrator(backend),
            store=kwargs.pop("store", store),
            projects=projects,
            settings=settings or make_settings(),
            **kwargs,
        )

    return _make


@pytest.fixture
def documents() -> dict[str, Any]:
    return copy.deepcopy(DOCUMENTS)


@pytest.fixture
def idea_payload() -> dict[str, Any]:
    return copy.deepcopy(IDEA)


@pytest.fixture
def backend_factory():
    return FakeBackend


@pytest.fixture
def orchestrator_factory():
    return make_orchestrator


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def fixed_timestamp() -> str:
    return FIXED_TIMESTAMP
