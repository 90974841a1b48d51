"""Document schemas for every artifact flowing through the generation pipeline."""
from __future__ import annotations

import enum
import re
from typing import Any, Iterator, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

_VERSION_RE = re.compile(r"^\d+\.\d+$")
PLATFORMS = ("web", "ios", "android")


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --------------------------------------------------------------------------
# Idea
# --------------------------------------------------------------------------


class Idea(_Document):
    title: str
    pitch: str = ""
    problem: str
    solution: str
    target_users: list[str] = Field(default_factory=list, alias="targetUsers")
    platforms: list[str] = Field(default_factory=lambda: ["web"])
    core_features: list[str] = Field(default_factory=list, alias="coreFeatures")
    user_personas: list[str] | None = Field(default=None, alias="userPersonas")
    competitors: list[str] | None = None
    constraints: list[str] | None = None
    inspiration: list[str] | None = None
    success_metrics: list[str] | None = Field(default=None, alias="successMetrics")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("title", "problem", "solution")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("platforms", mode="before")
    @classmethod
    def _normalize_platforms(cls, value: Any) -> list[str]:
        if value is None:
            return ["web"]
        if isinstance(value, str):
            value = value.split(",")
        normalized: list[str] = []
        for raw in value:
            platform = str(raw).strip().lower()
            if not platform:
                continue
            if platform not in PLATFORMS:
                raise ValueError(f"unsupported platform '{raw}' (expected one of {', '.join(PLATFORMS)})")
            if platform not in normalized:
                normalized.append(platform)
        return normalized or ["web"]


# --------------------------------------------------------------------------
# Requirements document (PRD)
# --------------------------------------------------------------------------


class Feature(_Document):
    title: str
    description: str = ""
    priority: Literal["P0", "P1", "P2", "P3"] | None = None


class UserStory(_Document):
    id: str
    persona: str
    story: str
    acceptance_criteria: list[str] = Field(default_factory=list, alias="acceptanceCriteria")


class RequirementsDoc(_Document):
    title: str
    version: str = "1.0"
    features: list[Feature]
    last_updated: str = Field(alias="lastUpdated")
    overview: str = ""
    goals: list[str] = Field(default_factory=list)
    non_goals: list[str] = Field(default_factory=list, alias="nonGoals")
    user_stories: list[UserStory] = Field(default_factory=list, alias="userStories")

    @field_validator("version")
    @classmethod
    def _semantic_version(cls, value: str) -> str:
        if not _VERSION_RE.match(value):
            raise ValueError("version must look like '<major>.<minor>'")
        return value


# --------------------------------------------------------------------------
# Backend spec
# --------------------------------------------------------------------------


class EntityField(_Document):
    name: str
    type: str
    required: bool = True
    unique: bool | None = None
    relation: str | None = None


class BackendEntity(_Document):
    name: str
    fields: list[EntityField]
    indexes: list[str] | None = None


class BackendAPI(_Document):
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
    path: str
    description: str
    auth: bool = False


class BackendJob(_Document):
    name: str
    trigger: str
    description: str


class BackendIntegration(_Document):
    service: str
    purpose: str


class BackendSpec(_Document):
    entities: list[BackendEntity]
    apis: list[BackendAPI]
    jobs: list[BackendJob] | None = None
    integrations: list[BackendIntegration] | None = None


# --------------------------------------------------------------------------
# Frontend spec
# --------------------------------------------------------------------------


class FrontendRoute(_Document):
    path: str
    component: str
    auth: bool = False


class FrontendComponent(_Document):
    name: str
    type: Literal["page", "layout", "component", "feature"]
    description: str
    apis: list[str] | None = None
    state: list[str] | None = None


class FrontendSpec(_Document):
    routes: list[FrontendRoute]
    components: list[FrontendComponent]
    state_management: Literal["useState", "zustand", "redux", "context"] | None = Field(
        default=None, alias="stateManagement"
    )
    styling: Literal["tailwind", "css-modules", "styled-components"] | None = None


# --------------------------------------------------------------------------
# UI spec
# --------------------------------------------------------------------------


class UIColor(_Document):
    name: str
    hex: str
    usage: str | None = None


class UITypography(_Document):
    name: str
    font_size: float = Field(alias="fontSize")
    line_height: float = Field(alias="lineHeight")
    font_weight: int | None = Field(default=None, alias="fontWeight")
    font_family: str | None = Field(default=None, alias="fontFamily")


class DesignSystem(_Document):
    colors: list[UIColor]
    typography: list[UITypography]
    spacing: list[float] | None = None
    border_radius: list[float] | None = Field(default=None, alias="borderRadius")


class UIComponent(_Document):
    name: str
    type: str
    variants: list[str] | None = None
    states: list[str] | None = None
    description: str | None = None


class UIScreen(_Document):
    name: str
    path: str
    components: list[str]
    layout: str | None = None


class UISpec(_Document):
    design_system: DesignSystem = Field(alias="designSystem")
    components: list[UIComponent]
    screens: list[UIScreen]


# --------------------------------------------------------------------------
# Module graph
# --------------------------------------------------------------------------


class ModuleStatus(str, enum.Enum):
    in_scope = "in"
    out_of_scope = "out"
    maybe = "maybe"


class ModuleCategory(str, enum.Enum):
    frontend = "Frontend"
    backend = "Backend"
    database = "Database"
    authentication = "Authentication"
    security = "Security"
    payment = "Payment"
    integration = "Integration"
    ui_ux = "UI/UX"
    analytics = "Analytics"
    ai_ml = "AI/ML"
    data = "Data"
    core = "Core"
    admin = "Admin"
    support = "Support"


class ModuleNode(_Document):
    id: str
    label: str
    status: ModuleStatus = ModuleStatus.in_scope
    category: ModuleCategory | None = None
    layer: int | None = Field(default=None, ge=1, le=5)
    sequence_in_layer: int | None = Field(default=None, ge=1, alias="sequenceInLayer")
    x: float = 0.0
    y: float = 0.0
    description: str = ""


class ModuleEdge(_Document):
    id: str
    source: str
    target: str
    label: str | None = None


class ProjectGraph(_Document):
    nodes: list[ModuleNode] = Field(default_factory=list)
    edges: list[ModuleEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_integrity(self) -> "ProjectGraph":
        node_ids: set[str] = set()
        for node in self.nodes:
            if node.id in node_ids:
                raise ValueError(f"duplicate node id '{node.id}'")
            node_ids.add(node.id)
        edge_ids: set[str] = set()
        for edge in self.edges:
            if edge.id in edge_ids:
                raise ValueError(f"duplicate edge id '{edge.id}'")
            edge_ids.add(edge.id)
            missing = [end for end in (edge.source, edge.target) if end not in node_ids]
            if missing:
                raise ValueError(f"edge '{edge.id}' references unknown node(s): {', '.join(missing)}")
        return self

    def node(self, node_id: str) -> ModuleNode | None:
        return next((node for node in self.nodes if node.id == node_id), None)

    def in_scope(self) -> Iterator[ModuleNode]:
        return (node for node in self.nodes if node.status is ModuleStatus.in_scope)

    @classmethod
    def empty(cls) -> "ProjectGraph":
        return cls(nodes=[], edges=[])


_ModelT = TypeVar("_ModelT", bound=BaseModel)


def parse_input(schema: type[_ModelT], data: Any) -> _ModelT:
    """Validate caller input, reporting failures as the domain ``ValidationError``."""
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {schema.__name__}: {exc.error_count()} error(s)",
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


__all__ = [
    "Idea",
    "Feature",
    "UserStory",
    "RequirementsDoc",
    "EntityField",
    "BackendEntity",
    "BackendAPI",
    "BackendSpec",
    "FrontendRoute",
    "FrontendComponent",
    "FrontendSpec",
    "UIColor",
    "UITypography",
    "DesignSystem",
    "UIComponent",
    "UIScreen",
    "UISpec",
    "ModuleStatus",
    "ModuleCategory",
    "ModuleNode",
    "ModuleEdge",
    "ProjectGraph",
    "PLATFORMS",
    "parse_input",
]
