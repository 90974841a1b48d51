"""Tool-specific export packs assembled from generated artifacts.

Each target declares the artifacts it needs. A missing required artifact
is a ``ValidationError``; missing diagrams are replaced with placeholder
text. Artifact content is used as given.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import structlog

from .errors import ValidationError
from .types import ExportArtifacts, ExportTarget

logger = structlog.get_logger(__name__)

PLACEHOLDER_FLOW = "%% Flow diagram not available. Regenerate the module graph to render it."
PLACEHOLDER_ERD = "%% ER diagram not available. Generate a backend spec to render it."


@dataclass(frozen=True)
class PackDefinition:
    target: ExportTarget
    requires: tuple[str, ...]
    render: Callable[[ExportArtifacts], list[str]]


def _header(artifacts: ExportArtifacts, tool: str) -> list[str]:
    doc = artifacts.requirements_doc
    return [
        f"# {doc.title} - {tool} Prompt Pack",
        "",
        f"Generated: {doc.last_updated}",
        f"Requirements version: {doc.version}",
        "",
    ]


def _mermaid(content: str | None, placeholder: str) -> list[str]:
    return ["```mermaid", content or placeholder, "```", ""]


def _features(artifacts: ExportArtifacts) -> list[str]:
    lines = []
    for idx, feature in enumerate(artifacts.requirements_doc.features, start=1):
        priority = f" ({feature.priority})" if feature.priority else ""
        lines.append(f"{idx}. **{feature.title}**{priority}")
        if feature.description:
            lines.append(f"   {feature.description}")
    lines.append("")
    return lines


def _render_cursor(artifacts: ExportArtifacts) -> list[str]:
    doc = artifacts.requirements_doc
    backend = artifacts.backend_spec
    frontend = artifacts.frontend_spec
    ui = artifacts.ui_spec
    lines = _header(artifacts, "Cursor")

    lines += ["## Project Overview", doc.overview or doc.title, ""]
    if doc.goals:
        lines.append("## Goals")
        lines += [f"- {goal}" for goal in doc.goals]
        lines.append("")
    lines += ["## Features"] + _features(artifacts)

    lines += [
        "## Tech Stack",
        f"- **Frontend**: {frontend.styling or 'TBD'}, {frontend.state_management or 'React'}",
        "- **Backend**: framework TBD",
        "- **Database**: PostgreSQL",
        "",
    ]
    lines += ["## Architecture"] + _mermaid(artifacts.flow_diagram, PLACEHOLDER_FLOW)
    lines += ["## Database Schema"] + _mermaid(artifacts.er_diagram, PLACEHOLDER_ERD)

    lines.append("## Backend APIs")
    for api in backend.apis:
        lines += [f"### {api.method} {api.path}", api.description]
        if api.auth:
            lines.append("**Auth required**: Yes")
        lines.append("")

    lines.append("## Frontend Routes")
    for route in frontend.routes:
        protected = " (Protected)" if route.auth else ""
        lines.append(f"- **{route.path}** -> {route.component}{protected}")
    lines.append("")

    if doc.user_stories:
        lines.append("## User Stories")
        for story in doc.user_stories:
            lines += [f"### {story.id}: {story.story}", "**Acceptance Criteria:**"]
            lines += [f"- {criterion}" for criterion in story.acceptance_criteria]
            lines.append("")

    lines += ["## Design System", "### Colors"]
    for color in ui.design_system.colors:
        usage = f" - {color.usage}" if color.usage else ""
        lines.append(f"- **{color.name}**: {color.hex}{usage}")
    lines.append("")

    lines += [
        "## Implementation Notes",
        "1. Add this file to the project root as `.cursorrules` or reference it in prompts",
        "2. Implement features in the order listed above",
        "3. Keep every API aligned with the backend spec",
        "",
    ]
    return lines


def _render_claude(artifacts: ExportArtifacts) -> list[str]:
    doc = artifacts.requirements_doc
    backend = artifacts.backend_spec
    frontend = artifacts.frontend_spec
    ui = artifacts.ui_spec
    lines = _header(artifacts, "Claude Code")

    lines += ["## System Context", f"You are building: **{doc.title}**"]
    if doc.overview:
        lines.append(doc.overview)
    lines.append("")
    lines += ["## Features"] + _features(artifacts)
    lines += ["## Architecture"] + _mermaid(artifacts.flow_diagram, PLACEHOLDER_FLOW)
    lines += ["## Data Model"] + _mermaid(artifacts.er_diagram, PLACEHOLDER_ERD)

    lines += ["## Backend Specification", f"**Entities ({len(backend.entities)}):**"]
    for entity in backend.entities:
        lines.append(f"- {entity.name}: {', '.join(field.name for field in entity.fields)}")
    lines += ["", f"**APIs ({len(backend.apis)}):**"]
    lines += [f"- {api.method} {api.path}: {api.description}" for api in backend.apis]
    lines.append("")

    lines += ["## Frontend Specification", "**Routes:**"]
    for route in frontend.routes:
        lines.append(f"- {route.path} ({route.component}){' [auth]' if route.auth else ''}")
    lines += ["", f"**Components ({len(frontend.components)}):**"]
    lines += [f"- {comp.name} ({comp.type}): {comp.description}" for comp in frontend.components]
    lines.append("")

    lines += ["## UI Design System", "**Palette:**"]
    lines += [f"- {color.name}: {color.hex}" for color in ui.design_system.colors[:6]]
    lines += ["", "**Typography:**"]
    lines += [f"- {typo.name}: {typo.font_size:g}px / {typo.line_height:g}" for typo in ui.design_system.typography]
    lines.append("")

    if doc.user_stories:
        lines.append("## User Stories (Backlog)")
        lines += [f"{idx}. **{story.id}**: {story.story}" for idx, story in enumerate(doc.user_stories, start=1)]
        lines.append("")

    lines += [
        "## Usage with Claude Code",
        "1. Place this file in your project root",
        "2. Reference sections when implementing features",
        "3. Use the data model and API specs to keep layers consistent",
        "4. Follow the design system for all UI components",
        "",
    ]
    return lines


def _render_lovable(artifacts: ExportArtifacts) -> list[str]:
    doc = artifacts.requirements_doc
    ui = artifacts.ui_spec
    frontend = artifacts.frontend_spec
    lines = _header(artifacts, "Lovable")

    lines += ["## Project Brief", doc.overview or doc.title, ""]

    lines.append("## Screens to Build")
    for idx, screen in enumerate(ui.screens, start=1):
        lines += [
            f"### {idx}. {screen.name}",
            f"**Route**: {screen.path}",
            f"**Layout**: {screen.layout or 'default'}",
            f"**Components**: {', '.join(screen.components)}",
            "",
        ]

    lines += ["## Design System", "**Colors:**"]
    lines += [f"- {color.name}: {color.hex}" for color in ui.design_system.colors]
    lines += ["", "**Typography:**"]
    lines += [
        f"- {typo.name}: {typo.font_size:g}px, weight {typo.font_weight or 400}" for typo in ui.design_system.typography
    ]
    lines.append("")
    if ui.design_system.spacing:
        lines += [f"**Spacing Scale**: {', '.join(f'{step:g}' for step in ui.design_system.spacing)}px", ""]

    lines.append("## Component Library")
    for comp in ui.components:
        lines.append(f"### {comp.name}")
        if comp.variants:
            lines.append(f"**Variants**: {', '.join(comp.variants)}")
        if comp.states:
            lines.append(f"**States**: {', '.join(comp.states)}")
        lines.append("")

    lines.append("## Routes")
    lines += [f"- `{route.path}` -> {route.component}" for route in frontend.routes]
    lines.append("")

    if doc.user_stories:
        lines.append("## Key User Flows")
        lines += [f"- {story.story}" for story in doc.user_stories[:5]]
        lines.append("")

    lines += [
        "## Lovable Usage",
        "1. Start with the design system above",
        "2. Build screens one by one following the layout specs",
        "3. Use the component library for consistency",
        "",
    ]
    return lines


def _render_bolt(artifacts: ExportArtifacts) -> list[str]:
    doc = artifacts.requirements_doc
    backend = artifacts.backend_spec
    frontend = artifacts.frontend_spec
    lines = _header(artifacts, "Bolt.new")

    lines += ["## Quick Start", f"Build a full-stack app for: **{doc.title}**"]
    if doc.overview:
        lines.append(doc.overview)
    lines.append("")

    lines += [
        "## Tech Stack",
        f"- Frontend: React + {frontend.styling or 'tailwind'}",
        f"- State: {frontend.state_management or 'useState'}",
        "- Backend: Express.js",
        "- Database: SQLite for the prototype",
        "",
    ]
    lines += ["## Features to Implement"] + _features(artifacts)

    lines.append("## API Endpoints")
    lines += [f"- `{api.method} {api.path}`: {api.description}" for api in backend.apis]
    lines.append("")

    lines.append("## Pages / Routes")
    lines += [f"- `{route.path}` -> {route.component}{' (Auth)' if route.auth else ''}" for route in frontend.routes]
    lines.append("")

    lines.append("## Data Schema (Simplified)")
    for entity in backend.entities:
        lines += [f"### {entity.name}", "```javascript", "{"]
        for field in entity.fields:
            lines.append(f"  {field.name}: {field.type}, // {'required' if field.required else 'optional'}")
        lines += ["}", "```", ""]

    p0 = [feature.title for feature in doc.features if feature.priority == "P0"]
    if p0:
        lines += ["## MVP Scope", "Focus on P0 features first:"]
        lines += [f"- {title}" for title in p0]
        lines.append("")

    lines += [
        "## Bolt Usage",
        "1. Paste this pack into Bolt.new",
        "2. Ask Bolt to scaffold the project structure",
        "3. Implement features incrementally, testing each",
        "",
    ]
    return lines


PACKS: dict[ExportTarget, PackDefinition] = {
    ExportTarget.cursor: PackDefinition(
        ExportTarget.cursor,
        ("requirements_doc", "backend_spec", "frontend_spec", "ui_spec"),
        _render_cursor,
    ),
    ExportTarget.claude: PackDefinition(
        ExportTarget.claude,
        ("requirements_doc", "backend_spec", "frontend_spec", "ui_spec"),
        _render_claude,
    ),
    ExportTarget.lovable: PackDefinition(
        ExportTarget.lovable,
        ("requirements_doc", "frontend_spec", "ui_spec"),
        _render_lovable,
    ),
    ExportTarget.bolt: PackDefinition(
        ExportTarget.bolt,
        ("requirements_doc", "backend_spec", "frontend_spec"),
        _render_bolt,
    ),
}


def resolve_target(target: ExportTarget | str) -> ExportTarget:
    try:
        return ExportTarget(target)
    except ValueError as exc:
        valid = ", ".join(t.value for t in ExportTarget)
        raise ValidationError(f"Unknown export target '{target}' (expected one of {valid})") from exc


def missing_artifacts(target: ExportTarget | str, artifacts: ExportArtifacts) -> list[str]:
    definition = PACKS[resolve_target(target)]
    return [name for name in definition.requires if getattr(artifacts, name) is None]


def build_pack(target: ExportTarget | str, artifacts: ExportArtifacts) -> str:
    resolved = resolve_target(target)
    definition = PACKS[resolved]
    missing = missing_artifacts(resolved, artifacts)
    if missing:
        raise ValidationError(
            f"Export target '{resolved.value}' requires missing artifact(s): {', '.join(missing)}",
            details={"target": resolved.value, "missing": missing},
        )
    text = "\n".join(definition.render(artifacts))
    logger.debug("export_pack.built", target=resolved.value, chars=len(text))
    return text


__all__ = [
    "PackDefinition",
    "PACKS",
    "PLACEHOLDER_FLOW",
    "PLACEHOLDER_ERD",
    "build_pack",
    "missing_artifacts",
    "resolve_target",
]
