"""Prompt construction for each generation stage."""
from __future__ import annotations

from .schemas import Idea, ProjectGraph, RequirementsDoc

PM_SYSTEM = (
    "You are a senior product manager writing Product Requirements Documents. "
    "Turn the product idea into a concise, testable PRD. Every feature needs a short title "
    "(two to four words) and a one or two sentence description of the behaviour users get. "
    "Keep features independent and avoid implementation detail."
)

BACKEND_SYSTEM = (
    "You are an expert backend architect and database designer. Design the data entities with "
    "field types, constraints and relations (use 'Entity.field' notation for foreign keys), the REST "
    "API endpoints with methods, paths and auth requirements, background jobs and third-party "
    "integrations needed to support every feature in the PRD."
)

FRONTEND_SYSTEM = (
    "You are an expert frontend architect. Design the routes, pages, layouts and components a "
    "web client needs to deliver every feature in the PRD. Reference backend API paths by the "
    "REST conventions implied by the features and pick a state management and styling approach."
)

UI_SYSTEM = (
    "You are an expert UI/UX designer creating design systems. Produce exact hex colours with "
    "usage, typography sizes, line heights and weights, component variants and states, and the "
    "screens the product needs with the components each one uses. Favour accessible contrast."
)


def _bullets(items: list[str] | None) -> str:
    return "\n".join(f"- {item}" for item in items or []) or "- (none given)"


def _idea_brief(idea: Idea) -> str:
    sections = [
        f"## Product\n**{idea.title}**" + (f": {idea.pitch}" if idea.pitch else ""),
        f"## Problem\n{idea.problem}",
        f"## Solution\n{idea.solution}",
        f"## Target Users\n{_bullets(idea.target_users)}",
        f"## Platforms\n{', '.join(idea.platforms)}",
    ]
    if idea.core_features:
        sections.append(f"## Core Features\n{_bullets(idea.core_features)}")
    if idea.user_personas:
        sections.append(f"## Personas\n{_bullets(idea.user_personas)}")
    if idea.competitors:
        sections.append(f"## Competitors\n{_bullets(idea.competitors)}")
    if idea.inspiration:
        sections.append(f"## Inspiration\n{_bullets(idea.inspiration)}")
    if idea.constraints:
        sections.append(f"## Constraints\n{_bullets(idea.constraints)}")
    if idea.success_metrics:
        sections.append(f"## Success Metrics\n{_bullets(idea.success_metrics)}")
    return "\n\n".join(sections)


def _modules_in_scope(graph: ProjectGraph) -> str:
    lines = [
        f"- {node.label}" + (f": {node.description}" if node.description else "")
        for node in graph.in_scope()
    ]
    if not lines:
        return ""
    return "\n\n## Modules in Scope\n" + "\n".join(lines)


def _requirements_brief(doc: RequirementsDoc) -> str:
    features = "\n".join(
        f"- **{feature.title}**" + (f" ({feature.priority})" if feature.priority else "") + f": {feature.description}"
        for feature in doc.features
    )
    parts = [f"## Requirements: {doc.title} v{doc.version}"]
    if doc.overview:
        parts.append(doc.overview)
    if doc.goals:
        parts.append("## Goals\n" + _bullets(doc.goals))
    parts.append("## Features\n" + features)
    if doc.user_stories:
        parts.append(
            "## User Stories\n"
            + "\n".join(f"- {story.story} (criteria: {'; '.join(story.acceptance_criteria)})" for story in doc.user_stories)
        )
    return "\n\n".join(parts)


def requirements_prompts(idea: Idea, graph: ProjectGraph) -> tuple[str, str]:
    user = (
        _idea_brief(idea)
        + _modules_in_scope(graph)
        + "\n\nWrite the PRD. Include one feature per core feature listed above, in the same order, "
        "using the core feature text as the feature title. Add further features only when the product "
        "cannot work without them."
    )
    return PM_SYSTEM, user


def backend_prompts(idea: Idea, doc: RequirementsDoc, graph: ProjectGraph) -> tuple[str, str]:
    user = (
        f"Design the backend for **{idea.title}** targeting {', '.join(idea.platforms)}.\n\n"
        + _requirements_brief(doc)
        + _modules_in_scope(graph)
        + "\n\nEnsure the backend supports every feature above."
    )
    return BACKEND_SYSTEM, user


def frontend_prompts(idea: Idea, doc: RequirementsDoc, graph: ProjectGraph) -> tuple[str, str]:
    user = (
        f"Design the frontend for **{idea.title}** targeting {', '.join(idea.platforms)}.\n\n"
        + _requirements_brief(doc)
        + _modules_in_scope(graph)
        + "\n\nEvery feature must be reachable from at least one route."
    )
    return FRONTEND_SYSTEM, user


def ui_prompts(idea: Idea, doc: RequirementsDoc, graph: ProjectGraph) -> tuple[str, str]:
    users = ", ".join(idea.target_users) or "general users"
    user = (
        f"Create the UI specification for **{idea.title}** used by {users} "
        f"on {', '.join(idea.platforms)}.\n\n"
        + _requirements_brief(doc)
        + _modules_in_scope(graph)
        + "\n\nInclude 8-12 colours, 4-6 typography styles and one screen per primary user flow."
    )
    return UI_SYSTEM, user


__all__ = [
    "requirements_prompts",
    "backend_prompts",
    "frontend_prompts",
    "ui_prompts",
]
