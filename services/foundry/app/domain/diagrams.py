"""Mermaid diagram rendering for module graphs and backend data models.

Both renderers are pure: identical input yields byte-identical text.
``sanitize_id`` is not collision-free; ids such as ``a.b`` and ``a_b``
collapse to the same Mermaid identifier and render as one box.
"""
from __future__ import annotations

import re

from .schemas import BackendSpec, ModuleStatus, ProjectGraph

_UNSAFE_ID = re.compile(r"[^A-Za-z0-9_]")

STATUS_STYLES: dict[ModuleStatus, str] = {
    ModuleStatus.in_scope: "fill:#d4edda,stroke:#28a745,stroke-width:2px",
    ModuleStatus.out_of_scope: "fill:#f8d7da,stroke:#dc3545,stroke-width:2px",
    ModuleStatus.maybe: "fill:#fff3cd,stroke:#ffc107,stroke-width:2px",
}

FIELD_TYPES = {
    "string": "string",
    "number": "int",
    "boolean": "boolean",
    "date": "datetime",
}

MANY_TO_ONE = "||--o{"


def sanitize_id(node_id: str) -> str:
    return _UNSAFE_ID.sub("_", node_id)


def _escape_label(label: str) -> str:
    return label.replace('"', "#quot;").replace("|", "#124;").replace("\n", " ")


def render_flow(graph: ProjectGraph) -> str:
    lines = ["flowchart TD"]
    for node in graph.nodes:
        node_id = sanitize_id(node.id)
        lines.append(f'  {node_id}["{_escape_label(node.label)}"]')
        lines.append(f"  style {node_id} {STATUS_STYLES[node.status]}")
    for edge in graph.edges:
        source = sanitize_id(edge.source)
        target = sanitize_id(edge.target)
        if edge.label:
            lines.append(f"  {source} -->|{_escape_label(edge.label)}| {target}")
        else:
            lines.append(f"  {source} --> {target}")
    return "\n".join(lines)


def render_erd(backend_spec: BackendSpec) -> str:
    lines = ["erDiagram"]
    relationships: list[str] = []
    for entity in backend_spec.entities:
        entity_name = sanitize_id(entity.name)
        lines.append(f"  {entity_name} {{")
        for field in entity.fields:
            constraints = []
            if field.required:
                constraints.append("required")
            if field.unique:
                constraints.append("unique")
            comment = f' "{", ".join(constraints)}"' if constraints else ""
            field_type = sanitize_id(FIELD_TYPES.get(field.type, field.type))
            lines.append(f"    {field_type} {sanitize_id(field.name)}{comment}")
            if field.relation:
                related = sanitize_id(field.relation.split(".", 1)[0])
                relationship = f'  {related} {MANY_TO_ONE} {entity_name} : "has"'
                if relationship not in relationships:
                    relationships.append(relationship)
        lines.append("  }")
    lines.extend(relationships)
    return "\n".join(lines)


__all__ = ["render_flow", "render_erd", "sanitize_id", "STATUS_STYLES", "FIELD_TYPES"]
