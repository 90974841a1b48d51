import pytest

from services.foundry.app.domain.errors import GenerationError, ValidationError
from services.foundry.app.domain.schemas import (
    BackendSpec,
    FrontendSpec,
    Idea,
    ModuleEdge,
    ModuleNode,
    ProjectGraph,
    RequirementsDoc,
    UISpec,
    parse_input,
)
from services.foundry.app.domain.validator import SchemaValidator


def test_validate_accepts_conforming_dict(documents):
    spec = SchemaValidator().validate("backend_spec", BackendSpec, documents["BackendSpec"])
    assert [entity.name for entity in spec.entities] == ["User", "Task", "Comment"]


def test_validate_accepts_model_instance(documents):
    ui = UISpec.model_validate(documents["UISpec"])
    assert SchemaValidator().validate("ui_spec", UISpec, ui) == ui


def test_validate_rejects_non_object():
    with pytest.raises(GenerationError) as excinfo:
        SchemaValidator().validate("ui_spec", UISpec, ["not", "an", "object"])
    assert excinfo.value.stage == "ui_spec"


def test_validate_reports_field_errors(documents):
    broken = dict(documents["FrontendSpec"], styling="bootstrap")
    del broken["routes"]
    with pytest.raises(GenerationError) as excinfo:
        SchemaValidator().validate("frontend_spec", FrontendSpec, broken)
    locations = {tuple(error["loc"]) for error in excinfo.value.details}
    assert locations == {("routes",), ("styling",)}


def test_requirements_version_must_be_major_minor(documents):
    raw = {**documents["RequirementsDoc"], "version": "v2", "lastUpdated": "now"}
    with pytest.raises(GenerationError):
        SchemaValidator().validate("requirements", RequirementsDoc, raw)


def test_check_consistency_reports_dangling_references(documents):
    backend = BackendSpec.model_validate(documents["BackendSpec"])
    frontend = FrontendSpec.model_validate(documents["FrontendSpec"])
    ui = UISpec.model_validate(documents["UISpec"])
    assert SchemaValidator().check_consistency(backend, frontend, ui) == []

    frontend.components[0].apis = ["/api/ghost"]
    ui.screens[0].components.append("Sidebar")
    assert SchemaValidator().check_consistency(backend, frontend, ui) == [
        "Component SignUpPage references unknown API: /api/ghost",
        "Screen Board references unknown component: Sidebar",
    ]


def test_idea_normalizes_platforms(idea_payload):
    idea = Idea.model_validate(idea_payload)
    assert idea.platforms == ["web", "ios"]
    assert Idea.model_validate({**idea_payload, "platforms": None}).platforms == ["web"]


def test_parse_input_raises_domain_validation_error(idea_payload):
    with pytest.raises(ValidationError) as excinfo:
        parse_input(Idea, {**idea_payload, "platforms": ["desktop"], "problem": "  "})
    assert {error["loc"][0] for error in excinfo.value.details} == {"platforms", "problem"}


def test_graph_rejects_duplicate_and_dangling_ids():
    node = ModuleNode(id="a", label="A")
    with pytest.raises(ValidationError, match="Invalid ProjectGraph"):
        parse_input(ProjectGraph, {"nodes": [node.to_wire(), node.to_wire()], "edges": []})
    with pytest.raises(ValidationError):
        parse_input(
            ProjectGraph,
            {"nodes": [node.to_wire()], "edges": [ModuleEdge(id="e", source="a", target="b").to_wire()]},
        )


def test_graph_wire_format_uses_camel_case():
    wire = ProjectGraph(nodes=[ModuleNode(id="a", label="A", layer=2, sequence_in_layer=1)]).to_wire()
    assert wire["nodes"][0]["sequenceInLayer"] == 1
    assert wire["nodes"][0]["status"] == "in"
