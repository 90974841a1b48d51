from services.foundry.app.domain.diagrams import STATUS_STYLES, render_erd, render_flow, sanitize_id
from services.foundry.app.domain.schemas import BackendSpec, ModuleEdge, ModuleNode, ModuleStatus, ProjectGraph


def sample_graph() -> ProjectGraph:
    return ProjectGraph(
        nodes=[
            ModuleNode(id="module-1", label="Sign Up"),
            ModuleNode(id="module-2", label='The "Board"', status=ModuleStatus.maybe),
            ModuleNode(id="module-3", label="Billing", status=ModuleStatus.out_of_scope),
        ],
        edges=[
            ModuleEdge(id="e1", source="module-1", target="module-2"),
            ModuleEdge(id="e2", source="module-2", target="module-3", label="feeds"),
        ],
    )


def test_render_flow_layout():
    assert render_flow(sample_graph()).splitlines() == [
        "flowchart TD",
        '  module_1["Sign Up"]',
        f"  style module_1 {STATUS_STYLES[ModuleStatus.in_scope]}",
        '  module_2["The #quot;Board#quot;"]',
        f"  style module_2 {STATUS_STYLES[ModuleStatus.maybe]}",
        '  module_3["Billing"]',
        "  style module_3 fill:#f8d7da,stroke:#dc3545,stroke-width:2px",
        "  module_1 --> module_2",
        "  module_2 -->|feeds| module_3",
    ]


def test_render_flow_is_idempotent():
    graph = sample_graph()
    assert render_flow(graph) == render_flow(graph)


def test_render_flow_empty_graph():
    assert render_flow(ProjectGraph.empty()) == "flowchart TD"


def test_sanitize_id_collision_is_accepted():
    assert sanitize_id("a.b") == sanitize_id("a_b") == "a_b"
    assert sanitize_id("module-1 x") == "module_1_x"


def test_render_erd(documents):
    spec = BackendSpec.model_validate(documents["BackendSpec"])
    lines = render_erd(spec).splitlines()
    assert lines[0] == "erDiagram"
    assert '    string id "required, unique"' in lines
    assert "    int estimate" in lines
    assert "    datetime dueDate" in lines
    assert lines[-3:] == [
        '  User ||--o{ Task : "has"',
        '  Task ||--o{ Comment : "has"',
        '  User ||--o{ Comment : "has"',
    ]


def test_render_erd_passes_unknown_types_through():
    spec = BackendSpec.model_validate(
        {"entities": [{"name": "Blob", "fields": [{"name": "data", "type": "bytes", "required": False}]}], "apis": []}
    )
    assert render_erd(spec) == "erDiagram\n  Blob {\n    bytes data\n  }"


def test_render_flow_escapes_pipes_in_edge_labels():
    graph = ProjectGraph(
        nodes=[ModuleNode(id="a", label="Import | Export"), ModuleNode(id="b", label="Reports")],
        edges=[ModuleEdge(id="e1", source="a", target="b", label="csv|json")],
    )
    lines = render_flow(graph).splitlines()
    assert '  a["Import #124; Export"]' in lines
    assert lines[-1] == "  a -->|csv#124;json| b"


def test_render_erd_sanitizes_names_and_types():
    spec = BackendSpec.model_validate(
        {
            "entities": [
                {"name": "Order Item", "fields": [{"name": "unit price", "type": "decimal(10,2)", "required": False}]},
                {
                    "name": "Line|Note",
                    "fields": [{"name": "item", "type": "string", "required": False, "relation": "Order Item.id"}],
                },
            ],
            "apis": [],
        }
    )
    assert render_erd(spec).splitlines() == [
        "erDiagram",
        "  Order_Item {",
        "    decimal_10_2_ unit_price",
        "  }",
        "  Line_Note {",
        "    string item",
        "  }",
        '  Order_Item ||--o{ Line_Note : "has"',
    ]
