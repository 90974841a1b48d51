"""Module dependency graph construction from a requirements feature list."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

import structlog

from .classifier import CategoryClassifier, Classification, normalize
from .schemas import Feature, ModuleCategory, ModuleEdge, ModuleNode, ModuleStatus, ProjectGraph

logger = structlog.get_logger(__name__)

C = ModuleCategory

# Category -> categories it unblocks.
PREREQUISITES: Mapping[ModuleCategory, frozenset[ModuleCategory]] = {
    C.authentication: frozenset({C.core, C.frontend, C.ui_ux, C.data, C.payment, C.analytics, C.ai_ml, C.admin}),
    C.security: frozenset({C.admin, C.payment}),
    C.database: frozenset({C.backend, C.core, C.data, C.analytics, C.ai_ml}),
    C.backend: frozenset({C.core, C.frontend, C.analytics}),
    C.data: frozenset({C.analytics, C.ai_ml}),
    C.core: frozenset({C.analytics, C.ai_ml, C.admin}),
    C.integration: frozenset({C.support}),
    C.analytics: frozenset({C.admin}),
}

DATA_PROVIDERS = frozenset({C.data, C.database, C.backend})
DATA_CONSUMER_TERMS = frozenset(
    {"list", "lists", "view", "views", "search", "browse", "feed", "history", "report", "reports", "dashboard", "timeline", "gallery"}
)

GRID_ORIGIN = 100
GRID_COLUMN_WIDTH = 250
GRID_ROW_HEIGHT = 200


@dataclass(frozen=True)
class _Placed:
    index: int
    node_id: str
    feature: Feature
    classification: Classification
    sequence: int

    @property
    def layer(self) -> int:
        return self.classification.layer

    @property
    def category(self) -> ModuleCategory:
        return self.classification.category


def module_id(index: int) -> str:
    return f"module-{index + 1}"


def grid_position(layer: int, sequence: int) -> tuple[float, float]:
    return (
        float(GRID_ORIGIN + GRID_COLUMN_WIDTH * (sequence - 1)),
        float(GRID_ORIGIN + GRID_ROW_HEIGHT * (layer - 1)),
    )


def _consumes_data(feature: Feature) -> bool:
    words = set(normalize(f"{feature.title} {feature.description}").split())
    return not words.isdisjoint(DATA_CONSUMER_TERMS)


def _precedes(source: _Placed, target: _Placed) -> bool:
    if source.layer != target.layer:
        return source.layer < target.layer
    return source.index < target.index


class ModuleGraphBuilder:
    """Classify features, order them into layers and infer prerequisite edges.

    Output depends only on the feature list and its order: ids are
    positional, sequences follow input order within each layer and edges
    come from the fixed ``PREREQUISITES`` table.
    """

    def __init__(
        self,
        classifier: CategoryClassifier | None = None,
        prerequisites: Mapping[ModuleCategory, frozenset[ModuleCategory]] = PREREQUISITES,
    ) -> None:
        self._classifier = classifier or CategoryClassifier()
        self._prerequisites = prerequisites

    @property
    def classifier(self) -> CategoryClassifier:
        return self._classifier

    def build(self, features: Sequence[Feature]) -> ProjectGraph:
        placed = self._place(features)
        nodes = [self._node(item) for item in placed]
        edges = list(self._infer_edges(placed))
        graph = ProjectGraph(nodes=nodes, edges=edges)
        logger.info(
            "graph_builder.built",
            nodes=len(nodes),
            edges=len(edges),
            ruleset=self._classifier.version,
        )
        return graph

    def reclassify(self, graph: ProjectGraph) -> ProjectGraph:
        """Fill in category, layer and sequence for nodes that lack them.

        Classified values already present are kept, and so are ids, edges
        and positions.
        """
        next_sequence: dict[int, int] = {}
        for node in graph.nodes:
            if node.layer is not None and node.sequence_in_layer is not None:
                next_sequence[node.layer] = max(next_sequence.get(node.layer, 0), node.sequence_in_layer)

        updated: list[ModuleNode] = []
        changed = 0
        for node in graph.nodes:
            if node.category is not None and node.layer is not None and node.sequence_in_layer is not None:
                updated.append(node)
                continue
            classification = self._classifier.classify(Feature(title=node.label, description=node.description))
            layer = node.layer if node.layer is not None else classification.layer
            sequence = node.sequence_in_layer
            if sequence is None:
                sequence = next_sequence.get(layer, 0) + 1
                next_sequence[layer] = sequence
            updated.append(
                node.model_copy(
                    update={
                        "category": node.category or classification.category,
                        "layer": layer,
                        "sequence_in_layer": sequence,
                    }
                )
            )
            changed += 1
        logger.info("graph_builder.reclassified", nodes=len(graph.nodes), changed=changed)
        return ProjectGraph(nodes=updated, edges=list(graph.edges))

    def _place(self, features: Sequence[Feature]) -> list[_Placed]:
        counters: dict[int, int] = {}
        placed: list[_Placed] = []
        for index, feature in enumerate(features):
            classification = self._classifier.classify(feature)
            counters[classification.layer] = counters.get(classification.layer, 0) + 1
            placed.append(
                _Placed(
                    index=index,
                    node_id=module_id(index),
                    feature=feature,
                    classification=classification,
                    sequence=counters[classification.layer],
                )
            )
        return placed

    def _node(self, item: _Placed) -> ModuleNode:
        x, y = grid_position(item.layer, item.sequence)
        return ModuleNode(
            id=item.node_id,
            label=item.feature.title,
            status=ModuleStatus.in_scope,
            category=item.category,
            layer=item.layer,
            sequence_in_layer=item.sequence,
            x=x,
            y=y,
            description=item.feature.description,
        )

    def _infer_edges(self, placed: Sequence[_Placed]) -> Iterable[ModuleEdge]:
        for target in placed:
            for source in placed:
                if source is target or not _precedes(source, target):
                    continue
                if self._is_prerequisite(source, target):
                    yield ModuleEdge(
                        id=f"edge-{source.node_id}-{target.node_id}",
                        source=source.node_id,
                        target=target.node_id,
                        label=None,
                    )

    def _is_prerequisite(self, source: _Placed, target: _Placed) -> bool:
        if target.category in self._prerequisites.get(source.category, frozenset()):
            return True
        return source.category in DATA_PROVIDERS and _consumes_data(target.feature)


def build_graph(features: Sequence[Feature]) -> ProjectGraph:
    return ModuleGraphBuilder().build(features)


__all__ = [
    "ModuleGraphBuilder",
    "build_graph",
    "module_id",
    "grid_position",
    "PREREQUISITES",
    "DATA_PROVIDERS",
    "DATA_CONSUMER_TERMS",
]
