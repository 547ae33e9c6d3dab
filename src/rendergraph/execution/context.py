"""GraphContext: the explicit view of the graph handed to every handler.

Handlers that need more than their input values (provenance of an input,
connected gear nodes) ask the context instead of reaching for shared state.
Node-data edits made during a run are collected here and surface on the
run report's graph.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from rendergraph.domain.graph import GraphModel, Node
from rendergraph.execution.dependencies import DependencyIndex

type UpdateListener = Callable[[str, dict[str, Any]], None]


class GraphContext:
    """Read access to the run's graph plus recorded node-data updates."""

    def __init__(
        self,
        graph: GraphModel,
        index: DependencyIndex | None = None,
        *,
        on_update: UpdateListener | None = None,
    ) -> None:
        self._graph = graph
        self._index = index or DependencyIndex.build(graph.edges)
        self._on_update = on_update
        self._updates: dict[str, dict[str, Any]] = {}

    @property
    def graph(self) -> GraphModel:
        """The graph as it stands after this run's updates."""
        return self._graph

    @property
    def index(self) -> DependencyIndex:
        return self._index

    @property
    def updates(self) -> dict[str, dict[str, Any]]:
        """Node id -> fields changed during the run."""
        return {k: dict(v) for k, v in self._updates.items()}

    def node(self, node_id: str) -> Node | None:
        return self._graph.node(node_id)

    def node_type(self, node_id: str) -> str | None:
        """Type of the node that produced *node_id*'s result (provenance)."""
        node = self._graph.node(node_id)
        return node.type if node is not None else None

    def incoming_nodes(self, node_id: str) -> list[Node]:
        """Existing source nodes wired into *node_id*, in edge order."""
        nodes: list[Node] = []
        for edge in self._index.incoming(node_id):
            source = self._graph.node(edge.source)
            if source is not None:
                nodes.append(source)
        return nodes

    def incoming_nodes_of_type(self, node_id: str, node_type: str) -> list[Node]:
        return [n for n in self.incoming_nodes(node_id) if n.type == node_type]

    def update_node_data(self, node_id: str, **fields: Any) -> None:
        """Merge *fields* into a node's data for later runs (None removes a key)."""
        self._graph = self._graph.with_node_data(node_id, **fields)
        self._updates.setdefault(node_id, {}).update(fields)
        if self._on_update is not None:
            self._on_update(node_id, dict(fields))
