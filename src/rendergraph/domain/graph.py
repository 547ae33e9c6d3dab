"""Graph model: immutable view of nodes and edges for one evaluation pass.

Nodes and edges map 1:1 to the objects persisted in graph files.  The model
is frozen: edits (uploaded URLs, committed connections) produce a new
:class:`GraphModel` via ``with_node_data()`` / ``with_edge()``.
"""

from __future__ import annotations

from functools import cached_property
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator


class Node(BaseModel):
    """A typed processing node.

    ``type`` is kept as a plain string so graphs carrying node types this
    build does not know still load; dispatch decides what to do with them.
    """

    model_config = {"frozen": True}

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a ``data`` field, treating ``None`` and ``""`` as absent."""
        value = self.data.get(key)
        if value is None or value == "":
            return default
        return value


class Edge(BaseModel):
    """A directed connection carrying ``source``'s result into ``target``."""

    model_config = {"frozen": True}

    id: str = ""
    source: str
    target: str

    @model_validator(mode="before")
    @classmethod
    def _default_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id"):
            return {**data, "id": f"{data.get('source')}->{data.get('target')}"}
        return data


class GraphModel(BaseModel):
    """Frozen node/edge collection with id-unique nodes."""

    model_config = {"frozen": True}

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> Self:
        seen: set[str] = set()
        dupes: list[str] = []
        for node in self.nodes:
            if node.id in seen:
                dupes.append(node.id)
            seen.add(node.id)
        if dupes:
            msg = f"Duplicate node ids: {', '.join(sorted(set(dupes)))}"
            raise ValueError(msg)
        return self

    @cached_property
    def node_map(self) -> dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def node(self, node_id: str) -> Node | None:
        """Return the node with *node_id*, or None for a dangling reference."""
        return self.node_map.get(node_id)

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def incoming(self, target_id: str) -> list[Edge]:
        """Edges whose target is *target_id*, in edge-list order."""
        return [e for e in self.edges if e.target == target_id]

    def with_node_data(self, node_id: str, **updates: Any) -> GraphModel:
        """Return a new graph with *updates* merged into a node's data.

        A value of ``None`` removes the key.

        Raises:
            KeyError: If *node_id* is not in the graph.
        """
        if node_id not in self.node_map:
            raise KeyError(node_id)
        nodes: list[Node] = []
        for node in self.nodes:
            if node.id == node_id:
                data = {**node.data, **updates}
                data = {k: v for k, v in data.items() if v is not None}
                node = node.model_copy(update={"data": data})
            nodes.append(node)
        return GraphModel(nodes=nodes, edges=list(self.edges))

    def with_edge(self, edge: Edge) -> GraphModel:
        """Return a new graph with *edge* appended."""
        return GraphModel(nodes=list(self.nodes), edges=[*self.edges, edge])
