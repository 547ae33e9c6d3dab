"""DependencyIndex: target -> incoming-edges lookup."""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from rendergraph.domain.graph import Edge, GraphModel


class DependencyIndex:
    """Edges grouped by ``target``, in edge-list order."""

    def __init__(self, by_target: dict[str, list[Edge]]) -> None:
        self._by_target = by_target

    @classmethod
    def build(cls, edges: Iterable[Edge]) -> DependencyIndex:
        by_target: dict[str, list[Edge]] = {}
        for edge in edges:
            by_target.setdefault(edge.target, []).append(edge)
        return cls(by_target)

    def incoming(self, target_id: str) -> list[Edge]:
        return self._by_target.get(target_id, [])

    def as_dict(self) -> dict[str, list[Edge]]:
        return {k: list(v) for k, v in self._by_target.items()}


def to_digraph(graph: GraphModel) -> nx.DiGraph:
    """Build a NetworkX DiGraph with node types as attributes.

    Edge endpoints missing from ``graph.nodes`` still appear as bare nodes,
    so dangling references are visible to algorithms.
    """
    g: nx.DiGraph = nx.DiGraph()
    for node in graph.nodes:
        g.add_node(node.id, type=node.type)
    for edge in graph.edges:
        g.add_edge(edge.source, edge.target, id=edge.id)
    return g


def find_cycle(graph: GraphModel, target_id: str | None = None) -> list[str] | None:
    """Return the node ids of a cycle, or None if there is none.

    With *target_id*, only the nodes the target depends on are considered.
    """
    g = to_digraph(graph)
    if target_id is not None:
        if target_id not in g:
            return None
        g = g.subgraph(nx.ancestors(g, target_id) | {target_id})
    try:
        cycle_edges = nx.find_cycle(g)
    except nx.NetworkXNoCycle:
        return None
    return [u for u, _v, *_ in cycle_edges]
