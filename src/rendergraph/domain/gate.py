"""Connection gate for re-scene placement.

Connecting an image input to a ``rescene`` re-render is a two-step
operation: the attempted edge is held outside the graph until a role is
chosen, and only then is the role written to the source node and the edge
committed.  Every image edge into a ``rescene`` node therefore carries a
resolved ``imageType`` before the graph is ever executed.

States::

    idle --on_pending_connection--> pending --on_classify_and_commit--> committed
                                       |
                                       +------------abandon-----------> idle
"""

from __future__ import annotations

from enum import StrEnum

from rendergraph.domain.graph import Edge, GraphModel
from rendergraph.domain.types import ImageRole, NodeType, RerenderingType


class GateState(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"


def requires_classification(graph: GraphModel, edge: Edge) -> bool:
    """True when *edge* connects an image input to a ``rescene`` re-render."""
    source = graph.node(edge.source)
    target = graph.node(edge.target)
    if source is None or target is None:
        return False
    return (
        source.type == NodeType.IMAGE_INPUT
        and target.type == NodeType.RERENDERING
        and target.get("rerenderingType") == RerenderingType.RESCENE
    )


class ConnectionGate:
    """Holds at most one pending connection awaiting classification."""

    def __init__(self) -> None:
        self.state = GateState.IDLE
        self._graph: GraphModel | None = None
        self._pending: Edge | None = None

    @property
    def pending(self) -> Edge | None:
        """The edge awaiting a role, if any."""
        return self._pending

    def on_pending_connection(self, graph: GraphModel, edge: Edge) -> GraphModel | None:
        """Attempt to connect *edge*.

        Returns the new graph when the edge is committed straight away, or
        None when it is held for classification.
        """
        if not requires_classification(graph, edge):
            self.state = GateState.COMMITTED
            self._graph = None
            self._pending = None
            return graph.with_edge(edge)

        self.state = GateState.PENDING
        self._graph = graph
        self._pending = edge
        return None

    def on_classify_and_commit(self, role: ImageRole | str) -> GraphModel:
        """Write *role* into the pending source node and commit the edge.

        Raises:
            RuntimeError: If no connection is pending.
            ValueError: If *role* is not one of object, scene, fuse.
        """
        if self._pending is None or self._graph is None:
            raise RuntimeError("No connection is awaiting classification")
        resolved = ImageRole(role)

        edge = self._pending
        graph = self._graph.with_node_data(edge.source, imageType=str(resolved))
        graph = graph.with_edge(edge)

        self.state = GateState.COMMITTED
        self._graph = None
        self._pending = None
        return graph

    def abandon(self) -> None:
        """Drop the pending connection; the edge never exists."""
        self.state = GateState.IDLE
        self._graph = None
        self._pending = None
