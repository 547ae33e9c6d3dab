"""ConnectService: add an edge to a graph file through the connection gate."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from rendergraph.domain.gate import ConnectionGate
from rendergraph.domain.graph import Edge
from rendergraph.domain.types import ImageRole
from rendergraph.infrastructure.graph_io import save_graph
from rendergraph.services.base import BaseService
from rendergraph.services.result import ServiceResult
from rendergraph.services.telemetry import traced

type RoleChooser = Callable[[Edge], str | None]


class ConnectService(BaseService):
    """Connects two nodes and saves the graph.

    Edges from an image input into a ``rescene`` node need a role first:
    *role* if given, else whatever *choose_role* returns.  Without either
    the connection is abandoned and the file is left untouched.
    """

    @traced
    def connect(
        self,
        graph_path: Path,
        source_id: str,
        target_id: str,
        *,
        role: str | None = None,
        edge_id: str | None = None,
        choose_role: RoleChooser | None = None,
    ) -> ServiceResult:
        graph = self._load(graph_path, op="connect")
        if isinstance(graph, ServiceResult):
            return graph

        missing = [n for n in (source_id, target_id) if graph.node(n) is None]
        if missing:
            return self._fail(
                "connect", "NOT_FOUND", f"No such node: {', '.join(missing)}", nodes=missing
            )

        edge = Edge(id=edge_id or "", source=source_id, target=target_id)
        if any(e.id == edge.id for e in graph.edges):
            return self._fail("connect", "DUPLICATE_EDGE", f"Edge '{edge.id}' already exists")

        gate = ConnectionGate()
        classified: str | None = None
        updated = gate.on_pending_connection(graph, edge)
        if updated is None:
            chosen = role if role is not None else (choose_role(edge) if choose_role else None)
            if chosen is None:
                gate.abandon()
                return self._fail(
                    "connect",
                    "ROLE_REQUIRED",
                    f"'{source_id}' -> '{target_id}' feeds a rescene node; "
                    f"choose a role with --role ({', '.join(ImageRole)})",
                    edge=edge.id,
                )
            try:
                updated = gate.on_classify_and_commit(chosen)
                classified = str(ImageRole(chosen))
            except ValueError:
                gate.abandon()
                return self._fail(
                    "connect", "INVALID_ROLE", f"Unknown image role: {chosen!r}", role=chosen
                )

        save_graph(updated, graph_path)
        return ServiceResult(
            ok=True,
            op="connect",
            data={
                "path": str(graph_path),
                "edge": edge.model_dump(),
                "role": classified,
            },
        )
