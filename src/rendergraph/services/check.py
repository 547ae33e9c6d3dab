"""CheckService: static validation of a graph file.

Linter pattern: report problems, never modify the file.  Issues are
plain dicts with ``category``, ``severity``, ``message`` and, where one
applies, ``node_id`` / ``edge_id``.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from rendergraph.domain.gate import requires_classification
from rendergraph.domain.graph import GraphModel
from rendergraph.domain.types import ImageRole, NodeType
from rendergraph.execution.dependencies import find_cycle
from rendergraph.infrastructure.graph_io import GraphFileError, load_document
from rendergraph.services.base import BaseService
from rendergraph.services.result import ServiceResult
from rendergraph.services.telemetry import trace_span, traced

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

CAT_DUPLICATE = "duplicate_id"
CAT_DANGLING = "dangling_edge"
CAT_CYCLE = "cycle"
CAT_UNKNOWN_TYPE = "unknown_type"
CAT_UNTAGGED = "untagged_rescene_input"

_KNOWN_TYPES = frozenset(str(t) for t in NodeType)


def _issue(category: str, severity: str, message: str, **where: str) -> dict[str, Any]:
    return {"category": category, "severity": severity, "message": message, **where}


class CheckService(BaseService):
    """Validates graph files before they are run."""

    @traced
    def check(self, graph_path: Path) -> ServiceResult:
        """Report structural issues in the graph at *graph_path*."""
        try:
            document = load_document(graph_path)
        except FileNotFoundError:
            return self._fail("check", "NOT_FOUND", f"Graph file not found: {graph_path}")
        except GraphFileError as exc:
            return self._fail("check", "INVALID_GRAPH", str(exc))

        issues: list[dict[str, Any]] = []
        with trace_span("duplicate_ids"):
            issues.extend(self._check_duplicates(document))

        try:
            graph = GraphModel.model_validate(self._first_of_each(document))
        except ValidationError as exc:
            return self._fail("check", "INVALID_GRAPH", f"{graph_path}: {exc}")

        with trace_span("dangling_edges"):
            issues.extend(self._check_dangling(graph))
        with trace_span("cycles"):
            issues.extend(self._check_cycles(graph))
        with trace_span("node_types"):
            issues.extend(self._check_types(graph))
        with trace_span("rescene_roles"):
            issues.extend(self._check_rescene_roles(graph))

        errors = sum(1 for i in issues if i["severity"] == SEVERITY_ERROR)
        return ServiceResult(
            ok=True,
            op="check",
            data={
                "path": str(graph_path),
                "issues": issues,
                "count": len(issues),
                "errors": errors,
                "nodes": len(graph.nodes),
                "edges": len(graph.edges),
            },
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _raw_ids(document: dict[str, Any]) -> list[str]:
        nodes = document.get("nodes") or []
        return [n["id"] for n in nodes if isinstance(n, dict) and isinstance(n.get("id"), str)]

    def _check_duplicates(self, document: dict[str, Any]) -> list[dict[str, Any]]:
        counts = Counter(self._raw_ids(document))
        return [
            _issue(
                CAT_DUPLICATE,
                SEVERITY_ERROR,
                f"Node id '{node_id}' is used {count} times; only the first is kept",
                node_id=node_id,
            )
            for node_id, count in counts.items()
            if count > 1
        ]

    @staticmethod
    def _first_of_each(document: dict[str, Any]) -> dict[str, Any]:
        """The document with later duplicate node ids dropped."""
        nodes = document.get("nodes")
        if not isinstance(nodes, list):
            return document
        seen: set[str] = set()
        kept: list[Any] = []
        for node in nodes:
            node_id = node.get("id") if isinstance(node, dict) else None
            if isinstance(node_id, str):
                if node_id in seen:
                    continue
                seen.add(node_id)
            kept.append(node)
        return {**document, "nodes": kept}

    @staticmethod
    def _check_dangling(graph: GraphModel) -> list[dict[str, Any]]:
        issues: list[dict[str, Any]] = []
        for edge in graph.edges:
            for end in ("source", "target"):
                node_id = getattr(edge, end)
                if graph.node(node_id) is None:
                    issues.append(
                        _issue(
                            CAT_DANGLING,
                            SEVERITY_WARNING,
                            f"Edge {edge.id} {end} '{node_id}' does not exist",
                            edge_id=edge.id,
                        )
                    )
        return issues

    @staticmethod
    def _check_cycles(graph: GraphModel) -> list[dict[str, Any]]:
        cycle = find_cycle(graph)
        if cycle is None:
            return []
        path = " -> ".join([*cycle, cycle[0]])
        return [_issue(CAT_CYCLE, SEVERITY_ERROR, f"Cycle detected: {path}", node_id=cycle[0])]

    @staticmethod
    def _check_types(graph: GraphModel) -> list[dict[str, Any]]:
        return [
            _issue(
                CAT_UNKNOWN_TYPE,
                SEVERITY_WARNING,
                f"Node '{node.id}' has unknown type '{node.type}' and will be skipped",
                node_id=node.id,
            )
            for node in graph.nodes
            if node.type not in _KNOWN_TYPES
        ]

    @staticmethod
    def _check_rescene_roles(graph: GraphModel) -> list[dict[str, Any]]:
        roles = {str(r) for r in ImageRole}
        issues: list[dict[str, Any]] = []
        for edge in graph.edges:
            if not requires_classification(graph, edge):
                continue
            source = graph.node(edge.source)
            if source is not None and source.get("imageType") not in roles:
                issues.append(
                    _issue(
                        CAT_UNTAGGED,
                        SEVERITY_WARNING,
                        f"Image '{source.id}' feeds rescene node '{edge.target}' "
                        "without an imageType (object, scene or fuse)",
                        node_id=source.id,
                        edge_id=edge.id,
                    )
                )
        return issues
