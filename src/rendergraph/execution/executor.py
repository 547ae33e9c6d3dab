"""GraphExecutor: demand-driven evaluation of a node graph.

Evaluation starts at the requested target and pulls its inputs
recursively.  Every node is evaluated at most once per run (see
:class:`~rendergraph.execution.cache.ExecutionCache`), sibling inputs run
in edge order or concurrently, and whatever happens inside a handler ends
as a :class:`~rendergraph.domain.results.NodeOutcome` instead of an
exception.  The one exception is a dependency cycle, which is detected
before any handler runs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from rendergraph.domain.graph import GraphModel
from rendergraph.domain.results import NodeOutcome, is_empty
from rendergraph.domain.types import NodeType, Reason
from rendergraph.execution.cache import ExecutionCache
from rendergraph.execution.context import GraphContext
from rendergraph.execution.dependencies import DependencyIndex, find_cycle
from rendergraph.execution.errors import (
    GraphCycleError,
    HandlerError,
    MissingInputError,
    UnsupportedVariantError,
)
from rendergraph.infrastructure.generation import GenerationServiceError
from rendergraph.services.telemetry import trace_span

if TYPE_CHECKING:
    from rendergraph.execution.handlers import HandlerRegistry
    from rendergraph.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)

# Node types whose results are always text; every other type yields images.
_TEXT_SOURCES = frozenset({NodeType.TEXT_INPUT, NodeType.GEAR})


def _can_supply(node_type: str, kind: str | None) -> bool:
    """Whether a node of *node_type* could have produced a result of *kind*."""
    if not node_type or kind is None:
        return False
    return (node_type in _TEXT_SOURCES) == (kind == "text")


class RunReport(BaseModel):
    """Everything one run produced.

    ``graph`` carries node-data edits made during the run (uploaded image
    URLs), so running it again does not repeat them.
    """

    model_config = {"frozen": True}

    target_id: str
    outcome: NodeOutcome
    outcomes: dict[str, NodeOutcome] = Field(default_factory=dict)
    graph: GraphModel
    updates: dict[str, dict[str, Any]] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @property
    def completed(self) -> list[str]:
        return [node_id for node_id, o in self.outcomes.items() if o.completed]


class GraphExecutor:
    """Evaluate graph targets with the handlers in *registry*.

    Parameters:
        registry: Node type -> handler lookup.
        event_bus: Optional observer dispatch; failures become warnings.
        concurrent_branches: Evaluate sibling inputs with ``asyncio.gather``
            instead of one after another in edge order.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        *,
        event_bus: EventBus | None = None,
        concurrent_branches: bool = False,
    ) -> None:
        self._registry = registry
        self._event_bus = event_bus
        self._concurrent = concurrent_branches
        self._warnings: list[str] = []

    async def run(
        self,
        graph: GraphModel,
        target_id: str,
        *,
        cache: ExecutionCache | None = None,
    ) -> RunReport:
        """Evaluate *target_id* and everything it depends on.

        Raises:
            GraphCycleError: If the target's ancestors contain a cycle.
        """
        cycle = find_cycle(graph, target_id)
        if cycle is not None:
            raise GraphCycleError(cycle)

        if cache is None:
            cache = ExecutionCache()
        self._warnings = []
        context = GraphContext(
            graph, DependencyIndex.build(graph.edges), on_update=self._on_update
        )

        outcome = await self._evaluate(target_id, context, cache)
        outcomes = cache.outcomes()
        self._dispatch(
            "post_run",
            {
                "target_id": target_id,
                "reason": str(outcome.reason),
                "completed": sum(1 for o in outcomes.values() if o.completed),
            },
        )
        logger.info("Run for %s ended %s", target_id, outcome.reason)
        return RunReport(
            target_id=target_id,
            outcome=outcome,
            outcomes=outcomes,
            graph=context.graph,
            updates=context.updates,
            warnings=list(self._warnings),
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def _evaluate(
        self, node_id: str, context: GraphContext, cache: ExecutionCache
    ) -> NodeOutcome:
        return await cache.single_flight(
            node_id, lambda: self._compute(node_id, context, cache)
        )

    async def _compute(
        self, node_id: str, context: GraphContext, cache: ExecutionCache
    ) -> NodeOutcome:
        node = context.node(node_id)
        if node is None:
            logger.info("Node %s is not in the graph", node_id)
            return NodeOutcome(node_id=node_id, reason=Reason.SKIPPED, message="node not found")

        sources = [edge.source for edge in context.index.incoming(node_id)]
        if self._concurrent:
            upstream = list(
                await asyncio.gather(*(self._evaluate(s, context, cache) for s in sources))
            )
        else:
            upstream = [await self._evaluate(s, context, cache) for s in sources]
        inputs = {o.node_id: o.result for o in upstream if o.completed and o.result is not None}

        def outcome(reason: Reason, message: str = "") -> NodeOutcome:
            return NodeOutcome(node_id=node_id, node_type=node.type, reason=reason, message=message)

        handler = self._registry.get(node.type)
        if handler is None:
            logger.warning("No handler for node type %r (node %s)", node.type, node_id)
            return outcome(Reason.SKIPPED, f"unknown node type {node.type!r}")

        with trace_span(f"node:{node_id}") as span:
            if span is not None:
                span.annotate("type", node.type)
            try:
                result = await handler.handle(node, inputs, context)
            except MissingInputError as exc:
                blocked = any(
                    not o.completed and _can_supply(o.node_type, exc.kind) for o in upstream
                )
                reason = Reason.BLOCKED if blocked else Reason.SKIPPED
                logger.info("Node %s %s: %s", node_id, reason, exc)
                return outcome(reason, str(exc))
            except UnsupportedVariantError as exc:
                logger.warning("Node %s skipped: %s", node_id, exc)
                return outcome(Reason.SKIPPED, str(exc))
            except HandlerError as exc:
                logger.info("Node %s skipped: %s", node_id, exc)
                return outcome(Reason.SKIPPED, str(exc))
            except GenerationServiceError as exc:
                logger.warning("Node %s failed: %s", node_id, exc)
                return outcome(Reason.FAILED, str(exc))
            except (TypeError, ValueError) as exc:
                logger.warning("Node %s has invalid data: %s", node_id, exc)
                return outcome(Reason.SKIPPED, f"invalid node data: {exc}")
            except Exception as exc:
                logger.exception("Node %s raised unexpectedly", node_id)
                return outcome(Reason.FAILED, f"{type(exc).__name__}: {exc}")

            if result is None or is_empty(result):
                logger.debug("Node %s produced no result", node_id)
                return outcome(Reason.SKIPPED, "no result")

            if span is not None:
                span.annotate("kind", result.kind)

        logger.debug("Node %s produced %s %s", node_id, result.kind, result.value)
        self._dispatch(
            "post_node_result",
            {
                "node_id": node_id,
                "node_type": node.type,
                "kind": result.kind,
                "value": result.value,
            },
        )
        return NodeOutcome(node_id=node_id, node_type=node.type, result=result)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def _on_update(self, node_id: str, fields: dict[str, Any]) -> None:
        self._dispatch("post_node_update", {"node_id": node_id, "fields": fields})

    def _dispatch(self, hook_name: str, payload: dict[str, Any]) -> None:
        """Fire an observer hook. No-op without an event bus.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        if self._event_bus is None:
            return
        try:
            self._event_bus.dispatch(hook_name, payload)
        except Exception:
            logger.warning("Event dispatch failed for %s", hook_name, exc_info=True)
            self._warnings.append(f"Event dispatch failed for {hook_name}")
