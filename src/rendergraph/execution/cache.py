"""ExecutionCache: per-run, single-flight memo of node outcomes.

At most one in-flight ``asyncio.Future`` per node id: the first caller
computes, every later caller (including concurrent ones) awaits the same
future.  This is what keeps shared-ancestor ("diamond") graphs at one
handler call per node.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from rendergraph.domain.results import ExecutionResult, NodeOutcome
from rendergraph.domain.types import Reason


class ExecutionCache:
    """Write-once memo of node outcomes for one run."""

    def __init__(self) -> None:
        self._outcomes: dict[str, NodeOutcome] = {}
        self._inflight: dict[str, asyncio.Future[NodeOutcome]] = {}

    def get(self, node_id: str) -> tuple[ExecutionResult | None, bool]:
        """Return ``(result, found)``; found only for a completed, non-empty result."""
        outcome = self._outcomes.get(node_id)
        if outcome is None or not outcome.completed:
            return None, False
        return outcome.result, True

    def outcome(self, node_id: str) -> NodeOutcome | None:
        """The finished outcome for *node_id*, or None if absent or in flight."""
        return self._outcomes.get(node_id)

    def put(self, node_id: str, result: ExecutionResult, *, node_type: str = "") -> None:
        """Store a completed result.

        Raises:
            ValueError: If *node_id* already has an entry.
        """
        if node_id in self:
            raise ValueError(f"Node '{node_id}' already has a cached outcome")
        self._outcomes[node_id] = NodeOutcome(
            node_id=node_id, node_type=node_type, result=result, reason=Reason.COMPLETED
        )

    async def single_flight(
        self,
        node_id: str,
        compute: Callable[[], Awaitable[NodeOutcome]],
    ) -> NodeOutcome:
        """Run *compute* at most once for *node_id* and share its outcome."""
        finished = self._outcomes.get(node_id)
        if finished is not None:
            return finished
        pending = self._inflight.get(node_id)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future[NodeOutcome] = asyncio.get_running_loop().create_future()
        self._inflight[node_id] = future
        try:
            outcome = await compute()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited future does not log a warning.
            future.exception()
            raise
        finally:
            self._inflight.pop(node_id, None)
        self._outcomes[node_id] = outcome
        future.set_result(outcome)
        return outcome

    def outcomes(self) -> dict[str, NodeOutcome]:
        """All finished outcomes, in completion order."""
        return dict(self._outcomes)

    def clear(self) -> None:
        self._outcomes.clear()
        self._inflight.clear()

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._outcomes or node_id in self._inflight

    def __len__(self) -> int:
        return len(self._outcomes)
