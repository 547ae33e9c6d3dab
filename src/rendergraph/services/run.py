"""RunService: evaluate one target of a graph file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rendergraph.config.settings import RgSettings
from rendergraph.domain.graph import GraphModel
from rendergraph.execution.errors import GraphCycleError
from rendergraph.execution.executor import GraphExecutor, RunReport
from rendergraph.execution.handlers import HandlerRegistry
from rendergraph.infrastructure.generation import GenerationService, RunwareClient
from rendergraph.infrastructure.graph_io import save_graph
from rendergraph.services.base import BaseService
from rendergraph.services.result import ServiceError, ServiceResult
from rendergraph.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from rendergraph.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


class RunService(BaseService):
    """Runs graph targets against a generation service.

    When *service* is None a :class:`RunwareClient` is built from the
    ``[service]`` settings for each run and closed afterwards.
    """

    def __init__(
        self,
        settings: RgSettings | None = None,
        *,
        event_bus: EventBus | None = None,
        service: GenerationService | None = None,
    ) -> None:
        super().__init__(settings, event_bus=event_bus)
        self._service = service

    @traced
    def run(
        self,
        graph_path: Path,
        target_id: str,
        *,
        concurrent: bool | None = None,
        save: bool = False,
    ) -> ServiceResult:
        """Evaluate *target_id* in the graph at *graph_path*.

        ``save`` writes node-data changes made during the run (uploaded
        image URLs) back to the file.
        """
        loaded = self._load(graph_path, op="run")
        if isinstance(loaded, ServiceResult):
            return loaded

        warnings: list[str] = []
        if self._service is None and not self._settings.service.api_key:
            warnings.append(
                "No API key configured; set [service] api_key or RENDERGRAPH_SERVICE__API_KEY"
            )

        if concurrent is None:
            concurrent = self._settings.execution.concurrent_branches
        try:
            report = asyncio.run(self._execute(loaded, target_id, concurrent=concurrent))
        except GraphCycleError as exc:
            return self._fail("run", "CYCLE", str(exc), cycle=exc.cycle)
        finally:
            self._drain_events(warnings)
        warnings.extend(report.warnings)

        data = self._report_data(report)
        if save and report.updates:
            with trace_span("save_graph"):
                save_graph(report.graph, graph_path)
            data["saved"] = str(graph_path)
            logger.info("Saved updated graph to %s", graph_path)

        outcome = report.outcome
        if outcome.completed:
            return ServiceResult(ok=True, op="run", data=data, warnings=warnings)
        return ServiceResult(
            ok=False,
            op="run",
            data=data,
            warnings=warnings,
            error=ServiceError(
                code=str(outcome.reason).upper(),
                message=outcome.message or f"Target '{target_id}' produced no result",
                detail={"target": target_id, "reason": str(outcome.reason)},
            ),
        )

    async def _execute(self, graph: GraphModel, target_id: str, *, concurrent: bool) -> RunReport:
        if self._service is not None:
            return await self._executor(self._service, concurrent).run(graph, target_id)

        cfg = self._settings.service
        async with RunwareClient(cfg.api_key, base_url=cfg.base_url, timeout=cfg.timeout) as client:
            return await self._executor(client, concurrent).run(graph, target_id)

    def _executor(self, service: GenerationService, concurrent: bool) -> GraphExecutor:
        registry = HandlerRegistry.default(service, self._settings.execution)
        return GraphExecutor(registry, event_bus=self._event_bus, concurrent_branches=concurrent)

    @staticmethod
    def _report_data(report: RunReport) -> dict[str, Any]:
        outcome = report.outcome
        data: dict[str, Any] = {
            "target": report.target_id,
            "reason": str(outcome.reason),
            "nodes": [o.to_dict() for o in report.outcomes.values()],
            "updates": report.updates,
        }
        if outcome.result is not None:
            data["kind"] = outcome.result.kind
            data["value"] = outcome.result.value
        return data
