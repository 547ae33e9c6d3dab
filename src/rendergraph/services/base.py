"""BaseService: shared plumbing for the graph-file services.

Every service receives the invocation's :class:`RgSettings` and an optional
:class:`EventBus`.  Loading a graph file is the first step of every
operation, so the file-error to ServiceResult mapping lives here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from rendergraph.config.settings import RgSettings
from rendergraph.domain.graph import GraphModel
from rendergraph.infrastructure.graph_io import GraphFileError, load_graph
from rendergraph.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from rendergraph.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class CheckService(BaseService):
            def check(self, path: Path) -> ServiceResult:
                graph = self._load(path, op="check")
                if isinstance(graph, ServiceResult):
                    return graph
                ...
    """

    def __init__(
        self,
        settings: RgSettings | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._settings = settings or RgSettings()
        self._event_bus = event_bus

    def _load(self, path: Path, *, op: str) -> GraphModel | ServiceResult:
        """Load *path*, or return the failed ServiceResult describing why not."""
        try:
            return load_graph(path)
        except FileNotFoundError:
            return self._fail(op, "NOT_FOUND", f"Graph file not found: {path}", path=str(path))
        except GraphFileError as exc:
            return self._fail(op, "INVALID_GRAPH", str(exc), path=str(path))

    def _drain_events(self, warnings: list[str]) -> None:
        """Wait for observer hooks and collect their failures as warnings.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        if self._event_bus is None:
            return
        warnings.extend(self._event_bus.drain())

    @staticmethod
    def _fail(op: str, code: str, message: str, **detail: object) -> ServiceResult:
        logger.debug("%s failed with %s: %s", op, code, message)
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=dict(detail)),
        )
