"""Node handlers: one strategy per node type, looked up by type string."""

from __future__ import annotations

from collections.abc import Iterator

from rendergraph.config.models import ExecutionConfig
from rendergraph.domain.types import NodeType
from rendergraph.execution.handlers.base import NodeHandler
from rendergraph.execution.handlers.controlnet import ControlNetHandler
from rendergraph.execution.handlers.engine import EngineHandler
from rendergraph.execution.handlers.inputs import (
    GearHandler,
    ImageInputHandler,
    OutputHandler,
    TextInputHandler,
)
from rendergraph.execution.handlers.rerendering import RerenderingHandler
from rendergraph.execution.handlers.tool import ToolHandler
from rendergraph.infrastructure.generation import GenerationService


class HandlerRegistry:
    """Maps node type strings to handlers.

    New node types are added with :meth:`register`; the executor never
    needs to change.
    """

    def __init__(self, handlers: dict[str, NodeHandler] | None = None) -> None:
        self._handlers: dict[str, NodeHandler] = dict(handlers or {})

    @classmethod
    def default(
        cls, service: GenerationService, config: ExecutionConfig | None = None
    ) -> HandlerRegistry:
        """Registry with a handler for every built-in node type."""
        config = config or ExecutionConfig()
        return cls(
            {
                NodeType.TEXT_INPUT: TextInputHandler(),
                NodeType.IMAGE_INPUT: ImageInputHandler(service),
                NodeType.CONTROL_NET: ControlNetHandler(service),
                NodeType.RERENDERING: RerenderingHandler(service, config),
                NodeType.TOOL: ToolHandler(service),
                NodeType.ENGINE: EngineHandler(service, config),
                NodeType.GEAR: GearHandler(),
                NodeType.OUTPUT: OutputHandler(),
            }
        )

    def register(self, node_type: str, handler: NodeHandler) -> None:
        """Add or replace the handler for *node_type*."""
        self._handlers[str(node_type)] = handler

    def get(self, node_type: str) -> NodeHandler | None:
        return self._handlers.get(node_type)

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)


__all__ = [
    "ControlNetHandler",
    "EngineHandler",
    "GearHandler",
    "HandlerRegistry",
    "ImageInputHandler",
    "NodeHandler",
    "OutputHandler",
    "RerenderingHandler",
    "TextInputHandler",
    "ToolHandler",
]
