"""controlNet: run a named preprocessor (edges, depth, pose, ...) on an image."""

from __future__ import annotations

from rendergraph.domain.graph import Node
from rendergraph.domain.results import ExecutionResult
from rendergraph.execution.context import GraphContext
from rendergraph.execution.errors import MissingInputError
from rendergraph.execution.handlers.base import Inputs, first_image, image_ref
from rendergraph.infrastructure.generation import GenerationService

DEFAULT_PREPROCESSOR = "canny"


class ControlNetHandler:
    def __init__(self, service: GenerationService) -> None:
        self._service = service

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        image = first_image(inputs)
        if image is None:
            raise MissingInputError("controlNet needs an image input")
        preprocessor = str(node.get("preprocessor", DEFAULT_PREPROCESSOR))
        result = await self._service.preprocess_image(image, preprocessor)
        return image_ref(result)
