"""Source, sink and configuration nodes: textInput, imageInput, gear, output."""

from __future__ import annotations

import logging
from pathlib import Path

from rendergraph.domain.graph import Node
from rendergraph.domain.results import ExecutionResult, ImageRef, Text
from rendergraph.execution.context import GraphContext
from rendergraph.execution.errors import MissingInputError
from rendergraph.execution.handlers.base import Inputs, first_image
from rendergraph.infrastructure.generation import GenerationService

logger = logging.getLogger(__name__)


class TextInputHandler:
    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        prompt = node.get("prompt")
        return Text(value=str(prompt)) if prompt else None


class ImageInputHandler:
    """Upload a pending local file, or pass the stored image URL through.

    A successful upload replaces ``imageFile`` with ``imageUrl`` on the node,
    so the run report's graph does not upload the same file again.
    """

    def __init__(self, service: GenerationService) -> None:
        self._service = service

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        pending = node.get("imageFile")
        if pending:
            url = await self._service.upload_image(Path(pending))
            logger.info("Uploaded %s for node %s", pending, node.id)
            context.update_node_data(node.id, imageUrl=url, imageFile=None)
            return ImageRef(url=url)

        url = node.get("imageUrl")
        return ImageRef(url=str(url)) if url else None


class GearHandler:
    """Emit a LoRA marker; engines read gear nodes structurally, not this value."""

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        model = node.get("loraModel")
        if not model:
            return None
        return Text(value=f"lora({model}, {node.get('weight', 1.0)})")


class OutputHandler:
    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        image = first_image(inputs)
        if image is None:
            raise MissingInputError("output needs an image input")
        return ImageRef(url=image)
