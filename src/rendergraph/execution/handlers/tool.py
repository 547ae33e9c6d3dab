"""tool: post-processing selected by ``toolType``."""

from __future__ import annotations

from rendergraph.domain.graph import Node
from rendergraph.domain.prompts import INPAINT_PROMPT, OUTPAINT_PROMPT
from rendergraph.domain.results import ExecutionResult
from rendergraph.domain.types import ToolType
from rendergraph.execution.context import GraphContext
from rendergraph.execution.errors import MissingInputError, UnsupportedVariantError
from rendergraph.execution.handlers.base import Inputs, first_image, first_text, image_ref
from rendergraph.infrastructure.generation import GenerationService, GeneratedImage

UPSCALE_FACTORS = (2, 3, 4)
OUTPAINT_DIRECTIONS = ("up", "down", "left", "right", "all")


class ToolHandler:
    def __init__(self, service: GenerationService) -> None:
        self._service = service

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        variant = node.get("toolType")
        try:
            tool = ToolType(variant)
        except ValueError:
            raise UnsupportedVariantError(f"Unknown toolType: {variant!r}") from None

        image = first_image(inputs)
        if image is None:
            raise MissingInputError(f"{tool} needs an image input")

        result: GeneratedImage
        match tool:
            case ToolType.REMOVEBG:
                result = await self._service.remove_background({"inputImage": image})
            case ToolType.UPSCALE:
                factor = int(node.get("upscaleFactor", 2))
                if factor not in UPSCALE_FACTORS:
                    raise UnsupportedVariantError(f"Unsupported upscaleFactor: {factor}")
                result = await self._service.upscale_image(
                    {"inputImage": image, "upscaleFactor": factor}
                )
            case ToolType.INPAINT:
                mask = node.get("maskImage")
                if not mask:
                    raise MissingInputError("inpaint needs a maskImage", kind=None)
                prompt = first_text(inputs, context) or node.get("inpaintPrompt", INPAINT_PROMPT)
                result = await self._service.inpaint_image(
                    {"seedImage": image, "maskImage": mask, "positivePrompt": prompt}
                )
            case ToolType.OUTPAINT:
                direction = node.get("outpaintDirection", "all")
                if direction not in OUTPAINT_DIRECTIONS:
                    raise UnsupportedVariantError(f"Unsupported outpaintDirection: {direction!r}")
                prompt = first_text(inputs, context) or node.get("outpaintPrompt", OUTPAINT_PROMPT)
                result = await self._service.outpaint_image(
                    {
                        "inputImage": image,
                        "positivePrompt": prompt,
                        "outpaintDirection": direction,
                        "outpaintAmount": int(node.get("outpaintAmount", 50)),
                    }
                )
        return image_ref(result)
