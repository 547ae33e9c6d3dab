"""engine: the main text/image-to-image generation node.

Upstream images are sorted by *who produced them*, not by what they look
like:

- ``controlNet`` outputs become ControlNet guides,
- ``rerendering`` outputs become IP-adapter references,
- ``imageInput`` outputs become the seed image,
- ``tool`` outputs become the seed when no ``imageInput`` seed exists.

Flux Kontext models ignore guides and LoRAs and take every non-guide image
as a reference image instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from rendergraph.config.models import ExecutionConfig
from rendergraph.domain.graph import Node
from rendergraph.domain.prompts import (
    CONTROLNET_MODEL,
    DEFAULT_ENGINE_PROMPT,
    FLUX_KONTEXT_MODELS,
    IP_ADAPTER_MODEL,
)
from rendergraph.domain.results import ExecutionResult, ImageRef
from rendergraph.domain.types import NodeType
from rendergraph.execution.context import GraphContext
from rendergraph.execution.handlers.base import Inputs, collect_loras, first_text, image_ref
from rendergraph.infrastructure.generation import GenerationService

logger = logging.getLogger(__name__)


@dataclass
class ImageSources:
    """Engine image inputs grouped by the type of the node that produced them."""

    guides: list[tuple[str, str]] = field(default_factory=list)
    seeds: list[str] = field(default_factory=list)
    tool_images: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)

    @property
    def seed(self) -> str | None:
        if self.seeds:
            return self.seeds[0]
        return self.tool_images[0] if self.tool_images else None


def categorize_images(inputs: Inputs, context: GraphContext) -> ImageSources:
    sources = ImageSources()
    for source_id, result in inputs.items():
        if not isinstance(result, ImageRef) or not result.url:
            continue
        match context.node_type(source_id):
            case NodeType.CONTROL_NET:
                sources.guides.append((source_id, result.url))
            case NodeType.IMAGE_INPUT:
                sources.seeds.append(result.url)
            case NodeType.TOOL:
                sources.tool_images.append(result.url)
            case NodeType.RERENDERING:
                sources.references.append(result.url)
            case other:
                logger.debug("Engine ignores image from %s node %s", other, source_id)
    return sources


class EngineHandler:
    def __init__(self, service: GenerationService, config: ExecutionConfig | None = None) -> None:
        self._service = service
        self._config = config or ExecutionConfig()

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        params = self.build_params(node, inputs, context)
        result = await self._service.generate_image(params)
        return image_ref(result)

    def build_params(self, node: Node, inputs: Inputs, context: GraphContext) -> dict[str, Any]:
        """Assemble the ``generate_image`` parameters for *node*."""
        cfg = self._config
        sources = categorize_images(inputs, context)
        model = str(node.get("model", cfg.default_model))

        params: dict[str, Any] = {
            "positivePrompt": first_text(inputs, context) or DEFAULT_ENGINE_PROMPT,
            "model": model,
            "width": int(node.get("width", cfg.width)),
            "height": int(node.get("height", cfg.height)),
        }

        if model in FLUX_KONTEXT_MODELS:
            references = [*sources.seeds, *sources.tool_images, *sources.references]
            if references:
                params["referenceImages"] = references
            return params

        params["steps"] = int(node.get("steps", cfg.steps))
        params["CFGScale"] = float(node.get("cfgScale", cfg.cfg_scale))

        if sources.guides:
            params["controlNet"] = [
                self._controlnet_item(context.node(source_id), url)
                for source_id, url in sources.guides
            ]
        if sources.references:
            params["ipAdapters"] = [
                {"model": IP_ADAPTER_MODEL, "guideImage": url, "weight": 1.0}
                for url in sources.references
            ]
        seed = sources.seed
        if seed is not None:
            params["seedImage"] = seed
            params["strength"] = float(node.get("strength", cfg.strength))

        loras = collect_loras(node, context)
        if loras:
            params["lora"] = loras
        return params

    def _controlnet_item(self, source: Node | None, guide: str) -> dict[str, Any]:
        def setting(key: str, default: Any) -> Any:
            return source.get(key, default) if source is not None else default

        return {
            "model": setting("model", CONTROLNET_MODEL),
            "guideImage": guide,
            "weight": float(setting("weight", 1.0)),
            "startStepPercentage": int(setting("startStepPercentage", 0)),
            "endStepPercentage": int(
                setting("endStepPercentage", self._config.controlnet_end_percentage)
            ),
            "controlMode": setting("controlMode", "balanced"),
        }
