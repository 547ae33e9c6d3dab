"""rerendering: Flux Kontext re-renders selected by ``rerenderingType``."""

from __future__ import annotations

from typing import Any

from rendergraph.config.models import ExecutionConfig
from rendergraph.domain.graph import Node
from rendergraph.domain.prompts import (
    DEFAULT_ENGINE_PROMPT,
    KONTEXT_MODEL,
    KONTEXT_PRO_MODEL,
    REANGLE_PROMPT,
    REFERENCE_PROMPTS,
    REIMAGINE_PROMPT,
    REMIX_PROMPT,
    RESCENE_PROMPT,
    SIZE_RATIOS,
)
from rendergraph.domain.results import ExecutionResult, ImageRef
from rendergraph.domain.types import ImageRole, ReferenceType, RerenderingType
from rendergraph.execution.context import GraphContext
from rendergraph.execution.errors import MissingInputError, UnsupportedVariantError
from rendergraph.execution.handlers.base import (
    Inputs,
    collect_loras,
    first_image,
    first_text,
    image_inputs,
    image_ref,
    record_cost,
)
from rendergraph.infrastructure.generation import GenerationService

DEFAULT_REANGLE_DEGREES = 15
DEFAULT_REANGLE_DIRECTION = "right"


class RerenderingHandler:
    """Dispatch to one re-render variant and call the matching service operation."""

    def __init__(self, service: GenerationService, config: ExecutionConfig | None = None) -> None:
        self._service = service
        self._config = config or ExecutionConfig()

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None:
        variant = node.get("rerenderingType")
        try:
            kind = RerenderingType(variant)
        except ValueError:
            raise UnsupportedVariantError(f"Unknown rerenderingType: {variant!r}") from None

        match kind:
            case RerenderingType.REIMAGINE:
                return await self._reimagine(node, inputs, context)
            case RerenderingType.REFERENCE:
                return await self._reference(node, inputs, context)
            case RerenderingType.RESCENE:
                return await self._rescene(node, inputs, context)
            case RerenderingType.REANGLE:
                return await self._reangle(node, inputs, context)
            case RerenderingType.REMIX:
                return await self._remix(node, inputs, context)

    # ------------------------------------------------------------------
    # Shared parameters
    # ------------------------------------------------------------------

    def _params(
        self, node: Node, context: GraphContext, prompt: str, images: list[str]
    ) -> dict[str, Any]:
        model = node.get("model", KONTEXT_MODEL)
        if model not in (KONTEXT_MODEL, KONTEXT_PRO_MODEL):
            raise UnsupportedVariantError(f"Unknown rerendering model: {model!r}")
        params: dict[str, Any] = {
            "positivePrompt": prompt,
            "model": model,
            "referenceImages": images,
        }
        if model == KONTEXT_PRO_MODEL:
            ratio = node.get("sizeRatio", "1:1")
            if ratio not in SIZE_RATIOS:
                raise UnsupportedVariantError(f"Unknown sizeRatio: {ratio!r}")
            params["sizeRatio"] = ratio
        loras = collect_loras(node, context)
        if loras:
            params["lora"] = loras
        return params

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    async def _reimagine(self, node: Node, inputs: Inputs, context: GraphContext) -> ImageRef:
        image = first_image(inputs)
        if image is None:
            raise MissingInputError("reimagine needs an image input")
        prompt = first_text(inputs, context) or REIMAGINE_PROMPT
        params = self._params(node, context, prompt, [image])
        params["strength"] = float(node.get("creativity", self._config.reimagine_strength))
        result = await self._service.generate_reimagine(params)
        return image_ref(result)

    async def _reference(self, node: Node, inputs: Inputs, context: GraphContext) -> ImageRef:
        reference_image = first_image(inputs)
        if reference_image is None:
            raise MissingInputError("reference needs a reference image input")
        try:
            reference_type = ReferenceType(node.get("referenceType", ReferenceType.STYLE))
        except ValueError:
            raise UnsupportedVariantError(
                f"Unknown referenceType: {node.get('referenceType')!r}"
            ) from None

        user_prompt = first_text(inputs, context)

        # Stage 1: a base image from the prompt alone.
        base = await self._service.generate_image(
            {
                "positivePrompt": user_prompt or DEFAULT_ENGINE_PROMPT,
                "model": self._config.default_model,
                "width": self._config.width,
                "height": self._config.height,
                "steps": self._config.steps,
                "CFGScale": self._config.cfg_scale,
            }
        )
        record_cost(base)

        # Stage 2: carry the reference's traits onto the base image.
        prompt = REFERENCE_PROMPTS[reference_type]
        if user_prompt:
            prompt = f"{prompt}. {user_prompt}"
        params = self._params(node, context, prompt, [base.image_url, reference_image])
        result = await self._service.generate_reference(params)
        return image_ref(result)

    async def _rescene(self, node: Node, inputs: Inputs, context: GraphContext) -> ImageRef:
        object_image, scene_image = resolve_rescene_roles(inputs, context)
        params = self._params(node, context, RESCENE_PROMPT, [object_image, scene_image])
        result = await self._service.generate_rescene(params)
        return image_ref(result)

    async def _reangle(self, node: Node, inputs: Inputs, context: GraphContext) -> ImageRef:
        image = first_image(inputs)
        if image is None:
            raise MissingInputError("reangle needs an image input")
        prompt = REANGLE_PROMPT.format(
            degrees=node.get("degrees", DEFAULT_REANGLE_DEGREES),
            direction=node.get("direction", DEFAULT_REANGLE_DIRECTION),
        )
        params = self._params(node, context, prompt, [image])
        result = await self._service.generate_reangle(params)
        return image_ref(result)

    async def _remix(self, node: Node, inputs: Inputs, context: GraphContext) -> ImageRef:
        images = image_inputs(inputs)
        if not images:
            raise MissingInputError("remix needs at least one image input")
        params = self._params(node, context, REMIX_PROMPT, images)
        result = await self._service.generate_remix(params)
        return image_ref(result)


def resolve_rescene_roles(inputs: Inputs, context: GraphContext) -> tuple[str, str]:
    """Return ``(object_url, scene_url)`` from exactly two image inputs.

    Roles come from each source node's ``imageType``; ``fuse`` and untagged
    images fill whichever slot is still empty, in input order.

    Raises:
        MissingInputError: Unless exactly two images resolve to both roles.
    """
    images = [
        (source_id, result.url)
        for source_id, result in inputs.items()
        if isinstance(result, ImageRef) and result.url
    ]
    if len(images) != 2:
        raise MissingInputError(f"rescene needs exactly two images, got {len(images)}")

    slots: dict[ImageRole, str | None] = {ImageRole.OBJECT: None, ImageRole.SCENE: None}
    flexible: list[str] = []
    for source_id, url in images:
        source = context.node(source_id)
        role = source.get("imageType") if source is not None else None
        if role in (ImageRole.OBJECT, ImageRole.SCENE) and slots[ImageRole(role)] is None:
            slots[ImageRole(role)] = url
        else:
            flexible.append(url)

    for url in flexible:
        for role in (ImageRole.OBJECT, ImageRole.SCENE):
            if slots[role] is None:
                slots[role] = url
                break

    object_image, scene_image = slots[ImageRole.OBJECT], slots[ImageRole.SCENE]
    if object_image is None or scene_image is None:
        raise MissingInputError("rescene needs one object and one scene image")
    return object_image, scene_image
