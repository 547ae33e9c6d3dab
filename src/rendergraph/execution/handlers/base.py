"""Handler protocol and input helpers shared by all node strategies."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from rendergraph.domain.graph import Node
from rendergraph.domain.results import ExecutionResult, ImageRef, Text
from rendergraph.domain.types import NodeType
from rendergraph.execution.context import GraphContext
from rendergraph.infrastructure.generation import GeneratedImage
from rendergraph.services.telemetry import get_current_span

type Inputs = Mapping[str, ExecutionResult]


class NodeHandler(Protocol):
    """Strategy for one node type.

    Returns the node's result, or None when it produces nothing.  Soft
    failures raise :class:`~rendergraph.execution.errors.HandlerError`
    subclasses; remote failures propagate as
    :class:`~rendergraph.infrastructure.generation.GenerationServiceError`.
    """

    async def handle(
        self, node: Node, inputs: Inputs, context: GraphContext
    ) -> ExecutionResult | None: ...


def image_inputs(inputs: Inputs) -> list[str]:
    """Image URLs among *inputs*, in input order."""
    return [r.url for r in inputs.values() if isinstance(r, ImageRef) and r.url]


def first_image(inputs: Inputs) -> str | None:
    images = image_inputs(inputs)
    return images[0] if images else None


def first_text(inputs: Inputs, context: GraphContext | None = None) -> str | None:
    """First non-empty text input, ignoring gear markers."""
    for source_id, result in inputs.items():
        if not isinstance(result, Text) or not result.value:
            continue
        if context is not None and context.node_type(source_id) == NodeType.GEAR:
            continue
        return result.value
    return None


def record_cost(image: GeneratedImage) -> None:
    """Add a call's reported cost to the active telemetry span."""
    span = get_current_span()
    if span is not None and image.cost is not None:
        span.cost = round((span.cost or 0.0) + image.cost, 6)


def image_ref(image: GeneratedImage) -> ImageRef:
    record_cost(image)
    return ImageRef(url=image.image_url)


def _as_weight(value: Any, default: float = 1.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def collect_loras(node: Node, context: GraphContext) -> list[dict[str, Any]]:
    """LoRA modifiers from connected gear nodes plus legacy inline ``loras``.

    Gear nodes come first; the first occurrence of a model wins and entries
    without a model name are dropped.
    """
    candidates: list[dict[str, Any]] = []
    for gear in context.incoming_nodes_of_type(node.id, NodeType.GEAR):
        candidates.append(
            {"model": gear.get("loraModel", ""), "weight": _as_weight(gear.get("weight"))}
        )

    for entry in node.data.get("loras") or []:
        if isinstance(entry, str):
            candidates.append({"model": entry, "weight": 1.0})
        elif isinstance(entry, dict):
            candidates.append(
                {"model": entry.get("model", ""), "weight": _as_weight(entry.get("weight"))}
            )

    loras: list[dict[str, Any]] = []
    seen: set[str] = set()
    for lora in candidates:
        model = str(lora["model"] or "").strip()
        if not model or model in seen:
            continue
        seen.add(model)
        loras.append({"model": model, "weight": lora["weight"]})
    return loras
