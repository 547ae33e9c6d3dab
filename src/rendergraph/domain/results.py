"""Execution results: the values carried along edges.

A result is either :class:`Text` or :class:`ImageRef`.  Consumers branch on
the type, never on the shape of the string.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from rendergraph.domain.types import Reason


class Text(BaseModel):
    """A text value (prompt, gear marker)."""

    model_config = {"frozen": True}

    kind: Literal["text"] = "text"
    value: str


class ImageRef(BaseModel):
    """A reference to an image held by the generation service."""

    model_config = {"frozen": True}

    kind: Literal["image"] = "image"
    url: str

    @property
    def value(self) -> str:
        return self.url


ExecutionResult = Annotated[Text | ImageRef, Field(discriminator="kind")]


def is_empty(result: Text | ImageRef | None) -> bool:
    """True for a missing result or one carrying an empty string."""
    return result is None or not result.value


class NodeOutcome(BaseModel):
    """How one node's evaluation ended, with its result when it completed."""

    model_config = {"frozen": True}

    node_id: str
    node_type: str = ""
    result: ExecutionResult | None = None
    reason: Reason = Reason.COMPLETED
    message: str = ""

    @property
    def completed(self) -> bool:
        return self.reason is Reason.COMPLETED and self.result is not None

    def to_dict(self) -> dict[str, Any]:
        """Flat representation used by the service layer."""
        item: dict[str, Any] = {
            "id": self.node_id,
            "type": self.node_type,
            "reason": str(self.reason),
        }
        if self.result is not None:
            item["kind"] = self.result.kind
            item["value"] = self.result.value
        if self.message:
            item["message"] = self.message
        return item
