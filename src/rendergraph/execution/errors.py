"""Exceptions raised inside the execution layer.

Handler exceptions never cross a node boundary: the executor converts them
into a :class:`~rendergraph.domain.results.NodeOutcome`.  Only
:class:`GraphCycleError` reaches the caller of ``run``.
"""

from __future__ import annotations


class HandlerError(Exception):
    """Base for soft handler failures (node yields no result)."""


class MissingInputError(HandlerError):
    """A required input or configuration value is absent.

    *kind* names the result kind an upstream node would have supplied
    (``"image"`` or ``"text"``), or ``None`` when the missing value is node
    configuration that no upstream node can provide.
    """

    def __init__(self, message: str, *, kind: str | None = "image") -> None:
        super().__init__(message)
        self.kind = kind


class UnsupportedVariantError(HandlerError):
    """The node's type or subtype has no registered strategy."""


class GraphCycleError(ValueError):
    """The nodes feeding the target form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__("Cycle detected: " + " -> ".join([*cycle, cycle[0]]))
