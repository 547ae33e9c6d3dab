"""Output mode selection for ServiceResult.

Humans get Rich rendering (or one-line ``--quiet`` output); machines get
the ServiceResult serialized as JSON with ``--json``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from rendergraph.output.renderers import render_quiet, render_result

if TYPE_CHECKING:
    from rendergraph.services.result import ServiceResult


@dataclass(frozen=True)
class OutputSettings:
    """The global output flags relevant to formatting."""

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format a ServiceResult for display; ``--json`` wins over ``--quiet``."""
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)
    if settings.quiet:
        return render_quiet(result)
    return render_result(result, verbose=settings.verbose)
