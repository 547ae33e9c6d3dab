"""Command: evaluate a graph target."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from rendergraph.commands._base import RgCommand

if TYPE_CHECKING:
    from rendergraph.commands._context import AppContext


@click.command(
    cls=RgCommand,
    examples="""\
  rendergraph run workflow.yaml output-1
  rendergraph run workflow.yaml engine-1 --concurrent
  rendergraph run workflow.json output-1 --save
  rendergraph --json run workflow.yaml output-1
  rendergraph -q run workflow.yaml output-1 > url.txt""",
)
@click.argument("graph_file", type=click.Path(path_type=Path))
@click.argument("target")
@click.option(
    "--concurrent/--sequential",
    default=None,
    help="Evaluate sibling inputs concurrently (default from [execution]).",
)
@click.option(
    "--save/--no-save",
    default=False,
    help="Write uploaded image URLs back to the graph file.",
)
@click.pass_obj
def run(
    app: AppContext, graph_file: Path, target: str, concurrent: bool | None, save: bool
) -> None:
    """Evaluate TARGET in GRAPH_FILE and print its result."""
    from rendergraph.services.run import RunService

    svc = RunService(app.settings, event_bus=app.event_bus)
    app.emit(svc.run(graph_file, target, concurrent=concurrent, save=save))
