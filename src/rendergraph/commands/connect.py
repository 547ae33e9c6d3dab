"""Command: connect two nodes in a graph file."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from rendergraph.commands._base import RgCommand
from rendergraph.domain.types import ImageRole

if TYPE_CHECKING:
    from rendergraph.commands._context import AppContext
    from rendergraph.domain.graph import Edge


def _prompt_role(edge: Edge) -> str:
    return click.prompt(
        f"Role of '{edge.source}' in rescene node '{edge.target}'",
        type=click.Choice([str(r) for r in ImageRole]),
    )


@click.command(
    cls=RgCommand,
    examples="""\
  rendergraph connect workflow.yaml prompt-1 engine-1
  rendergraph connect workflow.yaml photo-1 rescene-1 --role object
  rendergraph connect workflow.yaml photo-2 rescene-1 --role scene --edge-id e7""",
)
@click.argument("graph_file", type=click.Path(path_type=Path))
@click.argument("source")
@click.argument("target")
@click.option(
    "--role",
    type=click.Choice([str(r) for r in ImageRole]),
    default=None,
    help="Image role when connecting into a rescene node.",
)
@click.option("--edge-id", default=None, help="Edge id (default SOURCE->TARGET).")
@click.pass_obj
def connect(
    app: AppContext,
    graph_file: Path,
    source: str,
    target: str,
    role: str | None,
    edge_id: str | None,
) -> None:
    """Add an edge from SOURCE to TARGET and save GRAPH_FILE."""
    from rendergraph.services.connect import ConnectService

    chooser = None if app.settings.no_interact else _prompt_role
    app.emit(
        ConnectService(app.settings).connect(
            graph_file, source, target, role=role, edge_id=edge_id, choose_role=chooser
        )
    )
