"""Command: validate a graph file."""

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
  rendergraph check workflow.yaml
  rendergraph --json check workflow.json""",
)
@click.argument("graph_file", type=click.Path(path_type=Path))
@click.pass_obj
def check(app: AppContext, graph_file: Path) -> None:
    """Report duplicate ids, dangling edges, cycles and other graph issues."""
    from rendergraph.services.check import CheckService

    app.emit(CheckService(app.settings).check(graph_file))
