"""Rich Console factory and theme for rendergraph output.

Consoles render into a StringIO buffer so renderers keep a
``ServiceResult -> str`` contract.  In non-TTY environments (tests, pipes)
Rich drops color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

RG_THEME = Theme(
    {
        "rg.ok": "bold green",
        "rg.error": "bold red",
        "rg.warning": "bold yellow",
        "rg.op": "bold cyan",
        "rg.key": "dim",
        "rg.id": "bold blue",
        "rg.path": "dim",
        "rg.reason.completed": "green",
        "rg.reason.skipped": "dim",
        "rg.reason.blocked": "yellow",
        "rg.reason.failed": "red",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Override terminal width (keeps test output stable).
    """
    return Console(
        file=StringIO(),
        theme=RG_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_reason(reason: str) -> str:
    """Rich style name for an outcome reason (completed, skipped, ...)."""
    return f"rg.reason.{reason}" if reason in ("completed", "skipped", "blocked", "failed") else ""
