"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from rendergraph.output.console import create_console, get_output, style_for_reason

if TYPE_CHECKING:
    from rich.console import Console

    from rendergraph.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode.

    ``run`` prints the target's value alone so it can be piped.
    """
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {msg}"

    if result.op == "run" and "value" in result.data:
        return str(result.data["value"])
    if result.op == "check":
        return f"{result.data.get('count', 0)} issues"
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="rg.ok")
    op = Text(f"  {result.op}", style="rg.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="rg.key")
    if key in ("id", "target") or key.endswith("_id"):
        v = Text(str(value), style="rg.id")
    elif key in ("path", "saved"):
        v = Text(str(value), style="rg.path")
    elif key == "reason":
        v = Text(str(value), style=style_for_reason(str(value)))
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(Text(f"    {k}: {v}"))


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    name = escape(str(span_data.get("name", "?")))
    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    extras = [f"{ak}={av}" for ak, av in (span_data.get("annotations") or {}).items()]
    if span_data.get("cost"):
        extras.append(f"cost={span_data['cost']}")
    if extras:
        line += escape(f"  ({', '.join(extras)})")
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _node_table(nodes: list[dict[str, Any]]) -> Table:
    """One row per evaluated node, in completion order."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Node", style="rg.id", no_wrap=True)
    table.add_column("Type")
    table.add_column("Reason")
    table.add_column("Value / message", overflow="fold")

    for node in nodes:
        reason = str(node.get("reason", ""))
        table.add_row(
            Text(str(node.get("id", ""))),
            Text(str(node.get("type", ""))),
            Text(reason, style=style_for_reason(reason)),
            Text(str(node.get("value") or node.get("message", ""))),
        )
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="rg.error")
    op = Text(f"  {result.op}", style="rg.op")
    console.print(label, op, Text(" - "), Text(msg))

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(Text(f"    {k}: {v}"))
    if verbose and result.data.get("nodes"):
        console.print(_node_table(result.data["nodes"]))


# ── Operation renderers ───────────────────────────────────────────────


def _render_run(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("target", "reason", "kind", "value", "saved"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        nodes = result.data.get("nodes", [])
        if nodes:
            console.print(_node_table(nodes))
        for node_id, fields in result.data.get("updates", {}).items():
            _field(console, f"updated {node_id}", json.dumps(fields, separators=(",", ":")))
        _render_meta(console, result)


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    issues = result.data.get("issues", [])
    count = result.data.get("count", len(issues))

    if count == 0:
        console.print("[rg.ok]OK[/rg.ok]  No issues found.")
        if verbose:
            _render_meta(console, result)
        return

    severity_styles = {"error": "rg.error", "warning": "rg.warning"}

    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        by_category.setdefault(str(issue.get("category", "unknown")), []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print()
        console.print(Text(cat, style="bold"))
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            node_id = issue.get("node_id") or issue.get("edge_id")
            line = Text("  ")
            line.append(sev, style=severity_styles.get(sev, ""))
            if node_id:
                line.append(f" [{node_id}]", style="rg.id")
            line.append(f": {issue.get('message', '')}")
            console.print(line)

    errors = sum(1 for i in issues if i.get("severity") == "error")
    console.print(f"\n{errors} errors, {count - errors} warnings")
    if verbose:
        _render_meta(console, result)


def _render_connect(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    edge = result.data.get("edge", {})
    _field(console, "edge", f"{edge.get('source')} -> {edge.get('target')} ({edge.get('id')})")
    if result.data.get("role"):
        _field(console, "role", result.data["role"])
    _field(console, "path", result.data.get("path", ""))
    if verbose:
        _render_meta(console, result)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "run": _render_run,
    "check": _render_check,
    "connect": _render_connect,
}
