"""Graph file I/O: YAML or JSON documents with ``nodes`` and ``edges``.

JSON is a subset of YAML, so both load through ruamel.yaml.  Saving keeps
the format implied by the file suffix.
"""

from __future__ import annotations

import json
from io import StringIO
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from rendergraph.domain.graph import GraphModel


class GraphFileError(ValueError):
    """A graph file is unreadable or does not describe a valid graph."""


def _new_yaml() -> YAML:
    """Create a fresh safe-mode YAML parser.

    A new instance per call keeps emitter state from leaking between
    operations.
    """
    y = YAML(typ="safe", pure=True)
    y.default_flow_style = False
    return y


def parse_document(text: str, *, source: str = "<string>") -> dict[str, Any]:
    """Parse YAML/JSON text into the raw graph mapping, without validation.

    Raises:
        GraphFileError: On syntax errors or a non-mapping document.
    """
    try:
        data: Any = _new_yaml().load(text)
    except YAMLError as exc:
        raise GraphFileError(f"{source}: invalid YAML/JSON: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise GraphFileError(f"{source}: expected a mapping with 'nodes' and 'edges'")
    return data


def parse_graph(text: str, *, source: str = "<string>") -> GraphModel:
    """Parse a YAML/JSON document into a :class:`GraphModel`.

    Raises:
        GraphFileError: On syntax errors, a non-mapping document, or
            schema violations (including duplicate node ids).
    """
    data = parse_document(text, source=source)
    try:
        return GraphModel.model_validate(data)
    except ValidationError as exc:
        raise GraphFileError(f"{source}: {exc}") from exc


def load_document(path: Path) -> dict[str, Any]:
    """Read the graph file at *path* as a raw mapping (see :func:`parse_document`)."""
    return parse_document(path.read_text(encoding="utf-8"), source=str(path))


def load_graph(path: Path) -> GraphModel:
    """Read and parse the graph file at *path*.

    Raises:
        FileNotFoundError: If *path* does not exist.
        GraphFileError: If the content is invalid.
    """
    return parse_graph(path.read_text(encoding="utf-8"), source=str(path))


def dump_graph(graph: GraphModel, *, as_json: bool = False) -> str:
    """Serialize *graph* to YAML (default) or JSON text."""
    data = graph.model_dump(mode="json")
    if as_json:
        return json.dumps(data, indent=2) + "\n"
    buf = StringIO()
    _new_yaml().dump(data, buf)
    return buf.getvalue()


def save_graph(graph: GraphModel, path: Path) -> None:
    """Write *graph* to *path*, choosing JSON for ``.json`` files."""
    path.write_text(dump_graph(graph, as_json=path.suffix.lower() == ".json"), encoding="utf-8")
