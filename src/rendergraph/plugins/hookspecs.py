"""Pluggy hook specifications for run observers.

Observers learn about results as they are produced, about node-data edits
made during a run (uploads), and about the end of each run.  Hooks are
notifications only; return values are ignored.
"""

from __future__ import annotations

from typing import Any

import pluggy

PROJECT_NAME = "rendergraph"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class RendergraphHookSpec:
    """Hook specifications for the rendergraph plugin system."""

    @hookspec
    def post_node_result(
        self,
        node_id: str,
        node_type: str,
        kind: str,
        value: str,
    ) -> None:
        """Called after a node produces a non-empty result."""

    @hookspec
    def post_node_update(self, node_id: str, fields: dict[str, Any]) -> None:
        """Called after a handler changes a node's stored data."""

    @hookspec
    def post_run(self, target_id: str, reason: str, completed: int) -> None:
        """Called after a run finishes with the target's reason and completed-node count."""
