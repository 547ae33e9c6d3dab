"""Extension layer: run observers via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus single-file plugins from a local directory.
INVARIANT: Plugin failures are warnings, never errors.
"""

from rendergraph.plugins.event_bus import EventBus
from rendergraph.plugins.hookspecs import hookimpl
from rendergraph.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager", "hookimpl"]
