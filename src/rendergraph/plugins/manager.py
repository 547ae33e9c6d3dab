"""Observer discovery and registration.

Observers come from two places: distributions advertising the
``rendergraph.plugins`` entry-point group, and single-file plugins in the
``[plugins] local_dir`` directory.  Both may expose hook *classes*; those
are instantiated before registration so their hooks bind ``self``.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from types import ModuleType

import pluggy

from rendergraph.plugins.hookspecs import PROJECT_NAME, RendergraphHookSpec

ENTRY_POINT_GROUP = "rendergraph.plugins"
LOCAL_MODULE_PREFIX = "rendergraph_local_plugin_"

logger = logging.getLogger(__name__)


def _load_module(path: Path) -> ModuleType | None:
    """Import a single plugin file under a private module name."""
    name = LOCAL_MODULE_PREFIX + path.stem
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        logger.warning("Cannot import plugin file %s", path)
        return None
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(name, None)
        logger.warning("Failed to load local plugin %s", path, exc_info=True)
        return None
    return module


class PluginManager:
    """Registry of run observers, backed by a pluggy manager."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(RendergraphHookSpec)

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register an observer instance (by default under its class name)."""
        name = name or type(plugin).__name__
        self._pm.register(plugin, name=name)
        logger.debug("Registered observer %s", name)

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or type(p).__name__ for p in self._pm.get_plugins()]

    def discover_and_load(
        self,
        *,
        local_dir: Path | None = None,
        disabled: Iterable[str] = (),
    ) -> list[str]:
        """Load entry-point and local observers, skipping *disabled* names.

        Returns the names of every registered observer.
        """
        for name in disabled:
            self._pm.set_blocked(name)

        self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        for plugin in list(self._pm.get_plugins()):
            if inspect.isclass(plugin) and self._is_observer_class(plugin):
                name = self._pm.get_name(plugin) or plugin.__name__
                self._pm.unregister(plugin)
                self._instantiate(plugin, name)

        if local_dir is not None:
            self._load_local(local_dir)
        return self.list_plugin_names()

    def _load_local(self, local_dir: Path) -> None:
        """Register observer classes from ``*.py`` files in *local_dir*.

        Files whose name starts with ``_`` are ignored.
        """
        if not local_dir.is_dir():
            logger.debug("No local plugin directory at %s", local_dir)
            return
        for path in sorted(local_dir.glob("*.py")):
            if path.name.startswith("_"):
                continue
            module_name = LOCAL_MODULE_PREFIX + path.stem
            if self._pm.is_blocked(module_name):
                logger.debug("Local plugin %s is disabled", module_name)
                continue
            module = _load_module(path)
            if module is None:
                continue
            for _, cls in inspect.getmembers(module, inspect.isclass):
                if cls.__module__ == module_name and self._is_observer_class(cls):
                    self._instantiate(cls, f"{module_name}.{cls.__name__}")

    def _instantiate(self, cls: type, name: str) -> None:
        try:
            self.register_plugin(cls(), name=name)
        except Exception:
            logger.warning("Failed to instantiate observer %s", name, exc_info=True)

    def _is_observer_class(self, cls: type) -> bool:
        """Whether *cls* defines at least one ``@hookimpl`` method."""
        return any(
            self._pm.parse_hookimpl_opts(cls, attr) is not None
            for attr in dir(cls)
            if not attr.startswith("_")
        )
