"""AppContext: shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``.  Plugins and the event bus are loaded lazily, so
``--help``, ``--examples`` and ``check`` never import plugin code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rendergraph.config.logging import configure_logging
from rendergraph.output.formatters import OutputSettings, format_result
from rendergraph.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from rendergraph.config.settings import RgSettings
    from rendergraph.plugins.event_bus import EventBus
    from rendergraph.plugins.manager import PluginManager
    from rendergraph.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy."""

    def __init__(self, settings: RgSettings) -> None:
        self.settings = settings
        self._plugin_manager: PluginManager | None = None
        self._event_bus: EventBus | None = None

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()

    @property
    def plugin_manager(self) -> PluginManager:
        """Plugins from entry points and ``[plugins] local_dir`` (loaded on first use)."""
        if self._plugin_manager is None:
            from rendergraph.plugins.manager import PluginManager

            self._plugin_manager = PluginManager()
            self._plugin_manager.discover_and_load(
                local_dir=self.settings.plugin_dir(),
                disabled=self.settings.plugins.disabled,
            )
        return self._plugin_manager

    @property
    def event_bus(self) -> EventBus:
        """Observer dispatch; synchronous with ``--sync``."""
        if self._event_bus is None:
            from rendergraph.plugins.event_bus import EventBus

            self._event_bus = EventBus(self.plugin_manager, sync=self.settings.sync)
        return self._event_bus

    def close(self) -> None:
        """Wait for in-flight observer hooks and stop the worker pool."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
            self._event_bus = None

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings go to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # In JSON mode, warnings are already in the serialized payload.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
