"""Unified settings: CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs: CLI flags passed by Click
  2. Env vars: ``RENDERGRAPH_*`` prefix, ``__`` for nesting
     (``RENDERGRAPH_SERVICE__API_KEY``)
  3. TOML file: ``rendergraph.toml`` discovered via walk-up
  4. Code defaults: baked into the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from rendergraph.config.discovery import find_config
from rendergraph.config.models import ExecutionConfig, PluginsConfig, ServiceConfig


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``rendergraph.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                raise click.ClickException(f"Invalid TOML in {toml_path}: {exc}") from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# The TOML path for the settings object under construction.  Source
# customisation is a classmethod, so it cannot receive it as an argument.
_tls = threading.local()


class RgSettings(BaseSettings):
    """Settings for one CLI invocation, stored on ``AppContext``.

    Attributes:
        project_root: Parent of the discovered ``rendergraph.toml``, or CWD.
            Relative ``[plugins] local_dir`` paths resolve against it.
        config_path: The TOML file that was loaded, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "RENDERGRAPH_",
        "env_nested_delimiter": "__",
    }

    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    no_interact: bool = False
    sync: bool = False

    # --- TOML sections ---
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, getattr(_tls, "toml_path", None)),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        **cli_flags: Any,
    ) -> RgSettings:
        """Construct settings from a CLI invocation.

        An explicit *config_path* that does not exist is an error; without
        one, ``rendergraph.toml`` is looked up from *project_root* (or CWD).

        Raises:
            click.ClickException: Missing ``--config`` file or invalid TOML.
        """
        toml_path: Path | None
        if config_path:
            toml_path = Path(config_path)
            if not toml_path.is_file():
                raise click.ClickException(f"Config file not found: {config_path}")
        else:
            toml_path = find_config(project_root)

        resolved_root = project_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                project_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None

    def plugin_dir(self) -> Path | None:
        """``[plugins] local_dir`` resolved against the project root."""
        if not self.plugins.local_dir:
            return None
        path = Path(self.plugins.local_dir).expanduser()
        return path if path.is_absolute() else self.project_root / path
