"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, rendergraph.toml only contains
overrides.  A working setup needs only ``[service] api_key`` (or the
``RENDERGRAPH_SERVICE__API_KEY`` env var).
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from rendergraph.domain.prompts import DEFAULT_ENGINE_MODEL

# --- rendergraph.toml sections ---


class ServiceConfig(BaseModel):
    """[service] section."""

    model_config = {"frozen": True}

    base_url: str = "https://api.runware.ai/v1"
    api_key: str | None = None
    timeout: float = 120.0


class ExecutionConfig(BaseModel):
    """[execution] section."""

    model_config = {"frozen": True}

    concurrent_branches: bool = False
    default_model: str = DEFAULT_ENGINE_MODEL
    width: int = 1024
    height: int = 1024
    steps: int = 28
    cfg_scale: float = 3.5
    strength: float = 0.8
    reimagine_strength: float = 0.7
    controlnet_end_percentage: int = 80


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    local_dir: str | None = None
    disabled: list[str] = Field(default_factory=list)

