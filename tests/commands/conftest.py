"""Fixtures for CLI command tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any

import pytest

from rendergraph.services.telemetry import disable_telemetry


@pytest.fixture(autouse=True)
def _reset_cli_side_effects() -> Generator[None]:
    """Undo logging and telemetry state that AppContext sets per invocation."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    disable_telemetry()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def patched_client(
    monkeypatch: pytest.MonkeyPatch, fake_service: Any, _isolated_project: None
) -> Any:
    """Route RunService's RunwareClient to the in-memory fake service."""

    class _Client:
        def __init__(self, api_key: str | None, **kwargs: Any) -> None:
            self.api_key = api_key

        async def __aenter__(self) -> Any:
            return fake_service

        async def __aexit__(self, *exc: object) -> None:
            return None

    monkeypatch.setattr("rendergraph.services.run.RunwareClient", _Client)
    monkeypatch.setenv("RENDERGRAPH_SERVICE__API_KEY", "test-key")
    return fake_service
