"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest

from rendergraph.config.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Generator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("rendergraph").setLevel(logging.NOTSET)


def test_default_level_is_warning() -> None:
    configure_logging()
    assert logging.getLogger("rendergraph").level == logging.WARNING


def test_verbose_enables_debug_but_keeps_httpx_quiet() -> None:
    configure_logging(verbose=True)
    assert logging.getLogger("rendergraph").level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_json_lines_on_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(verbose=True, log_json=True)
    logging.getLogger("rendergraph.test").info("node done")
    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["event"] == "node done"
    assert record["level"] == "info"
    assert record["logger"] == "rendergraph.test"
