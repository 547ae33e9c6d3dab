"""Tests for the ServiceResult contract."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from rendergraph.services.result import ServiceError, ServiceResult


def test_defaults() -> None:
    result = ServiceResult(ok=True, op="check")
    assert result.data == {}
    assert result.warnings == []
    assert result.error is None
    assert result.meta is None


def test_frozen() -> None:
    result = ServiceResult(ok=True, op="check")
    with pytest.raises(ValidationError):
        result.ok = False  # type: ignore[misc]


def test_json_shape() -> None:
    result = ServiceResult(
        ok=False,
        op="run",
        error=ServiceError(code="FAILED", message="boom", detail={"target": "out"}),
    )
    dumped = result.model_dump()
    assert dumped["error"] == {"code": "FAILED", "message": "boom", "detail": {"target": "out"}}
