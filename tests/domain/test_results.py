"""Tests for the Text | ImageRef result union and NodeOutcome."""

from __future__ import annotations

from pydantic import TypeAdapter

from rendergraph.domain.results import ExecutionResult, ImageRef, NodeOutcome, Text, is_empty
from rendergraph.domain.types import Reason


class TestExecutionResult:
    def test_text_starting_with_http_stays_text(self) -> None:
        result = TypeAdapter(ExecutionResult).validate_python(
            {"kind": "text", "value": "http is a protocol"}
        )
        assert isinstance(result, Text)

    def test_image_discriminated_by_kind(self) -> None:
        result = TypeAdapter(ExecutionResult).validate_python({"kind": "image", "url": "u"})
        assert isinstance(result, ImageRef)
        assert result.value == "u"

    def test_is_empty(self) -> None:
        assert is_empty(None)
        assert is_empty(Text(value=""))
        assert not is_empty(ImageRef(url="u"))


class TestNodeOutcome:
    def test_completed_requires_result(self) -> None:
        assert NodeOutcome(node_id="a", result=Text(value="x")).completed
        assert not NodeOutcome(node_id="a").completed
        assert not NodeOutcome(node_id="a", reason=Reason.FAILED).completed

    def test_to_dict(self) -> None:
        outcome = NodeOutcome(node_id="a", node_type="engine", result=ImageRef(url="u"))
        assert outcome.to_dict() == {
            "id": "a",
            "type": "engine",
            "reason": "completed",
            "kind": "image",
            "value": "u",
        }

    def test_to_dict_with_message(self) -> None:
        outcome = NodeOutcome(node_id="a", reason=Reason.SKIPPED, message="no result")
        assert outcome.to_dict() == {
            "id": "a",
            "type": "",
            "reason": "skipped",
            "message": "no result",
        }
