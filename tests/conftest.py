"""Shared pytest fixtures and test doubles for rendergraph tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from rendergraph.config.models import ExecutionConfig
from rendergraph.domain.graph import GraphModel
from rendergraph.execution.executor import GraphExecutor
from rendergraph.execution.handlers import HandlerRegistry
from rendergraph.infrastructure.generation import GeneratedImage, GenerationServiceError
from rendergraph.infrastructure.graph_io import save_graph

type NodeSpec = tuple[str, str] | tuple[str, str, dict[str, Any]]
type GraphBuilder = Callable[[list[NodeSpec], list[tuple[str, str]]], GraphModel]


class FakeGenerationService:
    """In-memory GenerationService that records every call.

    Each call returns a fresh URL ``https://img.test/<op>/<n>.png``.  Ops
    listed in *fail* raise :class:`GenerationServiceError`; *delay* makes
    every call yield to the event loop first.
    """

    def __init__(self, *, fail: set[str] | None = None, delay: float = 0.0) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.fail = set(fail or ())
        self.delay = delay
        self._counter = 0

    def calls_to(self, op: str) -> list[Any]:
        return [payload for name, payload in self.calls if name == op]

    async def _call(self, op: str, payload: Any) -> GeneratedImage:
        self.calls.append((op, payload))
        if self.delay:
            await asyncio.sleep(self.delay)
        if op in self.fail:
            raise GenerationServiceError(f"{op} failed", task_type=op, status_code=500)
        self._counter += 1
        return GeneratedImage(image_url=f"https://img.test/{op}/{self._counter}.png", cost=0.01)

    async def upload_image(self, path: Path) -> str:
        result = await self._call("upload_image", str(path))
        return result.image_url

    async def preprocess_image(self, image: str, preprocessor: str) -> GeneratedImage:
        return await self._call("preprocess_image", {"image": image, "preprocessor": preprocessor})

    async def generate_image(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("generate_image", params)

    async def remove_background(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("remove_background", params)

    async def upscale_image(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("upscale_image", params)

    async def inpaint_image(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("inpaint_image", params)

    async def outpaint_image(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("outpaint_image", params)

    async def generate_reimagine(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("generate_reimagine", params)

    async def generate_reference(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("generate_reference", params)

    async def generate_rescene(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("generate_rescene", params)

    async def generate_reangle(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("generate_reangle", params)

    async def generate_remix(self, params: dict[str, Any]) -> GeneratedImage:
        return await self._call("generate_remix", params)


def build_graph(nodes: list[NodeSpec], edges: list[tuple[str, str]]) -> GraphModel:
    """Build a graph from ``(id, type[, data])`` tuples and ``(source, target)`` pairs."""
    return GraphModel.model_validate(
        {
            "nodes": [
                {"id": spec[0], "type": spec[1], "data": spec[2] if len(spec) > 2 else {}}
                for spec in nodes
            ],
            "edges": [{"source": s, "target": t} for s, t in edges],
        }
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def fake_service_cls() -> type[FakeGenerationService]:
    """The fake service class, for tests that need failures or delays."""
    return FakeGenerationService


@pytest.fixture
def graph_of() -> GraphBuilder:
    """The :func:`build_graph` helper as a fixture."""
    return build_graph


@pytest.fixture
def make_executor() -> Callable[..., GraphExecutor]:
    """Factory for executors wired to a (fake) service with default config."""

    def _make(
        service: Any,
        *,
        config: ExecutionConfig | None = None,
        **kwargs: Any,
    ) -> GraphExecutor:
        return GraphExecutor(HandlerRegistry.default(service, config), **kwargs)

    return _make


@pytest.fixture
def sample_graph() -> GraphModel:
    """prompt + photo -> engine -> output."""
    return build_graph(
        [
            ("prompt", "textInput", {"prompt": "a red fox in snow"}),
            ("photo", "imageInput", {"imageUrl": "https://img.test/fox.png"}),
            ("engine", "engine"),
            ("out", "output"),
        ],
        [("prompt", "engine"), ("photo", "engine"), ("engine", "out")],
    )


@pytest.fixture
def graph_file(tmp_path: Path, sample_graph: GraphModel) -> Path:
    """The sample graph saved as YAML in a temp directory."""
    path = tmp_path / "workflow.yaml"
    save_graph(sample_graph, path)
    return path


@pytest.fixture
def _isolated_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from a temp directory with no config file or config env vars."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RENDERGRAPH_CONFIG", raising=False)
    monkeypatch.delenv("RENDERGRAPH_SERVICE__API_KEY", raising=False)
