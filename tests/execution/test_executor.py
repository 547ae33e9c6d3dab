"""End-to-end executor behaviour against the in-memory generation service."""

from __future__ import annotations

from typing import Any

import pytest

from rendergraph.domain.results import ImageRef, Text
from rendergraph.domain.types import Reason
from rendergraph.execution.cache import ExecutionCache
from rendergraph.execution.errors import GraphCycleError
from rendergraph.execution.executor import GraphExecutor
from rendergraph.execution.handlers import HandlerRegistry
from rendergraph.plugins import EventBus, PluginManager, hookimpl


class RecordingPlugin:
    def __init__(self) -> None:
        self.results: list[str] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.runs: list[tuple[str, str, int]] = []

    @hookimpl
    def post_node_result(self, node_id: str, node_type: str, kind: str, value: str) -> None:
        self.results.append(node_id)

    @hookimpl
    def post_node_update(self, node_id: str, fields: dict[str, Any]) -> None:
        self.updates.append((node_id, fields))

    @hookimpl
    def post_run(self, target_id: str, reason: str, completed: int) -> None:
        self.runs.append((target_id, reason, completed))


class ExplodingPlugin:
    @hookimpl
    def post_node_result(self, node_id: str, node_type: str, kind: str, value: str) -> None:
        raise RuntimeError("observer down")


@pytest.fixture
def diamond(graph_of):
    """photo feeds two tools which both feed one remix."""
    return graph_of(
        [
            ("photo", "imageInput", {"imageFile": "photo.png"}),
            ("bg", "tool", {"toolType": "removebg"}),
            ("up", "tool", {"toolType": "upscale"}),
            ("mix", "rerendering", {"rerenderingType": "remix"}),
        ],
        [("photo", "bg"), ("photo", "up"), ("bg", "mix"), ("up", "mix")],
    )


class TestSingleEvaluation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrent", [False, True])
    async def test_shared_ancestor_runs_once(
        self, diamond, fake_service_cls, make_executor, concurrent: bool
    ) -> None:
        service = fake_service_cls(delay=0.01)
        report = await make_executor(service, concurrent_branches=concurrent).run(diamond, "mix")

        assert report.outcome.completed
        assert len(service.calls_to("upload_image")) == 1
        assert len(service.calls_to("remove_background")) == 1
        assert len(service.calls_to("upscale_image")) == 1
        assert len(service.calls_to("generate_remix")) == 1
        assert service.calls_to("generate_remix")[0]["referenceImages"] == [
            report.outcomes["bg"].result.url,
            report.outcomes["up"].result.url,
        ]

    @pytest.mark.asyncio
    async def test_shared_cache_across_targets(self, diamond, fake_service, make_executor) -> None:
        executor = make_executor(fake_service)
        cache = ExecutionCache()
        await executor.run(diamond, "bg", cache=cache)
        await executor.run(diamond, "mix", cache=cache)
        assert len(fake_service.calls_to("upload_image")) == 1
        assert len(fake_service.calls_to("remove_background")) == 1


class TestScenarios:
    @pytest.mark.asyncio
    async def test_image_input_seeds_engine(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of(
            [("A", "imageInput", {"imageUrl": "img1"}), ("E", "engine", {"model": "std"})],
            [("A", "E")],
        )
        report = await make_executor(fake_service).run(graph, "E")

        calls = fake_service.calls_to("generate_image")
        assert len(calls) == 1
        assert calls[0]["seedImage"] == "img1"
        assert report.outcome.result == ImageRef(url="https://img.test/generate_image/1.png")

    @pytest.mark.asyncio
    async def test_sample_graph(self, sample_graph, fake_service, make_executor) -> None:
        report = await make_executor(fake_service).run(sample_graph, "out")
        params = fake_service.calls_to("generate_image")[0]
        assert params["positivePrompt"] == "a red fox in snow"
        assert params["seedImage"] == "https://img.test/fox.png"
        assert report.completed == ["prompt", "photo", "engine", "out"]

    @pytest.mark.asyncio
    async def test_provenance_keeps_guides_and_seeds_apart(
        self, graph_of, fake_service, make_executor
    ) -> None:
        graph = graph_of(
            [
                ("photo", "imageInput", {"imageUrl": "photo"}),
                ("pose", "imageInput", {"imageUrl": "pose"}),
                ("cn", "controlNet", {"preprocessor": "openpose"}),
                ("e", "engine"),
            ],
            [("pose", "cn"), ("cn", "e"), ("photo", "e")],
        )
        await make_executor(fake_service).run(graph, "e")
        params = fake_service.calls_to("generate_image")[0]
        guide = "https://img.test/preprocess_image/1.png"
        assert params["seedImage"] == "photo"
        assert [c["guideImage"] for c in params["controlNet"]] == [guide]

    @pytest.mark.asyncio
    async def test_reference_chain(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of(
            [
                ("prompt", "textInput", {"prompt": "on a desk"}),
                ("bottle", "imageInput", {"imageUrl": "bottle"}),
                ("ref", "rerendering", {"rerenderingType": "reference", "referenceType": "product"}),
            ],
            [("prompt", "ref"), ("bottle", "ref")],
        )
        await make_executor(fake_service).run(graph, "ref")
        assert [op for op, _ in fake_service.calls] == ["generate_image", "generate_reference"]
        params = fake_service.calls_to("generate_reference")[0]
        assert params["positivePrompt"].endswith(". on a desk")
        assert params["referenceImages"] == ["https://img.test/generate_image/1.png", "bottle"]

    @pytest.mark.asyncio
    async def test_upload_surfaces_on_report_graph(self, diamond, fake_service, make_executor) -> None:
        report = await make_executor(fake_service).run(diamond, "photo")
        url = report.outcome.result.url
        assert report.graph.node("photo").data == {"imageUrl": url}
        assert report.updates == {"photo": {"imageUrl": url, "imageFile": None}}
        assert diamond.node("photo").data == {"imageFile": "photo.png"}

    @pytest.mark.asyncio
    async def test_gear_lora_reaches_engine(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of(
            [("g", "gear", {"loraModel": "ink", "weight": 0.8}), ("e", "engine")], [("g", "e")]
        )
        await make_executor(fake_service).run(graph, "e")
        params = fake_service.calls_to("generate_image")[0]
        assert params["lora"] == [{"model": "ink", "weight": 0.8}]
        assert params["positivePrompt"] != "lora(ink, 0.8)"


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_missing_mask_skips_without_calls(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of(
            [
                ("photo", "imageInput", {"imageUrl": "photo"}),
                ("paint", "tool", {"toolType": "inpaint"}),
                ("bg", "tool", {"toolType": "removebg"}),
                ("mix", "rerendering", {"rerenderingType": "remix"}),
            ],
            [("photo", "paint"), ("photo", "bg"), ("paint", "mix"), ("bg", "mix")],
        )
        report = await make_executor(fake_service).run(graph, "mix")

        assert fake_service.calls_to("inpaint_image") == []
        assert report.outcomes["paint"].reason is Reason.SKIPPED
        assert report.outcomes["bg"].completed
        assert report.outcome.completed
        assert fake_service.calls_to("generate_remix")[0]["referenceImages"] == [
            report.outcomes["bg"].result.url
        ]

    @pytest.mark.asyncio
    async def test_service_failure_fails_node_and_blocks_downstream(
        self, sample_graph, fake_service_cls, make_executor
    ) -> None:
        service = fake_service_cls(fail={"generate_image"})
        report = await make_executor(service).run(sample_graph, "out")
        assert report.outcomes["engine"].reason is Reason.FAILED
        assert "generate_image failed" in report.outcomes["engine"].message
        assert report.outcome.reason is Reason.BLOCKED

    @pytest.mark.asyncio
    async def test_missing_input_without_failed_upstream_is_skipped(
        self, graph_of, fake_service, make_executor
    ) -> None:
        graph = graph_of([("o", "output")], [])
        report = await make_executor(fake_service).run(graph, "o")
        assert report.outcome.reason is Reason.SKIPPED

    @pytest.mark.asyncio
    async def test_empty_text_upstream_does_not_block_image_consumer(
        self, graph_of, fake_service, make_executor
    ) -> None:
        graph = graph_of([("p", "textInput", {"prompt": ""}), ("o", "output")], [("p", "o")])
        report = await make_executor(fake_service).run(graph, "o")
        assert report.outcomes["p"].reason is Reason.SKIPPED
        assert report.outcome.reason is Reason.SKIPPED

    @pytest.mark.asyncio
    async def test_unexpected_handler_error_fails_only_that_node(
        self, graph_of, fake_service, make_executor
    ) -> None:
        class Broken:
            async def handle(self, node, inputs, context):
                raise KeyError("boom")

        registry = HandlerRegistry.default(fake_service)
        registry.register("engine", Broken())
        graph = graph_of(
            [
                ("photo", "imageInput", {"imageUrl": "photo"}),
                ("e", "engine"),
                ("bg", "tool", {"toolType": "removebg"}),
                ("mix", "rerendering", {"rerenderingType": "remix"}),
            ],
            [("photo", "e"), ("photo", "bg"), ("e", "mix"), ("bg", "mix")],
        )
        report = await GraphExecutor(registry).run(graph, "mix")

        assert report.outcomes["e"].reason is Reason.FAILED
        assert "KeyError" in report.outcomes["e"].message
        assert report.outcomes["bg"].completed
        assert report.outcome.completed
        assert fake_service.calls_to("generate_remix")[0]["referenceImages"] == [
            report.outcomes["bg"].result.url
        ]

    @pytest.mark.asyncio
    async def test_unknown_type_skipped(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of(
            [("x", "hologram"), ("p", "textInput", {"prompt": "fox"}), ("e", "engine")],
            [("x", "e"), ("p", "e")],
        )
        report = await make_executor(fake_service).run(graph, "e")
        assert report.outcomes["x"].reason is Reason.SKIPPED
        assert "hologram" in report.outcomes["x"].message
        assert report.outcome.completed

    @pytest.mark.asyncio
    async def test_dangling_edge_skipped(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of([("p", "textInput", {"prompt": "fox"}), ("e", "engine")], [("ghost", "e"), ("p", "e")])
        report = await make_executor(fake_service).run(graph, "e")
        assert report.outcomes["ghost"].message == "node not found"
        assert fake_service.calls_to("generate_image")[0]["positivePrompt"] == "fox"

    @pytest.mark.asyncio
    async def test_missing_target(self, graph_of, fake_service, make_executor) -> None:
        report = await make_executor(fake_service).run(graph_of([], []), "nowhere")
        assert report.outcome.reason is Reason.SKIPPED

    @pytest.mark.asyncio
    async def test_invalid_node_data_skipped(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of([("e", "engine", {"width": "wide"})], [])
        report = await make_executor(fake_service).run(graph, "e")
        assert report.outcome.reason is Reason.SKIPPED
        assert report.outcome.message.startswith("invalid node data")
        assert fake_service.calls == []

    @pytest.mark.asyncio
    async def test_empty_result_skipped(self, graph_of, fake_service, make_executor) -> None:
        report = await make_executor(fake_service).run(graph_of([("p", "textInput")], []), "p")
        assert report.outcome.reason is Reason.SKIPPED
        assert report.outcome.message == "no result"


class TestCycles:
    @pytest.mark.asyncio
    async def test_cycle_raises_before_any_handler(self, graph_of, fake_service, make_executor) -> None:
        graph = graph_of(
            [("a", "tool", {"toolType": "removebg"}), ("b", "tool", {"toolType": "upscale"})],
            [("a", "b"), ("b", "a")],
        )
        with pytest.raises(GraphCycleError) as info:
            await make_executor(fake_service).run(graph, "a")
        assert sorted(info.value.cycle) == ["a", "b"]
        assert fake_service.calls == []


class TestRegistryExtension:
    @pytest.mark.asyncio
    async def test_registered_handler_is_used(self, graph_of, fake_service, make_executor) -> None:
        class Caption:
            async def handle(self, node, inputs, context):
                return Text(value=f"caption of {len(inputs)} inputs")

        registry = HandlerRegistry.default(fake_service)
        registry.register("caption", Caption())
        executor = GraphExecutor(registry)
        graph = graph_of([("i", "imageInput", {"imageUrl": "u"}), ("c", "caption")], [("i", "c")])
        report = await executor.run(graph, "c")
        assert report.outcome.result == Text(value="caption of 1 inputs")


class TestObservers:
    @pytest.mark.asyncio
    async def test_hooks_fire(self, diamond, fake_service, make_executor) -> None:
        pm = PluginManager()
        plugin = RecordingPlugin()
        pm.register_plugin(plugin)
        bus = EventBus(pm, sync=True)

        await make_executor(fake_service, event_bus=bus).run(diamond, "mix")

        assert plugin.results == ["photo", "bg", "up", "mix"]
        assert [node_id for node_id, _ in plugin.updates] == ["photo"]
        assert plugin.runs == [("mix", "completed", 4)]

    @pytest.mark.asyncio
    async def test_observer_failure_does_not_fail_run(self, sample_graph, fake_service, make_executor) -> None:
        pm = PluginManager()
        pm.register_plugin(ExplodingPlugin())
        bus = EventBus(pm, sync=True)

        report = await make_executor(fake_service, event_bus=bus).run(sample_graph, "out")

        assert report.outcome.completed
        failures = bus.drain()
        assert len(failures) == 4
        assert "observer down" in failures[0]
