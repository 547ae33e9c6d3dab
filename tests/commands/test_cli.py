"""CLI tests through Click's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rendergraph import __version__
from rendergraph.cli import cli
from rendergraph.infrastructure.graph_io import load_graph, save_graph

pytestmark = pytest.mark.usefixtures("_isolated_project")


class TestRoot:
    def test_help(self, cli_runner) -> None:
        result = cli_runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("run", "check", "connect"):
            assert name in result.output

    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(cli, ["--version"])
        assert __version__ in result.output

    def test_examples(self, cli_runner) -> None:
        result = cli_runner.invoke(cli, ["run", "--examples"])
        assert result.exit_code == 0
        assert "rendergraph run workflow.yaml output-1" in result.output

    def test_missing_config_flag(self, cli_runner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["-c", str(tmp_path / "nope.toml"), "check", "x.yaml"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


@pytest.mark.usefixtures("patched_client")
class TestRun:
    def test_rich_output(self, cli_runner, graph_file: Path) -> None:
        result = cli_runner.invoke(cli, ["run", str(graph_file), "out"])
        assert result.exit_code == 0, result.output
        assert "OK" in result.output
        assert "https://img.test/generate_image/1.png" in result.output

    def test_quiet_prints_value_only(self, cli_runner, graph_file: Path) -> None:
        result = cli_runner.invoke(cli, ["-q", "run", str(graph_file), "out"])
        assert result.output.strip() == "https://img.test/generate_image/1.png"

    def test_json(self, cli_runner, graph_file: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "run", str(graph_file), "out"])
        payload = json.loads(result.output)
        assert payload["ok"] is True
        assert payload["data"]["reason"] == "completed"

    def test_verbose_lists_nodes(self, cli_runner, graph_file: Path) -> None:
        result = cli_runner.invoke(cli, ["-v", "--sync", "run", str(graph_file), "out"])
        assert result.exit_code == 0, result.output
        assert "engine" in result.output
        assert "node:engine" in result.output

    def test_failure_exit_code(self, cli_runner, graph_file: Path, patched_client) -> None:
        patched_client.fail.add("generate_image")
        result = cli_runner.invoke(cli, ["run", str(graph_file), "out"])
        assert result.exit_code == 1
        assert "ERROR" in result.output

    def test_save(self, cli_runner, tmp_path: Path, graph_of) -> None:
        path = tmp_path / "upload.json"
        save_graph(graph_of([("photo", "imageInput", {"imageFile": "p.png"})], []), path)
        result = cli_runner.invoke(cli, ["run", str(path), "photo", "--save"])
        assert result.exit_code == 0, result.output
        assert load_graph(path).node("photo").data == {
            "imageUrl": "https://img.test/upload_image/1.png"
        }


class TestCheck:
    def test_clean(self, cli_runner, graph_file: Path) -> None:
        result = cli_runner.invoke(cli, ["check", str(graph_file)])
        assert result.exit_code == 0
        assert "No issues found" in result.output

    def test_quiet_count(self, cli_runner, tmp_path: Path, graph_of) -> None:
        path = tmp_path / "g.yaml"
        save_graph(graph_of([("x", "hologram")], [("ghost", "x")]), path)
        result = cli_runner.invoke(cli, ["-q", "check", str(path)])
        assert result.output.strip() == "2 issues"

    def test_missing_file(self, cli_runner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["check", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 1
        assert "Graph file not found" in result.output


class TestConnect:
    @pytest.fixture
    def rescene_file(self, tmp_path: Path, graph_of) -> Path:
        path = tmp_path / "g.yaml"
        save_graph(
            graph_of(
                [
                    ("photo", "imageInput", {"imageUrl": "u"}),
                    ("scene", "rerendering", {"rerenderingType": "rescene"}),
                ],
                [],
            ),
            path,
        )
        return path

    def test_role_flag(self, cli_runner, rescene_file: Path) -> None:
        result = cli_runner.invoke(
            cli, ["connect", str(rescene_file), "photo", "scene", "--role", "scene"]
        )
        assert result.exit_code == 0, result.output
        assert load_graph(rescene_file).node("photo").data["imageType"] == "scene"

    def test_prompts_for_role(self, cli_runner, rescene_file: Path) -> None:
        result = cli_runner.invoke(
            cli, ["connect", str(rescene_file), "photo", "scene"], input="object\n"
        )
        assert result.exit_code == 0, result.output
        assert load_graph(rescene_file).node("photo").data["imageType"] == "object"

    def test_no_interact_requires_role(self, cli_runner, rescene_file: Path) -> None:
        result = cli_runner.invoke(cli, ["--no-interact", "connect", str(rescene_file), "photo", "scene"])
        assert result.exit_code == 1
        assert "--role" in result.output
        assert load_graph(rescene_file).edges == []

    def test_bad_role_choice(self, cli_runner, rescene_file: Path) -> None:
        result = cli_runner.invoke(
            cli, ["connect", str(rescene_file), "photo", "scene", "--role", "sky"]
        )
        assert result.exit_code == 2
