"""End-to-end tests for the specsync Typer application.

Commands are invoked through :class:`typer.testing.CliRunner` against the
real app, with ``-C`` pointing at an isolated project directory so the
cache lands in ``tmp_path``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest
from typer.testing import CliRunner

from specsync import __version__
from specsync.app import app
from specsync.exit_codes import (
    EXIT_BREAKING_CHANGES,
    EXIT_CONFIG_ERROR,
    EXIT_FILESYSTEM_ERROR,
    EXIT_SPEC_PARSE_ERROR,
)


@pytest.fixture
def invoke(cli_runner: CliRunner, project_dir: Path) -> Callable[..., Any]:
    """Run ``specsync -C <project_dir> [--json] <args>``."""

    def _invoke(*args: str, json_output: bool = False) -> Any:
        argv = ["-C", str(project_dir)]
        if json_output:
            argv.append("--json")
        return cli_runner.invoke(app, [*argv, *args])

    return _invoke


@pytest.fixture
def breaking_file(write_spec: Callable[..., Path], petstore_30_raw: dict[str, Any]) -> Path:
    del petstore_30_raw["paths"]["/pets"]
    return write_spec(petstore_30_raw, "petstore-v2.json")


def test_version(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"specsync {__version__}" in result.stdout


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------


class TestParseCommand:
    def test_json(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("parse", str(petstore_file), json_output=True)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["metadata"]["title"] == "Petstore"
        assert data["freshness"] == "fetched"

    def test_second_run_is_cached(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        invoke("parse", str(petstore_file), json_output=True)
        result = invoke("parse", str(petstore_file), json_output=True)
        assert json.loads(result.stdout)["freshness"] == "cached"

    def test_plain_output(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("parse", str(petstore_file), "--format", "endpoints-list", "--tag", "pets")
        assert result.exit_code == 0, result.output
        assert "format\tendpoints-list" in result.stdout
        assert '["GET /pets"]' in result.stdout

    def test_missing_file(self, invoke: Callable[..., Any], tmp_path: Path) -> None:
        result = invoke("parse", str(tmp_path / "nope.json"))
        assert result.exit_code == EXIT_FILESYSTEM_ERROR

    def test_strict_violation(
        self, invoke: Callable[..., Any], write_spec: Callable[..., Path]
    ) -> None:
        path = write_spec({"openapi": "3.0.0", "info": {"title": "t"}, "paths": {}}, "bad.json")
        assert invoke("parse", str(path)).exit_code == 0
        assert invoke("parse", str(path), "--strict").exit_code == EXIT_SPEC_PARSE_ERROR

    def test_invalid_format(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("parse", str(petstore_file), "--format", "xml")
        assert result.exit_code == EXIT_CONFIG_ERROR


# ---------------------------------------------------------------------------
# deps / diff
# ---------------------------------------------------------------------------


class TestDepsCommand:
    def test_json(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("deps", str(petstore_file), "Address", "-d", "downstream", json_output=True)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total"] == 6

    def test_plain_table(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("deps", str(petstore_file), "Tag", "--direction", "downstream")
        lines = result.stdout.strip().split("\n")
        assert lines[0] == "Depth\tNode\tKind\tDirection\tVia"
        assert lines[1] == "1\tPet\tschema\tdownstream\tTag"

    def test_unknown_schema(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        assert invoke("deps", str(petstore_file), "Ghost").exit_code == EXIT_CONFIG_ERROR


class TestDiffCommand:
    def test_json(
        self, invoke: Callable[..., Any], petstore_file: Path, breaking_file: Path
    ) -> None:
        result = invoke("diff", str(petstore_file), str(breaking_file), json_output=True)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["summary"]["breaking"] == 1

    def test_fail_on_breaking(
        self, invoke: Callable[..., Any], petstore_file: Path, breaking_file: Path
    ) -> None:
        result = invoke("diff", str(petstore_file), str(breaking_file), "--fail-on-breaking")
        assert result.exit_code == EXIT_BREAKING_CHANGES

    def test_no_changes_passes(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("diff", str(petstore_file), str(petstore_file), "--fail-on-breaking")
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# status / generate
# ---------------------------------------------------------------------------


class TestStatusCommand:
    def test_lists_cached_sources(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        invoke("parse", str(petstore_file))
        result = invoke("status", json_output=True)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [entry["title"] for entry in data["entries"]] == ["Petstore"]

    def test_check_remote(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        invoke("parse", str(petstore_file))
        result = invoke("status", "--check-remote")
        assert result.exit_code == 0, result.output
        assert "revalidated" in result.stdout


class TestGenerateCommand:
    def test_writes_files(
        self, invoke: Callable[..., Any], petstore_file: Path, tmp_path: Path
    ) -> None:
        out_dir = tmp_path / "generated"
        result = invoke("generate", str(petstore_file), "-t", "typescript-fetch", "-o", str(out_dir))
        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out_dir.iterdir()) == ["client.ts", "types.ts"]

    def test_prints_files_without_out(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("generate", str(petstore_file), "--target", "python", "--no-docs")
        assert result.exit_code == 0, result.output
        assert "class User(BaseModel):" in result.stdout

    def test_unknown_target(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("generate", str(petstore_file), "-t", "cobol")
        assert result.exit_code == EXIT_CONFIG_ERROR

    def test_invalid_type_naming(self, invoke: Callable[..., Any], petstore_file: Path) -> None:
        result = invoke("generate", str(petstore_file), "-t", "python", "--type-naming", "kebab")
        assert result.exit_code == EXIT_CONFIG_ERROR

    def test_lenient_flag(
        self, invoke: Callable[..., Any], write_spec: Callable[..., Path]
    ) -> None:
        spec = {
            "openapi": "3.0.0",
            "info": {"title": "t", "version": "1"},
            "paths": {"/items/{id}": {"get": {"responses": {}}}},
        }
        path = write_spec(spec, "undeclared.json")
        assert invoke("generate", str(path), "-t", "typescript").exit_code == EXIT_SPEC_PARSE_ERROR
        result = invoke("generate", str(path), "-t", "typescript", "--lenient")
        assert result.exit_code == 0, result.output
