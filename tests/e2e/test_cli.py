"""End-to-end CLI coverage for the public commands exposed by lib_cue_config.

These tests exercise the documented CLI workflows (get, show, commit,
parse-value, metadata lookups) against plain JSON files so no external
``cue`` or ``sops`` binary is needed.
"""

from __future__ import annotations

import json
from pathlib import Path

import lib_cli_exit_tools
import yaml
from click.testing import CliRunner

from lib_cue_config import cli
from lib_cue_config.domain.errors import KeyNotFoundError, SelectorConfigError
from tests.support import ConfigSandbox, create_config_sandbox


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def _sandbox(tmp_path: Path) -> ConfigSandbox:
    sandbox = create_config_sandbox(tmp_path)
    sandbox.write("base.json", {"service": {"timeout": 15, "name": "svc"}, "tags": ["a"]})
    sandbox.write("conf/override.json", {"service": {"timeout": 30}})
    return sandbox


def test_cli_get_outputs_json(tmp_path: Path) -> None:
    """`cli get` should print the resolved value as JSON."""

    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(cli.cli, ["get", "service", "--file", str(sandbox.path("base.json"))], env={})
    assert result.exit_code == 0
    assert json.loads(result.output) == {"timeout": 15, "name": "svc"}


def test_cli_get_respects_precedence_and_environment(tmp_path: Path) -> None:
    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(
        cli.cli,
        [
            "get",
            "service.timeout",
            "--file",
            str(sandbox.path("base.json")),
            "--pattern",
            str(sandbox.path("conf")),
            r"\.json$",
            "--env-prefix",
            "DEMO_",
        ],
        env={"DEMO_service_timeout": "45"},
    )
    assert result.exit_code == 0
    assert json.loads(result.output) == 45


def test_cli_get_typed_value(tmp_path: Path) -> None:
    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(
        cli.cli,
        ["get", "service.timeout", "--file", str(sandbox.path("base.json")), "--as", "float"],
        env={},
    )
    assert result.exit_code == 0
    assert result.output.strip() == "15.0"


def test_cli_get_missing_key_fails(tmp_path: Path) -> None:
    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(cli.cli, ["get", "service.absent", "--file", str(sandbox.path("base.json"))], env={})
    assert result.exit_code != 0
    assert isinstance(result.exception, KeyNotFoundError)


def test_cli_required_file_missing_fails(tmp_path: Path) -> None:
    """A missing file is an error unless `--optional` is given."""

    sandbox = _sandbox(tmp_path)
    missing = str(sandbox.path("missing.json"))
    result = _runner().invoke(cli.cli, ["show", "--merged", "--file", missing], env={})
    assert isinstance(result.exception, SelectorConfigError)

    result = _runner().invoke(cli.cli, ["show", "--merged", "--optional", "--file", missing], env={})
    assert result.exit_code == 0
    assert json.loads(result.output) == {}


def test_cli_show_merged_with_provenance(tmp_path: Path) -> None:
    """`cli show --merged --provenance` should emit both config and provenance payloads."""

    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(
        cli.cli,
        [
            "show",
            "--merged",
            "--provenance",
            "--file",
            str(sandbox.path("base.json")),
            "--file",
            str(sandbox.path("conf/override.json")),
        ],
        env={},
    )
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["config"]["service"] == {"timeout": 30, "name": "svc"}
    assert payload["provenance"]["service.timeout"]["precedence"] == "run-json"
    assert "override.json" in payload["provenance"]["service.timeout"]["source"]


def test_cli_show_merged_yaml(tmp_path: Path) -> None:
    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(
        cli.cli,
        ["show", "--merged", "--format", "yaml", "--file", str(sandbox.path("base.json"))],
        env={},
    )
    assert result.exit_code == 0
    assert yaml.safe_load(result.output) == {"service": {"timeout": 15, "name": "svc"}, "tags": ["a"]}


def test_cli_show_inspection_dump(tmp_path: Path) -> None:
    sandbox = _sandbox(tmp_path)
    result = _runner().invoke(cli.cli, ["show", "--file", str(sandbox.path("base.json"))], env={})
    assert result.exit_code == 0
    assert "Run registrations;" in result.output
    assert "Config checksum:" in result.output
    assert f"run-json: json({sandbox.path('base.json')})" in result.output


def test_cli_commit_then_get_with_snapshot(tmp_path: Path) -> None:
    """A committed snapshot provides build-phase defaults that run-phase files override."""

    sandbox = _sandbox(tmp_path)
    output = tmp_path / "out" / "snapshot.json"
    committed = _runner().invoke(
        cli.cli,
        [
            "commit",
            "--project-root",
            str(sandbox.root),
            "--file",
            "base.json",
            "--env-prefix",
            "LCCTEST_",
            "--output",
            str(output),
        ],
        env={"LCCTEST_release": "7"},
    )
    assert committed.exit_code == 0
    summary = json.loads(committed.output)
    assert summary["records"] == 2
    assert output.is_file()

    result = _runner().invoke(cli.cli, ["get", "release", "--snapshot", str(output)], env={})
    assert result.exit_code == 0
    assert json.loads(result.output) == 7

    result = _runner().invoke(
        cli.cli,
        ["get", "service", "--snapshot", str(output), "--file", str(sandbox.path("conf/override.json"))],
        env={},
    )
    assert result.exit_code == 0
    assert json.loads(result.output) == {"timeout": 30, "name": "svc"}


def test_cli_refuses_to_print_non_finite_numbers_as_json() -> None:
    """NaN and infinities are reported instead of being printed as invalid JSON."""

    runner = _runner()
    result = runner.invoke(cli.cli, ["get", "ratio", "--env-prefix", "DEMO_"], env={"DEMO_ratio": "nan"})
    assert result.exit_code != 0
    assert "NaN or Infinity" in result.output

    result = runner.invoke(cli.cli, ["show", "--merged", "--env-prefix", "DEMO_"], env={"DEMO_limit": "-inf"})
    assert result.exit_code != 0
    assert "NaN or Infinity" in result.output

    result = runner.invoke(cli.cli, ["parse-value", "inf"])
    assert result.exit_code != 0


def test_cli_show_yaml_keeps_non_finite_numbers() -> None:
    result = _runner().invoke(
        cli.cli,
        ["show", "--merged", "--format", "yaml", "--env-prefix", "DEMO_"],
        env={"DEMO_limit": "inf"},
    )
    assert result.exit_code == 0
    assert yaml.safe_load(result.output) == {"limit": float("inf")}


def test_cli_parse_value_command() -> None:
    """`cli parse-value` shows the typed value an environment variable would produce."""

    runner = _runner()
    assert runner.invoke(cli.cli, ["parse-value", "42"]).output.strip() == "42"
    assert runner.invoke(cli.cli, ["parse-value", "[1,2]"]).output.strip() == "[1, 2]"
    assert runner.invoke(cli.cli, ["parse-value", "hello"]).output.strip() == '"hello"'


def test_cli_info_handles_missing_metadata(monkeypatch) -> None:
    """`cli info` must degrade gracefully when package metadata is unavailable."""

    def _raise_pkg_not_found(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError()

    monkeypatch.setattr(cli.metadata, "metadata", _raise_pkg_not_found)
    result = _runner().invoke(cli.cli, ["info"])
    assert result.exit_code == 0
    assert "metadata unavailable" in result.output


def test_cli_main_restores_traceback_flag() -> None:
    """`cli main` should restore lib_cli_exit_tools tracebacks after execution."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    exit_code = cli.main(["--traceback", "parse-value", "true"], restore_traceback=True)
    assert exit_code == 0
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback
