"""Subprocess collaborators exercised against throwaway shell scripts."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from lib_cue_config.adapters.tools.external import CUE_BIN_ENV, CueExporter, SopsDecryptor
from lib_cue_config.domain.errors import LoadError, ToolUnavailable
from tests.support import write_executable

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="uses POSIX shell scripts")


def test_cue_exporter_returns_stdout(tmp_path: Path) -> None:
    """The exporter passes ``export <path>`` and hands back stdout verbatim."""

    script = write_executable(tmp_path / "bin" / "cue", 'printf \'{"args": "%s %s"}\' "$1" "$2"\n')
    target = tmp_path / "config.cue"
    target.write_text("package config", encoding="utf-8")
    output = CueExporter(str(script)).translate(target)
    assert json.loads(output) == {"args": f"export {target}"}


def test_sops_decryptor_requests_json_output(tmp_path: Path) -> None:
    script = write_executable(tmp_path / "bin" / "sops", 'echo "{\\"args\\": \\"$*\\"}"\n')
    target = tmp_path / "secrets.sops.yaml"
    target.write_text("token: x", encoding="utf-8")
    output = SopsDecryptor(str(script)).decrypt(target)
    assert json.loads(output) == {"args": f"decrypt --output-type json {target}"}


def test_non_zero_exit_is_a_load_error(tmp_path: Path) -> None:
    script = write_executable(tmp_path / "bin" / "cue", "echo 'field not allowed' >&2\nexit 3\n")
    with pytest.raises(LoadError, match="exit 3") as caught:
        CueExporter(str(script)).translate(tmp_path / "config.cue")
    assert not isinstance(caught.value, ToolUnavailable)
    assert "field not allowed" in str(caught.value)


def test_missing_executable_is_tool_unavailable(tmp_path: Path) -> None:
    with pytest.raises(ToolUnavailable):
        CueExporter(str(tmp_path / "nope" / "cue")).translate(tmp_path / "config.cue")


def test_executable_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    script = write_executable(tmp_path / "bin" / "my-cue", "echo '{}'\n")
    monkeypatch.setenv(CUE_BIN_ENV, str(script))
    assert CueExporter().executable == str(script)
    assert json.loads(CueExporter().translate(tmp_path / "config.cue")) == {}


def test_default_executable_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CUE_BIN_ENV, raising=False)
    assert CueExporter().executable == "cue"
