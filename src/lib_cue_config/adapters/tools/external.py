"""Subprocess collaborators for structured translation and secret decryption.

Purpose
-------
Implement the :class:`~lib_cue_config.application.ports.Translator` and
:class:`~lib_cue_config.application.ports.Decryptor` ports by running
``cue export`` and ``sops decrypt`` synchronously. Only the JSON text on
stdout and the exit status matter; validation happens in the domain layer.

Contents
--------
* :class:`CueExporter` – ``cue export <path>``.
* :class:`SopsDecryptor` – ``sops decrypt --output-type json <path>``.

Configuration
-------------
``LIB_CUE_CONFIG_CUE_BIN`` and ``LIB_CUE_CONFIG_SOPS_BIN`` name the
executables when no explicit one is passed. No timeout is applied; wrap the
collaborator when one is needed.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from ...domain.errors import LoadError, ToolUnavailable
from ...observability import log_debug, log_error

CUE_BIN_ENV = "LIB_CUE_CONFIG_CUE_BIN"
SOPS_BIN_ENV = "LIB_CUE_CONFIG_SOPS_BIN"


class _ExternalTool:
    """Run one executable and return its stdout."""

    tool = ""
    env_var = ""

    def __init__(self, executable: str | None = None) -> None:
        self.executable = executable or os.environ.get(self.env_var) or self.tool

    def _arguments(self, path: Path) -> Sequence[str]:
        raise NotImplementedError

    def _run(self, path: Path) -> str:
        resolved = shutil.which(self.executable)
        if resolved is None:
            log_error("tool_failed", layer=self.tool, path=str(path), error="executable not found")
            raise ToolUnavailable(f"{self.tool} executable not found: {self.executable}")
        command = [resolved, *self._arguments(path)]
        try:
            completed = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            log_error("tool_failed", layer=self.tool, path=str(path), error=str(exc))
            raise ToolUnavailable(f"Could not run {self.executable}: {exc}") from exc
        if completed.returncode != 0:
            output = (completed.stderr or completed.stdout).strip()
            log_error("tool_failed", layer=self.tool, path=str(path), returncode=completed.returncode, error=output)
            raise LoadError(f"{self.tool} failed for file {path} (exit {completed.returncode});\n{output}")
        log_debug("tool_succeeded", layer=self.tool, path=str(path), size=len(completed.stdout))
        return completed.stdout


class CueExporter(_ExternalTool):
    """Translate a ``.cue`` document into JSON text with ``cue export``."""

    tool = "cue"
    env_var = CUE_BIN_ENV

    def _arguments(self, path: Path) -> Sequence[str]:
        return ["export", str(path)]

    def translate(self, path: Path) -> str:
        return self._run(path)


class SopsDecryptor(_ExternalTool):
    """Decrypt a ``*.sops.*`` document into JSON text with ``sops decrypt``."""

    tool = "sops"
    env_var = SOPS_BIN_ENV

    def _arguments(self, path: Path) -> Sequence[str]:
        return ["decrypt", "--output-type", "json", str(path)]

    def decrypt(self, path: Path) -> str:
        return self._run(path)
