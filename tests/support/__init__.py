"""Shared fixtures for the lib_cue_config test-suite.

Real ``cue`` and ``sops`` binaries are never required: ``.cue`` and
``*.sops.*`` files written by :class:`ConfigSandbox` already contain JSON, and
the fake collaborators below simply read them back.
"""

from __future__ import annotations

import json
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from lib_cue_config.core import ConfigContext
from lib_cue_config.domain.errors import LoadError, ToolUnavailable


class PassthroughTranslator:
    """Translator that returns the file text unchanged and records every call."""

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def translate(self, path: Path) -> str:
        self.calls.append(Path(path))
        return Path(path).read_text(encoding="utf-8")


class FailingTranslator:
    """Translator that always fails, either as a missing tool or a failed export."""

    def __init__(self, *, missing_tool: bool = False) -> None:
        self.missing_tool = missing_tool
        self.calls: list[Path] = []

    def translate(self, path: Path) -> str:
        self.calls.append(Path(path))
        if self.missing_tool:
            raise ToolUnavailable("cue executable not found: cue")
        raise LoadError(f"cue failed for file {path} (exit 1)")


class FakeDecryptor:
    """Decryptor returning the stored JSON text."""

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def decrypt(self, path: Path) -> str:
        self.calls.append(Path(path))
        return Path(path).read_text(encoding="utf-8")


@dataclass
class ConfigSandbox:
    """Temporary directory tree holding configuration files."""

    root: Path
    _clock: float = field(default=1_600_000_000.0)

    def path(self, relative: str) -> Path:
        return self.root / relative

    def write(self, relative: str, payload: Mapping[str, Any] | str, *, mtime: float | None = None) -> Path:
        """Write JSON (or raw text) to *relative*, giving each file a distinct, increasing mtime."""

        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        text = payload if isinstance(payload, str) else json.dumps(payload)
        target.write_text(text, encoding="utf-8")
        if mtime is None:
            self._clock += 10
            mtime = self._clock
        os.utime(target, (mtime, mtime))
        return target


def create_config_sandbox(tmp_path: Path) -> ConfigSandbox:
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    return ConfigSandbox(root)


def make_context(
    sandbox: ConfigSandbox,
    *,
    environ: Mapping[str, str] | None = None,
    translator: Any = None,
    decryptor: Any = None,
    snapshot: Any = None,
) -> ConfigContext:
    """Return a context rooted at the sandbox with fake collaborators."""

    return ConfigContext(
        project_root=sandbox.root,
        environ={} if environ is None else environ,
        translator=translator if translator is not None else PassthroughTranslator(),
        decryptor=decryptor if decryptor is not None else FakeDecryptor(),
        snapshot=snapshot,
    )


def write_executable(path: Path, body: str) -> Path:
    """Write a POSIX shell script and mark it executable."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


__all__ = [
    "ConfigSandbox",
    "FailingTranslator",
    "FakeDecryptor",
    "PassthroughTranslator",
    "create_config_sandbox",
    "make_context",
    "write_executable",
]
