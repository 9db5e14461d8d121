"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts the store relies on so it can orchestrate
loading without depending on subprocesses, the filesystem, or ``os.environ``
directly.

Contents
--------
* :class:`Translator` – turns a structured document into JSON text.
* :class:`Decryptor` – turns an encrypted secret document into JSON text.
* :class:`SelectorEnumerator` – yields existing paths matched by a selector.
* :class:`SourceLoader` – materialises files and env prefixes as sources.
* :class:`RankedSource` – loaded file source plus its rank key.

System Role
-----------
The store and the phase bridge only see these protocols. The default adapters
live under :mod:`lib_cue_config.adapters`; tests substitute fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, NamedTuple, Protocol, runtime_checkable

from ..domain.selector import EnvPrefix, FileSelector, RankKey
from ..domain.source import JsonSource


class RankedSource(NamedTuple):
    """A file-backed source together with its precedence rank key."""

    rank: RankKey
    source: JsonSource


@runtime_checkable
class Translator(Protocol):
    """Structured-document exporter (for example ``cue export``).

    Must return well-formed JSON text, raise
    :class:`~lib_cue_config.domain.errors.ToolUnavailable` when the tool is
    missing and :class:`~lib_cue_config.domain.errors.LoadError` on a non-zero
    exit.
    """

    def translate(self, path: Path) -> str:
        """Return the JSON text for the structured document at *path*."""


@runtime_checkable
class Decryptor(Protocol):
    """Secret decryptor (for example ``sops decrypt``). Same error contract as :class:`Translator`."""

    def decrypt(self, path: Path) -> str:
        """Return the decrypted JSON text for the secret document at *path*."""


@runtime_checkable
class SelectorEnumerator(Protocol):
    """Enumerate the existing files a selector matches, in precedence order."""

    def enumerate(self, selector: FileSelector, *, reverse: bool = False) -> Iterable[Path]:
        """Yield matched paths, lowest precedence first unless *reverse*."""

    def anchor(self, text: str) -> Path:
        """Interpolate *text* and anchor it at the context directory."""


@runtime_checkable
class SourceLoader(Protocol):
    """Turn registrations into :class:`JsonSource` objects for one phase."""

    @property
    def context_dir(self) -> Path:
        """Directory that anchors relative paths and the context token."""

    def sources_for(self, selector: FileSelector) -> list[RankedSource]:
        """Load every file matched by *selector*, applying the fallback policy."""

    def env_source(self, registration: EnvPrefix) -> JsonSource:
        """Build the environment-block source for *registration*."""
