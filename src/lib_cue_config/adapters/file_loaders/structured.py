"""File-backed source loaders.

Purpose
-------
Turn the files a selector matches into :class:`JsonSource` objects. Plain JSON
is read directly; structured (``.cue``) and secret (``*.sops.*``) documents are
handed to the translator and decryptor collaborators, and the structured
fallback policy lives here.

Contents
--------
* :class:`FileSourceLoader` – per-file loading plus selector expansion.

Fallback policy
---------------
For a structured file loaded with ``use_fallback``: a missing file, a missing
translator, or a failed translation is retried exactly once with the sibling
``.json`` file. The retry is loaded as plain JSON and never falls back again.
"""

from __future__ import annotations

from pathlib import Path

from ...application.ports import Decryptor, RankedSource, SelectorEnumerator, Translator
from ...domain.errors import LoadError
from ...domain.phase import SourceKind
from ...domain.selector import FileSelector
from ...domain.source import JsonSource, kind_for_path
from ...observability import log_debug, log_error
from ..selectors.default import rank_key


class FileSourceLoader:
    """Load files of every supported kind.

    Parameters
    ----------
    enumerator:
        Expands selectors into existing paths.
    translator / decryptor:
        External collaborators for structured and secret documents.
    """

    def __init__(
        self,
        enumerator: SelectorEnumerator,
        translator: Translator,
        decryptor: Decryptor,
    ) -> None:
        self.enumerator = enumerator
        self.translator = translator
        self.decryptor = decryptor

    def sources_for(self, selector: FileSelector) -> list[RankedSource]:
        """Load every file matched by *selector*, lowest precedence first."""

        loaded = [
            self._ranked(self.load(path, use_fallback=selector.use_fallback))
            for path in self.enumerator.enumerate(selector)
        ]
        if loaded or selector.path is None or not selector.use_fallback:
            return loaded
        # a missing literal structured file still resolves to its sibling
        primary = self.enumerator.anchor(selector.path)
        if kind_for_path(primary) is SourceKind.STRUCTURED and _sibling(primary).is_file():
            return [self._ranked(self.load(primary, use_fallback=True))]
        return loaded

    def load(self, path: Path, *, use_fallback: bool = False) -> JsonSource:
        """Load one file according to its extension.

        Raises
        ------
        LoadError
            Missing file, tool failure, invalid JSON or unsupported extension,
            after the fallback (when enabled) has also failed. Invalid JSON from
            a successful translation never triggers the fallback.
        """

        kind = kind_for_path(path)
        try:
            text = self._read(kind, path)
        except LoadError as exc:
            if kind is not SourceKind.STRUCTURED or not use_fallback:
                raise
            fallback = _sibling(path)
            log_debug("source_fallback", layer=kind.value, path=str(path), fallback=str(fallback), reason=str(exc))
            if not fallback.is_file():
                raise LoadError(f"Structured file {path} unavailable and no fallback {fallback} found: {exc}") from exc
            kind, path = SourceKind.JSON, fallback
            text = self._read(kind, path)
        source = JsonSource.from_text(kind, text, path=str(path))
        log_debug("source_loaded", layer=kind.value, path=str(path), keys=sorted(source.document))
        return source

    def _read(self, kind: SourceKind, path: Path) -> str:
        if not path.is_file():
            raise LoadError(f"File does not exist: {path}")
        if kind is SourceKind.STRUCTURED:
            return self.translator.translate(path)
        if kind is SourceKind.SECRET:
            return self.decryptor.decrypt(path)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log_error("source_unreadable", layer=kind.value, path=str(path), error=str(exc))
            raise LoadError(f"Cannot read {path}: {exc}") from exc

    @staticmethod
    def _ranked(source: JsonSource) -> RankedSource:
        if source.path is None:
            raise LoadError(f"Cannot rank {source.label}: it is not backed by a file")
        return RankedSource(rank_key(Path(source.path)), source)


def _sibling(path: Path) -> Path:
    return path.with_suffix(".json")
