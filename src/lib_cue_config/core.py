"""Composition root for ``lib_cue_config``.

Purpose
-------
Wire the adapters (selector enumeration, file loading, environment blocks,
external tools) to the per-phase registries and stores, implement the
build→run phase bridge, and expose the small module-level API most
applications use.

Contents
--------
* :class:`PhaseLoader` – :class:`~lib_cue_config.application.ports.SourceLoader`
  bound to one phase's context directory.
* :class:`ConfigContext` – owns both phases' registries and stores plus the
  committed snapshot.
* :func:`default_context` / :func:`set_default_context` – process-wide context.
* ``register`` … ``inspect`` – convenience functions acting on the default
  context, run phase unless ``phase=Phase.BUILD`` is passed.

System Role
-----------
Build phase: the context directory is the project root
(``LIB_CUE_CONFIG_PROJECT_ROOT`` or the working directory when the context is
created). Run phase: the current working directory, read on every refresh.
:meth:`ConfigContext.commit` loads the build registrations, serialises them
into a :class:`~lib_cue_config.domain.source.Snapshot`, and hands it to the run
store, where it fills the ``build-*`` buckets.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence, TypeVar

from .adapters.env.default import DefaultEnvLoader
from .adapters.file_loaders.structured import FileSourceLoader
from .adapters.selectors.default import DefaultSelectorEnumerator
from .adapters.tools.external import CueExporter, SopsDecryptor
from .application.ports import Decryptor, RankedSource, Translator
from .application.registry import Registry
from .application.store import Store
from .domain.phase import Phase
from .domain.selector import EnvPrefix, FileSelector
from .domain.source import JsonSource, Snapshot
from .observability import log_info, make_event

T = TypeVar("T")

PROJECT_ROOT_ENV = "LIB_CUE_CONFIG_PROJECT_ROOT"


class PhaseLoader:
    """Load selectors and environment prefixes for one phase."""

    def __init__(
        self,
        phase: Phase,
        context_dir: Path | Callable[[], Path],
        *,
        environ: Mapping[str, str],
        translator: Translator,
        decryptor: Decryptor,
    ) -> None:
        self.phase = phase
        self.enumerator = DefaultSelectorEnumerator(context_dir, environ=environ)
        self.files = FileSourceLoader(self.enumerator, translator, decryptor)
        self.env = DefaultEnvLoader(environ=environ)

    @property
    def context_dir(self) -> Path:
        return self.enumerator.context_dir

    def sources_for(self, selector: FileSelector) -> list[RankedSource]:
        return self.files.sources_for(selector)

    def env_source(self, registration: EnvPrefix) -> JsonSource:
        return self.env.load(registration)


class ConfigContext:
    """Registries, stores and the phase bridge for one application.

    Parameters
    ----------
    project_root:
        Build-phase context directory. Defaults to ``LIB_CUE_CONFIG_PROJECT_ROOT``
        and then to the current working directory.
    environ:
        Environment used for interpolation and environment blocks. Defaults to
        the live :data:`os.environ`.
    translator / decryptor:
        Collaborators for ``.cue`` and ``*.sops.*`` files. Default to
        :class:`CueExporter` and :class:`SopsDecryptor`.
    snapshot:
        A committed :class:`Snapshot`, or the path of one written by
        :meth:`commit`, applied to the run store on its first refresh.

    Examples
    --------
    >>> import json, tempfile
    >>> folder = Path(tempfile.mkdtemp())
    >>> _ = (folder / "app.json").write_text(json.dumps({"app": {"name": "svc"}}))
    >>> context = ConfigContext(project_root=folder, environ={})
    >>> context.store(Phase.BUILD).register(FileSelector.for_path("app.json"))
    >>> snapshot = context.commit()
    >>> context.store().get("app.name")
    'svc'
    """

    def __init__(
        self,
        *,
        project_root: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
        translator: Translator | None = None,
        decryptor: Decryptor | None = None,
        snapshot: Snapshot | str | Path | None = None,
    ) -> None:
        self.environ = os.environ if environ is None else environ
        root = project_root or self.environ.get(PROJECT_ROOT_ENV) or Path.cwd()
        self.project_root = Path(root).absolute()
        self.translator = translator if translator is not None else CueExporter()
        self.decryptor = decryptor if decryptor is not None else SopsDecryptor()
        contexts: dict[Phase, Path | Callable[[], Path]] = {Phase.BUILD: self.project_root, Phase.RUN: Path.cwd}
        self._stores = {
            phase: Store(
                phase,
                Registry(phase),
                PhaseLoader(
                    phase,
                    contexts[phase],
                    environ=self.environ,
                    translator=self.translator,
                    decryptor=self.decryptor,
                ),
            )
            for phase in Phase
        }
        if snapshot is not None:
            self.install_snapshot(snapshot)

    def store(self, phase: Phase = Phase.RUN) -> Store:
        return self._stores[Phase(phase)]

    def registry(self, phase: Phase = Phase.RUN) -> Registry:
        return self.store(phase).registry

    def commit(self, output: str | Path | None = None) -> Snapshot:
        """Carry the build registrations across to the run store.

        Every build selector and prefix is loaded with the project root as
        context directory and serialised. The run store picks the snapshot up
        on its next refresh. Committing again simply re-derives the snapshot.

        Parameters
        ----------
        output:
            Optional file that receives the snapshot as JSON.

        Raises
        ------
        SerializationError
            When any build selector resolves to a secret file; nothing is
            committed in that case.
        ConfigError
            Any failure while loading the build registrations.
        """

        snapshot = Snapshot.from_sources(self.store(Phase.BUILD).refreshed_sources())
        if output is not None:
            snapshot.dump(output)
        self.store(Phase.RUN).install_snapshot(snapshot)
        log_info(
            "snapshot_committed",
            **make_event(
                "snapshot",
                str(output) if output is not None else None,
                {"records": len(snapshot), "checksum": snapshot.checksum},
            ),
        )
        return snapshot

    def install_snapshot(self, snapshot: Snapshot | str | Path) -> Snapshot:
        """Install a snapshot object or load one from a file written by :meth:`commit`."""

        resolved = snapshot if isinstance(snapshot, Snapshot) else Snapshot.load(snapshot)
        self.store(Phase.RUN).install_snapshot(resolved)
        return resolved

    def inspect(self, phase: Phase = Phase.RUN) -> str:
        return self.store(phase).describe()


_DEFAULT_CONTEXT: ConfigContext | None = None
_DEFAULT_LOCK = threading.Lock()


def default_context() -> ConfigContext:
    """Return the process-wide context, creating it on first use."""

    global _DEFAULT_CONTEXT
    with _DEFAULT_LOCK:
        if _DEFAULT_CONTEXT is None:
            _DEFAULT_CONTEXT = ConfigContext()
        return _DEFAULT_CONTEXT


def set_default_context(context: ConfigContext | None) -> ConfigContext | None:
    """Replace the process-wide context and return the previous one.

    Passing ``None`` makes the next call to :func:`default_context` build a
    fresh context.
    """

    global _DEFAULT_CONTEXT
    with _DEFAULT_LOCK:
        previous, _DEFAULT_CONTEXT = _DEFAULT_CONTEXT, context
        return previous


def register(path: str, *, use_fallback: bool = True, required: bool = True, phase: Phase = Phase.RUN) -> None:
    """Register one configuration file; ``.cue`` files fall back to ``.json`` by default."""

    default_context().store(phase).register(FileSelector.for_path(path, use_fallback=use_fallback, required=required))


def register_pattern(
    search_root: str,
    pattern: str,
    *,
    use_fallback: bool = True,
    required: bool = True,
    follow_links: bool = True,
    phase: Phase = Phase.RUN,
) -> None:
    """Register every file below *search_root* whose relative path matches *pattern*."""

    selector = FileSelector.for_pattern(
        search_root,
        pattern,
        use_fallback=use_fallback,
        required=required,
        follow_links=follow_links,
    )
    default_context().store(phase).register(selector)


def deregister(path: str, *, phase: Phase = Phase.RUN) -> bool:
    """Remove the literal selector for *path*; loaded values remain until :func:`reload`."""

    return default_context().store(phase).deregister_path(path)


def deregister_pattern(search_root: str, pattern: str, *, phase: Phase = Phase.RUN) -> bool:
    return default_context().store(phase).deregister_pattern(search_root, pattern)


def register_env(prefix: str, *, case_sensitive: bool = False, phase: Phase = Phase.RUN) -> None:
    default_context().store(phase).register_env(EnvPrefix(prefix, case_sensitive))


def deregister_env(prefix: str, *, phase: Phase = Phase.RUN) -> bool:
    return default_context().store(phase).deregister_env(prefix)


def clear(*, phase: Phase = Phase.RUN) -> None:
    """Drop registrations and loaded sources of *phase*; committed build values stay."""

    default_context().store(phase).clear()


def reload(*, phase: Phase = Phase.RUN) -> None:
    default_context().store(phase).refresh()


def commit(output: str | Path | None = None) -> Snapshot:
    return default_context().commit(output)


def get_config(key: str | Sequence[str], kind: type[T] | None = None, *, phase: Phase = Phase.RUN) -> Any:
    """Resolve *key*; with *kind* the value is checked and coerced like :meth:`Store.get_typed`."""

    store = default_context().store(phase)
    if kind is None:
        return store.get(key)
    return store.get_typed(key, kind)


def has_key(key: str | Sequence[str], *, phase: Phase = Phase.RUN) -> bool:
    return default_context().store(phase).contains(key)


def inspect(*, phase: Phase = Phase.RUN) -> str:
    return default_context().inspect(phase)


__all__ = [
    "PROJECT_ROOT_ENV",
    "ConfigContext",
    "PhaseLoader",
    "clear",
    "commit",
    "default_context",
    "deregister",
    "deregister_env",
    "deregister_pattern",
    "get_config",
    "has_key",
    "inspect",
    "register",
    "register_env",
    "register_pattern",
    "reload",
    "set_default_context",
]
