"""Precedence resolver and configuration store.

Purpose
-------
Own the eight precedence buckets, decide when they must be recomputed, and
answer key lookups with the shadow-merge rule for objects and the top-hit rule
for everything else.

Contents
--------
* :class:`Store` – one instance per phase; registration mutators, lazy and
  explicit refresh, ``get`` / ``contains`` / ``get_typed`` and diagnostics.

System Role
-----------
Sits between the registries (what to load) and the adapters reached through
:class:`~lib_cue_config.application.ports.SourceLoader` (how to load it). The
run-phase store also owns the committed build snapshot and fills the
``build-*`` buckets from it.

Refresh lifecycle
-----------------
Registration changes and ``clear`` mark the store stale. The next lookup (or an
explicit :meth:`Store.refresh`) rebuilds the current phase's four buckets into
temporaries and swaps them in only when everything loaded, so a failing
refresh leaves the previous content readable and the store still stale.
Deregistration leaves loaded sources in place until the next refresh.
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Mapping
from copy import deepcopy
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Iterator, Sequence, TypeVar

from ..domain.config import ConfigView
from ..domain.errors import (
    ConfigError,
    KeyNotFoundError,
    SelectorConfigError,
    SerializationError,
    TypeMismatchError,
)
from ..domain.phase import Phase, PrecedenceClass, SourceKind
from ..domain.selector import EnvPrefix, FileSelector, compare_rank
from ..domain.source import MISSING, JsonSource, Snapshot, lookup, split_key
from ..observability import log_debug, log_error, log_info, make_event
from .merge import merge_in, merge_sources
from .ports import RankedSource, SourceLoader
from .registry import Registry

T = TypeVar("T")

Bucket = dict[str, JsonSource]
Key = str | Sequence[str]


class Store:
    """Precedence-ordered configuration for one phase.

    Parameters
    ----------
    phase:
        Phase whose buckets this store loads; the other phase's buckets are
        only ever filled from a snapshot (run phase) or left empty (build
        phase).
    registry:
        Registrations consulted on refresh.
    loader:
        Adapter that turns selectors and prefixes into sources.
    snapshot:
        Committed build-phase sources (run phase only).
    """

    def __init__(
        self,
        phase: Phase,
        registry: Registry,
        loader: SourceLoader,
        *,
        snapshot: Snapshot | None = None,
    ) -> None:
        if registry.phase is not phase:
            raise ConfigError(f"Registry for {registry.phase.value} phase cannot feed a {phase.value} store")
        self.phase = phase
        self.registry = registry
        self.loader = loader
        self._buckets: list[Bucket] = [{} for _ in PrecedenceClass]
        self._snapshot: Snapshot | None = None
        self._applied_checksum: str | None = None
        self._stale = True
        self._lock = threading.RLock()
        if snapshot is not None:
            self.install_snapshot(snapshot)

    # ------------------------------------------------------------------ state

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    # --------------------------------------------------------------- mutators

    def register(self, selector: FileSelector) -> None:
        """Register *selector*; new selectors and changed flags mark the store stale."""

        with self._lock:
            if self.registry.add_selector(selector):
                self._stale = True

    def deregister(self, selector: FileSelector) -> None:
        """Remove exactly *selector*; loaded sources stay until the next refresh."""

        with self._lock:
            self.registry.remove_selector(selector)

    def deregister_path(self, path: str) -> bool:
        with self._lock:
            return self.registry.remove_path(path)

    def deregister_pattern(self, search_root: str, pattern: str) -> bool:
        with self._lock:
            return self.registry.remove_pattern(search_root, pattern)

    def register_env(self, registration: EnvPrefix) -> None:
        with self._lock:
            if self.registry.add_prefix(registration):
                self._stale = True

    def deregister_env(self, prefix: str) -> bool:
        with self._lock:
            return self.registry.remove_prefix(prefix)

    def clear(self) -> None:
        """Drop this phase's registrations and loaded sources.

        Buckets of the other phase, including a committed build snapshot held
        by the run store, survive.
        """

        with self._lock:
            self.registry.clear()
            for precedence in PrecedenceClass.for_phase(self.phase):
                self._buckets[precedence] = {}
            self._stale = True

    def install_snapshot(self, snapshot: Snapshot) -> None:
        """Attach a committed build snapshot; it is applied on the next refresh."""

        if self.phase is not Phase.RUN:
            raise SerializationError("Snapshots can only be installed into the run-phase store")
        with self._lock:
            self._snapshot = snapshot
            self._stale = True

    # ---------------------------------------------------------------- refresh

    def refresh(self) -> None:
        """Reload every registration of this phase, replacing its buckets.

        Raises
        ------
        ConfigError
            Any load, interpolation, selector or snapshot failure. The store
            keeps its previous buckets and stays stale.
        """

        with self._lock:
            try:
                buckets, checksum = self._rebuild()
            except ConfigError as exc:
                self._stale = True
                log_error(
                    "refresh_failed",
                    **make_event("store", None, {"phase": self.phase.value, "error": str(exc)}),
                )
                raise
            self._buckets = buckets
            self._applied_checksum = checksum
            self._stale = False
            log_info(
                "store_refreshed",
                **make_event(
                    "store",
                    None,
                    {"phase": self.phase.value, "sources": sum(len(bucket) for bucket in buckets)},
                ),
            )

    def ensure_fresh(self) -> None:
        """Refresh only when a registration change made the store stale."""

        with self._lock:
            if self._stale:
                self.refresh()

    def _rebuild(self) -> tuple[list[Bucket], str | None]:
        buckets = list(self._buckets)
        checksum = self._applied_checksum
        if self.phase is Phase.RUN and self._snapshot is not None and self._snapshot.checksum != checksum:
            for precedence, bucket in _snapshot_buckets(self._snapshot).items():
                buckets[precedence] = bucket
            checksum = self._snapshot.checksum
            log_debug(
                "snapshot_applied",
                **make_event("snapshot", None, {"records": len(self._snapshot), "checksum": checksum}),
            )
        for precedence, bucket in self._load_registered().items():
            buckets[precedence] = bucket
        return buckets, checksum

    def _load_registered(self) -> dict[PrecedenceClass, Bucket]:
        by_kind: dict[SourceKind, dict[str, RankedSource]] = {
            kind: {} for kind in (SourceKind.JSON, SourceKind.STRUCTURED, SourceKind.SECRET)
        }
        for selector in self.registry.selectors:
            loaded = self.loader.sources_for(selector)
            if not loaded and selector.required:
                raise SelectorConfigError(f"Required selector {selector} matched no files")
            for ranked in loaded:
                by_kind[ranked.source.kind][ranked.source.fingerprint] = ranked
        _exclude_shadowed_json(by_kind)

        result: dict[PrecedenceClass, Bucket] = {}
        for kind, entries in by_kind.items():
            ordered = sorted(entries.values(), key=cmp_to_key(lambda a, b: compare_rank(a.rank, b.rank)))
            result[PrecedenceClass.of(self.phase, kind)] = {
                ranked.source.fingerprint: ranked.source for ranked in ordered
            }

        env_bucket: Bucket = {}
        for registration in self.registry.prefixes:
            source = self.loader.env_source(registration)
            env_bucket.pop(source.fingerprint, None)
            env_bucket[source.fingerprint] = source
        result[PrecedenceClass.of(self.phase, SourceKind.ENVIRONMENT)] = env_bucket
        return result

    # ---------------------------------------------------------------- lookups

    def iter_sources(self, *, reverse: bool = False) -> Iterator[tuple[PrecedenceClass, JsonSource]]:
        """Iterate ``(class, source)`` pairs low→high, or high→low when *reverse*.

        The pairs are captured under the store lock, so a concurrent refresh
        never changes a listing that is already being iterated.
        """

        classes = reversed(PrecedenceClass) if reverse else iter(PrecedenceClass)
        pairs: list[tuple[PrecedenceClass, JsonSource]] = []
        with self._lock:
            for precedence in classes:
                sources = list(self._buckets[precedence].values())
                pairs.extend((precedence, source) for source in (reversed(sources) if reverse else sources))
        return iter(pairs)

    def refreshed_sources(self) -> list[JsonSource]:
        """Reload every registration and return the loaded sources low→high.

        Refresh and listing happen under one lock hold.
        """

        with self._lock:
            self.refresh()
            return [source for _, source in self.iter_sources()]

    def get(self, key: Key) -> Any:
        """Resolve *key* (dotted string or segment sequence).

        Objects are the union of every source defining an object at the key,
        merged low→high. Any other value comes from the highest-precedence
        source alone.

        Raises
        ------
        KeyNotFoundError
            When no loaded source contains the key path.
        """

        segments = split_key(key)
        with self._lock:
            self.ensure_fresh()
            for _, source in self.iter_sources(reverse=True):
                value = lookup(source.document, segments)
                if value is MISSING:
                    continue
                if not isinstance(value, Mapping):
                    return deepcopy(value)
                accumulator: dict[str, Any] = {}
                for _, contributor in self.iter_sources():
                    contribution = lookup(contributor.document, segments)
                    if isinstance(contribution, Mapping):
                        merge_in(accumulator, contribution)
                return accumulator
            dotted = ".".join(segments)
            log_debug("key_missing", **make_event("store", None, {"key": dotted, "phase": self.phase.value}))
            raise KeyNotFoundError(dotted, self.sources())

    def contains(self, key: Key) -> bool:
        """Return ``True`` when any source has the key path, ``null`` values included."""

        segments = split_key(key)
        with self._lock:
            self.ensure_fresh()
            return any(lookup(source.document, segments) is not MISSING for _, source in self.iter_sources())

    def get_typed(self, key: Key, kind: type[T]) -> T:
        """Return the value at *key* as *kind*.

        Strings are parsed when a number is requested, integers are accepted
        where a float is requested, and booleans never pass as integers. A
        value ``"8080"`` stored under ``port`` comes back from
        ``store.get_typed("port", int)`` as ``8080``.

        Raises
        ------
        KeyNotFoundError
            When no loaded source contains the key path.
        TypeMismatchError
            When the value cannot be represented as *kind*.
        """

        return _coerce(".".join(split_key(key)), self.get(key), kind)

    # ------------------------------------------------------------ diagnostics

    def sources(self) -> list[str]:
        """Labels of loaded sources, highest precedence first."""

        return [f"{precedence.label}: {source.label}" for precedence, source in self.iter_sources(reverse=True)]

    def checksum(self) -> str:
        """Digest that changes whenever bucket order or content changes."""

        with self._lock:
            self.ensure_fresh()
            digest = hashlib.sha256()
            for precedence in PrecedenceClass:
                digest.update(precedence.label.encode("ascii"))
                for fingerprint in self._buckets[precedence]:
                    digest.update(fingerprint.encode("ascii"))
            return digest.hexdigest()

    def view(self) -> ConfigView:
        """Merged view of every loaded source with per-key provenance."""

        with self._lock:
            self.ensure_fresh()
            data, meta = merge_sources(self.iter_sources())
            return ConfigView(data, meta)

    def describe(self) -> str:
        with self._lock:
            self.ensure_fresh()
            lines = [f"Context directory: {self.loader.context_dir}", self.registry.describe()]
            if self._snapshot is not None:
                lines.append(self._snapshot.describe())
            lines.append(f"Config checksum: {self.checksum()}, stale: {self._stale}")
            for precedence, source in self.iter_sources():
                lines.append(f"{precedence.label}: {source.label}")
                lines.append(source.pretty())
            return "\n".join(lines)


def _snapshot_buckets(snapshot: Snapshot) -> dict[PrecedenceClass, Bucket]:
    buckets: dict[PrecedenceClass, Bucket] = {
        precedence: {} for precedence in PrecedenceClass.for_phase(Phase.BUILD)
    }
    for source in snapshot.sources():
        buckets[PrecedenceClass.of(Phase.BUILD, source.kind)][source.fingerprint] = source
    return buckets


def _exclude_shadowed_json(by_kind: dict[SourceKind, dict[str, RankedSource]]) -> None:
    """Drop plain JSON files that have a structured sibling of the same name."""

    siblings = {
        str(Path(ranked.source.path).with_suffix(".json"))
        for ranked in by_kind[SourceKind.STRUCTURED].values()
        if ranked.source.path is not None
    }
    json_bucket = by_kind[SourceKind.JSON]
    for fingerprint, ranked in list(json_bucket.items()):
        if ranked.source.path in siblings:
            del json_bucket[fingerprint]
            log_debug("source_excluded", **make_event("json", ranked.source.path, {"reason": "structured sibling"}))


def _coerce(key: str, value: Any, kind: type[T]) -> T:
    if kind in (int, float) and isinstance(value, str):
        try:
            return kind(value.strip().replace("_", ""))  # type: ignore[return-value]
        except ValueError as exc:
            raise TypeMismatchError(f"Value of '{key}' is not a valid {kind.__name__}: {value!r}") from exc
    if kind is int and isinstance(value, bool):
        raise TypeMismatchError(f"Value of '{key}' is a boolean, not an integer")
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)  # type: ignore[return-value]
    if not isinstance(value, kind):
        raise TypeMismatchError(f"Value of '{key}' is {type(value).__name__}, not {kind.__name__}")
    return value
