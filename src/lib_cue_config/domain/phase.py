"""Phase, source kind, and precedence class enumerations.

Purpose
-------
Name the two lifecycle phases, the four source kinds and the eight precedence
classes explicitly so the store can index its buckets by enum value instead of
looking collections up by name.

Contents
--------
* :class:`Phase` – build-time versus run-time execution context.
* :class:`SourceKind` – origin of a :class:`~lib_cue_config.domain.source.JsonSource`.
* :class:`PrecedenceClass` – the totally ordered ``phase × kind`` buckets.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class Phase(str, Enum):
    """Lifecycle phase that owns a registry and a store."""

    BUILD = "build"
    RUN = "run"


class SourceKind(str, Enum):
    """Origin of a configuration source.

    The values double as the ``kind`` tag of serialized records.
    """

    JSON = "json"
    STRUCTURED = "cue"
    SECRET = "sops"
    ENVIRONMENT = "env"

    @property
    def is_file(self) -> bool:
        return self is not SourceKind.ENVIRONMENT


_KIND_ORDER = (SourceKind.JSON, SourceKind.STRUCTURED, SourceKind.SECRET, SourceKind.ENVIRONMENT)


class PrecedenceClass(IntEnum):
    """Precedence buckets ordered from lowest to highest.

    Examples
    --------
    >>> PrecedenceClass.of(Phase.RUN, SourceKind.JSON) > PrecedenceClass.BUILD_ENV
    True
    >>> PrecedenceClass.RUN_SECRET.phase, PrecedenceClass.RUN_SECRET.kind
    (<Phase.RUN: 'run'>, <SourceKind.SECRET: 'sops'>)
    """

    BUILD_JSON = 0
    BUILD_STRUCTURED = 1
    BUILD_SECRET = 2
    BUILD_ENV = 3
    RUN_JSON = 4
    RUN_STRUCTURED = 5
    RUN_SECRET = 6
    RUN_ENV = 7

    @classmethod
    def of(cls, phase: Phase, kind: SourceKind) -> PrecedenceClass:
        offset = 0 if phase is Phase.BUILD else len(_KIND_ORDER)
        return cls(offset + _KIND_ORDER.index(kind))

    @classmethod
    def for_phase(cls, phase: Phase) -> tuple[PrecedenceClass, ...]:
        """Return the four classes owned by *phase*, low to high."""

        return tuple(cls.of(phase, kind) for kind in _KIND_ORDER)

    @property
    def phase(self) -> Phase:
        return Phase.BUILD if self.value < len(_KIND_ORDER) else Phase.RUN

    @property
    def kind(self) -> SourceKind:
        return _KIND_ORDER[self.value % len(_KIND_ORDER)]

    @property
    def label(self) -> str:
        """Short label such as ``build-cue`` used in diagnostics."""

        return f"{self.phase.value}-{self.kind.value}"
