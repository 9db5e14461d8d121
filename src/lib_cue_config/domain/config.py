"""Immutable view of the fully merged configuration document.

Purpose
-------
Give tooling (CLI ``show``, inspection dumps, tests) a read-only mapping of the
whole merged document together with the provenance of every leaf, without
exposing the store's buckets.

Contents
--------
* :class:`SourceInfo` – where a leaf value came from.
* :class:`ConfigView` – ``Mapping`` with dotted access, provenance lookup and
  JSON export.
* :data:`EMPTY_VIEW` – canonical empty instance.
"""

from __future__ import annotations

import json
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping, TypedDict

from .source import MISSING, lookup, split_key


class SourceInfo(TypedDict):
    """Describe the origin of a resolved leaf.

    Attributes
    ----------
    precedence:
        Label of the precedence class (``"run-cue"``, ``"build-env"`` ...).
    source:
        Label of the winning source (``"cue(/etc/app/config.cue)"``).
    key:
        Fully qualified dotted key.
    """

    precedence: str
    source: str
    key: str


@dataclass(frozen=True, slots=True)
class ConfigView(MappingABC[str, Any]):
    """Read-only merged configuration with per-key provenance.

    Examples
    --------
    >>> view = ConfigView(
    ...     {"db": {"host": "h2", "port": 1}},
    ...     {"db.host": {"precedence": "run-cue", "source": "cue(c.cue)", "key": "db.host"}},
    ... )
    >>> view.get("db.host"), view.get("db.user", default="root")
    ('h2', 'root')
    >>> view.origin("db.host")["source"]
    'cue(c.cue)'
    """

    _data: Mapping[str, Any]
    _meta: Mapping[str, SourceInfo]

    def __post_init__(self) -> None:
        object.__setattr__(self, "_data", MappingProxyType(dict(self._data)))
        object.__setattr__(self, "_meta", MappingProxyType(dict(self._meta)))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str, default: Any = None) -> Any:  # type: ignore[override]
        """Resolve *key* as a dotted path, returning *default* when missing."""

        value = lookup(self._data, split_key(key))
        return default if value is MISSING else value

    def origin(self, key: str) -> SourceInfo | None:
        """Return provenance for the leaf *key* or ``None``."""

        return self._meta.get(key)

    def provenance(self) -> dict[str, SourceInfo]:
        return dict(self._meta)

    def as_dict(self) -> dict[str, Any]:
        """Return a deep, mutable copy of the merged document."""

        return _deepcopy_mapping(self._data)

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.as_dict(), indent=indent, ensure_ascii=False)


def _deepcopy_mapping(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {key: _deepcopy_value(value) for key, value in mapping.items()}


def _deepcopy_value(value: Any) -> Any:
    if isinstance(value, MappingABC):
        return _deepcopy_mapping(value)
    if isinstance(value, list):
        return [_deepcopy_value(item) for item in value]
    return value


#: Shared empty view used when nothing is loaded.
EMPTY_VIEW = ConfigView({}, {})
