"""Application-layer merge policy.

Purpose
-------
Implement the recursive object merge shared by key lookups and the full merged
view. Objects merge key by key; every other value (scalars, arrays, ``null``)
replaces what was there. The module performs no I/O so it can be reused by any
composition root.

Contents
    - ``merge_in``: recursive in-place merge of one object into another.
    - ``merge_sources``: fold sources low→high into a document plus provenance.
    - ``_merge_mapping`` / ``_set_leaf`` / ``_clear_branch``: provenance helpers.
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Any, Iterable

from ..domain.config import SourceInfo
from ..domain.phase import PrecedenceClass
from ..domain.source import JsonSource


def merge_in(dest: dict[str, Any], src: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *src* into *dest* and return *dest*.

    Keys only in *dest* survive, keys only in *src* are added, and colliding
    keys take the value from *src* unless both sides are objects, in which case
    the merge recurses. Arrays are replaced wholesale.

    Examples
    --------
    >>> merge_in({"db": {"host": "h1", "port": 1}, "tags": [1]}, {"db": {"host": "h2"}, "tags": [2]})
    {'db': {'host': 'h2', 'port': 1}, 'tags': [2]}
    """

    for key, value in src.items():
        existing = dest.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            merge_in(existing, value)
        else:
            dest[key] = deepcopy(value)
    return dest


def merge_sources(
    entries: Iterable[tuple[PrecedenceClass, JsonSource]],
) -> tuple[dict[str, Any], dict[str, SourceInfo]]:
    """Merge source documents ordered low→high, tracking leaf provenance.

    Parameters
    ----------
    entries:
        ``(precedence_class, source)`` pairs from lowest to highest precedence.

    Returns
    -------
    tuple[dict[str, Any], dict[str, SourceInfo]]
        The merged document and a map from dotted leaf keys to their origin.
    """

    merged: dict[str, Any] = {}
    meta: dict[str, SourceInfo] = {}
    for precedence, source in entries:
        _merge_mapping(merged, meta, source.document, precedence.label, source.label, [])
    return merged, meta


def _merge_mapping(
    target: dict[str, Any],
    meta: dict[str, SourceInfo],
    incoming: Mapping[str, Any],
    precedence: str,
    source: str,
    segments: list[str],
) -> None:
    for key, value in incoming.items():
        dotted = ".".join([*segments, key])
        existing = target.get(key)
        if isinstance(value, Mapping):
            if not isinstance(existing, dict):
                _clear_branch(meta, dotted)
                existing = target[key] = {}
            _merge_mapping(existing, meta, value, precedence, source, [*segments, key])
        else:
            _set_leaf(target, meta, key, value, dotted, precedence, source)


def _set_leaf(
    target: dict[str, Any],
    meta: dict[str, SourceInfo],
    key: str,
    value: Any,
    dotted: str,
    precedence: str,
    source: str,
) -> None:
    """Assign a non-object value and record where it came from."""

    _clear_branch(meta, dotted)
    target[key] = deepcopy(value)
    meta[dotted] = {"precedence": precedence, "source": source, "key": dotted}


def _clear_branch(meta: dict[str, SourceInfo], prefix: str) -> None:
    """Remove provenance entries for *prefix* and its descendants."""

    for meta_key in list(meta):
        if meta_key == prefix or meta_key.startswith(prefix + "."):
            meta.pop(meta_key, None)
