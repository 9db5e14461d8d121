"""Registration value objects: file selectors and environment prefixes.

Purpose
-------
Describe *which* files and environment variables feed the configuration
without touching the filesystem. Identity deliberately ignores the behavioural
flags so re-registering a selector with different flags replaces it instead of
adding a duplicate.

Contents
--------
* :class:`FileSelector` – a literal path or a ``(search_root, pattern)`` pair.
* :class:`EnvPrefix` – an environment-variable prefix plus case rule.
* :func:`compare_rank` – precedence order of matched files.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .errors import SelectorConfigError


@dataclass(frozen=True, slots=True)
class FileSelector:
    """Rule describing candidate configuration files.

    Exactly one of ``path`` or ``pattern`` is set. ``search_root`` and
    ``pattern`` may contain ``{NAME}`` interpolation tokens; ``path`` may too.
    Tokens are kept verbatim here and resolved at enumeration time.

    Equality and hashing use the discriminant fields only, so flags never
    create a second registration.

    Examples
    --------
    >>> a = FileSelector.for_path("config.cue", use_fallback=True)
    >>> b = FileSelector.for_path("config.cue", use_fallback=False, required=False)
    >>> a == b, hash(a) == hash(b)
    (True, True)
    >>> FileSelector.for_pattern("conf", r"\\.json$").is_pattern
    True
    """

    path: str | None = None
    search_root: str | None = None
    pattern: str | None = None
    use_fallback: bool = field(default=False, compare=False)
    required: bool = field(default=True, compare=False)
    follow_links: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        if (self.path is None) == (self.pattern is None):
            raise SelectorConfigError("A selector needs either a path or a search root and pattern")
        if self.path is not None and not self.path.strip():
            raise SelectorConfigError("Selector path cannot be empty")
        if self.pattern is not None:
            if not self.pattern:
                raise SelectorConfigError("Selector pattern cannot be empty")
            try:
                re.compile(self.pattern)
            except re.error as exc:
                raise SelectorConfigError(f"Invalid selector pattern {self.pattern!r}: {exc}") from exc

    @classmethod
    def for_path(cls, path: str, *, use_fallback: bool = False, required: bool = True) -> FileSelector:
        return cls(path=str(path), use_fallback=use_fallback, required=required)

    @classmethod
    def for_pattern(
        cls,
        search_root: str,
        pattern: str,
        *,
        use_fallback: bool = False,
        required: bool = True,
        follow_links: bool = True,
    ) -> FileSelector:
        return cls(
            search_root=str(search_root),
            pattern=pattern,
            use_fallback=use_fallback,
            required=required,
            follow_links=follow_links,
        )

    @property
    def is_pattern(self) -> bool:
        return self.pattern is not None

    def matches_path(self, path: str) -> bool:
        """Return ``True`` when this is a literal selector for exactly *path*."""

        return not self.is_pattern and self.path == str(path)

    def matches_pattern(self, search_root: str, pattern: str) -> bool:
        """Return ``True`` when this is a pattern selector for *search_root* and *pattern*."""

        return self.is_pattern and self.search_root == str(search_root) and self.pattern == pattern

    def __str__(self) -> str:
        flags = f"fallback={self.use_fallback}, required={self.required}"
        if self.is_pattern:
            return f"pattern({self.search_root!r}, {self.pattern!r}, {flags})"
        return f"path({self.path!r}, {flags})"


@dataclass(frozen=True, slots=True)
class EnvPrefix:
    """Environment-variable prefix registration."""

    prefix: str
    case_sensitive: bool = False

    def __post_init__(self) -> None:
        if not self.prefix:
            raise SelectorConfigError("Environment prefix cannot be empty")

    def __str__(self) -> str:
        return f"{self.prefix} (case sensitive: {self.case_sensitive})"


#: ``(parent depth, modification time, path)`` for one matched file.
RankKey = tuple[int, float, str]


def compare_rank(left: RankKey, right: RankKey) -> int:
    """Order two matched files from least to most precedent.

    Shallower before deeper, older before newer, and on a full tie the
    lexically later path first, so the earliest path ends up on top.

    Examples
    --------
    >>> from functools import cmp_to_key
    >>> keys = [(2, 5.0, "/b/x/c.json"), (1, 9.0, "/b/a.json"), (1, 1.0, "/b/z.json"), (1, 9.0, "/b/b.json")]
    >>> [key[2] for key in sorted(keys, key=cmp_to_key(compare_rank))]
    ['/b/z.json', '/b/b.json', '/b/a.json', '/b/x/c.json']
    """

    if left[0] != right[0]:
        return -1 if left[0] < right[0] else 1
    if left[1] != right[1]:
        return -1 if left[1] < right[1] else 1
    if left[2] == right[2]:
        return 0
    return 1 if left[2] < right[2] else -1
