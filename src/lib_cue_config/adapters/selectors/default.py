"""Selector interpolation, enumeration and ranking.

Purpose
-------
Implement :class:`lib_cue_config.application.ports.SelectorEnumerator`. This is
the only component that walks directories: it rewrites ``{NAME}`` tokens,
anchors relative locations at the phase context directory, and yields matched
files in precedence order.

Contents
--------
* :func:`interpolate` – token substitution with strict environment lookups.
* :func:`rank_key` – ``(parent depth, mtime, path)`` of one file.
* :class:`DefaultSelectorEnumerator` – literal and pattern enumeration.

System Role
-----------
Used by the phase loader in :mod:`lib_cue_config.core`. Interpolation runs on
every enumeration so a changed environment variable is picked up by the next
refresh.
"""

from __future__ import annotations

import os
import re
from functools import cmp_to_key
from pathlib import Path
from typing import Callable, Iterator, Mapping

from ...domain.errors import InterpolationError, SelectorConfigError
from ...domain.selector import FileSelector, RankKey, compare_rank
from ...observability import log_debug

#: Tokens that resolve to the phase context directory.
CONTEXT_TOKENS = ("{getContextDir()}", "{CONTEXT_DIR}")

_TOKEN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def interpolate(text: str, context_dir: Path, environ: Mapping[str, str]) -> str:
    """Replace context and environment tokens inside *text*.

    Only identifier-shaped tokens are substituted, so regular-expression
    quantifiers such as ``{2,3}`` pass through untouched.

    Raises
    ------
    InterpolationError
        When a referenced variable is unset or empty.

    Examples
    --------
    >>> interpolate("{getContextDir()}/{APP}/conf", Path("/srv"), {"APP": "billing"})
    '/srv/billing/conf'
    >>> interpolate(r"\\d{2}\\.json$", Path("/srv"), {})
    '\\\\d{2}\\\\.json$'
    >>> interpolate("{MISSING}", Path("/srv"), {})
    Traceback (most recent call last):
    ...
    lib_cue_config.domain.errors.InterpolationError: Interpolation variable MISSING is empty or unset (in '{MISSING}')
    """

    result = text
    for token in CONTEXT_TOKENS:
        result = result.replace(token, str(context_dir))

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        value = environ.get(name, "")
        if not value:
            raise InterpolationError(f"Interpolation variable {name} is empty or unset (in {text!r})")
        return value

    return _TOKEN.sub(_substitute, result)


def rank_key(path: Path) -> RankKey:
    """Return the ranking key of an existing file."""

    return (len(path.parent.parts), path.stat().st_mtime, str(path))


class DefaultSelectorEnumerator:
    """Enumerate existing files matched by a selector.

    Parameters
    ----------
    context_dir:
        Directory (or a callable producing it) that anchors relative paths
        and resolves the context token. A callable is evaluated on every
        enumeration, which lets the run phase follow ``os.chdir``.
    environ:
        Mapping consulted for ``{NAME}`` tokens. Defaults to :data:`os.environ`.
    """

    def __init__(
        self,
        context_dir: Path | Callable[[], Path],
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._context_dir = context_dir
        self._environ = os.environ if environ is None else environ

    @property
    def context_dir(self) -> Path:
        value = self._context_dir() if callable(self._context_dir) else self._context_dir
        return Path(value)

    def anchor(self, text: str) -> Path:
        """Interpolate *text*, anchor it at the context directory and normalise it.

        ``..`` and ``.`` segments are collapsed lexically, without resolving
        symlinks, so two spellings of one file produce the same path.
        """

        context = self.context_dir
        candidate = Path(interpolate(text, context, self._environ)) if text else context
        if not candidate.is_absolute():
            candidate = context / candidate
        return Path(os.path.normpath(candidate))

    def enumerate(self, selector: FileSelector, *, reverse: bool = False) -> Iterator[Path]:
        """Yield matched paths, lowest precedence first unless *reverse*.

        Each call re-scans the filesystem.
        """

        if selector.pattern is None:
            if selector.path is None:
                raise SelectorConfigError(f"Selector {selector} has neither a path nor a pattern")
            path = self.anchor(selector.path)
            if path.is_file():
                yield path
            return

        root = self.anchor(selector.search_root or "")
        pattern = re.compile(interpolate(selector.pattern, self.context_dir, self._environ))
        matches = sorted(
            ((rank_key(path), path) for path in self._walk(root, pattern, selector.follow_links)),
            key=cmp_to_key(lambda a, b: compare_rank(a[0], b[0])),
            reverse=reverse,
        )
        log_debug(
            "selector_enumerated",
            layer="selector",
            path=str(root),
            pattern=selector.pattern,
            matches=[str(path) for _, path in matches],
        )
        for _, path in matches:
            yield path

    @staticmethod
    def _walk(root: Path, pattern: re.Pattern[str], follow_links: bool) -> Iterator[Path]:
        if not root.is_dir():
            return
        seen: set[Path] = set()
        for directory, _dirnames, filenames in os.walk(root, followlinks=False):
            for name in filenames:
                candidate = Path(directory) / name
                if not candidate.is_file():
                    continue
                if follow_links and candidate.is_symlink():
                    candidate = Path(os.path.realpath(candidate))
                if candidate in seen:
                    continue
                if pattern.search(_match_text(candidate, root)):
                    seen.add(candidate)
                    yield candidate


def _match_text(path: Path, root: Path) -> str:
    """Relative POSIX path under *root*, or the full path for files outside it."""

    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()
