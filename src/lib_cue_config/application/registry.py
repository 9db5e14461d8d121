"""Per-phase registration bookkeeping.

Purpose
-------
Hold the file selectors and environment prefixes registered for one phase.
Every mutator reports whether anything changed so the owning store can mark
itself stale; the registry itself never loads anything.
"""

from __future__ import annotations

from ..domain.errors import SelectorConfigError
from ..domain.phase import Phase
from ..domain.selector import EnvPrefix, FileSelector


class Registry:
    """Ordered, deduplicated selectors and environment prefixes for one phase.

    Examples
    --------
    >>> registry = Registry(Phase.RUN)
    >>> registry.add_selector(FileSelector.for_path("a.json"))
    True
    >>> registry.add_selector(FileSelector.for_path("a.json", required=False))
    True
    >>> len(registry.selectors), registry.selectors[0].required
    (1, False)
    """

    def __init__(self, phase: Phase) -> None:
        self.phase = phase
        self._selectors: list[FileSelector] = []
        self._prefixes: list[EnvPrefix] = []

    @property
    def selectors(self) -> tuple[FileSelector, ...]:
        return tuple(self._selectors)

    @property
    def prefixes(self) -> tuple[EnvPrefix, ...]:
        return tuple(self._prefixes)

    def add_selector(self, selector: FileSelector) -> bool:
        """Register *selector*; an existing equal selector gets its flags updated."""

        for index, known in enumerate(self._selectors):
            if known == selector:
                if _same_flags(known, selector):
                    return False
                self._selectors[index] = selector
                return True
        self._selectors.append(selector)
        return True

    def remove_selector(self, selector: FileSelector) -> None:
        """Remove exactly *selector*, raising when it is not registered."""

        if selector not in self._selectors:
            listing = "\n".join(str(item) for item in self._selectors) or "<empty>"
            raise SelectorConfigError(f"Selector {selector} not found in registry;\n{listing}")
        self._selectors.remove(selector)

    def remove_path(self, path: str) -> bool:
        """Remove every literal selector for *path*; return ``True`` when one was removed."""

        return self._filter(lambda item: not item.matches_path(path))

    def remove_pattern(self, search_root: str, pattern: str) -> bool:
        return self._filter(lambda item: not item.matches_pattern(search_root, pattern))

    def add_prefix(self, registration: EnvPrefix) -> bool:
        if registration in self._prefixes:
            return False
        self._prefixes.append(registration)
        return True

    def remove_prefix(self, prefix: str) -> bool:
        """Remove every registration of *prefix*, whatever its case rule."""

        before = len(self._prefixes)
        self._prefixes = [item for item in self._prefixes if item.prefix != prefix]
        return len(self._prefixes) != before

    def clear(self) -> None:
        self._selectors.clear()
        self._prefixes.clear()

    def describe(self) -> str:
        lines = [f"{self.phase.value.capitalize()} registrations;", "\tConfig file selectors:"]
        lines.extend(f"\t\t{selector}" for selector in self._selectors)
        lines.append("\tEnvironment prefixes:")
        lines.extend(f"\t\t{registration}" for registration in self._prefixes)
        return "\n".join(lines)

    def _filter(self, keep) -> bool:
        before = len(self._selectors)
        self._selectors = [item for item in self._selectors if keep(item)]
        return len(self._selectors) != before


def _same_flags(left: FileSelector, right: FileSelector) -> bool:
    return (left.use_fallback, left.required, left.follow_links) == (
        right.use_fallback,
        right.required,
        right.follow_links,
    )
