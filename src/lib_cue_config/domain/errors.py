"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by adapters, the store, and consuming
applications. The hierarchy lives in the domain layer so that adapters (which
raise) and the application layer (which propagates) depend inwards only.

Contents
--------
* :class:`ConfigError` – umbrella base class for all configuration issues.
* :class:`LoadError` – a source could not be materialised.
* :class:`ToolUnavailable` – the external translator/decryptor is missing.
* :class:`InterpolationError` – a ``{NAME}`` token had no value.
* :class:`KeyNotFoundError` – a lookup matched no loaded source.
* :class:`SerializationError` – a secret tried to cross the phase boundary.
* :class:`SelectorConfigError` – malformed or unsatisfied file selector.
* :class:`TypeMismatchError` – the typed accessor could not coerce a value.

System Role
-----------
Callers catch :class:`ConfigError` to handle all library failures uniformly, or
the concrete subclasses to tell an absent key (expected) from a load failure
(operational).
"""

from __future__ import annotations

from typing import Sequence


class ConfigError(Exception):
    """Base type for all exceptions emitted by ``lib_cue_config``."""


class LoadError(ConfigError):
    """Raised when a configuration source cannot be loaded.

    Typical Sources
    ---------------
    Missing files, a translator or decryptor exiting non-zero, text that is not
    valid JSON, and unsupported file extensions.
    """


class ToolUnavailable(LoadError):
    """Raised when the executable backing an external collaborator is missing.

    Why
    ----
    Structured-file fallback treats a missing tool like a missing file, so the
    condition needs its own type.
    """


class InterpolationError(ConfigError):
    """Raised when a ``{NAME}`` token refers to an empty or unset variable."""


class KeyNotFoundError(ConfigError, KeyError):
    """Raised when no loaded source contains the requested key path.

    Attributes
    ----------
    key:
        The dotted key that was requested.
    sources:
        Labels of every source loaded at the time of the lookup, for
        diagnostics.
    """

    def __init__(self, key: str, sources: Sequence[str]) -> None:
        self.key = key
        self.sources = list(sources)
        listing = "\n\t".join(self.sources) if self.sources else "<no sources loaded>"
        super().__init__(f"Key '{key}' not found in sources;\n\t{listing}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class SerializationError(ConfigError):
    """Raised when a secret-kind source would be committed across phases."""


class SelectorConfigError(ConfigError):
    """Raised for malformed selectors or required selectors that match nothing."""


class TypeMismatchError(ConfigError, TypeError):
    """Raised when a resolved value cannot be returned as the requested type."""
