"""Structured logging helpers for configuration resolution.

Purpose
    Give every load, fallback, refresh and commit a predictable log record so
    hosts can trace which files and variables produced a value, without
    forcing a logging backend on them.

Contents
    - ``TRACE_ID``: context variable storing the active trace identifier.
    - ``get_logger``: returns the package logger (silent by default).
    - ``bind_trace_id``: binds or clears the active trace identifier.
    - ``log_debug`` / ``log_info`` / ``log_error``: emit structured entries
      through a single private emitter.
    - ``make_event``: builder for event payloads with stable keys.

System Integration
    Adapters, the store and the composition root log through these helpers;
    the domain layer never logs. Each record carries ``extra={"context": ...}``
    with the trace id and the caller's fields.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Final, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("lib_cue_config_trace_id", default=None)
"""Trace identifier attached to every record emitted by this package."""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_cue_config")
_LOGGER.addHandler(logging.NullHandler())


def get_logger() -> logging.Logger:
    """Expose the package logger so applications may attach handlers."""

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Bind or clear the active trace identifier.

    Why
        Correlates a refresh or commit with the request or build step that
        triggered it.
    Inputs
        trace_id: Identifier string or ``None`` to drop the binding.

    Examples
    --------
    >>> bind_trace_id('build-42')
    >>> TRACE_ID.get()
    'build-42'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


def log_debug(message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, message, fields)


def log_info(message: str, **fields: Any) -> None:
    _emit(logging.INFO, message, fields)


def log_error(message: str, **fields: Any) -> None:
    _emit(logging.ERROR, message, fields)


def make_event(
    kind: str,
    path: str | None,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a structured payload for a configuration lifecycle event.

    Inputs
        kind: Source kind or component observed (``cue``, ``env``, ``store``).
        path: Filesystem path associated with the event, if any.
        payload: Optional extra diagnostic fields.

    Examples
    --------
    >>> make_event('store', None, {'phase': 'run'})
    {'layer': 'store', 'path': None, 'phase': 'run'}
    """

    event: dict[str, Any] = {"layer": kind, "path": path}
    if payload:
        event |= dict(payload)
    return event


def _emit(level: int, message: str, fields: Mapping[str, Any]) -> None:
    """Send a record through the package logger with the trace context attached."""

    if not _LOGGER.isEnabledFor(level):
        return
    context = {"trace_id": TRACE_ID.get()}
    context.update(fields)
    _LOGGER.log(level, message, extra={"context": context})
