"""Public package surface for ``lib_cue_config``.

Re-exports the module-level API, the context and store types, and the error
taxonomy so applications only need ``import lib_cue_config``. Everything else
is reachable through the subpackages for embedders that want to swap
adapters.
"""

from __future__ import annotations

from .application.store import Store
from .core import (
    ConfigContext,
    clear,
    commit,
    default_context,
    deregister,
    deregister_env,
    deregister_pattern,
    get_config,
    has_key,
    inspect,
    register,
    register_env,
    register_pattern,
    reload,
    set_default_context,
)
from .domain.config import ConfigView
from .domain.errors import (
    ConfigError,
    InterpolationError,
    KeyNotFoundError,
    LoadError,
    SelectorConfigError,
    SerializationError,
    ToolUnavailable,
    TypeMismatchError,
)
from .domain.phase import Phase, PrecedenceClass, SourceKind
from .domain.selector import EnvPrefix, FileSelector
from .domain.source import JsonSource, SerializedSource, Snapshot
from .domain.values import parse_value
from .observability import bind_trace_id, get_logger

__all__ = [
    "ConfigContext",
    "ConfigError",
    "ConfigView",
    "EnvPrefix",
    "FileSelector",
    "InterpolationError",
    "JsonSource",
    "KeyNotFoundError",
    "LoadError",
    "Phase",
    "PrecedenceClass",
    "SelectorConfigError",
    "SerializationError",
    "SerializedSource",
    "Snapshot",
    "SourceKind",
    "Store",
    "ToolUnavailable",
    "TypeMismatchError",
    "bind_trace_id",
    "clear",
    "commit",
    "default_context",
    "deregister",
    "deregister_env",
    "deregister_pattern",
    "get_config",
    "get_logger",
    "has_key",
    "inspect",
    "parse_value",
    "register",
    "register_env",
    "register_pattern",
    "reload",
    "set_default_context",
]
