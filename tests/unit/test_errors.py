from __future__ import annotations

import pytest

from lib_cue_config.domain.errors import (
    ConfigError,
    InterpolationError,
    KeyNotFoundError,
    LoadError,
    SelectorConfigError,
    SerializationError,
    ToolUnavailable,
    TypeMismatchError,
)


def test_error_hierarchy() -> None:
    for error_cls in (LoadError, InterpolationError, KeyNotFoundError, SerializationError, SelectorConfigError):
        assert issubclass(error_cls, ConfigError)
    assert issubclass(ToolUnavailable, LoadError)
    assert issubclass(TypeMismatchError, TypeError)


def test_key_not_found_lists_sources() -> None:
    error = KeyNotFoundError("db.host", ["run-json: json(/a.json)", "run-env: env(prefix=APP_, case_sensitive=False)"])
    assert error.key == "db.host"
    assert error.sources == ["run-json: json(/a.json)", "run-env: env(prefix=APP_, case_sensitive=False)"]
    assert str(error).startswith("Key 'db.host' not found in sources;")
    assert "json(/a.json)" in str(error)


def test_key_not_found_is_a_key_error() -> None:
    with pytest.raises(KeyError):
        raise KeyNotFoundError("missing", [])


def test_key_not_found_without_sources() -> None:
    assert "<no sources loaded>" in str(KeyNotFoundError("x", []))
