"""Environment variable adapter.

Purpose
-------
Translate the process environment into one environment-block
:class:`~lib_cue_config.domain.source.JsonSource` per registered prefix.

Key behaviours
--------------
* The prefix is matched against the full variable name, case-insensitively
  unless the registration asks otherwise. The remainder keeps its case.
* The remainder is split on ``_`` to build the nested path
  (``APP_server_port`` → ``{"server": {"port": ...}}``).
* Leaf values go through :func:`~lib_cue_config.domain.values.parse_value`.
* A variable named exactly like the prefix carries a JSON object that is
  merged into the top level of the block before any other variable, so
  individual variables override it.
* Variables are visited in sorted order so the block text is deterministic.
"""

from __future__ import annotations

import json
import os
from typing import Any, Mapping

from ...application.merge import merge_in
from ...domain.errors import LoadError
from ...domain.phase import SourceKind
from ...domain.selector import EnvPrefix
from ...domain.source import JsonSource
from ...domain.values import parse_value
from ...observability import log_debug

#: Separator between nested path segments in variable names.
SEGMENT_SEPARATOR = "_"


class DefaultEnvLoader:
    """Build environment-block sources from a mapping of variables."""

    def __init__(self, *, environ: Mapping[str, str] | None = None) -> None:
        """Initialise the loader with a specific ``environ`` mapping for testability.

        Parameters
        ----------
        environ:
            Mapping to read from. Defaults to :data:`os.environ`, read live on
            every call.
        """

        self._environ = os.environ if environ is None else environ

    def load(self, registration: EnvPrefix) -> JsonSource:
        """Return the environment block selected by *registration*.

        Examples
        --------
        >>> env = {'APP_server_port': '9090', 'APP_arr': '[1,2.5]', 'OTHER': 'x'}
        >>> source = DefaultEnvLoader(environ=env).load(EnvPrefix('APP_'))
        >>> source.get('server.port'), source.get('arr')
        (9090, [1.0, 2.5])
        >>> DefaultEnvLoader(environ={'APP_': '{"a": {"b": 1}}'}).load(EnvPrefix('APP_')).document
        {'a': {'b': 1}}
        """

        document = build_env_document(registration.prefix, self._environ, case_sensitive=registration.case_sensitive)
        log_debug(
            "env_variables_loaded",
            layer="env",
            path=None,
            prefix=registration.prefix,
            keys=sorted(document),
        )
        return JsonSource(
            SourceKind.ENVIRONMENT,
            json.dumps(document, indent=2, ensure_ascii=False),
            document,
            prefix=registration.prefix,
            case_sensitive=registration.case_sensitive,
        )


def build_env_document(prefix: str, environ: Mapping[str, str], *, case_sensitive: bool = False) -> dict[str, Any]:
    """Collect variables starting with *prefix* into a nested document.

    Bare-prefix objects are applied first; every other variable is then
    assigned in sorted name order, replacing whatever value sat at its path.

    Raises
    ------
    LoadError
        When the bare prefix variable is not a JSON object.

    Examples
    --------
    >>> build_env_document('CFG_', {'CFG_db': 'x', 'CFG_': '{"db": {"host": "a"}, "port": 1}'})
    {'db': 'x', 'port': 1}
    """

    wanted = prefix if case_sensitive else prefix.lower()
    document: dict[str, Any] = {}
    leaves: list[tuple[str, str]] = []
    for name in sorted(environ):
        candidate = name if case_sensitive else name.lower()
        if not candidate.startswith(wanted):
            continue
        remainder = name[len(prefix) :]
        if not remainder:
            merge_in(document, _top_level_object(name, environ[name]))
            continue
        leaves.append((remainder, environ[name]))
    for remainder, value in leaves:
        assign_nested(document, remainder.split(SEGMENT_SEPARATOR), parse_value(value))
    return document


def assign_nested(target: dict[str, Any], segments: list[str], value: Any) -> None:
    """Assign *value* at *segments* inside *target*, creating objects on the way.

    Scalars standing where an object is needed are replaced by one, and the
    leaf overwrites any previous value, objects included.

    Examples
    --------
    >>> data: dict = {'server': 'off'}
    >>> assign_nested(data, ['server', 'port'], 8080)
    >>> data
    {'server': {'port': 8080}}
    """

    cursor = target
    for segment in segments[:-1]:
        child = cursor.get(segment)
        if not isinstance(child, dict):
            child = cursor[segment] = {}
        cursor = child
    cursor[segments[-1]] = value


def _top_level_object(name: str, value: str) -> dict[str, Any]:
    parsed = parse_value(value)
    if not isinstance(parsed, dict):
        raise LoadError(f"Environment variable {name} must hold a JSON object, got {value!r}")
    return parsed
