"""Typed parsing of raw environment values.

Purpose
-------
Turn the text of an environment variable into a JSON-compatible Python value
using a small, fixed grammar. The function is total: anything it cannot type
is returned as the trimmed string.

Grammar (first match wins)
--------------------------
* empty → ``""``
* ``null`` → ``None``; ``true`` / ``false`` → ``bool`` (case-insensitive)
* ``+`` or ``-`` alone → string
* ``[a,b,...]`` → list, each element parsed recursively (flat comma split);
  integers are promoted when the list also holds floats
* ``[+-]inf`` / ``[+-]nan`` → float
* ``[0-9+-._][0-9_.eE+-]*`` → ``int`` without a dot, ``float`` with one dot;
  underscores are ignored
* ``{...}`` → JSON object
* otherwise → string

The flat comma split means nested arrays or objects inside an array are not
supported.
"""

from __future__ import annotations

import json
from typing import Any

_SPECIAL_FLOATS = frozenset(sign + word for sign in ("", "+", "-") for word in ("inf", "nan"))
_NUMBER_LEAD = frozenset("+-0123456789._")
_NUMBER_BODY = frozenset("0123456789_.e+-")


def parse_value(raw: str) -> Any:
    """Return the JSON value described by *raw*.

    Examples
    --------
    >>> parse_value(" 42 "), parse_value("1_000.5"), parse_value("TRUE")
    (42, 1000.5, True)
    >>> parse_value("[1,2,3]"), parse_value("[1, 2.5]")
    ([1, 2, 3], [1.0, 2.5])
    >>> parse_value('{"a": {"b": 2}}')
    {'a': {'b': 2}}
    >>> parse_value("-"), parse_value("1.2.3"), parse_value("")
    ('-', '1.2.3', '')
    """

    text = raw.strip()
    lowered = text.lower()
    if not text:
        return ""
    if lowered == "null":
        return None
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("+", "-"):
        return text
    if text.startswith("[") and text.endswith("]"):
        return _parse_array(text[1:-1])
    if lowered in _SPECIAL_FLOATS:
        return float(lowered)
    number = _parse_number(text, lowered)
    if number is not None:
        return number
    if text.startswith("{") and text.endswith("}"):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def _parse_array(body: str) -> list[Any]:
    if not body.strip():
        return []
    items = [parse_value(element) for element in body.split(",")]
    numbers = [item for item in items if isinstance(item, (int, float)) and not isinstance(item, bool)]
    # numeric arrays with any float are float arrays
    if len(numbers) == len(items) and any(isinstance(item, float) for item in numbers):
        return [float(item) for item in items]
    return items


def _parse_number(text: str, lowered: str) -> int | float | None:
    """Return the numeric value of *text* or ``None`` when it is not a number."""

    if lowered[0] not in _NUMBER_LEAD or not set(lowered[1:]) <= _NUMBER_BODY:
        return None
    digits = text.replace("_", "")
    dots = digits.count(".")
    if dots > 1:
        return None
    try:
        return float(digits) if dots == 1 else int(digits)
    except ValueError:
        pass
    try:
        # exponent without a dot, e.g. 1e5
        return float(digits)
    except ValueError:
        return None
