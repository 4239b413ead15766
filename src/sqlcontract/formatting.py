"""Parameter formatting: Python values to inline SQL literals.

Queries use ``$1, $2, ...`` for positional parameters and ``${name}`` or
``$(name)`` for named ones. A placeholder may carry a filter:

- ``:raw`` or ``^`` inserts the value's text unescaped
- ``:name`` or ``~`` formats the value as a quoted identifier
- ``:json`` formats the value as a JSON string literal
- ``:csv`` formats a sequence as a comma-separated list of literals

SQL text is never parsed, so placeholders inside string literals are
replaced too.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from sqlcontract.errors import FormattingError

# Custom-type results may themselves need formatting; stop runaway recursion
_MAX_CUSTOM_DEPTH = 32

_FILTER = r"(:raw\b|:name\b|:json\b|:csv\b|\^|~)?"
_POSITIONAL_RE = re.compile(r"\$(\d+)" + _FILTER)
_NAMED_RE = re.compile(
    r"\$(?:\{\s*([A-Za-z_]\w*)\s*" + _FILTER + r"\s*\}"
    r"|\(\s*([A-Za-z_]\w*)\s*" + _FILTER + r"\s*\))"
)


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def as_literal(value: Any, *, _depth: int = 0) -> str:
    """Format a single value as an SQL literal.

    Objects can control their own formatting by implementing
    ``__sql_literal__()``: a returned ``str`` is inserted as raw SQL, any
    other return value is formatted again.
    """
    if value is None:
        return "null"

    custom = getattr(value, "__sql_literal__", None)
    if callable(custom) and not isinstance(value, type):
        if _depth >= _MAX_CUSTOM_DEPTH:
            raise FormattingError(
                f"Custom type formatting of {type(value).__name__} exceeded "
                f"{_MAX_CUSTOM_DEPTH} levels"
            )
        result = custom()
        if isinstance(result, str):
            return result
        return as_literal(result, _depth=_depth + 1)

    if isinstance(value, Enum):
        return as_literal(value.value, _depth=_depth)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'"
        if math.isinf(value):
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return repr(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return "'NaN'"
        if value.is_infinite():
            return "'Infinity'" if value > 0 else "'-Infinity'"
        return str(value)
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, datetime):
        return _quote(value.isoformat(sep=" "))
    if isinstance(value, (date, time)):
        return _quote(value.isoformat())
    if isinstance(value, timedelta):
        return _quote(f"{value.total_seconds()} seconds")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "'\\x" + bytes(value).hex() + "'"
    if isinstance(value, UUID):
        return _quote(str(value))
    if isinstance(value, (list, tuple)):
        if not value:
            return "'{}'"
        return "array[" + ",".join(as_literal(v, _depth=_depth) for v in value) + "]"
    if isinstance(value, (Mapping, BaseModel)):
        return as_json(value)
    raise FormattingError(f"Cannot format value of type {type(value).__name__} as SQL")


def as_json(value: Any) -> str:
    """Format a value as a quoted JSON string literal."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError) as exc:
        raise FormattingError(f"Cannot format value as JSON: {exc}") from exc
    return _quote(text)


def as_name(value: Any) -> str:
    """Format a value as a double-quoted SQL identifier.

    ``*`` passes through unquoted; a sequence of names becomes a
    comma-separated list.
    """
    if isinstance(value, (list, tuple)):
        if not value:
            raise FormattingError("Cannot format an empty list of names")
        return ",".join(as_name(v) for v in value)
    if not isinstance(value, str) or not value:
        raise FormattingError(f"Invalid SQL name: {value!r}")
    if value == "*":
        return value
    return '"' + value.replace('"', '""') + '"'


def as_csv(values: Any) -> str:
    """Format a sequence as comma-separated literals."""
    if isinstance(values, (list, tuple)):
        return ",".join(as_literal(v) for v in values)
    return as_literal(values)


def as_raw(value: Any) -> str:
    """Insert a value's text without escaping."""
    return "null" if value is None else str(value)


_FILTERS: dict[str, Callable[[Any], str]] = {
    "": as_literal,
    ":raw": as_raw,
    "^": as_raw,
    ":name": as_name,
    "~": as_name,
    ":json": as_json,
    ":csv": as_csv,
}


def format_query(sql: str, params: Any = None) -> str:
    """Substitute ``params`` into ``sql``.

    A sequence fills positional placeholders, a mapping or pydantic model
    fills named ones, and any other single value is treated as ``$1``.
    ``None`` leaves the text unchanged.
    """
    if params is None:
        return sql
    if isinstance(params, BaseModel):
        params = params.model_dump()
    if isinstance(params, Mapping):
        return _format_named(sql, params)
    if isinstance(params, (list, tuple)):
        return _format_positional(sql, params)
    return _format_positional(sql, [params])


def _format_positional(sql: str, params: Sequence[Any]) -> str:
    def _replace(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index < 1 or index > len(params):
            raise FormattingError(
                f"Placeholder ${index} has no matching parameter ({len(params)} given)"
            )
        return _FILTERS[match.group(2) or ""](params[index - 1])

    return _POSITIONAL_RE.sub(_replace, sql)


def _format_named(sql: str, params: Mapping[str, Any]) -> str:
    def _replace(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(3)
        flt = match.group(2) or match.group(4) or ""
        if name not in params:
            raise FormattingError(f"Property {name!r} doesn't exist in the parameters")
        return _FILTERS[flt](params[name])

    return _NAMED_RE.sub(_replace, sql)


def format_call_args(params: Any) -> str:
    """Format routine arguments for ``func``/``proc`` calls."""
    if params is None:
        return ""
    if isinstance(params, Iterable) and not isinstance(params, (str, bytes, Mapping, BaseModel)):
        return ",".join(as_literal(v) for v in params)
    return as_literal(params)
