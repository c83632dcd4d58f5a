"""
Shape validation for cache keys and values.

Validates what the interceptor hands to the store before anything reaches
SQLite. Skipped entirely when a store is opened in loose mode.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Callable

from respcache.exceptions import ValidationError

_MISSING = object()

_KEY_STRING_FIELDS = ("origin", "method", "path")
_VALUE_NUMBER_FIELDS = ("status_code", "cached_at", "stale_at", "delete_at")
_VALUE_HEADER_FIELDS = ("headers", "vary")

# SQLite INTEGER is a signed 64-bit value
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _type_name(value: Any) -> str:
    if value is _MISSING:
        return "missing"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fits_column(value: int | float) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    return _INT64_MIN <= value <= _INT64_MAX


def _is_header_value(value: Any) -> bool:
    if value is None or isinstance(value, str):
        return True
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def _is_directive_value(value: Any) -> bool:
    if value is None or isinstance(value, (str, bool)):
        return True
    if _is_number(value):
        return _fits_column(value)
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def _problem(field: str, expected: str, got: Any) -> tuple[str, str, str]:
    return (field, expected, _type_name(got))


def _mapping_problems(
    field: str,
    mapping: Any,
    is_valid: Callable[[Any], bool],
    expected: str,
) -> list[tuple[str, str, str]]:
    """Check a mapping's type, its keys and each of its values."""
    if mapping is None:
        return []
    if not isinstance(mapping, Mapping):
        return [_problem(field, "mapping", mapping)]

    problems: list[tuple[str, str, str]] = []
    for name, item in mapping.items():
        if not isinstance(name, str):
            problems.append(_problem(f"{field} key", "str", name))
        elif not is_valid(item):
            problems.append(_problem(f"{field}[{name!r}]", expected, item))
    return problems


def _key_problems(key: Any) -> list[tuple[str, str, str]]:
    if key is None or isinstance(key, (str, bytes, int, float)):
        return [_problem("key", "object", key)]

    problems: list[tuple[str, str, str]] = []
    for name in _KEY_STRING_FIELDS:
        attr = getattr(key, name, _MISSING)
        if not isinstance(attr, str):
            problems.append(_problem(f"key.{name}", "str", attr))

    problems.extend(
        _mapping_problems(
            "key.headers", getattr(key, "headers", None), _is_header_value, "str or list of str"
        )
    )

    return problems


def _value_problems(value: Any, check_body: bool) -> list[tuple[str, str, str]]:
    if value is None or isinstance(value, (str, bytes, int, float)):
        return [_problem("value", "object", value)]

    problems: list[tuple[str, str, str]] = []
    for name in _VALUE_NUMBER_FIELDS:
        attr = getattr(value, name, _MISSING)
        if not _is_number(attr):
            problems.append(_problem(f"value.{name}", "number", attr))
        elif not _fits_column(attr):
            problems.append(_problem(f"value.{name}", "finite signed 64-bit number", attr))

    status_message = getattr(value, "status_message", _MISSING)
    if not isinstance(status_message, str):
        problems.append(_problem("value.status_message", "str", status_message))

    for name in _VALUE_HEADER_FIELDS:
        problems.extend(
            _mapping_problems(
                f"value.{name}", getattr(value, name, None), _is_header_value, "str or list of str"
            )
        )
    problems.extend(
        _mapping_problems(
            "value.cache_control_directives",
            getattr(value, "cache_control_directives", None),
            _is_directive_value,
            "JSON scalar or list of str",
        )
    )

    etag = getattr(value, "etag", None)
    if etag is not None and not isinstance(etag, str):
        problems.append(_problem("value.etag", "str", etag))

    if check_body:
        body = getattr(value, "body", None)
        if body is not None and not isinstance(body, (bytes, bytearray, memoryview)):
            problems.append(_problem("value.body", "bytes", body))

    return problems


def _format(problem: tuple[str, str, str]) -> str:
    field, expected, got = problem
    return f"expected {field} to be {expected}, got {got}"


def validate_cache_key(key: Any) -> list[str]:
    """Validate the shape of a cache key.

    Args:
        key: The key to validate.

    Returns:
        List of error messages. Empty list means valid.
    """
    return [_format(p) for p in _key_problems(key)]


def validate_cache_value(value: Any, check_body: bool = True) -> list[str]:
    """Validate the shape of a cache value.

    Args:
        value: The value to validate.
        check_body: Whether value.body must be bytes-like. Streamed writes
            ignore value.body, so they skip this check.

    Returns:
        List of error messages. Empty list means valid.
    """
    return [_format(p) for p in _value_problems(value, check_body)]


def assert_cache_key(key: Any) -> None:
    """Raise ValidationError if the key is malformed."""
    problems = _key_problems(key)
    if problems:
        field, expected, got = problems[0]
        raise ValidationError(
            _format(problems[0]),
            context={"field": field, "expected": expected, "got": got},
        )


def assert_cache_value(value: Any, check_body: bool = True) -> None:
    """Raise ValidationError if the value is malformed."""
    problems = _value_problems(value, check_body)
    if problems:
        field, expected, got = problems[0]
        raise ValidationError(
            _format(problems[0]),
            context={"field": field, "expected": expected, "got": got},
        )
