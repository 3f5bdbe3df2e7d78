"""Converts extracted text into the type declared for a field.

A value that cannot be converted is kept as the original string.
"""

import logging

logger = logging.getLogger(__name__)

_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


_CONVERTERS = {
    "string": str,
    "integer": int,
    "float": float,
    "bool": _to_bool,
}

FIELD_TYPES = tuple(_CONVERTERS)


def validate_type(type_name: str) -> None:
    if type_name not in _CONVERTERS:
        raise ValueError(f"unknown field type {type_name!r}, expected one of {FIELD_TYPES}")


def coerce(value: str, type_name: str):
    """Convert *value* to *type_name*, demoting to the string on failure."""
    try:
        return _CONVERTERS[type_name](value)
    except (ValueError, TypeError) as e:
        logger.debug("Keeping %r as string, %s conversion failed: %s", value, type_name, e)
        return value
