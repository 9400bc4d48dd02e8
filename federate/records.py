"""Helpers for platform record values.

Record values arrive from the platform as ``{field_key: {"value": ...}}``. Some
callers hand over bare scalars instead of the wrapper; everything here accepts
both.
"""

from typing import Any, Dict, List

OutputRecord = Dict[str, Any]
RecordBatch = List[OutputRecord]


def get_field_value(value: Any) -> Any:
    """Unwrap a ``{"value": ...}`` wrapper, passing bare values through."""
    if isinstance(value, dict) and "value" in value:
        return value["value"]
    return value


def is_populated(value: Any) -> bool:
    """True when the unwrapped value is neither missing nor None."""
    return get_field_value(value) is not None


def stringify_value(value: Any) -> str:
    """Render a value the way the platform compares filter and dedupe keys.

    Booleans become ``true``/``false`` and integral floats drop their ``.0`` so
    that ``100.0`` and ``"100"`` compare equal.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
