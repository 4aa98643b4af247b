"""Answer value helpers shared by the evaluators and validators."""

from __future__ import annotations

from typing import Any, Optional


def is_number(value: Any) -> bool:
    """True for int/float answers. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a value to a number for ordering comparisons.

    Accepts ints, floats and numeric strings ("42", " 3.5 ").
    Returns None when the value has no numeric reading.
    """
    if is_number(value):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def strict_equals(left: Any, right: Any) -> bool:
    """
    Equality without cross-type coercion.

    1 == 1.0 holds, but True never equals 1 and "1" never equals 1.
    Lists compare element-wise with the same rule.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(strict_equals(a, b) for a, b in zip(left, right))
    if type(left) is not type(right):
        return False
    return left == right


def has_value(value: Any) -> bool:
    """
    True when a value counts as answered.

    None, the empty string and empty collections are unanswered.
    A whitespace-only string is an answer.
    """
    if value is None:
        return False
    if isinstance(value, str) and value == "":
        return False
    if isinstance(value, (list, tuple, set, dict)) and len(value) == 0:
        return False
    return True
