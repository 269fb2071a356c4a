"""Loose value semantics shared by the evaluator and the executor.

Story variables arrive from an editor that stores numbers, strings and
booleans side by side, and authored comparisons rely on loose equality
(``"5"`` equals ``5``). These helpers pin down that behaviour:

  to_number          None → NaN, bool → 0/1, blank string → 0, junk → NaN,
                     numeric strings → float, ints past float range → ±inf
  loose_equals       coercing equality; None only equals None; NaN equals nothing
  loose_compare      two strings compare lexicographically, anything else numerically
  to_display_string  string interpolation (None → "undefined", True → "true", 2.0 → "2")
  is_truthy          "", 0, NaN, None and False are falsy
"""

from __future__ import annotations

import math
import operator
import re
from collections.abc import Callable
from typing import Any

NAN = float("nan")

# Number() literal grammar: signed decimals and Infinity, unsigned 0x/0o/0b integers.
_NUMERIC_LITERAL = re.compile(
    r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+",
    re.ASCII,
)


def _clamp_int(value: int) -> float | int:
    """Integers beyond the float range become signed infinity."""
    try:
        float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf
    return value


def to_number(value: Any) -> float | int:
    """Convert a stored value to a number the way the editor runtime does."""
    if value is None:
        return NAN
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return _clamp_int(value)
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if not _NUMERIC_LITERAL.fullmatch(text):
            return NAN
        if text[:2].lower() in ("0x", "0o", "0b"):
            return _clamp_int(int(text, 0))
        return float(text)
    return NAN


def loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, (str, int, float)) and isinstance(right, (str, int, float)):
        a, b = to_number(left), to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False
        return a == b
    return left == right


_ORDERING: dict[str, Callable[[Any, Any], bool]] = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


def loose_compare(op: str, left: Any, right: Any) -> bool:
    """Ordering comparison for ``gt``/``gte``/``lt``/``lte``.

    Unknown operators are never satisfied.
    """
    compare = _ORDERING.get(op)
    if compare is None:
        return False
    if isinstance(left, str) and isinstance(right, str):
        return compare(left, right)
    a, b = to_number(left), to_number(right)
    if math.isnan(a) or math.isnan(b):
        return False
    return compare(a, b)


def to_display_string(value: Any) -> str:
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
    return str(value)


def is_truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    if isinstance(value, (list, dict)):
        return True
    return bool(value)
