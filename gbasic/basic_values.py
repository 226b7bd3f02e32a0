"""
The dynamic value model of the BASIC runtime.

A DynamicValue is one of Unit, Bool, Int, Float, String, Array or Map,
carried as the native Python objects `None`, `bool`, `int`, `float`, `str`,
`list` and `dict` (string keys). This module names the tags and implements
the comparisons and copies the evaluator relies on.
"""

import math
from typing import Any, Dict, List, Union

DynamicValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

UNIT = "unit"
BOOL = "bool"
INT = "int"
FLOAT = "float"
STRING = "string"
ARRAY = "array"
MAP = "map"
OPAQUE = "opaque"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def kind_of(value: Any) -> str:
    """Returns the tag of a runtime value, or 'opaque' for anything foreign."""
    match value:
        case None:
            return UNIT
        # bool is a subclass of int, so it must be matched first
        case bool():
            return BOOL
        case int():
            return INT
        case float():
            return FLOAT
        case str():
            return STRING
        case list():
            return ARRAY
        case dict():
            return MAP
        case _:
            return OPAQUE


def is_dynamic(value: Any) -> bool:
    """True when `value` (recursively) is built only from DynamicValue variants."""
    match kind_of(value):
        case "opaque":
            return False
        case "array":
            return all(is_dynamic(v) for v in value)
        case "map":
            return all(isinstance(k, str) and is_dynamic(v) for k, v in value.items())
        case _:
            return True


def is_number(value: Any) -> bool:
    return kind_of(value) in (INT, FLOAT)


def switch_match(a: Any, b: Any) -> bool:
    """Equality used by `==` and by desugared SWITCH blocks.

    Integers and floats compare numerically across types. Strings and
    booleans only match values of the identical kind, there is no coercion
    between numbers and strings. Arrays and maps compare element-wise.
    """
    ka, kb = kind_of(a), kind_of(b)
    if ka in (INT, FLOAT) and kb in (INT, FLOAT):
        return a == b
    if ka != kb:
        return False
    match ka:
        case "unit":
            return True
        case "bool" | "string":
            return a == b
        case "array":
            return len(a) == len(b) and all(switch_match(x, y) for x, y in zip(a, b))
        case "map":
            return a.keys() == b.keys() and all(switch_match(a[k], b[k]) for k in a)
        case _:
            return a is b


def values_equal(a: Any, b: Any) -> bool:
    """Strict value equality: same tag everywhere, no numeric cross-matching."""
    ka = kind_of(a)
    if ka != kind_of(b):
        return False
    match ka:
        case "float":
            if math.isnan(a) and math.isnan(b):
                return True
            return a == b
        case "array":
            return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
        case "map":
            return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
        case "opaque":
            return a is b
        case _:
            return a == b


def clone_value(value: Any) -> Any:
    """Copies arrays and maps so that assignment has value semantics."""
    match value:
        case list():
            return [clone_value(v) for v in value]
        case dict():
            return {k: clone_value(v) for k, v in value.items()}
        case _:
            return value


def is_truthy(value: Any) -> bool:
    """BASIC truthiness: empty, zero and Unit are false."""
    match value:
        case None:
            return False
        case bool():
            return value
        case int() | float():
            return value != 0
        case str() | list() | dict():
            return len(value) > 0
        case _:
            return True


def type_name(value: Any) -> str:
    """The name TYPEOF reports to scripts."""
    return kind_of(value).upper()
