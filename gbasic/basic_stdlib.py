"""
Builtin functions callable from scripts, e.g. `UCASE$(name)` or `LEN(items)`.
"""
import inspect
import math
from typing import Any, Callable, Dict

from gbasic import basic_bridge
from gbasic.basic_errors import ScriptRuntimeError, ERR_INVALID_CALL, ERR_OVERFLOW, ERR_TYPE_MISMATCH
from gbasic.basic_printer import display
from gbasic.basic_values import INT64_MIN, INT64_MAX, is_number, kind_of, switch_match, type_name

# Alternative spellings; every string function is also reachable with a `$` suffix
ALIASES = {
    "UPPER": "UCASE",
    "LOWER": "LCASE",
    "ISEMPTY": "IS_EMPTY",
    "ISNUMERIC": "IS_NUMERIC",
    "FIX": "INT",
    "CSTR": "STR",
    "ERR_NUMBER": "ERROR_NUMBER",
}
DOLLAR_FUNCTIONS = ("UCASE", "LCASE", "TRIM", "LTRIM", "RTRIM", "LEFT", "RIGHT", "MID", "STR", "REPLACE", "CHR")


def _text(value, fn: str) -> str:
    if not isinstance(value, str):
        raise ScriptRuntimeError(f"{fn} expects a string, got {type_name(value)}", ERR_TYPE_MISMATCH)
    return value


def _count(value, fn: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ScriptRuntimeError(f"{fn} expects a non-negative integer", ERR_INVALID_CALL)
    return value


def _number(value, fn: str):
    if not is_number(value):
        raise ScriptRuntimeError(f"{fn} expects a number, got {type_name(value)}", ERR_TYPE_MISMATCH)
    return value


def _integral(value: float) -> Any:
    """Whole floats become ints when they fit."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 63:
        return int(value)
    return value


def _int64(value: Any, fn: str) -> Any:
    if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
        raise ScriptRuntimeError(f"{fn}: Overflow", ERR_OVERFLOW)
    return value


def _array(value, fn: str) -> list:
    if kind_of(value) != "array":
        raise ScriptRuntimeError(f"{fn} expects an array", ERR_TYPE_MISMATCH)
    return value


def _numbers(values, fn: str) -> list:
    # Accepts either one array argument or the values themselves
    if len(values) == 1 and isinstance(values[0], list):
        values = values[0]
    return [_number(v, fn) for v in values]


class StdLib:
    """Python implementations of the script builtins.

    Every method named `_name` is exposed as the function `NAME`. Methods that
    declare a `session` keyword receive the calling session.
    """

    # --- strings ---
    def _len(self, value):
        if value is None:
            return 0
        if isinstance(value, (str, list, dict)):
            return len(value)
        return len(display(value))
    def _ucase(self, s): return _text(s, "UCASE").upper()
    def _lcase(self, s): return _text(s, "LCASE").lower()
    def _trim(self, s): return _text(s, "TRIM").strip()
    def _ltrim(self, s): return _text(s, "LTRIM").lstrip()
    def _rtrim(self, s): return _text(s, "RTRIM").rstrip()
    def _left(self, s, n): return _text(s, "LEFT")[:_count(n, "LEFT")]

    def _right(self, s, n):
        n = _count(n, "RIGHT")
        return _text(s, "RIGHT")[-n:] if n else ""

    def _mid(self, s, start, length=None):
        """1-based substring, as in classic BASIC."""
        s = _text(s, "MID")
        start = _count(start, "MID")
        if start < 1:
            raise ScriptRuntimeError("MID start must be at least 1", ERR_INVALID_CALL)
        if length is None:
            return s[start - 1:]
        return s[start - 1:start - 1 + _count(length, "MID")]

    def _instr(self, *args):
        """INSTR([start,] haystack, needle): 1-based position, 0 when absent."""
        match args:
            case (haystack, needle):
                start = 1
            case (start, haystack, needle):
                start = _count(start, "INSTR")
            case _:
                raise TypeError(f"expected 2 or 3 arguments, got {len(args)}")
        idx = _text(haystack, "INSTR").find(_text(needle, "INSTR"), max(start - 1, 0))
        return idx + 1

    def _replace(self, s, old, new): return _text(s, "REPLACE").replace(_text(old, "REPLACE"), display(new))
    def _split(self, s, sep=","): return _text(s, "SPLIT").split(_text(sep, "SPLIT"))

    def _join(self, items, sep=","):
        if not isinstance(items, list):
            raise ScriptRuntimeError("JOIN expects an array", ERR_TYPE_MISMATCH)
        return _text(sep, "JOIN").join(display(v) for v in items)

    def _contains(self, haystack, needle):
        match haystack:
            case str():
                return _text(needle, "CONTAINS") in haystack
            case list():
                return any(switch_match(needle, v) for v in haystack)
            case dict():
                return isinstance(needle, str) and needle in haystack
        raise ScriptRuntimeError("CONTAINS expects a string, array or map", ERR_TYPE_MISMATCH)

    def _str(self, value): return display(value)
    def _chr(self, code): return chr(_count(code, "CHR"))
    def _asc(self, s): return ord(_text(s, "ASC")[0]) if s else 0

    def _val(self, s):
        """Leading numeric value of a string, 0 when it does not start with a number."""
        if is_number(s):
            return s
        text = _text(s, "VAL").strip()
        for end in range(len(text), 0, -1):
            try:
                return _integral(float(text[:end])) if any(c in text[:end] for c in ".eE") else int(text[:end])
            except ValueError:
                continue
        return 0

    # --- math ---
    def _abs(self, x): return _int64(abs(_number(x, "ABS")), "ABS")

    def _round(self, x, digits=0):
        value = round(_number(x, "ROUND"), _count(digits, "ROUND"))
        return _integral(value) if digits == 0 else value

    def _int(self, x): return int(math.floor(_number(x, "INT")))
    def _floor(self, x): return int(math.floor(_number(x, "FLOOR")))
    def _ceil(self, x): return int(math.ceil(_number(x, "CEIL")))
    def _sqrt(self, x): return _integral(math.sqrt(_number(x, "SQRT")))
    def _pow(self, b, e):
        b, e = _number(b, "POW"), _number(e, "POW")
        if isinstance(b, int) and isinstance(e, int) and e > 0 and abs(b) > 1 and e * math.log2(abs(b)) > 64:
            raise ScriptRuntimeError("POW: Overflow", ERR_OVERFLOW)
        result = b ** e
        if isinstance(result, complex):
            raise ScriptRuntimeError("POW: result is not a real number", ERR_INVALID_CALL)
        return _int64(_integral(result), "POW")

    def _max(self, *values):
        if not values:
            raise TypeError("MAX needs at least one value")
        return max(_numbers(values, "MAX"))

    def _min(self, *values):
        if not values:
            raise TypeError("MIN needs at least one value")
        return min(_numbers(values, "MIN"))

    def _sum(self, *values): return _int64(sum(_numbers(values, "SUM")), "SUM")

    def _avg(self, *values):
        numbers = _numbers(values, "AVG")
        if not numbers:
            raise ValueError("AVG of no values")
        return _integral(sum(numbers) / len(numbers))

    def _sin(self, x): return math.sin(_number(x, "SIN"))
    def _cos(self, x): return math.cos(_number(x, "COS"))
    def _tan(self, x): return math.tan(_number(x, "TAN"))
    def _atn(self, x): return math.atan(_number(x, "ATN"))
    def _exp(self, x): return math.exp(_number(x, "EXP"))
    def _log(self, x): return math.log(_number(x, "LOG"))
    def _pi(self): return math.pi

    # --- types ---
    def _typeof(self, value): return type_name(value)

    def _is_numeric(self, value):
        if is_number(value):
            return True
        if not isinstance(value, str):
            return False
        try:
            float(value.strip())
        except ValueError:
            return False
        return True

    def _isnull(self, value): return value is None
    def _is_empty(self, value): return value is None or (isinstance(value, (str, list, dict)) and not value)
    def _nvl(self, value, fallback): return fallback if value is None else value
    def _iif(self, cond, a, b): return a if cond else b

    # --- JSON ---
    def _to_json(self, value, pretty=False): return basic_bridge.dumps(value, pretty=bool(pretty))
    def _parse_json(self, text): return basic_bridge.loads(_text(text, "PARSE_JSON"))

    # --- errors ---
    def _error_number(self, *, session): return session.errors.get_error_number()
    def _error_message(self, *, session): return session.errors.get_last_error() or ""
    def _last_error(self, *, session): return session.errors.as_value()

    # --- arrays and maps ---
    def _keys(self, m):
        if not isinstance(m, dict):
            raise ScriptRuntimeError("KEYS expects a map", ERR_TYPE_MISMATCH)
        return list(m.keys())

    def _push(self, items, value): return _array(items, "PUSH") + [value]

    def _pop(self, items):
        """Copy of the array without its last element."""
        return _array(items, "POP")[:-1]

    def _slice(self, items, start, end=None):
        items = _array(items, "SLICE")
        start = _count(start, "SLICE")
        return items[start:] if end is None else items[start:_count(end, "SLICE")]

    def _unique(self, items):
        result = []
        for item in _array(items, "UNIQUE"):
            if not any(switch_match(item, seen) for seen in result):
                result.append(item)
        return result

    def _sort(self, items, descending=False):
        items = _array(items, "SORT")
        if all(is_number(v) for v in items) or all(isinstance(v, str) for v in items):
            return sorted(items, reverse=bool(descending))
        raise ScriptRuntimeError("SORT expects an array of numbers or of strings", ERR_TYPE_MISMATCH)


def build_function_table(lib: StdLib = None) -> Dict[str, Callable]:
    """Upper-cased name -> bound method, aliases included."""
    lib = lib or StdLib()
    table: Dict[str, Callable] = {}
    for name, member in inspect.getmembers(lib):
        if name.startswith('_') and not name.startswith('__') and callable(member):
            table[name[1:].upper()] = member
    for alias, target in ALIASES.items():
        table[alias] = table[target]
    for name in DOLLAR_FUNCTIONS:
        table[f"{name}$"] = table[name]
    return table
