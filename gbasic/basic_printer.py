"""
Formatting of runtime values: source-like (`pformat`) for the REPL and
results, plain text (`display`) for string concatenation and TALK.
"""
import math
import re

from gbasic import basic_bridge

_BARE_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_STRING_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}


class Printer:
    """Formats runtime values as readable host-language literals."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            # Subclasses (IntEnum, OrderedDict...) and foreign objects
            if isinstance(obj, bool):
                handler = self._pformat_bool
            elif isinstance(obj, dict):
                handler = self._pformat_map
            elif isinstance(obj, (list, tuple)):
                handler = self._pformat_array
            else:
                return repr(obj)
        return handler(obj, level)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            float: self._pformat_float,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            list: self._pformat_array,
            tuple: self._pformat_array,
            dict: self._pformat_map,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_float(self, obj, level):
        if math.isnan(obj):
            return "NaN"
        if math.isinf(obj):
            return "Infinity" if obj > 0 else "-Infinity"
        return repr(obj)

    def _pformat_str(self, obj, level):
        escaped = "".join(_STRING_ESCAPES.get(c, c) for c in obj)
        return f'"{escaped}"'

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'null'

    def _pformat_array(self, obj, level):
        if not obj:
            return "[]"
        items = [self.pformat(v, level + 1) for v in obj]
        one_line = f"[{', '.join(items)}]"
        if len(one_line) <= 80 and '\n' not in one_line:
            return one_line
        inner = self._indent_char * (level + 1)
        body = ",\n".join(f"{inner}{item}" for item in items)
        return f"[\n{body}\n{self._indent_char * level}]"

    def _pformat_map(self, obj, level):
        if not obj:
            return "#{}"
        items = []
        for k, v in obj.items():
            key = k if isinstance(k, str) and _BARE_KEY_RE.fullmatch(k) else self._pformat_str(str(k), level)
            items.append(f"{key}: {self.pformat(v, level + 1)}")
        one_line = f"#{{{', '.join(items)}}}"
        if len(one_line) <= 80 and '\n' not in one_line:
            return one_line
        inner = self._indent_char * (level + 1)
        body = ",\n".join(f"{inner}{item}" for item in items)
        return f"#{{\n{body}\n{self._indent_char * level}}}"


def display(value) -> str:
    """Plain-text conversion used by `+` concatenation, STR$ and TALK."""
    match value:
        case None:
            return ""
        case bool():
            return "true" if value else "false"
        case str():
            return value
        case int() | float():
            return Printer().pformat(value)
        case list() | dict():
            return basic_bridge.dumps(value)
        case _:
            return str(value)
