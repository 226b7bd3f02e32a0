"""
Error taxonomy for the BASIC dialect.

Every error carries a human readable message and a numeric code. The codes
follow the classic BASIC numbering so scripts that test `ERR` keep working;
`0` always means "no error".
"""

from typing import Optional

ERR_NONE = 0
ERR_GENERIC = 1
ERR_INVALID_CALL = 5
ERR_OVERFLOW = 6
ERR_SUBSCRIPT = 9
ERR_DIVISION_BY_ZERO = 11
ERR_TYPE_MISMATCH = 13
ERR_UNKNOWN_FUNCTION = 35
ERR_UNDEFINED_VARIABLE = 91
ERR_SYNTAX = 1002
ERR_PREPROCESS = 1003
ERR_REGISTRATION = 1004


class BasicError(Exception):
    """Base class for every error raised by the dialect runtime."""
    default_number = ERR_GENERIC
    line: Optional[int] = None
    col: Optional[int] = None

    def __init__(self, message: str, number: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.number = self.default_number if number is None else int(number)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, number={self.number})"


class PreprocessError(BasicError):
    """Malformed SWITCH/CASE (or IF) structure; fatal before execution."""
    default_number = ERR_PREPROCESS

    def __init__(self, message: str, line: Optional[int] = None, context: str = ""):
        super().__init__(message)
        self.line = line
        self.context = context

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        text = f"line {self.line}: {self.message}"
        if self.context:
            text = f"{text}\n{self.context}"
        return text


class SyntaxRegistrationError(BasicError):
    """A custom statement form could not be registered."""
    default_number = ERR_REGISTRATION

    def __init__(self, message: str, tokens=None):
        super().__init__(message)
        self.tokens = list(tokens or [])


class ScriptSyntaxError(BasicError):
    """The desugared script text could not be parsed."""
    default_number = ERR_SYNTAX

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col


class KeywordError(BasicError):
    """A builtin keyword call failed. Governed by the session's ErrorContext."""


class ScriptRuntimeError(KeywordError):
    """The evaluator itself failed (type mismatch, bad index, unknown name...)."""


class ScriptExit(Exception):
    """Raised by `END` to stop a script early. Not an error."""

    def __init__(self, value=None):
        super().__init__("END")
        self.value = value


def source_context(source: str, line: Optional[int], col: Optional[int] = None, radius: int = 2) -> str:
    """Render a few numbered lines around `line` (1-based) with a caret under `col`."""
    lines = source.splitlines()
    if not line or line < 1 or line > len(lines):
        return ""
    start = max(1, line - radius)
    end = min(len(lines), line + radius)
    width = len(str(end))
    out = []
    for i in range(start, end + 1):
        prefix = ">" if i == line else " "
        ln = str(i).rjust(width)
        out.append(f"{prefix} {ln} | {lines[i - 1]}")
        if i == line and col is not None:
            caret = " " * max(col - 1, 0)
            out.append(f"  {' ' * width} | {caret}^")
    return "\n".join(out)
