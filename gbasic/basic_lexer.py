"""
Tokenizer for the host script language (the desugared form of a script).
"""

import re
from dataclasses import dataclass
from typing import Any, List

from gbasic.basic_errors import ScriptSyntaxError

NUMBER = "number"
STRING = "string"
IDENT = "ident"
OP = "op"
NEWLINE = "newline"
EOF = "eof"

_NUMBER_RE = re.compile(r"\d+(\.\d+)?([eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\$?")
_OPERATORS = [
    "#{", "==", "!=", "<>", "<=", ">=", "&&", "||",
    "+", "-", "*", "/", "%", "<", ">", "=", "!",
    "(", ")", "[", "]", "{", "}", ",", ".", ";", ":",
]
# BASIC spellings of the logical operators
_WORD_OPERATORS = {"AND": "&&", "OR": "||", "NOT": "!"}
_OP_ALIASES = {"<>": "!="}
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "0": "\0"}


@dataclass
class Token:
    kind: str
    text: str
    line: int
    col: int
    value: Any = None

    def is_op(self, *ops: str) -> bool:
        return self.kind == OP and self.text in ops

    def is_word(self, *words: str) -> bool:
        return self.kind == IDENT and self.text.upper() in words

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.text!r}, {self.line}:{self.col})"


def tokenize(source: str) -> List[Token]:
    """Split source text into tokens. Newlines inside (), [] and #{} are dropped."""
    tokens: List[Token] = []
    # Bracket stack: newlines only separate statements at block level
    nesting: List[str] = []
    i = 0
    line = 1
    line_start = 0
    n = len(source)

    def col_of(pos: int) -> int:
        return pos - line_start + 1

    while i < n:
        ch = source[i]

        if ch == "\n":
            if not nesting or nesting[-1] == "{":
                tokens.append(Token(NEWLINE, "\n", line, col_of(i)))
            i += 1
            line += 1
            line_start = i
            continue
        if ch in " \t\r":
            i += 1
            continue
        if ch == "'" or source.startswith("//", i):
            while i < n and source[i] != "\n":
                i += 1
            continue

        if ch == '"':
            start = i
            i += 1
            chars = []
            while True:
                if i >= n or source[i] == "\n":
                    raise ScriptSyntaxError("Unterminated string literal", line, col_of(start))
                c = source[i]
                if c == "\\" and i + 1 < n:
                    chars.append(_ESCAPES.get(source[i + 1], source[i + 1]))
                    i += 2
                    continue
                if c == '"':
                    i += 1
                    break
                chars.append(c)
                i += 1
            tokens.append(Token(STRING, source[start:i], line, col_of(start), "".join(chars)))
            continue

        m = _NUMBER_RE.match(source, i)
        if m:
            text = m.group(0)
            value = float(text) if (m.group(1) or m.group(2)) else int(text)
            tokens.append(Token(NUMBER, text, line, col_of(i), value))
            i = m.end()
            continue

        m = _IDENT_RE.match(source, i)
        if m:
            text = m.group(0)
            op = _WORD_OPERATORS.get(text.upper())
            if op:
                tokens.append(Token(OP, op, line, col_of(i)))
            else:
                tokens.append(Token(IDENT, text, line, col_of(i)))
            i = m.end()
            continue

        for op in _OPERATORS:
            if source.startswith(op, i):
                break
        else:
            raise ScriptSyntaxError(f"Unexpected character {ch!r}", line, col_of(i))

        if op in ("(", "[", "#{", "{"):
            nesting.append(op)
        elif op in (")", "]", "}") and nesting:
            nesting.pop()
        tokens.append(Token(OP, _OP_ALIASES.get(op, op), line, col_of(i)))
        i += len(op)

    tokens.append(Token(EOF, "", line, col_of(i)))
    return tokens
