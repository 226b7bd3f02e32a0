"""
Source-to-source desugaring of the dialect's control structures.

`desugar` turns BASIC block syntax into the primitive `if / else if / else`
chains the host parser understands:

    SWITCH role                    let __switch_expr_0 = role
      CASE "admin"                 if __switch_expr_0 == "admin" {
        x = 1                        x = 1
      CASE "a", "b"       ==>      } else if __switch_expr_0 == "a" || __switch_expr_0 == "b" {
        x = 2                        x = 2
      DEFAULT                      } else {
        x = 0                        x = 0
    END SWITCH                     }

`SELECT CASE`/`CASE ELSE`/`END SELECT` are accepted as the classic spelling,
and block or single-line `IF ... THEN` is rewritten the same way. Every source
line produces exactly one output line, so line numbers survive desugaring.
"""

import itertools
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from gbasic.basic_errors import PreprocessError, source_context
from gbasic.basic_values import switch_match

TEMP_PREFIX = "__switch_expr_"

_SIMPLE_VALUE_RE = re.compile(
    r'"(?:[^"\\]|\\.)*"'             # string literal
    r'|-?\d+(?:\.\d+)?'              # number
    r'|[A-Za-z_][A-Za-z0-9_]*\$?'    # identifier
)
_WORD_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$")


# =================================================================
# Internal structures
# =================================================================

@dataclass
class CaseArm:
    values: List[str]
    line: int
    body_start: int = 0
    body_end: int = 0


@dataclass
class SwitchBlock:
    """One SWITCH (or SELECT CASE) block found by the scanning pass."""
    expr: str
    line: int
    opener: str = "SWITCH"
    cases: List[CaseArm] = field(default_factory=list)
    default_line: Optional[int] = None
    default_body: Tuple[int, int] = (0, 0)
    end_line: Optional[int] = None
    children: List['SwitchBlock'] = field(default_factory=list)

    @property
    def closer(self) -> str:
        return "END SELECT" if self.opener == "SELECT CASE" else "END SWITCH"

    def _close_open_arm(self, line: int):
        if self.default_line is not None:
            self.default_body = (self.default_body[0], line)
        elif self.cases:
            self.cases[-1].body_end = line


@dataclass
class _IfFrame:
    line: int
    has_else: bool = False


# =================================================================
# String-aware scanning helpers
# =================================================================

def _scan(text: str) -> Iterator[Tuple[int, str, int]]:
    """Yields (index, char, bracket depth) for characters outside string literals."""
    depth = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(depth - 1, 0)
        yield i, ch, depth


def strip_comment(line: str) -> str:
    """Drops a trailing `'` comment (quotes inside strings are kept)."""
    for i, ch, _ in _scan(line):
        if ch == "'":
            return line[:i].rstrip()
    return line.rstrip()


def split_values(text: str) -> List[str]:
    """Splits a CASE value list on top-level commas."""
    parts = []
    start = 0
    for i, ch, depth in _scan(text):
        if ch == "," and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
    parts.append(text[start:].strip())
    return parts


def _find_word(text: str, word: str) -> int:
    """Index of the first top-level, whole-word, case-insensitive `word`, or -1."""
    n = len(word)
    upper = word.upper()
    for i, _, depth in _scan(text):
        if depth or text[i:i + n].upper() != upper:
            continue
        before = text[i - 1] if i > 0 else " "
        after = text[i + n] if i + n < len(text) else " "
        if before not in _WORD_CHARS and after not in _WORD_CHARS:
            return i
    return -1


def _starts_with_word(text: str, word: str) -> bool:
    return _find_word(text, word) == 0


def _equality(temp: str, value: str) -> str:
    if _SIMPLE_VALUE_RE.fullmatch(value):
        return f"{temp} == {value}"
    return f"{temp} == ({value})"


# =================================================================
# Desugaring
# =================================================================

class _Desugarer:
    def __init__(self, source: str):
        self.source = source
        self.lines = source.split("\n")
        self.out = list(self.lines)
        self.stack: list = []
        self.roots: List[SwitchBlock] = []
        self.counter = itertools.count()

    def error(self, message: str, index: int) -> PreprocessError:
        return PreprocessError(message, line=index + 1, context=source_context(self.source, index + 1))

    def run(self) -> str:
        for index, raw in enumerate(self.lines):
            self._scan_line(index, raw)
        if self.stack:
            frame = self.stack[-1]
            if isinstance(frame, SwitchBlock):
                raise self.error(f"{frame.opener} without {frame.closer}", frame.line)
            raise self.error("IF without END IF", frame.line)
        for block in self.roots:
            self._rewrite(block)
        return "\n".join(self.out)

    # --- pass 1: scan, validate and rewrite IF lines ---

    def _scan_line(self, index: int, raw: str):
        indent = raw[:len(raw) - len(raw.lstrip())]
        text = strip_comment(raw).strip()
        if _starts_with_word(text, "REM"):
            text = ""
        if not text:
            self.out[index] = ""
            return
        self.out[index] = indent + text

        top = self.stack[-1] if self.stack else None
        awaiting_case = isinstance(top, SwitchBlock) and not top.cases and top.default_line is None

        upper = text.upper()
        select = re.match(r"SELECT\s+CASE\b", upper)
        if select:
            return self._open_switch(index, text[select.end():].strip(), "SELECT CASE", awaiting_case)
        if _starts_with_word(text, "SWITCH"):
            return self._open_switch(index, text[len("SWITCH"):].strip(), "SWITCH", awaiting_case)
        if re.fullmatch(r"CASE\s+ELSE", upper) or upper == "DEFAULT":
            return self._default(index, top)
        if _starts_with_word(text, "CASE"):
            return self._case(index, text[len("CASE"):].strip(), top)
        end = re.fullmatch(r"END\s*(SWITCH|SELECT|IF)", upper)
        if end:
            return self._end(index, end.group(1), top)
        if awaiting_case:
            raise self.error("statement before the first CASE", index)
        if re.match(r"ELSE\s*IF\b", upper):
            return self._else_if(index, indent, text, top)
        if upper == "ELSE":
            return self._else(index, indent, top)
        if _starts_with_word(text, "IF"):
            return self._if(index, indent, text)

    def _open_switch(self, index: int, expr: str, opener: str, awaiting_case: bool):
        if awaiting_case:
            raise self.error("statement before the first CASE", index)
        if not expr:
            raise self.error(f"{opener} without an expression", index)
        block = SwitchBlock(expr=expr, line=index, opener=opener)
        parent = self._innermost_switch()
        if parent is not None:
            parent.children.append(block)
        else:
            self.roots.append(block)
        self.stack.append(block)

    def _innermost_switch(self) -> Optional[SwitchBlock]:
        for frame in reversed(self.stack):
            if isinstance(frame, SwitchBlock):
                return frame
        return None

    def _require_switch(self, index: int, top, keyword: str) -> SwitchBlock:
        if isinstance(top, SwitchBlock):
            return top
        if isinstance(top, _IfFrame):
            raise self.error(f"{keyword} inside an IF that is not closed", index)
        raise self.error(f"{keyword} outside of SWITCH", index)

    def _case(self, index: int, values_text: str, top):
        block = self._require_switch(index, top, "CASE")
        if block.default_line is not None:
            raise self.error("CASE after DEFAULT", index)
        if not values_text:
            raise self.error("CASE without values", index)
        values = split_values(values_text)
        if any(not v for v in values):
            raise self.error("empty value in CASE list", index)
        block._close_open_arm(index)
        block.cases.append(CaseArm(values=values, line=index, body_start=index + 1))

    def _default(self, index: int, top):
        block = self._require_switch(index, top, "DEFAULT")
        if block.default_line is not None:
            raise self.error("duplicate DEFAULT", index)
        block._close_open_arm(index)
        block.default_line = index
        block.default_body = (index + 1, index + 1)

    def _end(self, index: int, what: str, top):
        if what == "IF":
            if not isinstance(top, _IfFrame):
                raise self.error("END IF without IF", index)
            self.stack.pop()
            self.out[index] = self._indent_of(index) + "}"
            return
        closer = "END SELECT" if what == "SELECT" else "END SWITCH"
        if not isinstance(top, SwitchBlock):
            raise self.error(f"{closer} without {'SELECT CASE' if what == 'SELECT' else 'SWITCH'}", index)
        if top.closer != closer:
            raise self.error(f"{closer} closes {top.opener} opened on line {top.line + 1}", index)
        top._close_open_arm(index)
        top.end_line = index
        self.stack.pop()

    def _if(self, index: int, indent: str, text: str):
        rest = text[len("IF"):]
        then_at = _find_word(rest, "THEN")
        if then_at < 0:
            raise self.error("IF without THEN", index)
        cond = rest[:then_at].strip()
        tail = rest[then_at + len("THEN"):].strip()
        if not cond:
            raise self.error("IF without a condition", index)
        if not tail:
            self.stack.append(_IfFrame(line=index))
            self.out[index] = f"{indent}if {cond} {{"
            return
        else_at = _find_word(tail, "ELSE")
        if else_at < 0:
            self.out[index] = f"{indent}if {cond} {{ {tail} }}"
            return
        then_part = tail[:else_at].strip()
        else_part = tail[else_at + len("ELSE"):].strip()
        self.out[index] = f"{indent}if {cond} {{ {then_part} }} else {{ {else_part} }}"

    def _else_if(self, index: int, indent: str, text: str, top):
        if not isinstance(top, _IfFrame):
            raise self.error("ELSEIF without IF", index)
        if top.has_else:
            raise self.error("ELSEIF after ELSE", index)
        rest = re.sub(r"^ELSE\s*IF", "", text, flags=re.IGNORECASE)
        then_at = _find_word(rest, "THEN")
        cond = (rest[:then_at] if then_at >= 0 else rest).strip()
        if not cond:
            raise self.error("ELSEIF without a condition", index)
        self.out[index] = f"{indent}}} else if {cond} {{"

    def _else(self, index: int, indent: str, top):
        if not isinstance(top, _IfFrame):
            raise self.error("ELSE without IF", index)
        if top.has_else:
            raise self.error("duplicate ELSE", index)
        top.has_else = True
        self.out[index] = f"{indent}}} else {{"

    def _indent_of(self, index: int) -> str:
        raw = self.lines[index]
        return raw[:len(raw) - len(raw.lstrip())]

    # --- pass 2: rewrite SWITCH blocks, innermost first ---

    def _rewrite(self, block: SwitchBlock):
        for child in block.children:
            self._rewrite(child)
        temp = f"{TEMP_PREFIX}{next(self.counter)}"
        self.out[block.line] = f"{self._indent_of(block.line)}let {temp} = {block.expr}"
        for position, arm in enumerate(block.cases):
            cond = " || ".join(_equality(temp, v) for v in arm.values)
            head = "if" if position == 0 else "} else if"
            self.out[arm.line] = f"{self._indent_of(arm.line)}{head} {cond} {{"
        if block.default_line is not None:
            opener = "} else {" if block.cases else "{"
            self.out[block.default_line] = self._indent_of(block.default_line) + opener
        has_chain = bool(block.cases) or block.default_line is not None
        self.out[block.end_line] = self._indent_of(block.end_line) + ("}" if has_chain else "")


def desugar(source: str) -> str:
    """Rewrite SWITCH/SELECT CASE/IF blocks into host-level conditionals.

    Pure and deterministic. Raises PreprocessError for malformed structure.
    """
    return _Desugarer(source).run()


def scan_switch_blocks(source: str) -> List[SwitchBlock]:
    """Return the top-level SwitchBlocks of `source` (nested ones hang off `.children`)."""
    d = _Desugarer(source)
    for index, raw in enumerate(d.lines):
        d._scan_line(index, raw)
    return d.roots


__all__ = [
    "desugar",
    "scan_switch_blocks",
    "switch_match",
    "split_values",
    "strip_comment",
    "SwitchBlock",
    "CaseArm",
    "TEMP_PREFIX",
]
