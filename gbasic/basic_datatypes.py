"""
Defines the syntax tree produced by the parser and walked by the evaluator.

Expressions and statements carry the `line`/`col` of the token that starts
them so runtime errors can point back at the script source.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from gbasic.basic_syntax import SyntaxRule


@dataclass
class Node:
    line: int = field(default=0, kw_only=True, compare=False)
    col: int = field(default=0, kw_only=True, compare=False)

    @property
    def loc(self) -> dict:
        return {"line": self.line, "col": self.col, "tag": type(self).__name__}


# =================================================================
# Expressions
# =================================================================

@dataclass
class Literal(Node):
    value: Any


@dataclass
class Var(Node):
    name: str


@dataclass
class ArrayLit(Node):
    items: List[Node]


@dataclass
class MapLit(Node):
    entries: List[Tuple[str, Node]]


@dataclass
class Unary(Node):
    op: str
    operand: Node


@dataclass
class Binary(Node):
    op: str
    left: Node
    right: Node


@dataclass
class Member(Node):
    """Property access, e.g. `customer.name`."""
    target: Node
    name: str


@dataclass
class Index(Node):
    """Subscript, e.g. `items[0]` or `row["id"]`."""
    target: Node
    index: Node


@dataclass
class Call(Node):
    """A builtin function call, e.g. `LEN(name$)`."""
    name: str
    args: List[Node]


@dataclass
class CustomSyntax(Node):
    """An invocation of a registered statement form, e.g. `USE_KB "docs"`.

    `args` holds one entry per placeholder: an expression node for `$expr$`,
    the identifier text for `$ident$`.
    """
    rule: 'SyntaxRule'
    args: List[Any]

    @property
    def keyword(self) -> str:
        return self.rule.keyword


# =================================================================
# Statements
# =================================================================

@dataclass
class Let(Node):
    name: str
    expr: Node


@dataclass
class Assign(Node):
    """Assignment to a variable, member or index target."""
    target: Node
    expr: Node


@dataclass
class ExprStmt(Node):
    expr: Node


@dataclass
class Block(Node):
    statements: List[Node]


@dataclass
class If(Node):
    branches: List[Tuple[Node, Block]]
    otherwise: Optional[Block] = None


@dataclass
class Program(Node):
    statements: List[Node]
