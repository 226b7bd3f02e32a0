"""
Statement and expression parser for the host script language.

Statements whose leading word is a registered keyword are parsed by walking
the SyntaxRegistry's prefix tree; everything else is ordinary host syntax:
`let`, assignment, `if / else if / else`, `{ ... }` blocks and expressions.
"""

from typing import List, Optional

from gbasic.basic_datatypes import (
    Node, Literal, Var, ArrayLit, MapLit, Unary, Binary, Member, Index, Call,
    CustomSyntax, Let, Assign, ExprStmt, Block, If, Program
)
from gbasic.basic_errors import ScriptSyntaxError
from gbasic.basic_lexer import Token, tokenize, NUMBER, STRING, IDENT, OP, NEWLINE, EOF
from gbasic.basic_syntax import SyntaxRegistry, RuleNode, EXPR

_BINARY_PRECEDENCE = {
    "||": 1,
    "&&": 2,
    "==": 3, "=": 3, "!=": 3,
    "<": 4, "<=": 4, ">": 4, ">=": 4,
    "+": 5, "-": 5,
    "*": 6, "/": 6, "%": 6,
}
_LITERAL_WORDS = {"TRUE": True, "FALSE": False, "NULL": None}
RESERVED_WORDS = frozenset({"LET", "IF", "ELSE"}) | frozenset(_LITERAL_WORDS)


class Parser:
    """Parses desugared script text into a Program tree."""

    def __init__(self, registry: Optional[SyntaxRegistry] = None):
        self.registry = registry if registry is not None else SyntaxRegistry()
        self.tokens: List[Token] = []
        self.pos = 0

    def parse(self, source: str) -> Program:
        self.tokens = tokenize(source)
        self.pos = 0
        statements = self._parse_statements(top_level=True)
        return Program(statements, line=1, col=1)

    # --- token helpers ---

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != EOF:
            self.pos += 1
        return tok

    def expect_op(self, op: str) -> Token:
        tok = self.peek()
        if not tok.is_op(op):
            raise self._error(f"Expected '{op}'", tok)
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.peek()
        if tok.kind != IDENT:
            raise self._error("Expected a name", tok)
        return self.advance()

    def _error(self, message: str, tok: Token) -> ScriptSyntaxError:
        found = "end of input" if tok.kind == EOF else ("end of line" if tok.kind == NEWLINE else repr(tok.text))
        return ScriptSyntaxError(f"{message}, found {found}", tok.line, tok.col)

    def _skip_separators(self):
        while self.peek().kind == NEWLINE or self.peek().is_op(";"):
            self.advance()

    # --- statements ---

    def _parse_statements(self, top_level: bool) -> List[Node]:
        statements = []
        while True:
            self._skip_separators()
            tok = self.peek()
            if tok.kind == EOF:
                if not top_level:
                    raise self._error("Expected '}'", tok)
                return statements
            if tok.is_op("}"):
                if top_level:
                    raise self._error("Unexpected '}'", tok)
                return statements
            statements.append(self.parse_statement())
            end = self.peek()
            if not (end.kind in (NEWLINE, EOF) or end.is_op(";", "}")):
                raise self._error("Expected end of statement", end)

    def parse_statement(self) -> Node:
        tok = self.peek()
        if tok.is_word("LET"):
            return self._parse_let()
        if tok.is_word("IF"):
            return self._parse_if()
        if tok.is_op("{"):
            return self._parse_block()
        if tok.kind == IDENT:
            root = self.registry.lookup(tok.text)
            if root is not None:
                node = self._parse_custom(root)
                # A custom form may still start a larger expression, e.g. `GET url + "x"`
                return ExprStmt(self._parse_binary(1, left=self._parse_postfix(node)), line=tok.line, col=tok.col)

        if tok.kind == IDENT and tok.text.upper() in _LITERAL_WORDS and self.peek(1).is_op("="):
            raise self._error("Cannot assign to a reserved word", tok)
        target = self._parse_unary()
        if self.peek().is_op("=") and isinstance(target, (Var, Member, Index)):
            self.advance()
            value = self.parse_expression()
            return Assign(target, value, line=tok.line, col=tok.col)
        expr = self._parse_binary(1, left=target)
        return ExprStmt(expr, line=tok.line, col=tok.col)

    def _parse_let(self) -> Let:
        tok = self.advance()
        name = self.expect_ident()
        if name.text.upper() in RESERVED_WORDS:
            raise self._error("Cannot bind a reserved word", name)
        self.expect_op("=")
        return Let(name.text, self.parse_expression(), line=tok.line, col=tok.col)

    def _parse_block(self) -> Block:
        tok = self.expect_op("{")
        statements = self._parse_statements(top_level=False)
        self.expect_op("}")
        return Block(statements, line=tok.line, col=tok.col)

    def _parse_if(self) -> If:
        tok = self.advance()
        branches = [(self.parse_expression(), self._parse_block())]
        otherwise = None
        while self._next_is_else():
            self.advance()
            if self.peek().is_word("IF"):
                self.advance()
                branches.append((self.parse_expression(), self._parse_block()))
                continue
            otherwise = self._parse_block()
            break
        return If(branches, otherwise, line=tok.line, col=tok.col)

    def _next_is_else(self) -> bool:
        offset = 0
        while self.peek(offset).kind == NEWLINE:
            offset += 1
        if self.peek(offset).is_word("ELSE"):
            self.pos += offset
            return True
        return False

    # --- custom syntax ---

    def _parse_custom(self, root: RuleNode) -> CustomSyntax:
        start = self.advance()
        node = root
        args = []
        while True:
            tok = self.peek()
            literal = tok.text.upper() if tok.kind in (IDENT, NUMBER, OP) else None
            if literal is not None and literal in node.literals:
                self.advance()
                node = node.literals[literal]
                continue
            if node.placeholder is not None and (node.rule is None or self._can_start(node.placeholder, tok)):
                if node.placeholder == EXPR:
                    args.append(self.parse_expression())
                else:
                    args.append(self.expect_ident().text)
                node = node.child
                continue
            if node.rule is not None:
                return CustomSyntax(node.rule, args, line=start.line, col=start.col)
            expected = ", ".join(sorted(node.literals)) or "more input"
            raise self._error(f"Expected {expected} in {start.text.upper()}", tok)

    def _can_start(self, placeholder: str, tok: Token) -> bool:
        if placeholder != EXPR:
            return tok.kind == IDENT
        if tok.kind in (NUMBER, STRING):
            return True
        if tok.kind == IDENT:
            return not tok.is_word("ELSE")
        return tok.is_op("(", "[", "#{", "-", "!")

    # --- expressions ---

    def parse_expression(self) -> Node:
        return self._parse_binary(1)

    def _parse_binary(self, min_prec: int, left: Optional[Node] = None) -> Node:
        if left is None:
            left = self._parse_unary()
        while True:
            tok = self.peek()
            prec = _BINARY_PRECEDENCE.get(tok.text) if tok.kind == OP else None
            if prec is None or prec < min_prec:
                return left
            self.advance()
            right = self._parse_binary(prec + 1)
            op = "==" if tok.text == "=" else tok.text
            left = Binary(op, left, right, line=tok.line, col=tok.col)

    def _parse_unary(self) -> Node:
        tok = self.peek()
        if tok.is_op("-", "!"):
            self.advance()
            return Unary(tok.text, self._parse_unary(), line=tok.line, col=tok.col)
        return self._parse_postfix(self._parse_primary())

    def _parse_postfix(self, node: Node) -> Node:
        while True:
            tok = self.peek()
            if tok.is_op("."):
                self.advance()
                name = self.peek()
                if name.kind not in (IDENT, NUMBER):
                    raise self._error("Expected a property name", name)
                self.advance()
                node = Member(node, name.text, line=tok.line, col=tok.col)
            elif tok.is_op("["):
                self.advance()
                index = self.parse_expression()
                self.expect_op("]")
                node = Index(node, index, line=tok.line, col=tok.col)
            else:
                return node

    def _parse_primary(self) -> Node:
        tok = self.peek()
        match tok.kind:
            case "number" | "string":
                self.advance()
                return Literal(tok.value, line=tok.line, col=tok.col)
            case "ident":
                upper = tok.text.upper()
                if upper in _LITERAL_WORDS:
                    self.advance()
                    return Literal(_LITERAL_WORDS[upper], line=tok.line, col=tok.col)
                if upper in ("LET", "IF", "ELSE"):
                    raise self._error("Unexpected keyword", tok)
                root = self.registry.lookup(tok.text)
                if root is not None:
                    return self._parse_custom(root)
                self.advance()
                if self.peek().is_op("("):
                    return Call(tok.text, self._parse_call_args(), line=tok.line, col=tok.col)
                return Var(tok.text, line=tok.line, col=tok.col)
            case "op":
                if tok.is_op("("):
                    self.advance()
                    inner = self.parse_expression()
                    self.expect_op(")")
                    return inner
                if tok.is_op("["):
                    return self._parse_array()
                if tok.is_op("#{"):
                    return self._parse_map()
        raise self._error("Unexpected token", tok)

    def _parse_call_args(self) -> List[Node]:
        self.expect_op("(")
        args = []
        while not self.peek().is_op(")"):
            args.append(self.parse_expression())
            if not self.peek().is_op(","):
                break
            self.advance()
        self.expect_op(")")
        return args

    def _parse_array(self) -> ArrayLit:
        tok = self.expect_op("[")
        items = []
        while not self.peek().is_op("]"):
            items.append(self.parse_expression())
            if not self.peek().is_op(","):
                break
            self.advance()
        self.expect_op("]")
        return ArrayLit(items, line=tok.line, col=tok.col)

    def _parse_map(self) -> MapLit:
        tok = self.expect_op("#{")
        entries = []
        while not self.peek().is_op("}"):
            key = self.peek()
            if key.kind == IDENT:
                name = key.text
            elif key.kind == STRING:
                name = key.value
            else:
                raise self._error("Expected a map key", key)
            self.advance()
            self.expect_op(":")
            entries.append((name, self.parse_expression()))
            if not self.peek().is_op(","):
                break
            self.advance()
        self.expect_op("}")
        return MapLit(entries, line=tok.line, col=tok.col)
