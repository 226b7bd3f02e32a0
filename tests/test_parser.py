import pytest

from gbasic.basic_datatypes import (
    Literal, Var, ArrayLit, MapLit, Unary, Binary, Member, Index, Call,
    CustomSyntax, Let, Assign, ExprStmt, Block, If
)
from gbasic.basic_errors import ScriptSyntaxError
from gbasic.basic_lexer import tokenize, NUMBER, STRING, IDENT, OP, NEWLINE, EOF
from gbasic.basic_parser import Parser
from gbasic.basic_syntax import SyntaxRegistry, EXPR, IDENT as IDENT_PLACEHOLDER


def noop(args, session):
    return None


@pytest.fixture
def registry():
    reg = SyntaxRegistry()
    reg.register_all([
        (["USE_KB", EXPR], noop),
        (["CLEAR_KB"], noop),
        (["CLEAR_KB", EXPR], noop),
        (["GET", EXPR], noop),
        (["POST", EXPR, "BODY", EXPR], noop),
        (["HEAR", IDENT_PLACEHOLDER], noop),
        (["ON", "ERROR", "RESUME", "NEXT"], noop),
        (["ON", "ERROR", "GOTO", "0"], noop),
    ])
    reg.freeze()
    return reg


def parse_one(src, registry=None):
    program = Parser(registry).parse(src)
    assert len(program.statements) == 1
    return program.statements[0]


# --- lexer ---

def test_tokenize_kinds_and_values():
    toks = tokenize('x = 1.5 + "a\\n" // comment\ny$')
    kinds = [t.kind for t in toks]
    assert kinds == [IDENT, OP, NUMBER, OP, STRING, NEWLINE, IDENT, EOF]
    assert toks[2].value == 1.5
    assert toks[4].value == "a\n"
    assert toks[6].text == "y$"


def test_tokenize_word_operators_and_aliases():
    toks = tokenize("a AND NOT b OR c <> d")
    assert [t.text for t in toks if t.kind == OP] == ["&&", "!", "||", "!="]


def test_newlines_inside_brackets_are_dropped():
    toks = tokenize("f(1,\n2)\n[3,\n4]")
    assert [t.kind for t in toks].count(NEWLINE) == 1


def test_newlines_inside_blocks_are_kept():
    toks = tokenize("{\nx\n}")
    assert [t.kind for t in toks].count(NEWLINE) == 2


def test_tokenize_positions():
    toks = tokenize("a\n  bb")
    assert (toks[2].line, toks[2].col) == (2, 3)


def test_unterminated_string():
    with pytest.raises(ScriptSyntaxError) as excinfo:
        tokenize('x = "abc')
    assert excinfo.value.line == 1
    assert excinfo.value.col == 5


def test_unexpected_character():
    with pytest.raises(ScriptSyntaxError, match="Unexpected character"):
        tokenize("x = @")


# --- statements ---

def test_let_and_assignment():
    assert parse_one("let x = 1") == Let("x", Literal(1))
    assert parse_one("x = 1") == Assign(Var("x"), Literal(1))
    assert parse_one("a.b = 2") == Assign(Member(Var("a"), "b"), Literal(2))
    assert parse_one("a[0] = 3") == Assign(Index(Var("a"), Literal(0)), Literal(3))


def test_reserved_words_cannot_be_assigned():
    with pytest.raises(ScriptSyntaxError, match="reserved"):
        parse_one("true = 1")
    with pytest.raises(ScriptSyntaxError, match="reserved"):
        parse_one("let if = 1")


def test_precedence():
    stmt = parse_one("1 + 2 * 3 == 7 && !done")
    assert stmt == ExprStmt(Binary(
        "&&",
        Binary("==", Binary("+", Literal(1), Binary("*", Literal(2), Literal(3))), Literal(7)),
        Unary("!", Var("done")),
    ))


def test_single_equals_in_expression_is_comparison():
    stmt = parse_one("if a = 1 { b = 2 }")
    assert stmt.branches[0][0] == Binary("==", Var("a"), Literal(1))


def test_if_else_chain_across_lines():
    src = "if a {\n  x = 1\n} else if b {\n  x = 2\n}\nelse {\n  x = 3\n}"
    stmt = parse_one(src)
    assert isinstance(stmt, If)
    assert len(stmt.branches) == 2
    assert stmt.otherwise == Block([Assign(Var("x"), Literal(3))])


def test_literals_arrays_and_maps():
    stmt = parse_one('x = #{name: "n", "k 2": [1, true, null]}')
    assert stmt.expr == MapLit([("name", Literal("n")), ("k 2", ArrayLit([Literal(1), Literal(True), Literal(None)]))])


def test_calls_and_postfix():
    stmt = parse_one("LEN(items[0].name)")
    assert stmt == ExprStmt(Call("LEN", [Member(Index(Var("items"), Literal(0)), "name")]))


def test_statements_need_separators():
    with pytest.raises(ScriptSyntaxError, match="Expected end of statement"):
        Parser().parse("x = 1 y = 2")
    program = Parser().parse("x = 1; y = 2")
    assert len(program.statements) == 2


def test_unbalanced_braces():
    with pytest.raises(ScriptSyntaxError, match="Expected '}'"):
        Parser().parse("if a {\n x = 1\n")
    with pytest.raises(ScriptSyntaxError, match="Unexpected '}'"):
        Parser().parse("}")


def test_error_location():
    with pytest.raises(ScriptSyntaxError) as excinfo:
        Parser().parse("x = 1\ny = (2 +")
    assert excinfo.value.line == 2
    assert "found end of input" in excinfo.value.message


# --- custom syntax ---

def test_custom_statement_with_expression(registry):
    stmt = parse_one('USE_KB "docs" + suffix', registry)
    node = stmt.expr
    assert isinstance(node, CustomSyntax)
    assert node.keyword == "USE_KB"
    assert node.args == [Binary("+", Literal("docs"), Var("suffix"))]


def test_shorter_form_chosen_at_end_of_statement(registry):
    bare = parse_one("clear_kb", registry).expr
    assert bare.rule.tokens == ("CLEAR_KB",)
    named = parse_one('CLEAR_KB "docs"', registry).expr
    assert named.rule.tokens == ("CLEAR_KB", EXPR)
    assert named.args == [Literal("docs")]


def test_multi_literal_forms(registry):
    a = parse_one("on error resume next", registry).expr
    b = parse_one("ON ERROR GOTO 0", registry).expr
    assert a.rule.tokens == ("ON", "ERROR", "RESUME", "NEXT")
    assert b.rule.tokens == ("ON", "ERROR", "GOTO", "0")


def test_incomplete_custom_form_reports_expected_keywords(registry):
    with pytest.raises(ScriptSyntaxError, match="Expected GOTO, RESUME in ON"):
        parse_one("ON ERROR", registry)


def test_ident_placeholder(registry):
    node = parse_one("HEAR answer", registry).expr
    assert node.args == ["answer"]
    with pytest.raises(ScriptSyntaxError, match="Expected a name"):
        parse_one('HEAR "x"', registry)


def test_placeholders_and_inner_literals(registry):
    node = parse_one('POST url BODY #{a: 1}', registry).expr
    assert node.args == [Var("url"), MapLit([("a", Literal(1))])]


def test_custom_form_as_expression(registry):
    stmt = parse_one("weather = GET base + \"/w\"", registry)
    assert isinstance(stmt, Assign)
    assert isinstance(stmt.expr, CustomSyntax)
    assert stmt.expr.args == [Binary("+", Var("base"), Literal("/w"))]


def test_custom_form_inside_block(registry):
    stmt = parse_one("if x { CLEAR_KB }", registry)
    body = stmt.branches[0][1]
    assert body.statements[0].expr.rule.tokens == ("CLEAR_KB",)


def test_unregistered_words_are_variables():
    assert parse_one("USE_KB") == ExprStmt(Var("USE_KB"))
