import pytest

from tram.tram_ast import (
    ArrayLiteral, Assign, Binary, BinOp, Block, Break, Call, ErrorNode, Expression,
    Ident, If, Literal, Loop, MapLiteral, Unary, UnOp, contains_error,
)
from tram.tram_datatypes import NIL, Kind, UserFunction, Value
from tram.tram_parser import Parser, parse


def num(n):
    return Literal(Value.number(n))


def parse_expr(source):
    """Parses a single-statement program and returns its expression."""
    block, errors = parse(source)
    assert errors == [], errors
    assert len(block.statements) == 1
    return block.statements[0].expr


def errors_of(source):
    return parse(source)[1]


# --- Precedence and associativity ---

def test_multiplication_binds_tighter_than_addition():
    assert parse_expr("1 + 2 * 3") == Binary(BinOp.ADD, num(1), Binary(BinOp.MUL, num(2), num(3)))


def test_binary_operators_are_left_associative():
    assert parse_expr("1 - 2 - 3") == Binary(BinOp.SUB, Binary(BinOp.SUB, num(1), num(2)), num(3))


def test_power_binds_tighter_than_multiplication():
    assert parse_expr("2 * 3 ** 2") == Binary(BinOp.MUL, num(2), Binary(BinOp.POW, num(3), num(2)))


def test_precedence_ladder_from_or_to_comparison():
    expr = parse_expr("a || b && c == d < e")
    assert expr == Binary(
        BinOp.OR,
        Ident("a"),
        Binary(BinOp.AND, Ident("b"), Binary(BinOp.EQ, Ident("c"), Binary(BinOp.LT, Ident("d"), Ident("e")))),
    )


def test_grouping_overrides_precedence():
    assert parse_expr("(1 + 2) * 3") == Binary(BinOp.MUL, Binary(BinOp.ADD, num(1), num(2)), num(3))


def test_unary_operators():
    assert parse_expr("-x + 1") == Binary(BinOp.ADD, Unary(UnOp.NEG, Ident("x")), num(1))
    assert parse_expr("!a == b") == Binary(BinOp.EQ, Unary(UnOp.NOT, Ident("a")), Ident("b"))


def test_not_equal_lowers_to_negated_equality():
    assert parse_expr("a != b") == Unary(UnOp.NOT, Binary(BinOp.EQ, Ident("a"), Ident("b")))


# --- Assignment ---

def test_assignment_is_right_associative():
    assert parse_expr("a = b = 1") == Assign("a", Assign("b", num(1)))


def test_compound_assignment_lowers_to_binary():
    assert parse_expr("x += 2") == Assign("x", Binary(BinOp.ADD, Ident("x"), num(2)))
    assert parse_expr("x **= 2") == Assign("x", Binary(BinOp.POW, Ident("x"), num(2)))
    assert parse_expr("x %= 2") == Assign("x", Binary(BinOp.MOD, Ident("x"), num(2)))


def test_assignment_to_non_identifier_is_a_diagnostic():
    block, errors = parse("1 = 2")
    assert len(errors) == 1
    assert "invalid assignment target" in errors[0].message
    assert errors[0].span.start == 2
    assert block.statements[0].expr == ErrorNode()


# --- Calls, access, indexing ---

def test_call_with_arguments():
    assert parse_expr("f(1, x)") == Call(Ident("f"), (num(1), Ident("x")))
    assert parse_expr("f()") == Call(Ident("f"), ())


def test_member_access_lowers_to_access_with_string_key():
    expr = parse_expr("math.sin(1)")
    assert isinstance(expr, Call)
    access = expr.callee
    assert access.op is BinOp.ACCESS
    assert access.lhs == Ident("math")
    assert access.rhs.value.as_text() == "sin"


def test_index_expression():
    assert parse_expr("a[0]") == Binary(BinOp.INDEX, Ident("a"), num(0))


def test_missing_comma_in_call_is_a_diagnostic():
    errors = errors_of("f(1 2)")
    assert len(errors) == 1
    assert "expected `,` or `)`" in errors[0].message


# --- Literals ---

def test_array_and_map_literals():
    assert parse_expr("[1, 2]") == ArrayLiteral((num(1), num(2)))
    assert parse_expr("[]") == ArrayLiteral(())
    assert parse_expr("{}") == MapLiteral(())
    assert parse_expr('{"a" -> 1, "b" -> 2,}') == MapLiteral((
        (Literal(Value.string("a")), num(1)),
        (Literal(Value.string("b")), num(2)),
    ))


def test_keyword_literals():
    assert parse_expr("true") == Literal(Value.boolean(True))
    assert parse_expr("nil") == Literal(NIL)


# --- Blocks and statements ---

def test_semicolons_separate_statements():
    block, errors = parse("x = 5; x += 2; x")
    assert errors == []
    assert block.scoped is False
    assert [type(s.expr) for s in block.statements] == [Assign, Assign, Ident]


def test_brace_block_is_scoped():
    expr = parse_expr("{ a = 1; a }")
    assert expr == Block((Expression(Assign("a", num(1))), Expression(Ident("a"))), scoped=True)


def test_unmatched_open_brace_reports_and_does_not_crash():
    block, errors = parse("{ x = 1")
    assert len(errors) >= 1
    assert any("`}`" in e.message for e in errors)


def test_stray_close_brace_is_a_diagnostic():
    errors = errors_of("1 }")
    assert len(errors) == 1
    assert "unexpected `}`" in errors[0].message


# --- Control flow ---

def test_if_else_chain():
    expr = parse_expr("if a { 1 } else if b { 2 } else { 3 }")
    assert isinstance(expr, If)
    assert expr.cond == Ident("a")
    inner = expr.otherwise
    assert isinstance(inner, If)
    assert inner.cond == Ident("b")
    assert inner.otherwise == Block((Expression(num(3)),), scoped=True)


def test_if_without_else():
    expr = parse_expr("if a { 1 }")
    assert expr.otherwise is None


def test_if_requires_brace_block():
    errors = errors_of("if a 1")
    assert errors
    assert "expected `{` after if condition" in errors[0].message


def test_loop_forms():
    assert parse_expr("loop { break }") == Loop(Block((Expression(Break()),)))
    labelled = parse_expr("loop @outer x < 3 { break outer }")
    assert labelled.label == "outer"
    assert labelled.cond == Binary(BinOp.LT, Ident("x"), num(3))
    assert labelled.body.statements[0].expr == Break("outer")
    assert parse_expr("loop { break @outer }").body.statements[0].expr == Break("outer")


# --- Functions ---

def test_anonymous_function_literal():
    expr = parse_expr("func(a, b) { a + b }")
    assert isinstance(expr, Literal)
    fn = expr.value.as_callable()
    assert isinstance(fn, UserFunction)
    assert fn.name is None
    assert fn.params == ("a", "b")
    assert fn.body.scoped is True


def test_named_function_lowers_to_unscoped_assign_then_lookup():
    expr = parse_expr("func add(a, b) { a + b }")
    assert isinstance(expr, Block)
    assert expr.scoped is False
    assign, lookup = (s.expr for s in expr.statements)
    assert isinstance(assign, Assign) and assign.name == "add"
    assert assign.value.value.kind is Kind.FUNCTION
    assert lookup == Ident("add")


def test_bad_parameter_is_a_diagnostic():
    errors = errors_of("func f(1) { }")
    assert errors
    assert "parameter name" in errors[0].message


# --- Error recovery ---

def test_multiple_independent_errors_are_collected():
    block, errors = parse("1 +\n$\nlet")
    assert len(errors) >= 2
    assert contains_error(block)


def test_lexer_errors_surface_as_diagnostics():
    errors = errors_of('x = "open')
    assert len(errors) == 1
    assert "unterminated string literal" in errors[0].message


def test_well_formed_program_has_no_error_nodes():
    source = """
    func fib(n) { if n < 2 { n } else { fib(n - 1) + fib(n - 2) } }
    total = 0
    loop @outer { total += 1; if total > 3 { break outer } }
    m = {"k" -> [1, 2, 3]}
    m.k[0]
    """
    block, errors = parse(source)
    assert errors == []
    assert not contains_error(block)


def test_parser_window_is_primed_one_token_ahead():
    p = Parser("a b")
    assert p.current.kind.name == "START"
    assert p.next.payload == "a"


@pytest.mark.parametrize("source", ["", "   ", ";"])
def test_trivial_programs(source):
    block, errors = parse(source)
    if source == ";":
        assert len(errors) == 1
    else:
        assert errors == []
        assert block.statements == ()
