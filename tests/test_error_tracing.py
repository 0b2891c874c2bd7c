import pytest

from tram.tram_ast import Block, Call, ErrorNode, Expression, Ident, Literal
from tram.tram_datatypes import NIL, InterpreterInvariantError, Value
from tram.tram_runtime import ScriptRunner


def test_runtime_type_error_reports_kind_and_stacktrace():
    runner = ScriptRunner()
    res = runner.handle_script("func add(a, b) { a + b }; add(1, \"a\")")
    assert res.status == 'error'
    msg = res.error_message or ''
    assert msg.startswith("CannotAdd: cannot add number and string")
    assert "Tram stacktrace:" in msg
    assert '(add 1 "a")' in msg


def test_stacktrace_shows_function_chain_outermost_first():
    runner = ScriptRunner()
    script = """
func boom(x) { x + nil }
func call_boom(y) { boom(y) }
func outer(z) { call_boom(z) }
outer(5)
"""
    res = runner.handle_script(script)
    assert res.status == 'error', res.error_message
    lines = (res.error_message or '').splitlines()
    assert lines[0] == "CannotAdd: cannot add number and nil"
    assert lines[1:] == [
        "Tram stacktrace:",
        "  (outer 5)",
        "  (call_boom 5)",
        "  (boom 5)",
    ]


def test_native_errors_include_the_native_frame():
    res = ScriptRunner().handle_script("len(true)")
    assert res.status == 'error'
    assert "NotAnArray: expected array, got bool" in res.error_message
    assert "  (len true)" in res.error_message


def test_errors_outside_any_call_have_no_stacktrace():
    res = ScriptRunner().handle_script("1 + nil")
    assert res.error_message == "CannotAdd: cannot add number and nil"


def test_parse_errors_show_context_and_caret():
    res = ScriptRunner().handle_script("{ x = 1")
    assert res.status == 'error'
    assert res.diagnostics
    msg = res.error_message
    first, context, caret = msg.splitlines()[:3]
    assert first == "ParseError: expected closing `}` (offset 7-7)"
    assert context == "  | { x = 1"
    assert caret.endswith("^")


def test_parse_errors_do_not_execute_anything(capsys):
    res = ScriptRunner().handle_script('print("ran")\n)')
    assert res.status == 'error'
    assert "unexpected `)`" in res.error_message
    assert capsys.readouterr().out == ""


def test_runaway_recursion_is_reported_not_fatal():
    runner = ScriptRunner()
    res = runner.handle_script("func f(n) { f(n + 1) }; f(0)")
    assert res.status == 'error'
    assert res.error_message.startswith("RecursionError: maximum call depth exceeded")
    assert "earlier call(s)" in res.error_message
    assert runner.evaluator.locals.depth == 0
    assert runner.handle_script("1 + 1").value == Value.number(2)


def test_runner_recovers_after_an_error():
    runner = ScriptRunner()
    assert runner.handle_script("x = 1").status == 'success'
    assert runner.handle_script("func g() { x + nil }; g()").status == 'error'
    res = runner.handle_script("x")
    assert res.status == 'success'
    assert res.value == Value.number(1)
    assert runner.evaluator.call_stack == []


def test_format_error_is_empty_on_success():
    res = ScriptRunner().handle_script("nil")
    assert res.value is NIL
    assert res.format_error() == ""


def test_error_nodes_never_reach_the_evaluator(monkeypatch, capsys):
    tree = Block((
        Expression(Call(Ident("print"), (Literal(Value.string("ran")),))),
        Expression(ErrorNode()),
    ), scoped=False)
    monkeypatch.setattr("tram.tram_runtime.parse", lambda source: (tree, []))
    with pytest.raises(InterpreterInvariantError):
        ScriptRunner().handle_script("anything")
    assert capsys.readouterr().out == ""
