import pytest

from tram.tram_datatypes import NIL, Value
from tram.tram_runtime import ScriptRunner


def run_ok(source, runner=None):
    runner = runner or ScriptRunner()
    res = runner.handle_script(source)
    assert res.status == "success", res.error_message
    return res.value


@pytest.mark.parametrize("source, expected", [
    ("1 + 2 * 3", Value.number(7)),
    ('"a" + "b"', Value.string("ab")),
    ("x = 5; x += 2; x", Value.number(7)),
    ("m = {}; m.missing", NIL),
    ("10 - 4 - 3", Value.number(3)),
    ("2 ** 3 ** 2", Value.number(64)),
])
def test_end_to_end_values(source, expected):
    assert run_ok(source) == expected


def test_unmatched_brace_is_reported_without_crashing():
    res = ScriptRunner().handle_script("x = 1\n{ y = 2")
    assert res.status == "error"
    assert len(res.diagnostics) >= 1
    assert "ParseError" in res.error_message


@pytest.mark.parametrize("source", ["0", '""', "[]", "{}", "print", "true"])
def test_truthy_values(source):
    assert run_ok(f'if {source} {{ "yes" }} else {{ "no" }}') == Value.string("yes")


@pytest.mark.parametrize("source", ["nil", "false"])
def test_falsy_values(source):
    assert run_ok(f'if {source} {{ "yes" }} else {{ "no" }}') == Value.string("no")


def test_logical_operators_run_side_effects(capsys):
    assert run_ok('false && print("and ran")') == Value.boolean(False)
    assert run_ok('true || print("or ran")') == Value.boolean(True)
    assert capsys.readouterr().out == "and ran\nor ran\n"


def test_loop_stops_exactly_when_condition_first_holds():
    source = """
    seen = []
    i = 0
    loop {
        if i == 3 { break }
        push(seen, i)
        i += 1
    }
    seen
    """
    assert run_ok(source) == Value.array([Value.number(0), Value.number(1), Value.number(2)])


def test_labelled_break_leaves_nested_loops(capsys):
    source = """
    loop @outer {
        loop {
            print("inner")
            break outer
        }
        print("unreachable")
    }
    "done"
    """
    assert run_ok(source) == Value.string("done")
    assert capsys.readouterr().out == "inner\n"


def test_shared_array_aliasing():
    source = """
    a = [1, 2]
    b = a
    push(b, 3)
    a
    """
    assert run_ok(source) == Value.array([Value.number(1), Value.number(2), Value.number(3)])


def test_concatenation_makes_a_new_array():
    assert run_ok("a = [1]; b = a + [2]; push(b, 3); len(a)") == Value.number(1)


def test_maps_hold_functions_and_nest():
    source = """
    shapes = {
        "square" -> func(s) { s * s },
        "meta" -> {"sides" -> 4}
    }
    shapes.square(shapes.meta.sides)
    """
    assert run_ok(source) == Value.number(16)


def test_fizzbuzz(capsys):
    source = """
    n = 1
    loop n <= 15 {
        if n % 15 == 0 { print("FizzBuzz") }
        else if n % 3 == 0 { print("Fizz") }
        else if n % 5 == 0 { print("Buzz") }
        else { print(n) };
        if n == 15 { break };
        n += 1
    }
    """
    assert run_ok(source) is NIL
    lines = capsys.readouterr().out.split()
    assert len(lines) == 15
    assert lines[2] == "Fizz"
    assert lines[4] == "Buzz"
    assert lines[14] == "FizzBuzz"
    assert lines[6] == "7"


def test_bindings_survive_between_scripts():
    runner = ScriptRunner()
    run_ok("func double(x) { x * 2 }", runner)
    run_ok("total = double(4)", runner)
    assert run_ok("total + 1", runner) == Value.number(9)


def test_printing_values(capsys):
    run_ok('print(1.5, true, nil, {}, func named(a) { a }, print)')
    assert capsys.readouterr().out == "1.5 true nil %{} < func named(a) > < native function >\n"


def test_deep_recursion():
    source = "func down(n) { if n == 0 { 0 } else { down(n - 1) } }; down(500)"
    assert run_ok(source) == Value.number(0)


def test_deep_recursion_with_accumulation():
    source = "func total(n) { if n == 0 { 0 } else { n + total(n - 1) } }; total(500)"
    assert run_ok(source) == Value.number(125250)


def test_stray_break_stops_the_script_and_is_cleared():
    runner = ScriptRunner()
    assert run_ok("func f() { break }; f(); x = 1; x", runner) is NIL
    assert runner.evaluator.exit_flag.breaking is False
    assert run_ok("x") is NIL
    assert run_ok("y = 2; y", runner) == Value.number(2)


def test_unmatched_label_stops_the_script():
    source = 'loop { break nowhere }; "after"'
    assert run_ok(source) is NIL
