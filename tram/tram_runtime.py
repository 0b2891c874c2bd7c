# tram_runtime.py

import inspect
import math
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Literal, Optional

from tram.tram_ast import Block, contains_error
from tram.tram_datatypes import (
    IncorrectNumberOfArgs, InterpreterInvariantError, InvalidArgument, Kind, NativeFunction,
    NIL, NotAnArray, ScriptLoadError, TramRuntimeError, Value, format_number,
)
from tram.tram_interpreter import CONTINUE, Evaluator
from tram.tram_parser import parse
from tram.tram_printer import Printer
from tram.tram_tokens import ParseError


def expect_args(name: str, args: List[Value], count: int):
    if len(args) != count:
        raise IncorrectNumberOfArgs(name, count, len(args))


def ensure_executable(block: Block) -> Block:
    """Refuses a tree that still holds an ErrorNode; the parser must have reported it."""
    if contains_error(block):
        raise InterpreterInvariantError("parsed tree contains an error node but no diagnostic")
    return block


def format_parse_errors(errors: List[ParseError], source: str) -> str:
    """Renders each diagnostic with the surrounding source and a caret underline."""
    out = []
    for err in errors:
        start, end = err.span.exact_range(source)
        ctx_start, ctx_end = err.span.surrounding_range(source)
        context = source[ctx_start:ctx_end].replace("\n", " ").replace("\t", " ")
        caret = " " * (start - ctx_start) + "^" * max(1, end - start)
        out.append(f"ParseError: {err}\n  | {context}\n  | {caret}")
    return "\n".join(out)


# ===================================================================
# The math module
# ===================================================================

def _nan_on_domain_error(fn):
    def safe(x):
        try:
            return fn(x)
        except ValueError:
            return math.nan
    return safe


def _sinh(x):
    try:
        return math.sinh(x)
    except OverflowError:
        return math.copysign(math.inf, x)


def _cosh(x):
    try:
        return math.cosh(x)
    except OverflowError:
        return math.inf


def _rounding(fn):
    def rounded(x):
        if not math.isfinite(x):
            return x
        return float(fn(x))
    return rounded


def _ln(x):
    if x == 0:
        return -math.inf
    if not x > 0:
        return math.nan
    return math.log(x)


def _signum(x):
    if math.isnan(x):
        return math.nan
    return math.copysign(1.0, x)


MATH_FUNCTIONS = {
    "sin": _nan_on_domain_error(math.sin),
    "cos": _nan_on_domain_error(math.cos),
    "tan": _nan_on_domain_error(math.tan),
    "sinh": _sinh,
    "cosh": _cosh,
    "tanh": math.tanh,
    "floor": _rounding(math.floor),
    "ceil": _rounding(math.ceil),
    "ln": _ln,
    "signum": _signum,
}


def _unary_native(name: str, fn: Callable[[float], float]):
    def native(vm, args):
        expect_args(name, args, 1)
        return Value.number(fn(args[0].as_number()))
    return native


def make_math_module() -> Value:
    """Builds the `math` map: unary numeric natives plus the `pi` and `e` constants."""
    entries = {
        Value.string(name): Value.function(NativeFunction(name, _unary_native(name, fn)))
        for name, fn in MATH_FUNCTIONS.items()
    }
    entries[Value.string("pi")] = Value.number(math.pi)
    entries[Value.string("e")] = Value.number(math.e)
    return Value.map(entries)


# ===================================================================
# The Standard Library
# ===================================================================

class StdLib:
    """Contains Python implementations for all Tram built-ins.

    Every method named `_<name>` is registered as the native `<name>`; each
    receives the running Evaluator and the evaluated argument list.
    """
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator

    def install(self):
        for name, member in inspect.getmembers(self, inspect.ismethod):
            if name.startswith('_') and not name.startswith('__'):
                self.evaluator.register_native(name[1:], member)
        self.evaluator.register("math", make_math_module())

    # --- I/O ---
    def _print(self, vm, args):
        printer = Printer()
        print(" ".join(printer.to_display(a) for a in args))
        return NIL

    def _input(self, vm, args):
        if args:
            sys.stdout.write(Printer().to_display(args[0]))
            sys.stdout.flush()
        line = sys.stdin.readline()
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        return Value.string(line)

    # --- Process ---
    def _exit(self, vm, args):
        code = args[0].as_number() if args else 0.0
        if not math.isfinite(code):
            raise InvalidArgument("exit", f"exit code must be finite, got {format_number(code)}")
        raise SystemExit(int(code))

    def _sleep(self, vm, args):
        expect_args("sleep", args, 1)
        seconds = args[0].as_number()
        if math.isfinite(seconds) and seconds > 0:
            time.sleep(seconds)
        return NIL

    # --- Introspection and collections ---
    def _type(self, vm, args):
        expect_args("type", args, 1)
        return Value.string(args[0].kind.value)

    def _len(self, vm, args):
        expect_args("len", args, 1)
        target = args[0]
        match target.kind:
            case Kind.ARRAY:
                return Value.number(len(target.as_array()))
            case Kind.STRING:
                return Value.number(len(target.as_text()))
            case Kind.MAP:
                return Value.number(len(target.as_map()))
        raise NotAnArray(target.kind)

    def _push(self, vm, args):
        """Appends in place, so every alias of the array sees the new items."""
        if not args:
            raise IncorrectNumberOfArgs("push", 1, 0)
        args[0].as_array().extend(args[1:])
        return args[0]

    # --- Loading code ---
    def _run(self, vm, args):
        expect_args("run", args, 1)
        path = Path(args[0].as_text())
        if not path.is_absolute():
            path = Path(vm.source_dir or os.getcwd()) / path
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ScriptLoadError(f"cannot read {path}: {e.strerror or e}") from e
        block, errors = parse(source)
        if errors:
            raise ScriptLoadError(f"{path} failed to parse\n{format_parse_errors(errors, source)}")
        vm._dbg("run", str(path))
        prev_dir = vm.source_dir
        vm.source_dir = str(path.parent)
        vm.locals.push()
        try:
            return vm.execute(ensure_executable(block))
        finally:
            vm.locals.pop()
            vm.source_dir = prev_dir


# ===================================================================
# Script Execution
# ===================================================================

# Each Tram call nests several Python frames (call, body block, statements).
RECURSION_LIMIT = 10_000


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Value = NIL
    error_message: Optional[str] = None
    diagnostics: List[ParseError] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class ScriptRunner:
    """Parses and executes Tram code against one long-lived Evaluator.

    Bindings made by one `handle_script` call stay visible to the next, which
    is what the REPL relies on.
    """

    def __init__(self, source_dir: Optional[str] = None):
        if sys.getrecursionlimit() < RECURSION_LIMIT:
            sys.setrecursionlimit(RECURSION_LIMIT)
        self.evaluator = Evaluator()
        self.stdlib = StdLib(self.evaluator)
        self.stdlib.install()
        # Base directory for relative `run` paths; the working directory when unset.
        self.source_dir = source_dir

    def _prepare(self):
        self.evaluator.reset()
        self.evaluator.source_dir = self.source_dir or os.getcwd()

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self._prepare()
        block, errors = parse(source_code)
        if errors:
            for err in errors:
                self.evaluator._dbg("ParseError", err)
            return ExecutionResult(
                status='error',
                error_message=format_parse_errors(errors, source_code),
                diagnostics=list(errors),
            )
        return self._execute(lambda: self.evaluator.execute(ensure_executable(block)))

    def run_file(self, path: str) -> ExecutionResult:
        """Runs a file through the `run` native."""
        self._prepare()
        run = self.evaluator.locals.get("run")
        return self._execute(lambda: self.evaluator.call(run.as_callable(), [Value.string(str(path))]))

    def _execute(self, thunk: Callable[[], Value]) -> ExecutionResult:
        base_depth = self.evaluator.locals.depth
        try:
            value = thunk()
        except TramRuntimeError as e:
            return ExecutionResult(
                status='error',
                error_message=self._format_runtime_error(f"{type(e).__name__}: {e}"),
            )
        except RecursionError:
            # Cleanup can itself overflow near the limit, leaving scopes pushed.
            self._unwind_scopes(base_depth)
            return ExecutionResult(
                status='error',
                error_message=self._format_runtime_error("RecursionError: maximum call depth exceeded"),
            )
        if self.evaluator.exit_flag.breaking:
            # A break no loop consumed stops the script where it was raised.
            self.evaluator._dbg("break escaped every loop, label", self.evaluator.exit_flag.label)
            self.evaluator.exit_flag = CONTINUE
        return ExecutionResult(status='success', value=value)

    def _unwind_scopes(self, depth: int):
        while self.evaluator.locals.depth > depth:
            self.evaluator.locals.pop()

    def _format_runtime_error(self, msg: str) -> str:
        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg

    def _format_stacktrace(self, limit: int = 20) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        pf = Printer().pformat
        frames = stack[-limit:]
        lines = ["Tram stacktrace:"]
        if len(stack) > limit:
            lines.append(f"  ... {len(stack) - limit} earlier call(s)")
        for frame in frames:
            parts = [frame['name'], *(pf(a) for a in frame['args'])]
            lines.append(f"  ({' '.join(parts)})")
        return "\n".join(lines)
