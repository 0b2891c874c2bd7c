"""
The core Tram interpreter: a tree-walking Evaluator over the parser's AST.
"""
import math
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from tram.tram_ast import (
    ArrayLiteral, Assign, Binary, BinOp, Block, Break, Call, ErrorNode, Ident, If,
    Literal, Loop, MapLiteral, Node, Unary, UnOp,
)
from tram.tram_datatypes import (
    CannotAdd, IncorrectNumberOfArgs, InterpreterInvariantError, Kind, LocalStack,
    NativeFunction, NIL, NotAnArray, TramCallable, UserFunction, Value,
)


@dataclass(frozen=True)
class ExitFlag:
    """Pending loop exit. A labelled break only ends the loop with that label."""
    breaking: bool = False
    label: Optional[str] = None

    def matches(self, label: Optional[str]) -> bool:
        return self.breaking and (self.label is None or self.label == label)


CONTINUE = ExitFlag()


# =================================================================
# IEEE-754 arithmetic (Python raises where the language yields inf/NaN)
# =================================================================

def ieee_div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def ieee_mod(a: float, b: float) -> float:
    # Truncated remainder: the result takes the sign of the dividend.
    if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)


def ieee_pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        if a < 0 and b == int(b) and int(b) % 2 == 1:
            return -math.inf
        return math.inf
    except ValueError:
        if a == 0:
            return math.inf
        return math.nan


NUMERIC_OPS = {
    BinOp.SUB: lambda a, b: a - b,
    BinOp.MUL: lambda a, b: a * b,
    BinOp.DIV: ieee_div,
    BinOp.POW: ieee_pow,
    BinOp.MOD: ieee_mod,
}

COMPARISONS = {
    BinOp.GT: lambda a, b: a > b,
    BinOp.GT_EQ: lambda a, b: a >= b,
    BinOp.LT: lambda a, b: a < b,
    BinOp.LT_EQ: lambda a, b: a <= b,
}


class Evaluator:
    """Evaluates AST nodes against a single scope stack.

    The evaluator owns its `LocalStack` for the whole run. Loop exits are
    signalled through `exit_flag` rather than exceptions; runtime errors are
    `TramRuntimeError` exceptions that propagate untouched to the caller.
    """

    def __init__(self):
        self.locals = LocalStack()
        self.exit_flag: ExitFlag = CONTINUE
        self.call_stack: List[Dict[str, Any]] = []
        # Base directory for relative paths given to `run`.
        self.source_dir: Optional[str] = None

    def _dbg(self, *parts):
        if os.environ.get("TRAM_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def reset(self):
        """Clears per-run state, keeping the bindings."""
        self.exit_flag = CONTINUE
        self.call_stack.clear()

    def register(self, name: str, value: Value):
        self.locals.define(name, value)

    def register_native(self, name: str, fn) -> Value:
        value = Value.function(NativeFunction(name, fn))
        self.locals.define(name, value)
        return value

    # --- Evaluation ---

    def execute(self, node: Node) -> Value:
        """Recursive dispatcher for evaluating any AST node."""
        match node:
            case Literal(value):
                # A fresh handle keeps the tree immutable if the string is mutated later.
                if value.kind is Kind.STRING:
                    return Value.string(value.payload.value)
                return value

            case Ident(name):
                return self.locals.get(name)

            case Assign(name, expr):
                self.locals.set(name, self.execute(expr))
                return NIL

            case Call(callee, args):
                target = self.execute(callee)
                values = [self.execute(arg) for arg in args]
                # Arguments run before the callee is checked for being callable.
                return self.call(target.as_callable(), values)

            case Binary(op, lhs, rhs):
                # Both operands always run: && and || do not short-circuit.
                a = self.execute(lhs)
                b = self.execute(rhs)
                return self._binary(op, a, b)

            case Unary(op, operand):
                value = self.execute(operand)
                if op is UnOp.NOT:
                    return Value.boolean(not value.truthy())
                return Value.number(-value.as_number())

            case If(cond, then, otherwise):
                if self.execute(cond).truthy():
                    return self.execute(then)
                if otherwise is not None:
                    return self.execute(otherwise)
                return NIL

            case Block(statements, scoped):
                return self._block(statements, scoped)

            case Loop(body, label, cond):
                return self._loop(body, label, cond)

            case Break(label):
                self.exit_flag = ExitFlag(True, label)
                return NIL

            case ArrayLiteral(items):
                return Value.array(self.execute(item) for item in items)

            case MapLiteral(entries):
                result = {}
                for key, value in entries:
                    k = self.execute(key)
                    result[k] = self.execute(value)
                return Value.map(result)

            case ErrorNode():
                raise InterpreterInvariantError("evaluated a node that failed to parse")

        raise InterpreterInvariantError(f"unknown AST node {node!r}")

    def _block(self, statements, scoped: bool) -> Value:
        if scoped:
            self.locals.push()
        try:
            result = NIL
            for stmt in statements:
                result = self.execute(stmt.expr)
                if self.exit_flag.breaking:
                    break
            return result
        finally:
            if scoped:
                self.locals.pop()

    def _loop(self, body: Node, label: Optional[str], cond: Optional[Node]) -> Value:
        while True:
            if self.exit_flag.breaking:
                if self.exit_flag.matches(label):
                    self.exit_flag = CONTINUE
                # An unmatched label stays set for an enclosing loop to see.
                return NIL
            # A false condition skips this pass; only `break` ends the loop.
            if cond is None or self.execute(cond).truthy():
                self.execute(body)

    def _binary(self, op: BinOp, a: Value, b: Value) -> Value:
        match op:
            case BinOp.ADD:
                return self._add(a, b)
            case BinOp.SUB | BinOp.MUL | BinOp.DIV | BinOp.POW | BinOp.MOD:
                return a.num_op(b, NUMERIC_OPS[op])
            case BinOp.GT | BinOp.GT_EQ | BinOp.LT | BinOp.LT_EQ:
                return Value.boolean(COMPARISONS[op](a.as_number(), b.as_number()))
            case BinOp.EQ:
                return Value.boolean(a == b)
            case BinOp.AND:
                return Value.boolean(a.truthy() and b.truthy())
            case BinOp.OR:
                return Value.boolean(a.truthy() or b.truthy())
            case BinOp.ACCESS:
                return a.as_map().get(b, NIL)
            case BinOp.INDEX:
                return self._index(a, b)
        raise InterpreterInvariantError(f"unknown binary operator {op!r}")

    def _add(self, a: Value, b: Value) -> Value:
        match (a.kind, b.kind):
            case (Kind.ARRAY, Kind.ARRAY):
                return Value.array(a.as_array() + b.as_array())
            case (Kind.STRING, Kind.STRING):
                return Value.string(a.as_text() + b.as_text())
            case (Kind.NUMBER, Kind.NUMBER):
                return Value.number(a.as_number() + b.as_number())
        raise CannotAdd(a, b)

    def _index(self, target: Value, index: Value) -> Value:
        if target.kind is Kind.MAP:
            return target.as_map().get(index, NIL)
        if target.kind is not Kind.ARRAY:
            raise NotAnArray(target.kind)
        items = target.as_array()
        i = index.as_number()
        if not math.isfinite(i) or i != int(i) or not 0 <= i < len(items):
            return NIL
        return items[int(i)]

    # --- Calls ---

    def call(self, func: TramCallable, args: List[Value]) -> Value:
        """Invokes a native or user-defined function with evaluated arguments."""
        name = func.name or "<func>"
        self._dbg("Evaluator.call", name, "argc", len(args))
        self.call_stack.append({'name': name, 'args': list(args)})
        match func:
            case NativeFunction():
                result = func.fn(self, args)
            case UserFunction():
                result = self._call_user(func, args)
            case _:
                raise InterpreterInvariantError(f"unknown callable {func!r}")
        # On error the frame stays on the stack so the runner can render a trace.
        self.call_stack.pop()
        return result

    def _call_user(self, func: UserFunction, args: List[Value]) -> Value:
        if len(args) != len(func.params):
            raise IncorrectNumberOfArgs(func.name or "<func>", len(func.params), len(args))
        self.locals.push()
        self._dbg("push scope for", func.name or "<func>", "depth", self.locals.depth)
        try:
            for param, arg in zip(func.params, args):
                self.locals.define(param, arg)
            return self.execute(func.body)
        finally:
            self.locals.pop()
            self._dbg("pop scope for", func.name or "<func>", "depth", self.locals.depth)
