"""
Defines the core data types for the Tram runtime.

This module provides the tagged runtime value, the shared handles that give
strings, arrays and maps their reference semantics, the two kinds of callable
function, the flat scope stack used by the evaluator, and the runtime error
taxonomy.
"""
import math
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from tram.tram_ast import Block
    from tram.tram_interpreter import Evaluator


# =================================================================
# Errors
# =================================================================

class TramRuntimeError(Exception):
    """Base class for errors a running Tram program can raise."""
    pass


class CannotAdd(TramRuntimeError):
    def __init__(self, lhs: 'Value', rhs: 'Value'):
        super().__init__(f"cannot add {lhs.kind.value} and {rhs.kind.value}")
        self.lhs = lhs
        self.rhs = rhs


class TypeMismatch(TramRuntimeError):
    """A value did not have the kind an operation required."""
    def __init__(self, expected: 'Kind', got: Optional['Kind'] = None):
        msg = f"expected {expected.value}"
        if got is not None:
            msg += f", got {got.value}"
        super().__init__(msg)
        self.expected = expected
        self.got = got


class NotANumber(TypeMismatch):
    def __init__(self, got: Optional['Kind'] = None):
        super().__init__(Kind.NUMBER, got)


class NotAString(TypeMismatch):
    def __init__(self, got: Optional['Kind'] = None):
        super().__init__(Kind.STRING, got)


class NotAFunction(TypeMismatch):
    def __init__(self, got: Optional['Kind'] = None):
        super().__init__(Kind.FUNCTION, got)


class NotAMap(TypeMismatch):
    def __init__(self, got: Optional['Kind'] = None):
        super().__init__(Kind.MAP, got)


class NotAnArray(TypeMismatch):
    def __init__(self, got: Optional['Kind'] = None):
        super().__init__(Kind.ARRAY, got)


class IncorrectNumberOfArgs(TramRuntimeError):
    def __init__(self, name: str, expected: int, got: int):
        super().__init__(f"{name} expects {expected} argument(s), got {got}")
        self.name = name
        self.expected = expected
        self.got = got


class InvalidArgument(TramRuntimeError):
    def __init__(self, name: str, message: str):
        super().__init__(f"{name}: {message}")
        self.name = name


class ScriptLoadError(TramRuntimeError):
    """A file passed to `run` could not be read or did not parse."""
    pass


class InterpreterInvariantError(Exception):
    """An internal consistency check failed. Never a Tram-level error."""
    pass


class ScopeStackError(InterpreterInvariantError):
    pass


# =================================================================
# Values
# =================================================================

class Handle:
    """A shared, interior-mutable reference.

    Every holder of the same Handle sees writes made through any other
    holder. Equality and hashing are by identity.
    """
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Handle({self.value!r})"


class Kind(Enum):
    """Value discriminants; the enum values are the names `type()` reports."""
    NUMBER = "number"
    STRING = "string"
    BOOL = "bool"
    ARRAY = "array"
    MAP = "map"
    FUNCTION = "func"
    NIL = "nil"


def format_number(n: float) -> str:
    """Renders a number the way Tram prints it (and compares it)."""
    if math.isnan(n):
        return "NaN"
    if math.isinf(n):
        return "inf" if n > 0 else "-inf"
    if n == int(n):
        if n == 0 and math.copysign(1.0, n) < 0:
            return "-0"
        return str(int(n))
    text = repr(n)
    if "e" in text:
        # Plain decimal notation, never an exponent.
        return format(Decimal(text), "f")
    return text


class Value:
    """A tagged Tram runtime value.

    Strings, arrays and maps hold their payload in a `Handle`, so copying a
    Value aliases the underlying storage instead of cloning it.
    """
    __slots__ = ("kind", "payload")

    def __init__(self, kind: Kind, payload: Any = None):
        self.kind = kind
        self.payload = payload

    # --- Constructors ---

    @classmethod
    def number(cls, n: float) -> 'Value':
        return cls(Kind.NUMBER, float(n))

    @classmethod
    def string(cls, text: str) -> 'Value':
        return cls(Kind.STRING, Handle(text))

    @classmethod
    def boolean(cls, b: bool) -> 'Value':
        return TRUE if b else FALSE

    @classmethod
    def array(cls, items=()) -> 'Value':
        return cls(Kind.ARRAY, Handle(list(items)))

    @classmethod
    def map(cls, entries=None) -> 'Value':
        return cls(Kind.MAP, Handle(dict(entries or {})))

    @classmethod
    def function(cls, func: 'TramCallable') -> 'Value':
        return cls(Kind.FUNCTION, func)

    # --- Narrowing accessors ---

    def truthy(self) -> bool:
        if self.kind is Kind.NIL:
            return False
        if self.kind is Kind.BOOL:
            return self.payload
        return True

    def as_number(self) -> float:
        if self.kind is not Kind.NUMBER:
            raise NotANumber(self.kind)
        return self.payload

    def as_text(self) -> str:
        if self.kind is not Kind.STRING:
            raise NotAString(self.kind)
        return self.payload.value

    def as_callable(self) -> 'TramCallable':
        if self.kind is not Kind.FUNCTION:
            raise NotAFunction(self.kind)
        return self.payload

    def as_map(self) -> Dict['Value', 'Value']:
        """Returns the live dict behind a map value."""
        if self.kind is not Kind.MAP:
            raise NotAMap(self.kind)
        return self.payload.value

    def as_array(self) -> List['Value']:
        """Returns the live list behind an array value."""
        if self.kind is not Kind.ARRAY:
            raise NotAnArray(self.kind)
        return self.payload.value

    def num_op(self, other: 'Value', op: Callable[[float, float], float]) -> 'Value':
        """Applies a numeric binary operator, requiring both sides to be numbers."""
        a = self.as_number()
        b = other.as_number()
        return Value.number(op(a, b))

    # --- Equality ---

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        if self.kind is not other.kind:
            return False
        match self.kind:
            case Kind.NUMBER:
                # Numbers compare by their printed form: NaN equals NaN, -0 does not equal 0.
                return format_number(self.payload) == format_number(other.payload)
            case Kind.STRING:
                return self.payload.value == other.payload.value
            case Kind.BOOL:
                return self.payload == other.payload
            case Kind.ARRAY:
                return self.payload.value == other.payload.value
            case Kind.FUNCTION:
                return self.payload is other.payload
        return True

    def __hash__(self):
        match self.kind:
            case Kind.NUMBER:
                return hash((self.kind, format_number(self.payload)))
            case Kind.STRING:
                return hash((self.kind, self.payload.value))
            case Kind.BOOL:
                return hash((self.kind, self.payload))
            case Kind.FUNCTION:
                return hash((self.kind, id(self.payload)))
        return hash(self.kind)

    def __str__(self) -> str:
        from tram.tram_printer import Printer
        return Printer().to_display(self)

    def __repr__(self) -> str:
        from tram.tram_printer import Printer
        return Printer().pformat(self)


NIL = Value(Kind.NIL)
TRUE = Value(Kind.BOOL, True)
FALSE = Value(Kind.BOOL, False)


# =================================================================
# Callables
# =================================================================

class TramCallable(ABC):
    """Abstract base class for everything a Tram program can call.

    There are exactly two implementers, `NativeFunction` and `UserFunction`;
    the evaluator dispatches on them with a `match`.
    """
    name: Optional[str]

    @abstractmethod
    def display(self) -> str:
        raise NotImplementedError


class NativeFunction(TramCallable):
    """A function implemented in Python: `fn(evaluator, args) -> Value`."""
    def __init__(self, name: str, fn: Callable[['Evaluator', List[Value]], Value]):
        self.name = name
        self.fn = fn

    def display(self) -> str:
        return "< native function >"

    def __repr__(self) -> str:
        return f"<NativeFunction name={self.name!r}>"


class UserFunction(TramCallable):
    """A function defined in Tram source with `func`.

    It does not capture the scope it was defined in: free names are looked
    up on the evaluator's scope stack when the function runs.
    """
    def __init__(self, name: Optional[str], params: Tuple[str, ...], body: 'Block'):
        self.name = name
        self.params = tuple(params)
        self.body = body

    def display(self) -> str:
        params = ", ".join(self.params)
        if self.name:
            return f"< func {self.name}({params}) >"
        return f"< func ({params}) >"

    def __repr__(self) -> str:
        return f"<UserFunction name={self.name!r} params={list(self.params)!r}>"


# =================================================================
# Scope stack
# =================================================================

class LocalStack:
    """The evaluator's variable environment.

    A flat list of `(name, value)` bindings; `markers` holds the binding
    count at each `push()`, and `pop()` truncates back to the latest one.
    Lookup scans newest-first, so inner bindings shadow outer ones.
    """
    def __init__(self):
        self.markers: List[int] = []
        self.locals: List[Tuple[str, Value]] = []

    def __len__(self) -> int:
        return len(self.locals)

    @property
    def depth(self) -> int:
        """Number of scopes currently pushed."""
        return len(self.markers)

    def push(self):
        self.markers.append(len(self.locals))

    def pop(self):
        if not self.markers:
            raise ScopeStackError("popped a scope that was never pushed")
        del self.locals[self.markers.pop():]

    def get(self, name: str) -> Value:
        """Returns the newest binding of `name`, or nil when it is unbound."""
        for key, value in reversed(self.locals):
            if key == name:
                return value
        return NIL

    def exists(self, name: str) -> bool:
        return any(key == name for key, _ in self.locals)

    def set(self, name: str, value: Value):
        """Rebinds the newest binding of `name`, or creates it in the current scope."""
        for i in range(len(self.locals) - 1, -1, -1):
            if self.locals[i][0] == name:
                self.locals[i] = (name, value)
                return
        self.locals.append((name, value))

    def define(self, name: str, value: Value):
        """Creates a new binding in the current scope, shadowing any outer one."""
        self.locals.append((name, value))

    def __repr__(self) -> str:
        names = ', '.join(key for key, _ in self.locals)
        return f"<LocalStack depth={self.depth} bindings=[{names}]>"
