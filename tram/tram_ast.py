"""
AST node types produced by the parser and consumed by the evaluator.

Nodes are frozen dataclasses holding tuples, so a tree is never mutated
after the parser builds it.
"""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple, Union

from tram.tram_datatypes import Value


class BinOp(Enum):
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    POW = auto()
    MOD = auto()
    EQ = auto()
    GT = auto()
    GT_EQ = auto()
    LT = auto()
    LT_EQ = auto()
    AND = auto()
    OR = auto()
    ACCESS = auto()
    INDEX = auto()


class UnOp(Enum):
    NOT = auto()
    NEG = auto()


@dataclass(frozen=True)
class Call:
    callee: 'Node'
    args: Tuple['Node', ...]


@dataclass(frozen=True)
class Literal:
    value: Value


@dataclass(frozen=True)
class Ident:
    name: str


@dataclass(frozen=True)
class Assign:
    name: str
    value: 'Node'


@dataclass(frozen=True)
class Binary:
    op: BinOp
    lhs: 'Node'
    rhs: 'Node'


@dataclass(frozen=True)
class Unary:
    op: UnOp
    operand: 'Node'


@dataclass(frozen=True)
class If:
    cond: 'Node'
    then: 'Node'
    otherwise: Optional['Node'] = None


@dataclass(frozen=True)
class Expression:
    """A statement: an expression evaluated for its value."""
    expr: 'Node'


@dataclass(frozen=True)
class Block:
    """A statement list. `scoped` blocks get their own scope on the stack."""
    statements: Tuple[Expression, ...]
    scoped: bool = True


@dataclass(frozen=True)
class Loop:
    body: 'Node'
    label: Optional[str] = None
    cond: Optional['Node'] = None


@dataclass(frozen=True)
class Break:
    label: Optional[str] = None


@dataclass(frozen=True)
class ArrayLiteral:
    items: Tuple['Node', ...]


@dataclass(frozen=True)
class MapLiteral:
    entries: Tuple[Tuple['Node', 'Node'], ...]


@dataclass(frozen=True)
class ErrorNode:
    """Stands in for a construct that failed to parse."""
    pass


Node = Union[
    Call, Literal, Ident, Assign, Binary, Unary, If, Block, Loop, Break,
    ArrayLiteral, MapLiteral, ErrorNode,
]


def contains_error(node) -> bool:
    """True if an ErrorNode appears anywhere in the tree under `node`."""
    match node:
        case ErrorNode():
            return True
        case Call(callee, args):
            return contains_error(callee) or any(contains_error(a) for a in args)
        case Assign(_, value):
            return contains_error(value)
        case Binary(_, lhs, rhs):
            return contains_error(lhs) or contains_error(rhs)
        case Unary(_, operand):
            return contains_error(operand)
        case If(cond, then, otherwise):
            return any(contains_error(n) for n in (cond, then, otherwise) if n is not None)
        case Block(statements, _):
            return any(contains_error(s.expr) for s in statements)
        case Loop(body, _, cond):
            return contains_error(body) or (cond is not None and contains_error(cond))
        case ArrayLiteral(items):
            return any(contains_error(i) for i in items)
        case MapLiteral(entries):
            return any(contains_error(k) or contains_error(v) for k, v in entries)
        case Literal(value):
            body = getattr(value.payload, "body", None)
            return body is not None and contains_error(body)
    return False
