"""
Precedence-climbing (Pratt) parser for Tram.

The parser keeps a two-token window (`current`, `next`) over the lexer's
output. Each token kind may have a prefix handler, which starts an
expression, and an infix handler, which extends the expression parsed so far.
Syntax errors never abort the parse: they are recorded as `ParseError`s and
the offending construct is replaced by an `ErrorNode`.
"""
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Tuple

from tram.tram_ast import (
    ArrayLiteral, Assign, Binary, BinOp, Block, Break, Call, ErrorNode, Expression,
    Ident, If, Literal, Loop, MapLiteral, Node, Unary, UnOp,
)
from tram.tram_datatypes import NIL, UserFunction, Value
from tram.tram_lexer import Lexer
from tram.tram_tokens import SYMBOLS, ParseError, Span, Token, TokenKind


class Prec(IntEnum):
    # fmt: off
    NONE    = 0
    ASSIGN  = 1   # = += -= *= /= **= %=
    OR      = 2   # ||
    AND     = 3   # &&
    EQ      = 4   # == !=
    COMP    = 5   # < <= > >=
    TERM    = 6   # + -
    FACTOR  = 7   # * / %
    POW     = 8   # **
    UNARY   = 9   # !x -x
    CALL    = 10  # f(x) a[i]
    DOT     = 11  # m.key
    PRIMARY = 12
    # fmt: on


PRECEDENCES: Dict[TokenKind, Prec] = {
    # fmt: off
    TokenKind.ASSIGN:   Prec.ASSIGN,
    TokenKind.ADD_EQ:   Prec.ASSIGN,
    TokenKind.SUB_EQ:   Prec.ASSIGN,
    TokenKind.MUL_EQ:   Prec.ASSIGN,
    TokenKind.DIV_EQ:   Prec.ASSIGN,
    TokenKind.POW_EQ:   Prec.ASSIGN,
    TokenKind.MOD_EQ:   Prec.ASSIGN,
    TokenKind.OR:       Prec.OR,
    TokenKind.AND:      Prec.AND,
    TokenKind.EQ:       Prec.EQ,
    TokenKind.NOT_EQ:   Prec.EQ,
    TokenKind.GT:       Prec.COMP,
    TokenKind.GT_EQ:    Prec.COMP,
    TokenKind.LT:       Prec.COMP,
    TokenKind.LT_EQ:    Prec.COMP,
    TokenKind.ADD:      Prec.TERM,
    TokenKind.SUB:      Prec.TERM,
    TokenKind.MUL:      Prec.FACTOR,
    TokenKind.DIV:      Prec.FACTOR,
    TokenKind.MOD:      Prec.FACTOR,
    TokenKind.POW:      Prec.POW,
    TokenKind.LPAREN:   Prec.CALL,
    TokenKind.LBRACKET: Prec.CALL,
    TokenKind.DOT:      Prec.DOT,
    # fmt: on
}

BINARY_OPS: Dict[TokenKind, BinOp] = {
    TokenKind.ADD: BinOp.ADD,
    TokenKind.SUB: BinOp.SUB,
    TokenKind.MUL: BinOp.MUL,
    TokenKind.DIV: BinOp.DIV,
    TokenKind.MOD: BinOp.MOD,
    TokenKind.POW: BinOp.POW,
    TokenKind.EQ: BinOp.EQ,
    TokenKind.GT: BinOp.GT,
    TokenKind.GT_EQ: BinOp.GT_EQ,
    TokenKind.LT: BinOp.LT,
    TokenKind.LT_EQ: BinOp.LT_EQ,
    TokenKind.AND: BinOp.AND,
    TokenKind.OR: BinOp.OR,
}

# Compound assignments and the operator they apply before rebinding.
COMPOUND_ASSIGN_OPS: Dict[TokenKind, BinOp] = {
    TokenKind.ADD_EQ: BinOp.ADD,
    TokenKind.SUB_EQ: BinOp.SUB,
    TokenKind.MUL_EQ: BinOp.MUL,
    TokenKind.DIV_EQ: BinOp.DIV,
    TokenKind.POW_EQ: BinOp.POW,
    TokenKind.MOD_EQ: BinOp.MOD,
}


def parse(source: str) -> Tuple[Block, List[ParseError]]:
    """Parses a whole program. The AST is only executable if the error list is empty."""
    return Parser(source).parse_all()


class Parser:
    ParsePrefix = Callable[["Parser"], Node]
    ParseInfix = Callable[["Parser", Node], Node]

    def __init__(self, source: str):
        self.source = source
        self.lexer = Lexer(source)
        self.errors: List[ParseError] = []
        self.current: Token = Token(TokenKind.START)
        self.current_span: Span = Span()
        self.next, self.next_span = self.lexer.next()

        self.prefix_handlers: Dict[TokenKind, Parser.ParsePrefix] = {
            TokenKind.NUMBER: Parser._literal,
            TokenKind.STRING: Parser._literal,
            TokenKind.TRUE: Parser._literal,
            TokenKind.FALSE: Parser._literal,
            TokenKind.NIL: Parser._literal,
            TokenKind.IDENTIFIER: Parser._ident,
            TokenKind.FUNC: Parser._func,
            TokenKind.IF: Parser._if,
            TokenKind.LOOP: Parser._loop,
            TokenKind.BREAK: Parser._break,
            TokenKind.LBRACE: Parser._block_or_map,
            TokenKind.LPAREN: Parser._group,
            TokenKind.LBRACKET: Parser._array,
            TokenKind.NOT: Parser._unary,
            TokenKind.SUB: Parser._unary,
        }
        self.infix_handlers: Dict[TokenKind, Parser.ParseInfix] = {
            kind: Parser._binary for kind in BINARY_OPS
        }
        self.infix_handlers[TokenKind.NOT_EQ] = Parser._binary
        self.infix_handlers[TokenKind.ASSIGN] = Parser._assign
        for kind in COMPOUND_ASSIGN_OPS:
            self.infix_handlers[kind] = Parser._assign
        self.infix_handlers[TokenKind.LPAREN] = Parser._call
        self.infix_handlers[TokenKind.LBRACKET] = Parser._index
        self.infix_handlers[TokenKind.DOT] = Parser._access

    # --- Entry points ---

    def parse_all(self) -> Tuple[Block, List[ParseError]]:
        """Parses statements until end of input.

        The top-level block is unscoped so that its bindings outlive it (the
        REPL relies on this between lines).
        """
        statements = self._statements(expect_end=False)
        return Block(tuple(statements), scoped=False), self.errors

    def expression(self) -> Node:
        return self.parse_with_prec(Prec.ASSIGN)

    def parse_with_prec(self, prec: int) -> Node:
        self._advance()
        prefix = self.prefix_handlers.get(self.current.kind)
        if prefix is None:
            node = self._unexpected()
        else:
            node = prefix(self)
        while prec <= PRECEDENCES.get(self.next.kind, Prec.NONE):
            self._advance()
            node = self.infix_handlers[self.current.kind](self, node)
        return node

    # --- Token window ---

    def _advance(self):
        self.current, self.current_span = self.next, self.next_span
        self.next, self.next_span = self.lexer.next()

    def _pick(self, kind: TokenKind) -> bool:
        """Advances past the next token if it has the given kind."""
        if self.next.kind is kind:
            self._advance()
            return True
        return False

    def _error(self, message: str, span: Optional[Span] = None) -> ErrorNode:
        self.errors.append(ParseError(span if span is not None else self.current_span, message))
        return ErrorNode()

    def _error_at_next(self, message: str) -> ErrorNode:
        return self._error(message, self.next_span)

    def _unexpected(self) -> ErrorNode:
        match self.current.kind:
            case TokenKind.ERROR:
                return self._error(self.current.payload)
            case TokenKind.EOF:
                return self._error("unexpected end of input")
        return self._error(f"unexpected {self.current.describe()}")

    def _synchronize(self, close: TokenKind):
        """Skips to `close` (consuming it) without crossing a statement or block boundary."""
        stop = (close, TokenKind.EOF, TokenKind.RBRACE, TokenKind.SEMICOLON)
        while self.next.kind not in stop:
            self._advance()
        self._pick(close)

    def _delimited(self, close: TokenKind, item: Callable[[], Optional[object]]) -> Optional[list]:
        """Parses a comma-separated list up to `close`. Returns None after a syntax error."""
        items = []
        while not self._pick(close):
            if self.next.kind is TokenKind.EOF:
                self._error_at_next(f"expected `{SYMBOLS[close]}`, found end of input")
                return None
            items.append(item())
            if self.next.kind is not close and not self._pick(TokenKind.COMMA):
                self._error_at_next(f"expected `,` or `{SYMBOLS[close]}`, found {self.next.describe()}")
                self._synchronize(close)
                return None
        return items

    # --- Statements and blocks ---

    def _statements(self, expect_end: bool) -> List[Expression]:
        statements = []
        while True:
            if expect_end and self._pick(TokenKind.RBRACE):
                break
            if self._pick(TokenKind.EOF):
                if expect_end:
                    self._error("expected closing `}`")
                break
            statements.append(Expression(self.expression()))
            while self._pick(TokenKind.SEMICOLON):
                pass
        return statements

    def _block_body(self) -> Block:
        """Parses the rest of a block whose `{` has been consumed."""
        return Block(tuple(self._statements(expect_end=True)), scoped=True)

    def _block_or_map(self) -> Node:
        # `{}` and `{ key -> value, ... }` are map literals; anything else is a block.
        if self._pick(TokenKind.RBRACE):
            return MapLiteral(())
        first = self.expression()
        if self._pick(TokenKind.ARROW):
            return self._map_entries(first)
        while self._pick(TokenKind.SEMICOLON):
            pass
        rest = self._statements(expect_end=True)
        return Block((Expression(first), *rest), scoped=True)

    def _map_entries(self, key: Node) -> Node:
        entries = []
        while True:
            entries.append((key, self.expression()))
            if self._pick(TokenKind.RBRACE):
                break
            if not self._pick(TokenKind.COMMA):
                self._error_at_next(f"expected `,` or `}}` in map literal, found {self.next.describe()}")
                self._synchronize(TokenKind.RBRACE)
                return ErrorNode()
            if self._pick(TokenKind.RBRACE):
                break
            key = self.expression()
            if not self._pick(TokenKind.ARROW):
                self._error_at_next(f"expected `->` after map key, found {self.next.describe()}")
                self._synchronize(TokenKind.RBRACE)
                return ErrorNode()
        return MapLiteral(tuple(entries))

    # --- Prefix handlers ---

    def _literal(self) -> Node:
        match self.current.kind:
            case TokenKind.NUMBER:
                return Literal(Value.number(self.current.payload))
            case TokenKind.STRING:
                return Literal(Value.string(self.current.payload))
            case TokenKind.TRUE:
                return Literal(Value.boolean(True))
            case TokenKind.FALSE:
                return Literal(Value.boolean(False))
        return Literal(NIL)

    def _ident(self) -> Node:
        return Ident(self.current.payload)

    def _unary(self) -> Node:
        op = UnOp.NOT if self.current.kind is TokenKind.NOT else UnOp.NEG
        return Unary(op, self.parse_with_prec(Prec.UNARY))

    def _group(self) -> Node:
        inner = self.expression()
        if not self._pick(TokenKind.RPAREN):
            return self._error_at_next(f"expected `)`, found {self.next.describe()}")
        return inner

    def _array(self) -> Node:
        items = self._delimited(TokenKind.RBRACKET, self.expression)
        if items is None:
            return ErrorNode()
        return ArrayLiteral(tuple(items))

    def _param(self) -> Optional[str]:
        self._advance()
        if self.current.kind is not TokenKind.IDENTIFIER:
            self._error(f"expected a parameter name, found {self.current.describe()}")
            return None
        return self.current.payload

    def _func(self) -> Node:
        name = None
        if self._pick(TokenKind.IDENTIFIER):
            name = self.current.payload
        if not self._pick(TokenKind.LPAREN):
            return self._error_at_next("expected `(` to start argument list")
        params = self._delimited(TokenKind.RPAREN, self._param)
        if params is None or None in params:
            return ErrorNode()
        if not self._pick(TokenKind.LBRACE):
            return self._error_at_next(f"expected `{{` to open the function body, found {self.next.describe()}")
        func = Literal(Value.function(UserFunction(name, tuple(params), self._block_body())))
        if name is None:
            return func
        # `func f(...) {...}` binds `f` in the enclosing scope, then yields it.
        return Block((Expression(Assign(name, func)), Expression(Ident(name))), scoped=False)

    def _if(self) -> Node:
        cond = self.expression()
        if not self._pick(TokenKind.LBRACE):
            return self._error_at_next(f"expected `{{` after if condition, found {self.next.describe()}")
        then = self._block_body()
        otherwise = None
        if self._pick(TokenKind.ELSE):
            if self._pick(TokenKind.LBRACE):
                otherwise = self._block_body()
            elif self._pick(TokenKind.IF):
                otherwise = self._if()
            else:
                return self._error_at_next("expected block or `if` after `else`")
        return If(cond, then, otherwise)

    def _label(self) -> Optional[str]:
        if not self._pick(TokenKind.IDENTIFIER):
            self._error_at_next(f"expected a label after `@`, found {self.next.describe()}")
            return None
        return self.current.payload

    def _loop(self) -> Node:
        label = None
        if self._pick(TokenKind.AT):
            label = self._label()
            if label is None:
                return ErrorNode()
        cond = None
        if self.next.kind is not TokenKind.LBRACE:
            cond = self.expression()
        if not self._pick(TokenKind.LBRACE):
            return self._error_at_next(f"expected `{{` to open the loop body, found {self.next.describe()}")
        return Loop(self._block_body(), label, cond)

    def _break(self) -> Node:
        if self._pick(TokenKind.AT):
            label = self._label()
            if label is None:
                return ErrorNode()
            return Break(label)
        if self._pick(TokenKind.IDENTIFIER):
            return Break(self.current.payload)
        return Break()

    # --- Infix handlers ---

    def _binary(self, lhs: Node) -> Node:
        kind = self.current.kind
        rhs = self.parse_with_prec(PRECEDENCES[kind] + 1)
        if kind is TokenKind.NOT_EQ:
            return Unary(UnOp.NOT, Binary(BinOp.EQ, lhs, rhs))
        return Binary(BINARY_OPS[kind], lhs, rhs)

    def _assign(self, lhs: Node) -> Node:
        kind, span = self.current.kind, self.current_span
        # Same precedence for the right-hand side makes assignment right-associative.
        rhs = self.parse_with_prec(Prec.ASSIGN)
        if not isinstance(lhs, Ident):
            return self._error("invalid assignment target", span)
        op = COMPOUND_ASSIGN_OPS.get(kind)
        if op is not None:
            rhs = Binary(op, lhs, rhs)
        return Assign(lhs.name, rhs)

    def _call(self, callee: Node) -> Node:
        args = self._delimited(TokenKind.RPAREN, self.expression)
        if args is None:
            return ErrorNode()
        return Call(callee, tuple(args))

    def _index(self, target: Node) -> Node:
        index = self.expression()
        if not self._pick(TokenKind.RBRACKET):
            return self._error_at_next(f"expected `]`, found {self.next.describe()}")
        return Binary(BinOp.INDEX, target, index)

    def _access(self, target: Node) -> Node:
        if not self._pick(TokenKind.IDENTIFIER):
            return self._error_at_next(f"expected a field name after `.`, found {self.next.describe()}")
        return Binary(BinOp.ACCESS, target, Literal(Value.string(self.current.payload)))
