"""
Token and diagnostic types shared by the Tram lexer and parser.
"""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional


class TokenKind(Enum):
    # Keywords
    LET = auto()
    CONST = auto()
    PUB = auto()
    USE = auto()
    FUNC = auto()
    ENUM = auto()
    STRUCT = auto()
    IF = auto()
    ELSE = auto()
    LOOP = auto()
    BREAK = auto()

    # Literals
    STRING = auto()
    NUMBER = auto()
    TRUE = auto()
    FALSE = auto()
    NIL = auto()

    # Symbols
    ARROW = auto()
    ASSIGN = auto()
    EQ = auto()
    GT = auto()
    GT_EQ = auto()
    LT = auto()
    LT_EQ = auto()
    DOT = auto()
    QUESTION = auto()
    AT = auto()
    COMMA = auto()
    SEMICOLON = auto()
    NOT = auto()
    NOT_EQ = auto()
    ADD = auto()
    ADD_EQ = auto()
    SUB = auto()
    SUB_EQ = auto()
    MUL = auto()
    MUL_EQ = auto()
    DIV = auto()
    DIV_EQ = auto()
    POW = auto()
    POW_EQ = auto()
    MOD = auto()
    MOD_EQ = auto()
    AND = auto()
    OR = auto()

    # Misc
    IDENTIFIER = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()

    ERROR = auto()
    START = auto()
    EOF = auto()


KEYWORDS = {
    "let": TokenKind.LET,
    "const": TokenKind.CONST,
    "pub": TokenKind.PUB,
    "use": TokenKind.USE,
    "func": TokenKind.FUNC,
    "enum": TokenKind.ENUM,
    "struct": TokenKind.STRUCT,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "loop": TokenKind.LOOP,
    "break": TokenKind.BREAK,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "nil": TokenKind.NIL,
}

# Source text for the fixed tokens, used when rendering diagnostics.
SYMBOLS = {
    TokenKind.ARROW: "->",
    TokenKind.ASSIGN: "=",
    TokenKind.EQ: "==",
    TokenKind.GT: ">",
    TokenKind.GT_EQ: ">=",
    TokenKind.LT: "<",
    TokenKind.LT_EQ: "<=",
    TokenKind.DOT: ".",
    TokenKind.QUESTION: "?",
    TokenKind.AT: "@",
    TokenKind.COMMA: ",",
    TokenKind.SEMICOLON: ";",
    TokenKind.NOT: "!",
    TokenKind.NOT_EQ: "!=",
    TokenKind.ADD: "+",
    TokenKind.ADD_EQ: "+=",
    TokenKind.SUB: "-",
    TokenKind.SUB_EQ: "-=",
    TokenKind.MUL: "*",
    TokenKind.MUL_EQ: "*=",
    TokenKind.DIV: "/",
    TokenKind.DIV_EQ: "/=",
    TokenKind.POW: "**",
    TokenKind.POW_EQ: "**=",
    TokenKind.MOD: "%",
    TokenKind.MOD_EQ: "%=",
    TokenKind.AND: "&&",
    TokenKind.OR: "||",
    TokenKind.LPAREN: "(",
    TokenKind.RPAREN: ")",
    TokenKind.LBRACE: "{",
    TokenKind.RBRACE: "}",
    TokenKind.LBRACKET: "[",
    TokenKind.RBRACKET: "]",
}
SYMBOLS.update({kind: word for word, kind in KEYWORDS.items()})


@dataclass(frozen=True)
class Token:
    """A lexed token. `payload` carries the literal value, identifier name,
    or (for ERROR tokens) the lexer's message."""
    kind: TokenKind
    payload: Any = None

    def describe(self) -> str:
        match self.kind:
            case TokenKind.IDENTIFIER:
                return f"identifier `{self.payload}`"
            case TokenKind.NUMBER | TokenKind.STRING:
                return f"{self.kind.name.lower()} literal"
            case TokenKind.EOF:
                return "end of input"
            case TokenKind.START:
                return "start of input"
            case TokenKind.ERROR:
                return str(self.payload)
        return f"`{SYMBOLS[self.kind]}`"

    def __repr__(self) -> str:
        if self.payload is None:
            return f"Token({self.kind.name})"
        return f"Token({self.kind.name}, {self.payload!r})"


@dataclass(frozen=True)
class Span:
    """Half-open `[start, end)` offsets into the source text."""
    start: int = 0
    end: int = 0

    def exact_range(self, source: str) -> tuple[int, int]:
        end = max(0, min(self.end, len(source)))
        start = min(self.start, end)
        return start, end

    def surrounding_range(self, source: str, radius: int = 10) -> tuple[int, int]:
        start, end = self.exact_range(source)
        return max(0, start - radius), min(len(source), end + radius)


@dataclass(frozen=True)
class ParseError:
    """A syntax diagnostic collected by the parser."""
    span: Span
    message: str

    def __str__(self) -> str:
        return f"{self.message} (offset {self.span.start}-{self.span.end})"
