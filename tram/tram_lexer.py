"""
A pull-based lexer for Tram source text.

The lexer hands out one `(Token, Span)` pair per call to `next()`. It is a
single forward pass with one character of lookahead; it never backtracks
across tokens. Malformed input does not raise: it is returned as an ERROR
token so the parser can report it alongside its own diagnostics.
"""
import string

from tram.tram_tokens import KEYWORDS, Span, Token, TokenKind

IDENT_START = frozenset(string.ascii_letters + "_")
IDENT_CONTINUE = frozenset(string.ascii_letters + string.digits + "_")
DIGITS = frozenset(string.digits)
NUMBER_CONTINUE = frozenset(string.digits + ".")
WHITESPACE = frozenset(" \t\n\r")

# Single characters that always form a token on their own.
PUNCTUATION = {
    ".": TokenKind.DOT,
    "?": TokenKind.QUESTION,
    "@": TokenKind.AT,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMICOLON,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
}

# Characters whose token gains a compound form when followed by `=`.
EQ_SUFFIXED = {
    "=": (TokenKind.ASSIGN, TokenKind.EQ),
    ">": (TokenKind.GT, TokenKind.GT_EQ),
    "<": (TokenKind.LT, TokenKind.LT_EQ),
    "!": (TokenKind.NOT, TokenKind.NOT_EQ),
    "+": (TokenKind.ADD, TokenKind.ADD_EQ),
    "/": (TokenKind.DIV, TokenKind.DIV_EQ),
    "%": (TokenKind.MOD, TokenKind.MOD_EQ),
}


class Lexer:
    """Turns source text into tokens on demand."""

    def __init__(self, source: str):
        # A leading space lets the first real character be read with the same
        # advance-then-inspect step as every other one.
        self.source = " " + source
        self.at = 0
        self.tok_start = 0

    def next(self) -> tuple[Token, Span]:
        """Returns the next token and its span; EOF repeats forever."""
        self._skip_whitespace()
        ch = self._advance()
        self.tok_start = self.at
        token = self._scan(ch)
        if token.kind is TokenKind.EOF:
            end = len(self.source) - 1
            return token, Span(end, end)
        # Offsets in self.source are shifted by the leading space.
        return token, Span(self.tok_start - 1, min(self.at, len(self.source) - 1))

    # --- Cursor helpers ---

    def _current(self) -> str:
        return self._peek_n(0)

    def _peek(self) -> str:
        return self._peek_n(1)

    def _peek_n(self, n: int) -> str:
        idx = self.at + n
        if idx >= len(self.source):
            return ""
        return self.source[idx]

    def _advance(self) -> str:
        if self.at < len(self.source):
            self.at += 1
        return self._current()

    def _pick(self, ch: str) -> bool:
        if ch and self._peek() == ch:
            self._advance()
            return True
        return False

    def _skip_whitespace(self):
        while self._peek() in WHITESPACE:
            self._advance()

    def _lexeme(self) -> str:
        return self.source[self.tok_start:self.at + 1]

    # --- Token recognition ---

    def _scan(self, ch: str) -> Token:
        if ch == "":
            return Token(TokenKind.EOF)
        if ch in IDENT_START:
            return self._identifier()
        if ch in DIGITS:
            return self._number()
        if ch in PUNCTUATION:
            return Token(PUNCTUATION[ch])
        if ch in EQ_SUFFIXED:
            return self._eq_or(*EQ_SUFFIXED[ch])
        match ch:
            case "-":
                if self._pick(">"):
                    return Token(TokenKind.ARROW)
                return self._eq_or(TokenKind.SUB, TokenKind.SUB_EQ)
            case "*":
                if self._pick("*"):
                    return self._eq_or(TokenKind.POW, TokenKind.POW_EQ)
                return self._eq_or(TokenKind.MUL, TokenKind.MUL_EQ)
            case "&" if self._pick("&"):
                return Token(TokenKind.AND)
            case "|" if self._pick("|"):
                return Token(TokenKind.OR)
            case '"':
                return self._string()
        return Token(TokenKind.ERROR, f"unknown character `{ch}`")

    def _eq_or(self, without: TokenKind, with_eq: TokenKind) -> Token:
        return Token(with_eq if self._pick("=") else without)

    def _identifier(self) -> Token:
        while self._peek() in IDENT_CONTINUE:
            self._advance()
        text = self._lexeme()
        kind = KEYWORDS.get(text)
        if kind is not None:
            return Token(kind)
        return Token(TokenKind.IDENTIFIER, text)

    def _number(self) -> Token:
        while self._peek() in NUMBER_CONTINUE:
            self._advance()
        text = self._lexeme()
        try:
            return Token(TokenKind.NUMBER, float(text))
        except ValueError:
            return Token(TokenKind.ERROR, f"malformed number literal `{text}`")

    def _string(self) -> Token:
        while self._peek() != '"':
            if self._peek() == "":
                return Token(TokenKind.ERROR, "unterminated string literal")
            self._advance()
        self._advance()
        # No escape processing: the content is exactly what sits between the quotes.
        return Token(TokenKind.STRING, self._lexeme()[1:-1])


def tokenize(source: str) -> list[tuple[Token, Span]]:
    """Lexes a whole source string, including the final EOF token."""
    lexer = Lexer(source)
    out = []
    while True:
        token, span = lexer.next()
        out.append((token, span))
        if token.kind is TokenKind.EOF:
            return out
