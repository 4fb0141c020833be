"""
C Lexer — raw source text → position-tagged token stream.

  • Skips whitespace, // and /* */ comments (a runaway block comment is
    reported once, at its opening position)
  • Classifies identifiers against a fixed keyword table
  • Numbers allow at most one decimal point and no trailing letters;
    malformed literals become ERROR tokens and scanning moves past them
  • String/char literals must close on the same line; character literals
    must hold exactly one logical character (an escape counts as one)
  • A '#' that starts a line captures the whole (continued) line as one
    PREPROCESSOR token, checked by DirectiveChecker
  • Anything else becomes an ERROR token with an "Invalid character" diagnostic

Every path consumes at least one character, so tokenisation always
terminates, and the stream always ends with exactly one EOF token.
"""

import logging
import string
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from cguardian.diagnostics import Diagnostic, DiagnosticSink
from cguardian.preprocessor import DirectiveChecker
from cguardian.suggestion_engine import suggestion_for

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    EOF = "end of input"
    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string literal"
    CHAR = "character literal"
    PREPROCESSOR = "preprocessor directive"
    ERROR = "invalid token"

    # Keywords
    KW_INT = "int"
    KW_FLOAT = "float"
    KW_CHAR = "char"
    KW_VOID = "void"
    KW_DOUBLE = "double"
    KW_SHORT = "short"
    KW_LONG = "long"
    KW_SIGNED = "signed"
    KW_UNSIGNED = "unsigned"
    KW_IF = "if"
    KW_ELSE = "else"
    KW_WHILE = "while"
    KW_FOR = "for"
    KW_DO = "do"
    KW_RETURN = "return"
    KW_BREAK = "break"
    KW_CONTINUE = "continue"
    KW_SWITCH = "switch"
    KW_CASE = "case"
    KW_DEFAULT = "default"
    KW_STRUCT = "struct"
    KW_TYPEDEF = "typedef"
    KW_SIZEOF = "sizeof"
    KW_CONST = "const"
    KW_STATIC = "static"
    KW_EXTERN = "extern"
    KW_AUTO = "auto"
    KW_REGISTER = "register"
    KW_VOLATILE = "volatile"

    # Operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    ASSIGN = "="
    PLUS_ASSIGN = "+="
    MINUS_ASSIGN = "-="
    STAR_ASSIGN = "*="
    SLASH_ASSIGN = "/="
    PERCENT_ASSIGN = "%="
    AMP_ASSIGN = "&="
    PIPE_ASSIGN = "|="
    CARET_ASSIGN = "^="
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    AND = "&&"
    OR = "||"
    NOT = "!"
    INC = "++"
    DEC = "--"
    AMP = "&"
    PIPE = "|"
    CARET = "^"
    TILDE = "~"
    SHL = "<<"
    SHR = ">>"

    # Punctuation
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    SEMICOLON = ";"
    COMMA = ","
    DOT = "."
    ARROW = "->"
    COLON = ":"
    QUESTION = "?"
    ELLIPSIS = "..."


KEYWORDS = {k.value: k for k in TokenKind if k.name.startswith("KW_")}

_SPECIAL = {
    TokenKind.EOF, TokenKind.IDENTIFIER, TokenKind.NUMBER, TokenKind.STRING,
    TokenKind.CHAR, TokenKind.PREPROCESSOR, TokenKind.ERROR,
}

# Longest spelling first so that matching is maximal munch
PUNCTUATORS: List[Tuple[str, TokenKind]] = sorted(
    ((k.value, k) for k in TokenKind if k not in _SPECIAL and not k.name.startswith("KW_")),
    key=lambda item: -len(item[0]),
)

_DIGITS = set(string.digits)
_IDENT_START = set(string.ascii_letters + "_")
_IDENT_CHARS = _IDENT_START | _DIGITS
_WHITESPACE = set(" \t\r\n\f\v")


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int

    def __repr__(self):
        return f"Token({self.kind.name}, {self.text!r}, {self.line}, {self.column})"

    @property
    def display(self) -> str:
        """Spelling used in 'but got ...' messages."""
        return self.text if self.kind != TokenKind.EOF else "end of input"


class Lexer:
    """Restartable tokenizer: every iteration rescans the source from the top."""

    def __init__(self, source: str):
        self.source = source
        self._reset()

    def _reset(self):
        self.pos = 0
        self.line = 1
        self.column = 1
        self._last_token_line = 0
        self.sink = DiagnosticSink(suggestion_for)
        self.directives = DirectiveChecker(self.sink)

    # ────────────────────────────────────────────────────────────────
    #  Public API
    # ────────────────────────────────────────────────────────────────

    def __iter__(self) -> Iterator[Token]:
        return self.tokens()

    def tokens(self) -> Iterator[Token]:
        """Lazily yield tokens, ending with a single EOF token."""
        self._reset()
        while True:
            tok = self._next_token()
            yield tok
            if tok.kind == TokenKind.EOF:
                return

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self.sink.diagnostics

    # ────────────────────────────────────────────────────────────────
    #  Character helpers
    # ────────────────────────────────────────────────────────────────

    def _current(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def _peek(self, offset: int = 1) -> str:
        i = self.pos + offset
        return self.source[i] if i < len(self.source) else ""

    def _advance(self) -> str:
        ch = self._current()
        if ch:
            self.pos += 1
            if ch == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return ch

    def _skip_trivia(self):
        while True:
            ch = self._current()
            if ch in _WHITESPACE and ch:
                self._advance()
            elif ch == "/" and self._peek() == "/":
                while self._current() not in ("\n", ""):
                    self._advance()
            elif ch == "/" and self._peek() == "*":
                self._skip_block_comment()
            else:
                return

    def _skip_block_comment(self):
        line, column = self.line, self.column
        self._advance()
        self._advance()
        while True:
            ch = self._current()
            if not ch:
                self.sink.lexical("Unterminated comment", line, column)
                return
            if ch == "*" and self._peek() == "/":
                self._advance()
                self._advance()
                return
            self._advance()

    # ────────────────────────────────────────────────────────────────
    #  Token scanners
    # ────────────────────────────────────────────────────────────────

    def _next_token(self) -> Token:
        self._skip_trivia()
        line, column = self.line, self.column
        ch = self._current()

        if not ch:
            self.directives.finish()
            return Token(TokenKind.EOF, "", line, column)

        first_on_line = line != self._last_token_line
        if ch == "#" and first_on_line:
            tok = self._lex_directive()
        elif ch in _DIGITS:
            tok = self._lex_number()
        elif ch in _IDENT_START:
            tok = self._lex_identifier()
        elif ch == '"':
            tok = self._lex_string()
        elif ch == "'":
            tok = self._lex_char()
        else:
            tok = self._lex_punctuator()
        self._last_token_line = self.line
        return tok

    def _lex_directive(self) -> Token:
        line, column = self.line, self.column
        chars = []
        while True:
            ch = self._current()
            if ch == "\\" and self._peek() == "\n":
                chars.append(self._advance())
                chars.append(self._advance())
                continue
            if ch in ("\n", ""):
                break
            chars.append(self._advance())
        text = "".join(chars).rstrip()
        self.directives.process(text, line, column)
        return Token(TokenKind.PREPROCESSOR, text, line, column)

    def _lex_number(self) -> Token:
        line, column = self.line, self.column
        chars = []
        dots = 0
        while self._current() in _DIGITS or self._current() == ".":
            if self._current() == ".":
                dots += 1
            chars.append(self._advance())
        trailing = False
        if self._current() in _IDENT_CHARS and self._current():
            trailing = True
            while self._current() and (self._current() in _IDENT_CHARS or self._current() == "."):
                chars.append(self._advance())
        text = "".join(chars)
        if dots > 1:
            self.sink.lexical(
                f"Invalid numeric literal '{text}': multiple decimal points", line, column
            )
            return Token(TokenKind.ERROR, text, line, column)
        if trailing:
            self.sink.lexical(f"Invalid numeric literal '{text}'", line, column)
            return Token(TokenKind.ERROR, text, line, column)
        return Token(TokenKind.NUMBER, text, line, column)

    def _lex_identifier(self) -> Token:
        line, column = self.line, self.column
        chars = []
        while self._current() and self._current() in _IDENT_CHARS:
            chars.append(self._advance())
        text = "".join(chars)
        return Token(KEYWORDS.get(text, TokenKind.IDENTIFIER), text, line, column)

    def _scan_quoted(self, quote: str) -> Tuple[str, Optional[str], int]:
        """Scan a quoted literal.

        Returns (text, failure, logical_char_count); failure is None when the
        literal closed, otherwise a short reason for the diagnostic.
        """
        chars = [self._advance()]
        count = 0
        while True:
            ch = self._current()
            if not ch:
                return "".join(chars), "EOF reached", count
            if ch == "\n":
                return "".join(chars), "newline before closing quote", count
            if ch == quote:
                chars.append(self._advance())
                return "".join(chars), None, count
            if ch == "\\":
                chars.append(self._advance())
                if self._current():
                    chars.append(self._advance())
            else:
                chars.append(self._advance())
            count += 1

    def _lex_string(self) -> Token:
        line, column = self.line, self.column
        text, failure, _ = self._scan_quoted('"')
        if failure:
            self.sink.lexical(f"Unterminated string literal ({failure})", line, column)
            return Token(TokenKind.ERROR, text, line, column)
        return Token(TokenKind.STRING, text, line, column)

    def _lex_char(self) -> Token:
        line, column = self.line, self.column
        text, failure, count = self._scan_quoted("'")
        if failure:
            self.sink.lexical(f"Unterminated character literal ({failure})", line, column)
            return Token(TokenKind.ERROR, text, line, column)
        if count == 0:
            self.sink.lexical("Empty character literal", line, column)
        elif count > 1:
            self.sink.lexical(f"Multi-character constant {text}", line, column)
        return Token(TokenKind.CHAR, text, line, column)

    def _lex_punctuator(self) -> Token:
        line, column = self.line, self.column
        for spelling, kind in PUNCTUATORS:
            if self.source.startswith(spelling, self.pos):
                for _ in spelling:
                    self._advance()
                return Token(kind, spelling, line, column)
        ch = self._advance()
        self.sink.lexical(f"Invalid character '{ch}'", line, column)
        return Token(TokenKind.ERROR, ch, line, column)


def tokenize(source: str) -> Tuple[List[Token], List[Diagnostic]]:
    """Tokenize a whole buffer; returns (tokens, lexical diagnostics)."""
    lexer = Lexer(source)
    tokens = list(lexer.tokens())
    logger.debug("Tokenized %d chars into %d tokens", len(source), len(tokens))
    return tokens, lexer.diagnostics
