"""Ledger tokenizer.

Source text is first cut into blocks: a line starting at column 0 opens a
block and the indented lines below it continue that block. Blank lines and
comment-only lines belong to no block. Each block is then tokenized on its
own, so an error inside one entry never affects how the next one is read.
"""

import datetime
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .ast import AccountType, is_currency_code
from .errors import DiagnosticKind, ParseError
from .position import SourceText, Span


class TokenType(Enum):
    # Literals
    DATE = "DATE"
    NUMBER = "NUMBER"
    STRING = "STRING"
    ACCOUNT = "ACCOUNT"
    CURRENCY = "CURRENCY"
    TAG = "TAG"
    LINK = "LINK"
    KEY = "KEY"
    WORD = "WORD"  # lowercase bare word: directive keywords, txn
    BOOL = "BOOL"
    NULL = "NULL"
    FLAG = "FLAG"

    # Symbols
    STAR = "*"
    PLUS = "+"
    MINUS = "-"
    SLASH = "/"
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    COMMA = ","
    COLON = ":"
    AT = "@"
    ATAT = "@@"
    TILDE = "~"

    # Layout
    INDENT = "INDENT"
    NEWLINE = "NEWLINE"
    EOF = "EOF"


@dataclass
class Token:
    type: TokenType
    value: Any
    text: str
    line: int
    column: int
    offset: int

    @property
    def length(self) -> int:
        return len(self.text)

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def span(self) -> Span:
        return Span(line=self.line, column=self.column, offset=self.offset, length=self.length)

    def describe(self) -> str:
        if self.type == TokenType.EOF:
            return "end of entry"
        if self.type == TokenType.NEWLINE:
            return "end of line"
        if self.type == TokenType.INDENT:
            return "indented line"
        return repr(self.text)


@dataclass
class Block:
    """One top-level line and its indented continuation lines."""

    start: int
    end: int
    line: int
    header: str


def _is_transparent(text: str) -> bool:
    stripped = text.lstrip(" \t")
    return not stripped or stripped.startswith(";")


def split_blocks(source: SourceText) -> Iterator[Block]:
    """Yield the blocks of ``source`` in order."""
    block: Block | None = None
    for line_no, start, end in source.lines():
        text = source.text[start:end]
        if _is_transparent(text):
            continue
        if text[0] in " \t" and block is not None:
            block.end = end
            continue
        if block is not None:
            yield block
        block = Block(start=start, end=end, line=line_no, header=text)
    if block is not None:
        yield block


_ROOTS = "|".join(t.value for t in AccountType)

DATE_RE = re.compile(r"(\d{4})([-/])(\d{2})\2(\d{2})(?!\d)", re.ASCII)
NUMBER_RE = re.compile(r"(\d+(?:,\d+)*)(?:\.(\d*))?|\.(\d+)", re.ASCII)
STRING_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')
ESCAPE_RE = re.compile(r'\\(["\\nt])')
ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t"}
WORD_RE = re.compile(r"[^\W\d_][\w:'.\-]*")
KEY_RE = re.compile(r"[a-z][A-Za-z0-9_-]*")
ACCOUNT_RE = re.compile(rf"(?:{_ROOTS})(?::(?:[^\W_]|-)+)*")
KEYWORD_RE = re.compile(r"[a-z][a-z0-9_-]*")
# "#" before a quote or a comment is a flag
TAG_RE = re.compile(r'#([^\s#";][^\s#]*)')
LINK_RE = re.compile(r"\^([^\s#]+)")

SYMBOLS = {
    "*": TokenType.STAR,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "/": TokenType.SLASH,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    "~": TokenType.TILDE,
}

FLAG_CHARS = "!&?%"


def _is_digit(ch: str) -> bool:
    return len(ch) == 1 and "0" <= ch <= "9"


class Lexer:
    """Tokenizer for a single block.

    Continuation lines start with an INDENT token whose value is the width of
    their leading whitespace, and every line ends with a NEWLINE token.
    """

    def __init__(self, source: SourceText, block: Block):
        self.source = source
        self.text = source.text
        self.block = block
        self.tokens: list[Token] = []
        self._line = block.line
        self._line_start = block.start

    def tokenize(self) -> list[Token]:
        first = True
        for line_no, start, end in self.source.lines(self.block.line):
            if start > self.block.end:
                break
            if _is_transparent(self.text[start:end]):
                continue
            self._line, self._line_start = line_no, start
            self._scan_line(start, end, indented=not first)
            first = False
        self._emit(TokenType.EOF, None, self.block.end, self.block.end)
        return self.tokens

    def _scan_line(self, start: int, end: int, indented: bool):
        pos = start
        if indented:
            while pos < end and self.text[pos] in " \t":
                pos += 1
            self._emit(TokenType.INDENT, pos - start, start, pos)

        while pos < end:
            ch = self.text[pos]
            if ch in " \t":
                pos += 1
            elif ch == ";":
                # Comment to end of line
                break
            elif ch == '"':
                pos = self._read_string(pos, end)
            elif _is_digit(ch) or (ch == "." and _is_digit(self._peek(pos + 1, end))):
                pos = self._read_number_or_date(pos, end)
            elif ch.isalpha():
                pos = self._read_word(pos, end)
            else:
                pos = self._read_symbol(pos, end)

        self._emit(TokenType.NEWLINE, None, end, end)

    def _peek(self, pos: int, end: int) -> str:
        if pos < end:
            return self.text[pos]
        return ""

    def _emit(self, token_type: TokenType, value: Any, start: int, stop: int):
        self.tokens.append(
            Token(
                token_type,
                value,
                self.text[start:stop],
                self._line,
                start - self._line_start + 1,
                start,
            )
        )

    def _fail(self, message: str, start: int, stop: int, kind=DiagnosticKind.SYNTAX):
        raise ParseError(message, self.source.span(start, stop), kind)

    def _read_string(self, pos: int, end: int) -> int:
        match = STRING_RE.match(self.text, pos, end)
        if match is None:
            self._fail("unterminated string", pos, end, DiagnosticKind.UNTERMINATED_STRING)
        value = ESCAPE_RE.sub(lambda m: ESCAPES[m.group(1)], match.group(1))
        self._emit(TokenType.STRING, value, pos, match.end())
        return match.end()

    def _read_number_or_date(self, pos: int, end: int) -> int:
        match = DATE_RE.match(self.text, pos, end)
        if match is not None:
            year, _, month, day = match.groups()
            try:
                value = datetime.date(int(year), int(month), int(day))
            except ValueError as e:
                self._fail(f"invalid date: {e}", pos, match.end(), DiagnosticKind.INVALID_DATE)
            self._emit(TokenType.DATE, value, pos, match.end())
            return match.end()

        match = NUMBER_RE.match(self.text, pos, end)
        integer, fraction, bare_fraction = match.groups()
        stop = match.end()
        if bare_fraction is not None:
            integer, fraction = "", bare_fraction
        if fraction is not None:
            following = self.text[stop : stop + 2]
            if following[:1] in (",", ".") and _is_digit(following[1:]):
                tail = NUMBER_RE.match(self.text, stop + 1, end)
                what = "grouping separator" if following[0] == "," else "second decimal point"
                self._fail(
                    f"{what} after the decimal point",
                    pos,
                    tail.end(),
                    DiagnosticKind.INVALID_NUMBER,
                )
        value = (integer.replace(",", ""), fraction or "")
        self._emit(TokenType.NUMBER, value, pos, stop)
        return stop

    def _read_word(self, pos: int, end: int) -> int:
        word = WORD_RE.match(self.text, pos, end).group()

        if word[0].islower() and ":" in word:
            key = word[: word.index(":")]
            if not KEY_RE.fullmatch(key):
                self._fail(f"invalid metadata key {key!r}", pos, pos + len(key))
            stop = pos + len(key) + 1
            self._emit(TokenType.KEY, key, pos, stop)
            return stop

        stop = pos + len(word)
        if word in ("TRUE", "FALSE"):
            self._emit(TokenType.BOOL, word == "TRUE", pos, stop)
        elif word == "NULL":
            self._emit(TokenType.NULL, None, pos, stop)
        elif ACCOUNT_RE.fullmatch(word):
            self._emit(TokenType.ACCOUNT, word, pos, stop)
        elif is_currency_code(word):
            self._emit(TokenType.CURRENCY, word, pos, stop)
        elif KEYWORD_RE.fullmatch(word):
            self._emit(TokenType.WORD, word, pos, stop)
        else:
            self._fail(f"invalid token {word!r}", pos, stop)
        return stop

    def _read_symbol(self, pos: int, end: int) -> int:
        ch = self.text[pos]

        if ch == "#":
            match = TAG_RE.match(self.text, pos, end)
            if match is not None:
                self._emit(TokenType.TAG, match.group(1), pos, match.end())
                return match.end()
            self._emit(TokenType.FLAG, ch, pos, pos + 1)
        elif ch == "^":
            match = LINK_RE.match(self.text, pos, end)
            if match is None:
                self._fail("expected link name after '^'", pos, pos + 1)
            self._emit(TokenType.LINK, match.group(1), pos, match.end())
            return match.end()
        elif ch == "@":
            if self._peek(pos + 1, end) == "@":
                self._emit(TokenType.ATAT, "@@", pos, pos + 2)
                return pos + 2
            self._emit(TokenType.AT, ch, pos, pos + 1)
        elif ch in FLAG_CHARS:
            self._emit(TokenType.FLAG, ch, pos, pos + 1)
        elif ch in SYMBOLS:
            self._emit(SYMBOLS[ch], ch, pos, pos + 1)
        else:
            self._fail(f"unexpected character {ch!r}", pos, pos + 1)
        return pos + 1


class TokenCursor:
    """Read position over a token list, shared by the expression and
    directive parsers."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def _previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def _check(self, *token_types: TokenType) -> bool:
        return self._peek().type in token_types

    def _advance(self) -> Token:
        token = self._peek()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _match(self, *token_types: TokenType) -> Token | None:
        if self._check(*token_types):
            return self._advance()
        return None

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(f"{message}, found {self._peek().describe()}")

    def _error(
        self,
        message: str,
        token: Token | None = None,
        kind: DiagnosticKind = DiagnosticKind.SYNTAX,
    ) -> ParseError:
        token = token or self._peek()
        return ParseError(message, token.span, kind)
