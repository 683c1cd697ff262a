"""Arithmetic expressions in amounts.

Expressions are reduced while parsing; the grammar only ever sees the
resulting value. Precedence, lowest first:

    additive        := multiplicative (("+" | "-") multiplicative)*
    multiplicative  := unary (("*" | "/") unary)*
    unary           := ("-" | "+") unary | primary
    primary         := NUMBER | "(" additive ")"
"""

from typing import Any

from .errors import DiagnosticKind
from .lexer import Block, Lexer, Token, TokenCursor, TokenType
from .numeric import DecimalNumber, NumberKind
from .position import SourceText


class ExpressionParser(TokenCursor):
    """Evaluates expressions with the given number kind."""

    def __init__(self, tokens: list[Token], number: NumberKind):
        super().__init__(tokens)
        self.number = number

    def starts_expression(self) -> bool:
        return self._check(
            TokenType.NUMBER, TokenType.MINUS, TokenType.PLUS, TokenType.LPAREN
        )

    def parse_expression(self) -> Any:
        return self._parse_additive()

    def parse_line(self) -> Any:
        """Parse an expression that must fill the rest of the tokens."""
        value = self._parse_additive()
        self._match(TokenType.NEWLINE)
        if not self._is_at_end():
            raise self._error(f"Unexpected {self._peek().describe()} after expression")
        return value

    def _parse_additive(self) -> Any:
        left = self._parse_multiplicative()

        while self._check(TokenType.PLUS, TokenType.MINUS):
            op = self._advance()
            right = self._parse_multiplicative()
            if op.type == TokenType.PLUS:
                left = self.number.add(left, right)
            else:
                left = self.number.sub(left, right)

        return left

    def _parse_multiplicative(self) -> Any:
        left = self._parse_unary()

        while self._check(TokenType.STAR, TokenType.SLASH):
            op = self._advance()
            right = self._parse_unary()
            if op.type == TokenType.STAR:
                left = self.number.mul(left, right)
                continue
            try:
                left = self.number.div(left, right)
            except ZeroDivisionError:
                raise self._error("division by zero", op, DiagnosticKind.DIVISION_BY_ZERO) from None

        return left

    def _parse_unary(self) -> Any:
        if self._match(TokenType.PLUS):
            return self._parse_unary()

        if self._match(TokenType.MINUS):
            # A literal keeps its sign in the value it is built from
            if self._check(TokenType.NUMBER):
                integer, fraction = self._advance().value
                return self.number.from_digits(True, integer, fraction)
            return self.number.neg(self._parse_unary())

        return self._parse_primary()

    def _parse_primary(self) -> Any:
        if self._check(TokenType.NUMBER):
            integer, fraction = self._advance().value
            return self.number.from_digits(False, integer, fraction)

        if self._match(TokenType.LPAREN):
            value = self._parse_additive()
            self._consume(TokenType.RPAREN, "Expected ')'")
            return value

        raise self._error(f"Expected a number, found {self._peek().describe()}")


def evaluate(text: str, number: NumberKind | None = None) -> Any:
    """Evaluate a standalone expression such as ``"2 * (3 + 4)"``.

    Raises ParseError when ``text`` is not a single well-formed expression.
    """
    source = SourceText(text)
    block = Block(start=0, end=len(text), line=1, header=text)
    parser = ExpressionParser(Lexer(source, block).tokenize(), number or DecimalNumber())
    return parser.parse_line()
