"""Directive grammar.

Recursive descent over the tokens of one block. A block holds exactly one
entry: a dated directive with its indented postings and metadata, or an
undated ``option``/``include``/``pushtag``/``poptag`` line.

Blocks whose header does not look like a known entry are not parsed at all;
see :func:`is_entry_header`.
"""

import re
from typing import Any

from .ast import (
    DEFAULT_FLAG,
    Account,
    AccountValue,
    Amount,
    AmountValue,
    Balance,
    BoolValue,
    Close,
    Commodity,
    Cost,
    Currency,
    CurrencyValue,
    DateValue,
    Directive,
    Entry,
    Event,
    Include,
    Metadata,
    MetadataValue,
    NoneValue,
    NumberValue,
    Open,
    Option,
    Pad,
    Posting,
    Price,
    StringValue,
    TagValue,
    TotalPrice,
    Transaction,
    UnitPrice,
)
from .expression import ExpressionParser
from .lexer import Token, TokenType
from .numeric import NumberKind
from .position import Span
from .storage import Storage

DIRECTIVE_KEYWORDS = ("open", "close", "balance", "pad", "commodity", "event", "price")
UNDATED_KEYWORDS = ("option", "include", "pushtag", "poptag")

_END = r"(?=[ \t;]|$)"
HEADER_RE = re.compile(
    r"\d{4}[-/]\d{2}[-/]\d{2}[ \t]+"
    rf'(?:[*!&#?%](?=[ \t";]|$)|"|(?:txn|{"|".join(DIRECTIVE_KEYWORDS)}){_END})'
    rf"|(?:{'|'.join(UNDATED_KEYWORDS)}){_END}"
)


def is_entry_header(line: str) -> bool:
    """Whether a top-level line opens an entry the grammar understands.

    Anything else (unknown or future directive keywords, org-mode headings,
    free text) is skipped together with its indented lines.
    """
    return HEADER_RE.match(line) is not None


class TagStack:
    """Tags pushed with ``pushtag`` in one file's parse."""

    def __init__(self):
        self._tags: list[str] = []

    def push(self, tag: str):
        self._tags.append(tag)

    def pop(self, tag: str):
        for i in range(len(self._tags) - 1, -1, -1):
            if self._tags[i] == tag:
                del self._tags[i]
                return
        raise KeyError(tag)

    @property
    def active(self) -> frozenset[str]:
        return frozenset(self._tags)

    def __len__(self) -> int:
        return len(self._tags)


class Parser(ExpressionParser):
    """Parser for the tokens of a single block."""

    def __init__(
        self,
        tokens: list[Token],
        number: NumberKind,
        storage: Storage,
        tags: TagStack,
        span: Span,
    ):
        super().__init__(tokens, number)
        self.storage = storage
        self.tags = tags
        self.span = span

    def parse(self) -> Entry | None:
        """Parse the block. ``pushtag``/``poptag`` update the tag stack and return None."""
        if self._check(TokenType.DATE):
            return self._parse_directive()
        return self._parse_undated()

    # Entries

    def _parse_directive(self) -> Directive:
        date = self._advance().value
        token = self._peek()

        if (
            token.type in (TokenType.STAR, TokenType.FLAG, TokenType.STRING)
            or (token.type == TokenType.WORD and token.value == "txn")
        ):
            content, metadata = self._parse_transaction()
        else:
            keyword = self._consume(TokenType.WORD, "Expected directive keyword or flag").value
            match keyword:
                case "open":
                    content = self._parse_open()
                case "close":
                    content = Close(account=self._parse_account())
                case "balance":
                    content = self._parse_balance()
                case "pad":
                    content = Pad(account=self._parse_account(), source_account=self._parse_account())
                case "commodity":
                    content = Commodity(currency=self._parse_currency())
                case "event":
                    name = self._parse_string("Expected event name")
                    content = Event(name=name, value=self._parse_string("Expected event value"))
                case "price":
                    content = Price(currency=self._parse_currency(), amount=self._parse_amount())
                case _:
                    raise self._error(f"Unknown directive {keyword!r}", token)
            self._end_line()
            metadata = self._parse_metadata_lines()

        self._end_entry()
        return Directive(date=date, content=content, metadata=metadata, span=self.span)

    def _parse_undated(self) -> Option | Include | None:
        token = self._consume(TokenType.WORD, "Expected directive")
        match token.value:
            case "option":
                name = self._parse_string("Expected option name")
                value = self._parse_string("Expected option value")
                self._finish_line()
                return Option(name=name, value=value, span=self.span)
            case "include":
                path = self._parse_string("Expected include path")
                self._finish_line()
                return Include(path=path, span=self.span)
            case "pushtag":
                tag = self._consume(TokenType.TAG, "Expected tag after pushtag")
                self._finish_line()
                self.tags.push(self.storage.text(tag.value))
                return None
            case "poptag":
                tag = self._consume(TokenType.TAG, "Expected tag after poptag")
                self._finish_line()
                try:
                    self.tags.pop(tag.value)
                except KeyError:
                    raise self._error(f"Tag '#{tag.value}' was never pushed", tag) from None
                return None
            case _:
                raise self._error(f"Unknown directive {token.value!r}", token)

    # Transactions

    def _parse_transaction(self) -> tuple[Transaction, Metadata]:
        flag = DEFAULT_FLAG
        if token := self._match(TokenType.STAR, TokenType.FLAG):
            flag = token.text
        elif self._check(TokenType.WORD):
            self._advance()  # txn

        strings: list[str] = []
        while self._check(TokenType.STRING):
            if len(strings) == 2:
                raise self._error("Too many strings in transaction header, expected payee and narration")
            strings.append(self.storage.text(self._advance().value))
        payee = narration = None
        if len(strings) == 1:
            narration = strings[0]
        elif strings:
            payee, narration = strings

        tags = set(self.tags.active)
        links = set()
        while token := self._match(TokenType.TAG, TokenType.LINK):
            target = tags if token.type == TokenType.TAG else links
            target.add(self.storage.text(token.value))
        self._end_line()

        metadata: Metadata = {}
        postings: list[dict[str, Any]] = []
        posting_indent = None
        while indent := self._match(TokenType.INDENT):
            if self._at_metadata():
                key, value = self._parse_metadata_entry()
                if postings and indent.value > posting_indent:
                    postings[-1]["metadata"][key] = value
                else:
                    metadata[key] = value
            else:
                postings.append(self._parse_posting())
                posting_indent = indent.value

        transaction = Transaction(
            flag=flag,
            payee=payee,
            narration=narration,
            tags=frozenset(tags),
            links=frozenset(links),
            postings=[Posting(**fields) for fields in postings],
        )
        return transaction, metadata

    def _parse_posting(self) -> dict[str, Any]:
        """Collect the fields of one posting line.

        Metadata lines below the posting are added to the returned
        ``metadata`` dict before the Posting is built.
        """
        first = self._peek()
        flag = None
        if token := self._match(TokenType.STAR, TokenType.FLAG):
            flag = token.text
        account = self._parse_account("Expected posting account or metadata")

        amount = cost = price = None
        if self.starts_expression():
            amount = self._parse_amount()
        if self._check(TokenType.LBRACE):
            cost = self._parse_cost()
        if token := self._match(TokenType.AT, TokenType.ATAT):
            price_amount = self._parse_amount()
            if token.type == TokenType.AT:
                price = UnitPrice(amount=price_amount)
            else:
                price = TotalPrice(amount=price_amount)

        last = self._previous()
        self._end_line()
        return {
            "flag": flag,
            "account": account,
            "amount": amount,
            "cost": cost,
            "price": price,
            "metadata": {},
            "span": Span(
                line=first.line,
                column=first.column,
                offset=first.offset,
                length=last.end - first.offset,
            ),
        }

    def _parse_cost(self) -> Cost:
        self._consume(TokenType.LBRACE, "Expected '{'")
        total = self._match(TokenType.LBRACE) is not None
        fields: dict[str, Any] = {}

        if not self._check(TokenType.RBRACE):
            while True:
                token = self._peek()
                if self._check(TokenType.DATE):
                    name, value = "date", self._advance().value
                elif self._check(TokenType.STRING):
                    name, value = "label", self.storage.text(self._advance().value)
                elif self.starts_expression():
                    name, value = "amount", self._parse_amount()
                else:
                    raise self._error(f"Expected cost amount, date or label, found {token.describe()}")
                if name in fields:
                    raise self._error(f"Duplicate {name} in cost", token)
                fields[name] = value
                if not self._match(TokenType.COMMA):
                    break

        self._consume(TokenType.RBRACE, "Expected '}' to close cost")
        if total:
            self._consume(TokenType.RBRACE, "Expected '}}' to close total cost")
        return Cost(total=total, **fields)

    # Other directives

    def _parse_open(self) -> Open:
        account = self._parse_account()
        currencies = []
        if self._check(TokenType.CURRENCY):
            currencies.append(self._parse_currency())
            while self._match(TokenType.COMMA):
                currencies.append(self._parse_currency("Expected currency after ','"))
        booking_method = None
        if self._check(TokenType.STRING):
            booking_method = self._parse_string()
        return Open(account=account, currencies=frozenset(currencies), booking_method=booking_method)

    def _parse_balance(self) -> Balance:
        account = self._parse_account()
        value = self.parse_expression()
        tolerance = None
        if self._match(TokenType.TILDE):
            tolerance = self.parse_expression()
        currency = self._parse_currency()
        return Balance(
            account=account,
            amount=Amount(value=value, currency=currency),
            tolerance=tolerance,
        )

    # Metadata

    def _at_metadata(self) -> bool:
        if self._check(TokenType.KEY):
            return True
        return self._check(TokenType.STRING) and self._peek(1).type == TokenType.COLON

    def _parse_metadata_lines(self) -> Metadata:
        metadata: Metadata = {}
        while self._check(TokenType.INDENT):
            self._advance()
            if not self._at_metadata():
                raise self._error(f"Expected metadata key, found {self._peek().describe()}")
            key, value = self._parse_metadata_entry()
            metadata[key] = value
        return metadata

    def _parse_metadata_entry(self) -> tuple[str, MetadataValue]:
        if token := self._match(TokenType.KEY):
            key = token.value
        else:
            key = self._advance().value
            self._consume(TokenType.COLON, "Expected ':' after metadata key")
        value = self._parse_metadata_value()
        self._end_line()
        return self.storage.text(key), value

    def _parse_metadata_value(self) -> MetadataValue:
        token = self._peek()
        match token.type:
            case TokenType.NEWLINE | TokenType.NULL:
                self._match(TokenType.NULL)
                return NoneValue()
            case TokenType.STRING:
                return StringValue(value=self.storage.text(self._advance().value))
            case TokenType.DATE:
                return DateValue(value=self._advance().value)
            case TokenType.ACCOUNT:
                return AccountValue(value=self._parse_account())
            case TokenType.CURRENCY:
                return CurrencyValue(value=self._parse_currency())
            case TokenType.TAG:
                return TagValue(value=self.storage.text(self._advance().value))
            case TokenType.BOOL:
                return BoolValue(value=self._advance().value)
            case _ if self.starts_expression():
                value = self.parse_expression()
                if self._check(TokenType.CURRENCY):
                    return AmountValue(value=Amount(value=value, currency=self._parse_currency()))
                return NumberValue(value=value)
            case _:
                raise self._error(f"Expected metadata value, found {token.describe()}")

    # Terminals

    def _parse_account(self, message: str = "Expected account") -> Account:
        token = self._consume(TokenType.ACCOUNT, message)
        return self.storage.get(token.value, Account.parse)

    def _parse_currency(self, message: str = "Expected currency") -> Currency:
        token = self._consume(TokenType.CURRENCY, message)
        return self.storage.get(token.value, Currency.parse)

    def _parse_string(self, message: str = "Expected string") -> str:
        return self.storage.text(self._consume(TokenType.STRING, message).value)

    def _parse_amount(self) -> Amount:
        value = self.parse_expression()
        return Amount(value=value, currency=self._parse_currency("Expected currency after amount"))

    def _end_line(self):
        self._consume(TokenType.NEWLINE, "Expected end of line")

    def _finish_line(self):
        self._end_line()
        self._end_entry()

    def _end_entry(self):
        if not self._is_at_end():
            raise self._error(f"Unexpected {self._peek().describe()}")


def parse_block(
    tokens: list[Token],
    number: NumberKind,
    storage: Storage,
    tags: TagStack,
    span: Span,
) -> Entry | None:
    """Parse one block's tokens; raises ParseError on malformed input."""
    return Parser(tokens, number, storage, tags, span).parse()
