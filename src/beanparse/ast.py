"""Data model produced by the parser."""

import datetime
import re
from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import Annotated, Any
from typing import Literal as TypingLiteral

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .position import Span

FLAGS = frozenset("*!&#?%")
DEFAULT_FLAG = "*"

# Any letters or digits plus "-", in any case and script
ACCOUNT_COMPONENT = re.compile(r"(?:[^\W_]|-)+")
CURRENCY_CODE = re.compile(r"^[A-Z](?:[A-Z0-9'._-]{0,22}[A-Z0-9])?$")
_DOUBLE_PUNCTUATION = re.compile(r"['._-]{2}")


def is_currency_code(code: str) -> bool:
    return bool(CURRENCY_CODE.fullmatch(code)) and not _DOUBLE_PUNCTUATION.search(code)


class AccountType(str, Enum):
    ASSETS = "Assets"
    LIABILITIES = "Liabilities"
    EQUITY = "Equity"
    INCOME = "Income"
    EXPENSES = "Expenses"


@total_ordering
class Account(BaseModel):
    """A colon-separated account path such as ``Assets:Bank:Checking``."""

    model_config = ConfigDict(frozen=True)

    root: AccountType
    components: tuple[str, ...] = ()

    @field_validator("components")
    @classmethod
    def _check_components(cls, components: tuple[str, ...]) -> tuple[str, ...]:
        for component in components:
            if not ACCOUNT_COMPONENT.fullmatch(component):
                raise ValueError(f"invalid account component {component!r}")
        return components

    @classmethod
    def parse(cls, text: str) -> "Account":
        root, *components = text.split(":")
        try:
            account_type = AccountType(root)
        except ValueError:
            raise ValueError(f"invalid account root {root!r} in {text!r}") from None
        return cls(root=account_type, components=tuple(components))

    @property
    def path(self) -> str:
        return ":".join((self.root.value, *self.components))

    def __lt__(self, other: "Account") -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.path < other.path

    def __str__(self) -> str:
        return self.path


@total_ordering
class Currency(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str

    @field_validator("code")
    @classmethod
    def _check_code(cls, code: str) -> str:
        if not is_currency_code(code):
            raise ValueError(f"invalid currency {code!r}")
        return code

    @classmethod
    def parse(cls, text: str) -> "Currency":
        return cls(code=text)

    def __lt__(self, other: "Currency") -> bool:
        if not isinstance(other, Currency):
            return NotImplemented
        return self.code < other.code

    def __str__(self) -> str:
        return self.code


class Amount(BaseModel):
    """A number paired with its currency.

    ``value`` is whatever the session's number kind produced (``Decimal`` by
    default).
    """

    model_config = ConfigDict(frozen=True)

    value: Any
    currency: Currency

    def __str__(self) -> str:
        return f"{self.value} {self.currency}"


class Cost(BaseModel):
    """Lot annotation of a posting: ``{amount, date, "label"}``.

    ``total`` is set for the ``{{ ... }}`` form, where the amount is the cost
    of the whole lot rather than of each unit.
    """

    amount: Amount | None = None
    date: datetime.date | None = None
    label: str | None = None
    total: bool = False


class UnitPrice(BaseModel):
    type: TypingLiteral["unit"] = "unit"
    amount: Amount


class TotalPrice(BaseModel):
    type: TypingLiteral["total"] = "total"
    amount: Amount


PostingPrice = Annotated[UnitPrice | TotalPrice, Field(discriminator="type")]


# Metadata values - closed union, one variant per value shape
class StringValue(BaseModel):
    type: TypingLiteral["string"] = "string"
    value: str


class NumberValue(BaseModel):
    type: TypingLiteral["number"] = "number"
    value: Any


class AmountValue(BaseModel):
    type: TypingLiteral["amount"] = "amount"
    value: Amount


class AccountValue(BaseModel):
    type: TypingLiteral["account"] = "account"
    value: Account


class CurrencyValue(BaseModel):
    type: TypingLiteral["currency"] = "currency"
    value: Currency


class DateValue(BaseModel):
    type: TypingLiteral["date"] = "date"
    value: datetime.date


class TagValue(BaseModel):
    type: TypingLiteral["tag"] = "tag"
    value: str


class BoolValue(BaseModel):
    type: TypingLiteral["bool"] = "bool"
    value: bool


class NoneValue(BaseModel):
    type: TypingLiteral["none"] = "none"
    value: None = None


MetadataValue = Annotated[
    StringValue
    | NumberValue
    | AmountValue
    | AccountValue
    | CurrencyValue
    | DateValue
    | TagValue
    | BoolValue
    | NoneValue,
    Field(discriminator="type"),
]

Metadata = dict[str, MetadataValue]


class Posting(BaseModel):
    account: Account
    flag: str | None = None
    amount: Amount | None = None
    cost: Cost | None = None
    price: PostingPrice | None = None
    metadata: Metadata = Field(default_factory=dict)
    span: Span | None = None

    @field_validator("flag")
    @classmethod
    def _check_flag(cls, flag: str | None) -> str | None:
        if flag is not None and flag not in FLAGS:
            raise ValueError(f"invalid flag {flag!r}")
        return flag


# Directive contents
class Transaction(BaseModel):
    type: TypingLiteral["transaction"] = "transaction"
    flag: str = DEFAULT_FLAG
    payee: str | None = None
    narration: str | None = None
    tags: frozenset[str] = frozenset()
    links: frozenset[str] = frozenset()
    postings: list[Posting] = Field(default_factory=list)

    @field_validator("flag")
    @classmethod
    def _check_flag(cls, flag: str) -> str:
        if flag not in FLAGS:
            raise ValueError(f"invalid flag {flag!r}")
        return flag


class Price(BaseModel):
    """``price CURRENCY AMOUNT``: the value of one unit of ``currency``."""

    type: TypingLiteral["price"] = "price"
    currency: Currency
    amount: Amount


class Open(BaseModel):
    type: TypingLiteral["open"] = "open"
    account: Account
    currencies: frozenset[Currency] = frozenset()
    booking_method: str | None = None


class Close(BaseModel):
    type: TypingLiteral["close"] = "close"
    account: Account


class Balance(BaseModel):
    type: TypingLiteral["balance"] = "balance"
    account: Account
    amount: Amount
    tolerance: Any = None


class Pad(BaseModel):
    """``pad ACCOUNT SOURCE``: fill ``account`` from ``source_account``."""

    type: TypingLiteral["pad"] = "pad"
    account: Account
    source_account: Account


class Commodity(BaseModel):
    type: TypingLiteral["commodity"] = "commodity"
    currency: Currency


class Event(BaseModel):
    type: TypingLiteral["event"] = "event"
    name: str
    value: str


DirectiveContent = Annotated[
    Transaction | Price | Open | Close | Balance | Pad | Commodity | Event,
    Field(discriminator="type"),
]


# Entries - what the entry stream yields
class Directive(BaseModel):
    type: TypingLiteral["directive"] = "directive"
    date: datetime.date
    content: DirectiveContent
    metadata: Metadata = Field(default_factory=dict)
    span: Span

    @property
    def line(self) -> int:
        """1-based line of the directive's header."""
        return self.span.line


class Option(BaseModel):
    type: TypingLiteral["option"] = "option"
    name: str
    value: str
    span: Span


class Include(BaseModel):
    """An ``include`` line. ``path`` is kept exactly as written."""

    type: TypingLiteral["include"] = "include"
    path: str
    span: Span


Entry = Annotated[Directive | Option | Include, Field(discriminator="type")]


class BeancountFile(BaseModel):
    """Everything read from a ledger and the files it includes.

    Directives keep source order, with included files expanded at the point
    of their ``include`` line. Options are last-write-wins by name.
    """

    model_config = ConfigDict(frozen=True)

    directives: tuple[Directive, ...] = ()
    options: dict[str, str] = Field(default_factory=dict)
    includes: tuple[Path, ...] = ()

    @classmethod
    def from_entries(cls, entries, includes=None) -> "BeancountFile":
        """Fold a sequence of entries into a file.

        Without resolved ``includes``, the include paths are taken as written
        from the Include entries.
        """
        directives: list[Directive] = []
        options: dict[str, str] = {}
        written: list[Path] = []
        for entry in entries:
            match entry:
                case Directive():
                    directives.append(entry)
                case Option(name=name, value=value):
                    options[name] = value
                case Include(path=path):
                    written.append(Path(path))
        return cls(
            directives=tuple(directives),
            options=options,
            includes=tuple(written if includes is None else includes),
        )

    def iter_directives(self):
        return iter(self.directives)

    def take_directives(self) -> list[Directive]:
        """Return the directives as a new list owned by the caller."""
        return list(self.directives)

    def option(self, name: str) -> str | None:
        return self.options.get(name)

    def __len__(self) -> int:
        return len(self.directives)
