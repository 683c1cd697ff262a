"""Tests for transactions, postings and metadata."""

from datetime import date
from decimal import Decimal

import pytest

from beanparse import (
    Account,
    AccountValue,
    Amount,
    AmountValue,
    BoolValue,
    Cost,
    Currency,
    CurrencyValue,
    DateValue,
    NoneValue,
    NumberValue,
    ParseFailure,
    StringValue,
    TagValue,
    TotalPrice,
    Transaction,
    UnitPrice,
    parse,
)

COFFEE = """\
2024-01-15 * "Cafe" "Coffee" #food ^receipt-1
  note: "morning"
  Expenses:Food   4.50 USD
    category: "drinks"
  Assets:Cash    -4.50 USD
"""


def usd(value: str) -> Amount:
    return Amount(value=Decimal(value), currency=Currency(code="USD"))


def parse_txn(text: str) -> Transaction:
    ledger = parse(text)
    assert len(ledger.directives) == 1
    return ledger.directives[0].content


class TestTransactionHeader:
    def test_full_header(self):
        txn = parse_txn(COFFEE)
        assert txn.flag == "*"
        assert txn.payee == "Cafe"
        assert txn.narration == "Coffee"
        assert txn.tags == {"food"}
        assert txn.links == {"receipt-1"}

    def test_unicode_tag_and_accounts(self):
        txn = parse_txn('2024-01-15 * "x" #café\n  Expenses:Café 3 EUR\n  Assets:bank\n')
        assert txn.tags == {"café"}
        assert [str(p.account) for p in txn.postings] == ["Expenses:Café", "Assets:bank"]

    def test_narration_only(self):
        txn = parse_txn('2024-01-15 * "Just narration"\n')
        assert txn.payee is None
        assert txn.narration == "Just narration"

    def test_no_strings(self):
        txn = parse_txn("2024-01-15 *\n  Assets:Cash 1 USD\n")
        assert txn.payee is None
        assert txn.narration is None

    @pytest.mark.parametrize(
        "header,flag",
        [
            ('2024-01-15 * "x"', "*"),
            ('2024-01-15 ! "x"', "!"),
            ('2024-01-15 txn "x"', "*"),
            ('2024-01-15 "x"', "*"),
            ('2024-01-15 & "x"', "&"),
        ],
    )
    def test_flags(self, header, flag):
        assert parse_txn(header + "\n").flag == flag

    def test_too_many_strings(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse('2024-01-15 * "a" "b" "c"\n')
        assert "Too many strings" in exc_info.value.diagnostics[0].message

    def test_header_comment(self):
        txn = parse_txn('2024-01-15 * "x" ; paid in cash\n  Assets:Cash 1 USD ; wallet\n')
        assert txn.postings[0].amount == usd("1")


class TestPostings:
    def test_amounts(self):
        txn = parse_txn(COFFEE)
        assert [str(p.account) for p in txn.postings] == ["Expenses:Food", "Assets:Cash"]
        assert txn.postings[0].amount == usd("4.50")
        assert txn.postings[1].amount == usd("-4.50")

    def test_posting_span(self):
        txn = parse_txn(COFFEE)
        span = txn.postings[0].span
        assert (span.line, span.column) == (3, 3)
        assert span.text(COFFEE) == "Expenses:Food   4.50 USD"

    def test_missing_amount(self):
        txn = parse_txn('2024-01-15 * "x"\n  Expenses:Food 5 USD\n  Assets:Cash\n')
        assert txn.postings[1].amount is None

    def test_posting_flag(self):
        txn = parse_txn('2024-01-15 * "x"\n  ! Assets:Cash 1 USD\n  * Assets:Bank\n')
        assert [p.flag for p in txn.postings] == ["!", "*"]

    def test_expression_amount(self):
        txn = parse_txn('2024-01-15 * "x"\n  Expenses:Food (10 + 5) * 2 USD\n')
        assert txn.postings[0].amount == usd("30")

    def test_cost(self):
        txn = parse_txn('2024-01-15 * "buy"\n  Assets:Stock 10 HOOL {500.00 USD, 2024-01-01, "lot1"}\n')
        assert txn.postings[0].cost == Cost(amount=usd("500.00"), date=date(2024, 1, 1), label="lot1")

    def test_cost_in_any_order(self):
        txn = parse_txn('2024-01-15 * "buy"\n  Assets:Stock 10 HOOL {"lot1", 500 USD}\n')
        assert txn.postings[0].cost.label == "lot1"
        assert txn.postings[0].cost.amount == usd("500")

    def test_empty_cost(self):
        txn = parse_txn('2024-01-15 * "sell"\n  Assets:Stock -10 HOOL {}\n')
        assert txn.postings[0].cost == Cost()

    def test_total_cost(self):
        txn = parse_txn('2024-01-15 * "buy"\n  Assets:Stock 10 HOOL {{5000 USD}}\n')
        cost = txn.postings[0].cost
        assert cost.total
        assert cost.amount == usd("5000")

    def test_duplicate_cost_component(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse('2024-01-15 * "buy"\n  Assets:Stock 10 HOOL {2024-01-01, 2024-01-02}\n')
        assert "Duplicate date in cost" in exc_info.value.diagnostics[0].message

    def test_unit_price(self):
        txn = parse_txn('2024-01-15 * "fx"\n  Assets:EUR 100 EUR @ 1.10 USD\n')
        assert txn.postings[0].price == UnitPrice(amount=usd("1.10"))

    def test_total_price(self):
        txn = parse_txn('2024-01-15 * "fx"\n  Assets:EUR 100 EUR @@ 110 USD\n')
        assert txn.postings[0].price == TotalPrice(amount=usd("110"))

    def test_cost_and_price(self):
        txn = parse_txn('2024-01-15 * "sell"\n  Assets:Stock -5 HOOL {500 USD} @ 550 USD\n')
        posting = txn.postings[0]
        assert posting.cost.amount == usd("500")
        assert posting.price.amount == usd("550")

    def test_amount_requires_currency(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse('2024-01-15 * "x"\n  Assets:Cash 10\n')
        diagnostic = exc_info.value.diagnostics[0]
        assert "Expected currency after amount" in diagnostic.message
        assert diagnostic.span.line == 2

    def test_indented_garbage(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse('2024-01-15 * "x"\n  "not a posting"\n')
        assert "Expected posting account or metadata" in exc_info.value.diagnostics[0].message


class TestMetadata:
    def test_transaction_and_posting_metadata(self):
        txn_directive = parse(COFFEE).directives[0]
        assert txn_directive.metadata == {"note": StringValue(value="morning")}
        assert txn_directive.content.postings[0].metadata == {"category": StringValue(value="drinks")}
        assert txn_directive.content.postings[1].metadata == {}

    def test_metadata_after_posting_at_same_indent(self):
        """Metadata not indented deeper than the last posting belongs to the transaction."""
        directive = parse('2024-01-15 * "x"\n  Assets:Cash 1 USD\n  late: "yes"\n').directives[0]
        assert directive.metadata == {"late": StringValue(value="yes")}
        assert directive.content.postings[0].metadata == {}

    def test_value_shapes(self):
        text = """\
2024-01-15 * "x"
  str: "s"
  num: 42
  amt: 10 USD
  acct: Assets:Cash
  cur: EUR
  day: 2024-02-01
  label: #t
  yes: TRUE
  nothing: NULL
  empty:
"""
        metadata = parse(text).directives[0].metadata
        assert metadata == {
            "str": StringValue(value="s"),
            "num": NumberValue(value=Decimal(42)),
            "amt": AmountValue(value=Amount(value=Decimal(10), currency=Currency(code="USD"))),
            "acct": AccountValue(value=Account.parse("Assets:Cash")),
            "cur": CurrencyValue(value=Currency(code="EUR")),
            "day": DateValue(value=date(2024, 2, 1)),
            "label": TagValue(value="t"),
            "yes": BoolValue(value=True),
            "nothing": NoneValue(),
            "empty": NoneValue(),
        }

    def test_duplicate_key_last_wins(self):
        text = '2024-01-15 * "x"\n  a: 1\n  b: 2\n  a: 3\n'
        metadata = parse(text).directives[0].metadata
        assert list(metadata) == ["a", "b"]
        assert metadata["a"] == NumberValue(value=Decimal(3))

    def test_quoted_key(self):
        metadata = parse('2024-01-15 * "x"\n  "my key": "v"\n').directives[0].metadata
        assert metadata == {"my key": StringValue(value="v")}

    def test_invalid_value(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse('2024-01-15 * "x"\n  key: @\n')
        assert "Expected metadata value" in exc_info.value.diagnostics[0].message

    def test_exhaustive_match(self):
        """Every value variant can be told apart by its type tag."""
        metadata = parse('2024-01-15 * "x"\n  a: 1 USD\n  b: "s"\n').directives[0].metadata
        kinds = []
        for value in metadata.values():
            match value:
                case AmountValue(value=amount):
                    kinds.append(("amount", str(amount)))
                case StringValue(value=text):
                    kinds.append(("string", text))
                case _:
                    kinds.append(("other", None))
        assert kinds == [("amount", "1 USD"), ("string", "s")]
