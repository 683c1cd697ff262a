"""Tests for the entry stream and parse()."""

import logging
from fractions import Fraction

import pytest

from beanparse import (
    CopyingStorage,
    Diagnostic,
    DiagnosticKind,
    Directive,
    EntryStream,
    FractionNumber,
    ParseFailure,
    ParserConfig,
    SharedStorage,
    parse,
    parse_iter,
)

RECOVERY = """\
2024-01-01 * "ok1"
  Assets:Cash 1 USD

2024-01-02 * "bad"
  Assets:Cash 1 USD USD

2024-01-03 * "ok2"
  Assets:Cash 1 USD
"""

LEDGER = """\
option "title" "Test"
2024-01-01 open Assets:Cash USD
2024-01-01 open Expenses:Food

2024-01-02 * "Cafe" "Lunch" #food
  Expenses:Food  12.00 USD
  Assets:Cash
"""


class TestRecovery:
    """A malformed entry is reported and the rest of the file still parses."""

    def test_one_bad_transaction(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse(RECOVERY)
        failure = exc_info.value
        assert len(failure.diagnostics) == 1
        assert failure.diagnostics[0].span.line == 5
        assert failure.diagnostics[0].kind == DiagnosticKind.SYNTAX
        assert [d.content.narration for d in failure.partial.directives] == ["ok1", "ok2"]
        assert [d.line for d in failure.partial.directives] == [1, 7]

    def test_stream_order(self):
        items = list(parse_iter(RECOVERY))
        assert [type(item) for item in items] == [Directive, Diagnostic, Directive]

    def test_unterminated_string_recovers(self):
        text = '2024-01-01 * "never closed\n  Assets:Cash 1 USD\n2024-01-02 open Assets:Cash\n'
        items = list(parse_iter(text))
        assert items[0].kind == DiagnosticKind.UNTERMINATED_STRING
        assert isinstance(items[1], Directive)

    def test_all_diagnostics_reported(self):
        text = "2024-01-01 close\n2024-13-01 open Assets:Cash\n2024-01-01 open Assets:Cash 1 / 0 USD\n"
        with pytest.raises(ParseFailure) as exc_info:
            parse(text)
        kinds = [d.kind for d in exc_info.value.diagnostics]
        assert kinds == [DiagnosticKind.SYNTAX, DiagnosticKind.INVALID_DATE, DiagnosticKind.SYNTAX]

    def test_division_by_zero_in_posting(self):
        text = '2024-01-01 * "x"\n  Assets:Cash 10 / 0 USD\n'
        [diagnostic] = [item for item in parse_iter(text) if isinstance(item, Diagnostic)]
        assert diagnostic.kind == DiagnosticKind.DIVISION_BY_ZERO
        assert (diagnostic.span.line, diagnostic.span.column) == (2, 18)

    def test_diagnostic_rendering(self):
        [diagnostic] = [item for item in parse_iter(RECOVERY) if isinstance(item, Diagnostic)]
        assert diagnostic.path is None
        assert str(diagnostic).startswith("<string>:5:")
        assert diagnostic.span.text(RECOVERY) == "USD"


class TestTagScoping:
    def test_pushtag_applies_until_poptag(self):
        text = """\
pushtag #a
2024-01-01 * "first"
  Assets:Cash 1 USD
poptag #a
2024-01-02 * "second"
  Assets:Cash 1 USD
"""
        first, second = parse(text).directives
        assert first.content.tags == {"a"}
        assert second.content.tags == frozenset()

    def test_pushed_tags_merge_with_explicit(self):
        text = 'pushtag #trip\n2024-01-01 * "x" #food\n'
        [directive] = parse(text).directives
        assert directive.content.tags == {"trip", "food"}

    def test_poptag_without_push(self):
        with pytest.raises(ParseFailure) as exc_info:
            parse("poptag #a\n")
        assert "never pushed" in exc_info.value.diagnostics[0].message

    def test_tags_not_shared_between_streams(self):
        parse("pushtag #a\n")
        [directive] = parse('2024-01-01 * "x"\n').directives
        assert directive.content.tags == frozenset()


class TestSkipping:
    def test_unknown_directive_with_block(self):
        """Unknown keywords are skipped together with their indented lines."""
        text = """\
2024-01-01 custom "budget" Expenses:Food
  extra: "stuff"
  more lines here !!!
2024-01-02 open Assets:Cash
"""
        items = list(parse_iter(text))
        assert len(items) == 1
        assert items[0].content.type == "open"

    def test_misspelled_keyword_ignored(self):
        assert parse("2024-01-01 opne Assets:Cash\n").directives == ()

    def test_non_directive_text(self):
        text = """\
* Banking
Some notes about this file
;; comment
plugin "beancount.plugins.auto"
2016 - 11 - 28 close Assets:Cash
2024-01-01 open Assets:Cash
"""
        ledger = parse(text)
        assert len(ledger.directives) == 1

    def test_skipping_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="beanparse.stream"):
            list(parse_iter("2024-01-01 custom \"x\"\n"))
        assert "Skipping line 1" in caplog.text

    def test_rejection_logged_with_source_line(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="beanparse.stream"):
            list(parse_iter(RECOVERY))
        assert "Rejected entry at line 4" in caplog.text
        assert "Assets:Cash 1 USD USD" in caplog.text

    def test_orphan_indented_lines(self):
        ledger = parse("  Assets:Cash 1 USD\n2024-01-01 open Assets:Cash\n")
        assert len(ledger.directives) == 1

    def test_crlf_line_endings(self):
        ledger = parse('2024-01-01 * "x"\r\n  Assets:Cash 1 USD\r\n')
        assert ledger.directives[0].content.narration == "x"


class TestParse:
    def test_ledger(self):
        ledger = parse(LEDGER)
        assert len(ledger) == 3
        assert ledger.option("title") == "Test"
        assert [d.content.type for d in ledger.directives] == ["open", "open", "transaction"]

    def test_directive_span(self):
        txn = parse(LEDGER).directives[2]
        assert txn.span.line == 5
        assert txn.span.text(LEDGER).startswith('2024-01-02 * "Cafe"')
        assert txn.span.text(LEDGER).endswith("Assets:Cash")

    def test_idempotent(self):
        assert parse(LEDGER) == parse(LEDGER)

    def test_take_directives(self):
        ledger = parse(LEDGER)
        taken = ledger.take_directives()
        taken.clear()
        assert len(ledger.directives) == 3

    def test_empty_source(self):
        ledger = parse("")
        assert ledger.directives == ()
        assert ledger.options == {}

    def test_storage_modes_equal(self):
        shared = parse(LEDGER, storage=SharedStorage())
        copied = parse(LEDGER, storage=CopyingStorage())
        assert shared == copied

    def test_shared_storage_reuses_values(self):
        ledger = parse(LEDGER, storage=SharedStorage())
        opened = ledger.directives[0].content.account
        posted = ledger.directives[2].content.postings[1].account
        assert opened is posted

    def test_copying_storage_builds_fresh_values(self):
        ledger = parse(LEDGER, config=ParserConfig(storage="copy"))
        opened = ledger.directives[0].content.account
        posted = ledger.directives[2].content.postings[1].account
        assert opened == posted
        assert opened is not posted

    def test_number_kind(self):
        ledger = parse(LEDGER, number=FractionNumber())
        amount = ledger.directives[2].content.postings[0].amount
        assert amount.value == Fraction(12)


class TestEntryStream:
    def test_lazy(self):
        """Entries are available before later blocks are examined."""
        stream = EntryStream('2024-01-01 open Assets:Cash\n2024-01-02 * "broken\n')
        first = next(stream)
        assert first.content.type == "open"
        assert isinstance(next(stream), Diagnostic)
        with pytest.raises(StopIteration):
            next(stream)

    def test_single_pass(self):
        stream = parse_iter(LEDGER)
        assert len(list(stream)) == 4
        assert list(stream) == []

    def test_path_attached(self, tmp_path):
        stream = EntryStream("2024-01-01 close\n", path=tmp_path / "x.beancount")
        [diagnostic] = list(stream)
        assert diagnostic.path == tmp_path / "x.beancount"
