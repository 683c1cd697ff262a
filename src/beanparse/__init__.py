"""beanparse — parse Beancount ledgers into typed entries.

Pipeline: split source into blocks -> tokenize -> parse entries -> follow includes.

Example:
    from beanparse import parse, read_files, ParseFailure

    ledger = parse('2024-01-01 open Assets:Cash USD\\n')
    for directive in ledger.directives:
        print(directive.date, directive.content.type)

    try:
        ledger = read_files("main.beancount")
    except ParseFailure as e:
        for diagnostic in e.diagnostics:
            print(diagnostic)
        ledger = e.partial
"""

__version__ = "0.1.0"

from .ast import (
    Account,
    AccountType,
    AccountValue,
    Amount,
    AmountValue,
    Balance,
    BeancountFile,
    BoolValue,
    Close,
    Commodity,
    Cost,
    Currency,
    CurrencyValue,
    DateValue,
    Directive,
    DirectiveContent,
    Entry,
    Event,
    Include,
    MetadataValue,
    NoneValue,
    NumberValue,
    Open,
    Option,
    Pad,
    Posting,
    PostingPrice,
    Price,
    StringValue,
    TagValue,
    TotalPrice,
    Transaction,
    UnitPrice,
)
from .config import ParserConfig, load_config
from .errors import Diagnostic, DiagnosticKind, ParseError, ParseFailure
from .expression import evaluate
from .include import IncludeResolver, read_files
from .numeric import DecimalNumber, FloatNumber, FractionNumber, NumberKind
from .position import SourceText, Span
from .storage import CopyingStorage, SharedStorage, Storage
from .stream import EntryStream, parse, parse_iter

__all__ = [
    # Parse
    "parse",
    "parse_iter",
    "read_files",
    "evaluate",
    "EntryStream",
    "IncludeResolver",
    # Errors
    "Diagnostic",
    "DiagnosticKind",
    "ParseError",
    "ParseFailure",
    # Positions
    "Span",
    "SourceText",
    # Configuration
    "ParserConfig",
    "load_config",
    "NumberKind",
    "DecimalNumber",
    "FloatNumber",
    "FractionNumber",
    "Storage",
    "SharedStorage",
    "CopyingStorage",
    # Data model
    "BeancountFile",
    "Entry",
    "Directive",
    "Option",
    "Include",
    "DirectiveContent",
    "Transaction",
    "Price",
    "Open",
    "Close",
    "Balance",
    "Pad",
    "Commodity",
    "Event",
    "Posting",
    "PostingPrice",
    "UnitPrice",
    "TotalPrice",
    "Cost",
    "Amount",
    "Account",
    "AccountType",
    "Currency",
    "MetadataValue",
    "StringValue",
    "NumberValue",
    "AmountValue",
    "AccountValue",
    "CurrencyValue",
    "DateValue",
    "TagValue",
    "BoolValue",
    "NoneValue",
]
