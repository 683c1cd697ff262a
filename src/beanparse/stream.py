"""Lazy entry stream over one source buffer."""

import logging
from collections.abc import Iterator
from pathlib import Path

from .ast import BeancountFile, Entry
from .config import ParserConfig, build_session
from .errors import Diagnostic, ParseError, ParseFailure
from .grammar import TagStack, is_entry_header, parse_block
from .lexer import Lexer, split_blocks
from .numeric import DecimalNumber, NumberKind
from .position import SourceText
from .storage import SharedStorage, Storage

logger = logging.getLogger(__name__)


class EntryStream:
    """Single-pass iterator of ``Entry | Diagnostic`` in source order.

    Each top-level block is parsed on its own: a malformed entry becomes one
    Diagnostic and iteration continues with the next block. Blocks that do
    not open a known entry are skipped. The ``pushtag`` stack belongs to
    this stream alone.

    Example:
        >>> for item in EntryStream("2024-01-01 open Assets:Cash\\n"):
        ...     print(item.content.account)
        Assets:Cash
    """

    def __init__(
        self,
        source: str,
        *,
        number: NumberKind | None = None,
        storage: Storage | None = None,
        path: Path | None = None,
    ):
        self.source = SourceText(source)
        self.number = DecimalNumber() if number is None else number
        self.storage = SharedStorage() if storage is None else storage
        self.path = path
        self.tags = TagStack()
        self._blocks = split_blocks(self.source)

    def __iter__(self) -> Iterator[Entry | Diagnostic]:
        return self

    def __next__(self) -> Entry | Diagnostic:
        # Every step consumes at least one block, so the stream always ends
        for block in self._blocks:
            if not is_entry_header(block.header):
                logger.debug("Skipping line %d of %s: %r", block.line, self._where(), block.header)
                continue
            span = self.source.span(block.start, block.end)
            try:
                tokens = Lexer(self.source, block).tokenize()
                entry = parse_block(tokens, self.number, self.storage, self.tags, span)
            except ParseError as e:
                logger.debug(
                    "Rejected entry at line %d of %s: %s\n  %s",
                    block.line,
                    self._where(),
                    e,
                    self.source.line_text(e.span.line),
                )
                return e.to_diagnostic(self.path)
            if entry is not None:
                return entry
        raise StopIteration

    def _where(self) -> str:
        return str(self.path) if self.path else "<string>"


def parse_iter(
    source: str,
    *,
    config: ParserConfig | None = None,
    number: NumberKind | None = None,
    storage: Storage | None = None,
) -> EntryStream:
    """Return the lazy entry stream for ``source``.

    Include entries are yielded as they are, never followed.
    """
    number, storage = build_session(config, number, storage)
    return EntryStream(source, number=number, storage=storage)


def parse(
    source: str,
    *,
    config: ParserConfig | None = None,
    number: NumberKind | None = None,
    storage: Storage | None = None,
) -> BeancountFile:
    """Parse a complete buffer into a BeancountFile.

    Raises ParseFailure listing every diagnostic when any entry was rejected;
    its ``partial`` attribute holds what did parse.
    """
    entries: list[Entry] = []
    diagnostics: list[Diagnostic] = []
    for item in parse_iter(source, config=config, number=number, storage=storage):
        if isinstance(item, Diagnostic):
            diagnostics.append(item)
        else:
            entries.append(item)

    result = BeancountFile.from_entries(entries)
    if diagnostics:
        raise ParseFailure(diagnostics, result)
    return result
