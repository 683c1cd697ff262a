"""Source positions.

Every token, entry and diagnostic carries a :class:`Span` so that callers
can quote the offending source text. Offsets index the decoded source
string (code points), so ``span.text(source)`` returns the covered text.
"""

import re
from bisect import bisect_right
from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict

_NEWLINE = re.compile(r"\n")


class Span(BaseModel):
    """Location of a construct in its source buffer (1-based line and column)."""

    model_config = ConfigDict(frozen=True)

    line: int
    column: int
    offset: int
    length: int = 0

    @property
    def end(self) -> int:
        return self.offset + self.length

    def text(self, source: str) -> str:
        """Return the slice of ``source`` this span covers."""
        return source[self.offset : self.end]


class SourceText:
    """A source buffer with line bookkeeping.

    Maps any offset into the buffer to its (line, column) pair and iterates
    over the physical lines of the buffer.
    """

    def __init__(self, text: str):
        self.text = text
        self._line_starts = [0] + [m.end() for m in _NEWLINE.finditer(text)]

    def __len__(self) -> int:
        return len(self.text)

    def locate(self, offset: int) -> tuple[int, int]:
        """Return the 1-based (line, column) of ``offset``."""
        if offset < 0 or offset > len(self.text):
            raise IndexError(f"offset {offset} outside of source of length {len(self.text)}")
        line = bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def span(self, start: int, end: int) -> Span:
        """Build the span covering ``text[start:end]``."""
        line, column = self.locate(start)
        return Span(line=line, column=column, offset=start, length=end - start)

    def byte_range(self, span: Span, encoding: str = "utf-8") -> tuple[int, int]:
        """Return ``(offset, length)`` of ``span`` in the encoded buffer."""
        offset = len(self.text[: span.offset].encode(encoding))
        return offset, len(span.text(self.text).encode(encoding))

    def line_text(self, line: int) -> str:
        """Text of a 1-based line, without its line terminator."""
        _, start, end = self._line_bounds(line - 1)
        return self.text[start:end]

    def lines(self, first: int = 1) -> Iterator[tuple[int, int, int]]:
        """Yield ``(line_number, start, end)`` for every line from ``first`` on.

        ``end`` excludes the line terminator (``\\n`` or ``\\r\\n``).
        """
        for index in range(first - 1, len(self._line_starts)):
            yield self._line_bounds(index)

    def _line_bounds(self, index: int) -> tuple[int, int, int]:
        start = self._line_starts[index]
        if index + 1 < len(self._line_starts):
            end = self._line_starts[index + 1] - 1
        else:
            end = len(self.text)
        if end > start and self.text[end - 1] == "\r":
            end -= 1
        return index + 1, start, end
