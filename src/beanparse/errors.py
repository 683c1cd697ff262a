"""Diagnostics and the exceptions that carry them."""

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from .position import Span

if TYPE_CHECKING:
    from .ast import BeancountFile


class DiagnosticKind(str, Enum):
    SYNTAX = "syntax"
    INVALID_NUMBER = "invalid_number"
    UNTERMINATED_STRING = "unterminated_string"
    INVALID_DATE = "invalid_date"
    DIVISION_BY_ZERO = "division_by_zero"
    IO = "io"
    INVALID_INCLUDE = "invalid_include"
    INCLUDE_CYCLE = "include_cycle"


class Diagnostic(BaseModel):
    """A rejected construct.

    ``span`` indexes the buffer of ``path`` (or of the string given to
    :func:`beanparse.parse` when ``path`` is None). It is None only for
    file-level failures such as an unreadable root file. For include
    failures ``target`` holds the include path that could not be followed.
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    message: str
    span: Span | None = None
    path: Path | None = None
    target: Path | None = None

    def __str__(self) -> str:
        location = str(self.path) if self.path else "<string>"
        if self.span is not None:
            location = f"{location}:{self.span.line}:{self.span.column}"
        return f"{location}: {self.message}"


class ParseError(Exception):
    """Raised by the scanner and grammar when an entry cannot be recognized."""

    def __init__(self, msg: str, span: Span, kind: DiagnosticKind = DiagnosticKind.SYNTAX):
        super().__init__(f"line {span.line}, col {span.column}: {msg}")
        self.msg = msg
        self.span = span
        self.kind = kind

    def to_diagnostic(self, path: Path | None = None) -> Diagnostic:
        return Diagnostic(kind=self.kind, message=self.msg, span=self.span, path=path)


class ParseFailure(Exception):
    """Raised by :func:`parse` and :func:`read_files` when any entry was rejected.

    ``diagnostics`` lists every problem found, in source order, and
    ``partial`` holds everything that did parse.
    """

    def __init__(self, diagnostics: list[Diagnostic], partial: "BeancountFile"):
        count = len(diagnostics)
        noun = "error" if count == 1 else "errors"
        super().__init__(f"{count} {noun}; first: {diagnostics[0]}")
        self.diagnostics = diagnostics
        self.partial = partial
