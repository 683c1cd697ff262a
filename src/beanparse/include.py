"""Reading ledgers from disk and following their includes."""

import logging
from pathlib import Path

from .ast import BeancountFile, Directive, Include, Option
from .config import ParserConfig, build_session
from .errors import Diagnostic, DiagnosticKind, ParseFailure
from .numeric import NumberKind
from .storage import Storage
from .stream import EntryStream

logger = logging.getLogger(__name__)


class IncludeResolver:
    """Reads files depth-first, expanding each include where it occurs.

    Include paths are resolved relative to the including file and
    canonicalised. A file is read at most once per resolver: including an
    already loaded file again is skipped, and including a file that is
    still being read (an ancestor) is reported as a cycle.

    Example:
        resolver = IncludeResolver()
        resolver.read("main.beancount")
        ledger = resolver.result()
    """

    def __init__(
        self,
        config: ParserConfig | None = None,
        number: NumberKind | None = None,
        storage: Storage | None = None,
    ):
        self.config = config or ParserConfig()
        self.number, self.storage = build_session(self.config, number, storage)
        self.entries: list[Directive | Option] = []
        self.includes: list[Path] = []
        self.diagnostics: list[Diagnostic] = []
        self._loaded: set[Path] = set()
        self._stack: list[Path] = []

    def read(self, path: str | Path):
        """Read a root file and everything it includes."""
        path = Path(path).resolve()
        if path in self._loaded:
            logger.debug("Skipping %s: already loaded", path)
            return
        self._load(path, depth=0)

    def result(self) -> BeancountFile:
        return BeancountFile.from_entries(self.entries, includes=self.includes)

    def _load(self, path: Path, depth: int, parent: Path | None = None, include: Include | None = None):
        try:
            text = path.read_text(encoding=self.config.encoding)
        except (OSError, UnicodeDecodeError) as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            logger.warning("Cannot read %s: %s", path, reason)
            if include is None:
                self._report(DiagnosticKind.IO, f"cannot read {path}: {reason}", path=path)
            else:
                self._report(
                    DiagnosticKind.IO,
                    f"cannot read included file {include.path!r}: {reason}",
                    include,
                    parent,
                    target=path,
                )
            return

        logger.debug("Reading %s", path)
        self._loaded.add(path)
        if include is not None:
            self.includes.append(path)

        self._stack.append(path)
        try:
            stream = EntryStream(text, number=self.number, storage=self.storage, path=path)
            for item in stream:
                match item:
                    case Diagnostic():
                        self.diagnostics.append(item)
                    case Include():
                        self._follow(item, path, depth)
                    case _:
                        self.entries.append(item)
        finally:
            self._stack.pop()

    def _follow(self, include: Include, parent: Path, depth: int):
        if not include.path or "\0" in include.path:
            self._report(DiagnosticKind.INVALID_INCLUDE, "invalid include path", include, parent)
            return

        try:
            target = (parent.parent / include.path).resolve()
        except (OSError, RuntimeError) as e:
            self._report(
                DiagnosticKind.INVALID_INCLUDE,
                f"cannot resolve include path {include.path!r}: {e}",
                include,
                parent,
            )
            return

        if target in self._stack:
            logger.warning("Include cycle: %s includes %s", parent, target)
            self._report(
                DiagnosticKind.INCLUDE_CYCLE,
                f"include cycle: {include.path!r} is already being read",
                include,
                parent,
                target=target,
            )
        elif target in self._loaded:
            logger.debug("Skipping include of %s from %s: already loaded", target, parent)
        elif depth + 1 > self.config.max_include_depth:
            self._report(
                DiagnosticKind.INVALID_INCLUDE,
                f"includes nested deeper than {self.config.max_include_depth} levels",
                include,
                parent,
                target=target,
            )
        else:
            self._load(target, depth + 1, parent, include)

    def _report(
        self,
        kind: DiagnosticKind,
        message: str,
        include: Include | None = None,
        parent: Path | None = None,
        target: Path | None = None,
        path: Path | None = None,
    ):
        self.diagnostics.append(
            Diagnostic(
                kind=kind,
                message=message,
                span=include.span if include else None,
                path=parent or path,
                target=target,
            )
        )


def read_files(
    *paths: str | Path,
    config: ParserConfig | None = None,
    number: NumberKind | None = None,
    storage: Storage | None = None,
) -> BeancountFile:
    """Read one or more root ledgers, following includes.

    Roots are read in the order given. Raises ParseFailure with every
    diagnostic from the whole include tree if anything was rejected or
    unreadable; ``partial`` then holds everything that was read.
    """
    if not paths:
        raise TypeError("read_files() requires at least one path")

    resolver = IncludeResolver(config=config, number=number, storage=storage)
    for path in paths:
        resolver.read(path)

    result = resolver.result()
    if resolver.diagnostics:
        raise ParseFailure(resolver.diagnostics, result)
    return result
