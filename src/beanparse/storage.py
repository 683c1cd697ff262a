"""String storage strategies.

The grammar builds every retained textual value (strings, accounts,
currencies, tags) through a :class:`Storage`. A shared storage hands back one
object per distinct text, so a ledger mentioning ``Assets:Cash`` ten thousand
times holds a single ``Account``. A copying storage builds a fresh value each
time, detached from everything else. Both produce equal results.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


class Storage(ABC):
    mode: str = ""

    @abstractmethod
    def get(self, text: str, factory: Callable[[str], T]) -> T:
        """Return the value ``factory(text)`` under this storage policy."""

    def text(self, text: str) -> str:
        return self.get(text, str)


class SharedStorage(Storage):
    """Builds each distinct value once per session and reuses it."""

    mode = "shared"

    def __init__(self):
        self._values: dict[tuple[Any, str], Any] = {}

    def get(self, text: str, factory: Callable[[str], T]) -> T:
        key = (factory, text)
        try:
            return self._values[key]
        except KeyError:
            value = self._values[key] = factory(text)
            return value

    def __len__(self) -> int:
        return len(self._values)


class CopyingStorage(Storage):
    """Builds every value afresh from a private copy of its text."""

    mode = "copy"

    def get(self, text: str, factory: Callable[[str], T]) -> T:
        return factory("".join(text))


STORAGE_MODES: dict[str, type[Storage]] = {
    SharedStorage.mode: SharedStorage,
    CopyingStorage.mode: CopyingStorage,
}


def new_storage(mode: str = "shared") -> Storage:
    try:
        return STORAGE_MODES[mode]()
    except KeyError:
        raise ValueError(f"Unknown storage mode {mode!r}") from None
