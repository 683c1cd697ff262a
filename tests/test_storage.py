"""Tests for string storage strategies."""

import pytest

from beanparse.ast import Account
from beanparse.storage import CopyingStorage, SharedStorage, new_storage


class TestStorage:
    def test_shared_reuses_values(self):
        storage = SharedStorage()
        first = storage.get("Assets:Cash", Account.parse)
        second = storage.get("Assets:Cash", Account.parse)
        assert first is second
        assert len(storage) == 1

    def test_shared_keys_by_factory(self):
        """The same text built by different factories gives different values."""
        storage = SharedStorage()
        assert storage.text("Assets") == "Assets"
        assert isinstance(storage.get("Assets", Account.parse), Account)
        assert len(storage) == 2

    def test_copying_builds_fresh_values(self):
        storage = CopyingStorage()
        first = storage.get("Assets:Cash", Account.parse)
        second = storage.get("Assets:Cash", Account.parse)
        assert first == second
        assert first is not second

    def test_new_storage(self):
        assert isinstance(new_storage("shared"), SharedStorage)
        assert isinstance(new_storage("copy"), CopyingStorage)
        with pytest.raises(ValueError, match="Unknown storage mode"):
            new_storage("mmap")
