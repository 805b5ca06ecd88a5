"""Stores for lending entities."""

from lendbook.store.base import LendingStore, check_writable
from lendbook.store.memory import LendingDataStore

__all__ = ["LendingDataStore", "LendingStore", "check_writable"]
