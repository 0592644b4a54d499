"""
Abstract Ledger Store
=====================

The ledger hands its whole map to a store after every mutation and reads it
back once at startup.  Implementations decide where the bytes go.
"""

from abc import ABC, abstractmethod
from typing import Any


class LedgerStore(ABC):
    """
    Abstract interface for ledger persistence.

    Implementations:
    - JsonFileStore: flat JSON object on disk, rewritten in full
    - InMemoryStore: keeps the last snapshot in memory (tests, ephemeral runs)
    """

    @abstractmethod
    def load(self) -> dict[str, dict[str, Any]]:
        """Return the persisted token -> record mapping, in creation order"""
        pass

    @abstractmethod
    def save(self, records: dict[str, dict[str, Any]]) -> None:
        """Replace the persisted mapping with ``records``"""
        pass
