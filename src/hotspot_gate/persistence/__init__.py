"""
Persistence Layer
=================

Abstract store interface for the token ledger plus its implementations.
The ledger never touches files directly; swap the store to change backends.
"""

from .json_store import InMemoryStore, JsonFileStore
from .repositories import LedgerStore

__all__ = [
    "InMemoryStore",
    "JsonFileStore",
    "LedgerStore",
]
