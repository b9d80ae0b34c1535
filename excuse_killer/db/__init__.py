"""
Persistence layer

The key-value store is an injected capability (``KeyValueStore``); every
component reads and writes through a ``StoreAdapter`` built on top of it.
"""

from excuse_killer.db.store import KeyValueStore, MemoryKeyValueStore, JsonFileKeyValueStore
from excuse_killer.db.adapter import StoreAdapter

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "StoreAdapter",
]
