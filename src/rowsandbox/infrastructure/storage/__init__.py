"""Local key-value stores for sandbox state and backups."""

from rowsandbox.infrastructure.storage.base import KeyValueStore
from rowsandbox.infrastructure.storage.file_store import FileKeyValueStore
from rowsandbox.infrastructure.storage.memory_store import MemoryKeyValueStore

__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
]
