"""In-memory key-value store."""

from rowsandbox.core.exceptions import StorageError
from rowsandbox.infrastructure.storage.base import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    """Key-value store kept in a dict.

    Args:
        max_bytes: Optional quota over the sum of stored values.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self._data: dict[str, bytes] = {}
        self.max_bytes = max_bytes

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        if self.max_bytes is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self.max_bytes:
                raise StorageError(
                    f"Storage quota exceeded ({used + len(value)} > {self.max_bytes} bytes)",
                    key=key,
                )
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
