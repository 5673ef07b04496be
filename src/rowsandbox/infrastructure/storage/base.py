"""Base abstraction for local key-value stores."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Opaque get/set byte store used for crash-recovery persistence.

    Implementations raise StorageError when the underlying medium fails
    (quota, permissions, corrupt file).
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored bytes, or None when the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store bytes under a key, replacing any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys."""
        ...
