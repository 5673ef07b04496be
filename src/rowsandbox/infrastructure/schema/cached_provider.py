"""TTL cache in front of a schema provider.

The surrounding application invalidates entries when it runs DDL; the
sandbox re-validates on that signal.
"""

import time
from dataclasses import dataclass

from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import Namespace, TableTarget
from rowsandbox.infrastructure.schema.base import SchemaProvider

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with TTL support.

    Attributes:
        value: The cached schema (None is cached too: "table not found").
        expires_at: Unix timestamp when this entry expires.
    """

    value: TableSchema | None
    expires_at: float


class CachedSchemaProvider(SchemaProvider):
    """Caches another provider's answers for `ttl_seconds`."""

    def __init__(self, inner: SchemaProvider, ttl_seconds: int = 300) -> None:
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._cache: dict[TableTarget, CacheEntry] = {}

    async def get_table_schema(self, namespace: Namespace, table_name: str) -> TableSchema | None:
        target = TableTarget(namespace, table_name)
        entry = self._cache.get(target)
        if entry is not None and time.time() <= entry.expires_at:
            return entry.value

        value = await self.inner.get_table_schema(namespace, table_name)
        self._cache[target] = CacheEntry(value=value, expires_at=time.time() + self.ttl_seconds)
        return value

    def invalidate(self, namespace: Namespace | None = None, table_name: str | None = None) -> None:
        """Drop one table, every table of a namespace, or everything."""
        if namespace is None:
            removed = len(self._cache)
            self._cache.clear()
        else:
            doomed = [
                t for t in self._cache
                if t.namespace == namespace and (table_name is None or t.table_name == table_name)
            ]
            for target in doomed:
                del self._cache[target]
            removed = len(doomed)
        self.inner.invalidate(namespace, table_name)
        logger.debug("Schema cache invalidated", removed=removed, table=table_name)

    def size(self) -> int:
        return len(self._cache)
