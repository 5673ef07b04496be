"""Base abstraction for the schema-cache collaborator."""

from abc import ABC, abstractmethod

from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import Namespace


class SchemaProvider(ABC):
    """Resolves the live structure of a remote table."""

    @abstractmethod
    async def get_table_schema(self, namespace: Namespace, table_name: str) -> TableSchema | None:
        """Return the live schema, or None when the table cannot be resolved."""
        ...

    def invalidate(self, namespace: Namespace | None = None, table_name: str | None = None) -> None:
        """Forget cached structure. Providers without a cache ignore this."""
        return None
