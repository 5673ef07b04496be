"""Schema provider backed by a dict of known tables."""

from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import Namespace, TableTarget
from rowsandbox.infrastructure.schema.base import SchemaProvider


class InMemorySchemaProvider(SchemaProvider):
    """Serves schemas registered with `set_schema`."""

    def __init__(self, schemas: dict[TableTarget, TableSchema] | None = None) -> None:
        self._schemas: dict[TableTarget, TableSchema] = dict(schemas or {})
        self.fetch_count = 0

    def set_schema(self, target: TableTarget, schema: TableSchema) -> None:
        self._schemas[target] = schema

    def drop_schema(self, target: TableTarget) -> None:
        self._schemas.pop(target, None)

    async def get_table_schema(self, namespace: Namespace, table_name: str) -> TableSchema | None:
        self.fetch_count += 1
        return self._schemas.get(TableTarget(namespace, table_name))
