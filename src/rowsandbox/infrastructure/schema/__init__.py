"""Schema-cache collaborator implementations."""

from rowsandbox.infrastructure.schema.base import SchemaProvider
from rowsandbox.infrastructure.schema.cached_provider import CachedSchemaProvider
from rowsandbox.infrastructure.schema.memory_provider import InMemorySchemaProvider
from rowsandbox.infrastructure.schema.sqlalchemy_provider import SqlAlchemySchemaProvider

__all__ = [
    "CachedSchemaProvider",
    "InMemorySchemaProvider",
    "SchemaProvider",
    "SqlAlchemySchemaProvider",
]
