"""Schema provider reflecting tables through SQLAlchemy."""

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.table_schema import ColumnDef, TableSchema
from rowsandbox.domain.entities.target import Namespace
from rowsandbox.infrastructure.schema.base import SchemaProvider

logger = get_logger(__name__)


class SqlAlchemySchemaProvider(SchemaProvider):
    """Reads column names, types, nullability and primary key by reflection.

    The namespace's `schema` is passed to the inspector; its `database`
    is implied by the engine.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def get_table_schema(self, namespace: Namespace, table_name: str) -> TableSchema | None:
        def reflect(sync_conn: Any) -> TableSchema | None:
            inspector = inspect(sync_conn)
            if not inspector.has_table(table_name, schema=namespace.schema):
                return None
            pk = set(
                inspector.get_pk_constraint(table_name, schema=namespace.schema).get(
                    "constrained_columns"
                )
                or []
            )
            columns = tuple(
                ColumnDef(
                    name=col["name"],
                    data_type=str(col["type"]),
                    nullable=bool(col.get("nullable", True)) and col["name"] not in pk,
                    is_primary_key=col["name"] in pk,
                )
                for col in inspector.get_columns(table_name, schema=namespace.schema)
            )
            return TableSchema(columns=columns)

        async with self.engine.connect() as connection:
            schema = await connection.run_sync(reflect)

        logger.debug(
            "Reflected table schema",
            table=table_name,
            schema=namespace.schema,
            found=schema is not None,
        )
        return schema
