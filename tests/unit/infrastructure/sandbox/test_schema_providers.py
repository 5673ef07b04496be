import pytest

from rowsandbox.domain.entities import ColumnDef, Namespace, TableSchema, TableTarget
from rowsandbox.infrastructure.schema import (
    CachedSchemaProvider,
    InMemorySchemaProvider,
    SqlAlchemySchemaProvider,
)

SCHEMA = TableSchema(columns=(ColumnDef("id", "INTEGER", nullable=False, is_primary_key=True),))


class TestCachedSchemaProvider:
    @pytest.mark.asyncio
    async def test_caches_within_ttl(self, users):
        inner = InMemorySchemaProvider({users: SCHEMA})
        cache = CachedSchemaProvider(inner, ttl_seconds=300)

        first = await cache.get_table_schema(users.namespace, "users")
        second = await cache.get_table_schema(users.namespace, "users")

        assert first == second == SCHEMA
        assert inner.fetch_count == 1
        assert cache.size() == 1

    @pytest.mark.asyncio
    async def test_missing_tables_are_cached_too(self, users):
        inner = InMemorySchemaProvider()
        cache = CachedSchemaProvider(inner)

        assert await cache.get_table_schema(users.namespace, "users") is None
        assert await cache.get_table_schema(users.namespace, "users") is None
        assert inner.fetch_count == 1

    @pytest.mark.asyncio
    async def test_expired_entries_are_refetched(self, users):
        inner = InMemorySchemaProvider({users: SCHEMA})
        cache = CachedSchemaProvider(inner, ttl_seconds=-1)

        await cache.get_table_schema(users.namespace, "users")
        await cache.get_table_schema(users.namespace, "users")

        assert inner.fetch_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_scopes(self, users):
        orders = TableTarget.of("app", "orders")
        other = TableTarget.of("other", "users")
        inner = InMemorySchemaProvider({users: SCHEMA, orders: SCHEMA, other: SCHEMA})
        cache = CachedSchemaProvider(inner)
        for target in (users, orders, other):
            await cache.get_table_schema(target.namespace, target.table_name)

        cache.invalidate(Namespace("app"), "users")
        assert cache.size() == 2

        cache.invalidate(Namespace("app"))
        assert cache.size() == 1

        cache.invalidate()
        assert cache.size() == 0


class TestSqlAlchemySchemaProvider:
    @pytest.mark.asyncio
    async def test_reflects_table(self, engine, users, users_schema):
        provider = SqlAlchemySchemaProvider(engine)

        schema = await provider.get_table_schema(users.namespace, "users")

        assert schema == users_schema

    @pytest.mark.asyncio
    async def test_missing_table(self, engine, users):
        provider = SqlAlchemySchemaProvider(engine)

        assert await provider.get_table_schema(users.namespace, "nope") is None
