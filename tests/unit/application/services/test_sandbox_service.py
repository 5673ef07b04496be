"""Unit tests for the SandboxService facade."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from rowsandbox.application.services import SandboxService, SandboxStore
from rowsandbox.core.events import SandboxEventName
from rowsandbox.core.exceptions import ChangeValidationError, ExecutionError
from rowsandbox.domain.entities import (
    ColumnDef,
    CommitStatus,
    DeleteDisplay,
    QueryResult,
    TableSchema,
    TableTarget,
)
from rowsandbox.infrastructure.schema import CachedSchemaProvider, InMemorySchemaProvider
from rowsandbox.infrastructure.storage import MemoryKeyValueStore
from rowsandbox.infrastructure.wire import ApplyResult, FailedChange


@pytest.fixture
def provider(users, users_schema) -> InMemorySchemaProvider:
    return InMemorySchemaProvider({users: users_schema})


@pytest.fixture
def executor() -> AsyncMock:
    executor = AsyncMock()
    executor.apply.return_value = ApplyResult(success=True, applied_count=1)
    return executor


@pytest.fixture
def service(settings, provider, executor) -> SandboxService:
    return SandboxService(
        SandboxStore(settings=settings), provider, AsyncMock(), executor, settings=settings
    )


@pytest.fixture
def base() -> QueryResult:
    return QueryResult(columns=["id", "name", "age"], rows=[[1, "Bob", 30], [2, "Alice", 25]])


class TestStaging:
    def test_stage_accepted(self, service, users, users_schema):
        service.store.activate("s-1")

        outcome = service.stage(
            "s-1", "update", users, {"id": 1}, {"name": "Bobby"}, {"name": "Bob"}, users_schema
        )

        assert outcome.accepted
        assert outcome.change.payload == {"name": "Bobby"}
        assert service.list_changes("s-1") == [outcome.change]

    def test_edit_of_deleted_row_is_refused(self, service, users):
        service.store.activate("s-1")
        deleted = service.stage("s-1", "delete", users, {"id": 2}, old_values={"name": "Alice"})

        outcome = service.stage(
            "s-1", "update", users, {"id": 2}, {"name": "Al"}, {"name": "Alice"}
        )

        assert outcome.accepted is False
        assert "staged for deletion" in outcome.error
        assert outcome.conflicting_change_id == deleted.change.id
        assert len(service.list_changes("s-1")) == 1

    def test_journal_limit_is_refused(self, settings, provider, executor, users):
        limited = settings.model_copy(update={"max_changes_per_session": 1})
        service = SandboxService(
            SandboxStore(settings=limited), provider, AsyncMock(), executor, settings=limited
        )
        service.stage("s-1", "insert", users, values={"id": 5, "name": "Eve"})

        outcome = service.stage("s-1", "insert", users, values={"id": 6, "name": "Max"})

        assert outcome.accepted is False
        assert "limited to 1" in outcome.error

    def test_non_json_value_is_refused(self, service, users):
        service.store.activate("s-1")

        outcome = service.stage(
            "s-1", "update", users, {"id": 1}, {"age": Decimal("31")}, {"age": 30}
        )

        assert outcome.accepted is False
        assert "age" in outcome.error
        assert outcome.change is None
        assert service.list_changes("s-1") == []

    def test_annihilated_insert_is_accepted(self, service, users, users_schema):
        service.stage("s-1", "insert", users, values={"id": 5, "name": "Eve"}, schema=users_schema)

        outcome = service.stage("s-1", "delete", users, {"id": 5})

        assert outcome.accepted
        assert outcome.change is None
        assert service.list_changes("s-1") == []

    def test_discard(self, service, users):
        orders = TableTarget.of("app", "orders")
        first = service.stage("s-1", "update", users, {"id": 1}, {"name": "Bobby"}).change
        service.stage("s-1", "update", users, {"id": 2}, {"name": "Al"})
        service.stage("s-1", "delete", orders, {"id": 7})

        assert service.discard("s-1", change_id=first.id) == 1
        assert service.discard("s-1", change_id=first.id) == 0
        assert service.discard("s-1", target=orders) == 1
        assert service.discard("s-1") == 1
        assert service.list_changes("s-1") == []


class TestOverlay:
    def test_overlay_respects_preferences(self, service, users, users_schema, base):
        service.store.activate("s-1")
        service.stage("s-1", "delete", users, {"id": 2}, old_values={"name": "Alice"})

        shown = service.overlay("s-1", users, base, users_schema)
        service.store.set_preferences(delete_display=DeleteDisplay.HIDDEN)
        hidden = service.overlay("s-1", users, base, users_schema)

        assert len(shown.rows) == 2
        assert shown.row_metadata[1].is_deleted
        assert hidden.rows == [[1, "Bob", 30]]
        assert hidden.stats.hidden == 1

    def test_overlay_of_inactive_session(self, service, users, users_schema, base):
        service.stage("s-1", "delete", users, {"id": 2})

        result = service.overlay("s-1", users, base, users_schema)

        assert result.rows == base.rows

    def test_open_view(self, service, users, users_schema, base):
        service.store.activate("s-1")
        view = service.open_view("s-1", users, base, users_schema)

        service.stage("s-1", "insert", users, values={"id": 5, "name": "Eve"}, schema=users_schema)

        assert view.result.rows[0] == [5, "Eve", None]
        view.close()


class TestValidationAndCommit:
    @pytest.mark.asyncio
    async def test_validate_emits_event(self, service, users, users_schema):
        events = []
        service.bus.subscribe(SandboxEventName.ON_VALIDATION_COMPLETED, events.append)
        service.stage("s-1", "delete", users, None, old_values={"id": 1})

        report = await service.validate("s-1")

        assert not report.ok
        assert events[0].session_id == "s-1"
        assert events[0].data == {"errors": 1, "warnings": 0}

    @pytest.mark.asyncio
    async def test_commit_returns_outcome(self, service, executor, users, users_schema):
        service.store.activate("s-1")
        service.stage("s-1", "insert", users, values={"id": 5, "name": "Eve"}, schema=users_schema)

        outcome = await service.commit("s-1")

        assert outcome.status == CommitStatus.APPLIED
        assert service.store.is_active("s-1") is False

    @pytest.mark.asyncio
    async def test_validation_failure_can_raise(self, service, executor, users):
        service.stage("s-1", "update", users, None, {"name": "x"})

        outcome = await service.commit("s-1")
        assert outcome.status == CommitStatus.VALIDATION_FAILED

        with pytest.raises(ChangeValidationError) as exc_info:
            await service.commit("s-1", raise_on_failure=True)
        assert exc_info.value.report.errors
        executor.apply.assert_not_called()

    @pytest.mark.asyncio
    async def test_execution_failure_can_raise(self, service, executor, users, users_schema):
        service.stage("s-1", "insert", users, values={"id": 1, "name": "Dup"}, schema=users_schema)
        executor.apply.return_value = ApplyResult(
            success=False,
            error="UNIQUE constraint failed",
            failed_changes=[FailedChange(index=0, error="UNIQUE constraint failed")],
        )

        with pytest.raises(ExecutionError) as exc_info:
            await service.commit("s-1", raise_on_failure=True)

        assert "UNIQUE" in exc_info.value.message
        assert exc_info.value.failed_changes[0].index == 0
        assert len(service.list_changes("s-1")) == 1


class TestSchemaInvalidation:
    @pytest.mark.asyncio
    async def test_revalidates_active_sessions(self, settings, executor, users, users_schema):
        inner = InMemorySchemaProvider({users: users_schema})
        service = SandboxService.create(inner, AsyncMock(), executor, settings=settings)
        service.store.activate("s-1")
        service.stage("s-1", "update", users, {"id": 1}, {"age": 31}, {"age": 30}, users_schema)
        service.stage("idle", "update", users, {"id": 2}, {"age": 26}, {"age": 25}, users_schema)
        assert (await service.validate("s-1")).ok

        inner.set_schema(
            users,
            TableSchema(columns=users_schema.columns + (ColumnDef("email", "TEXT"),)),
        )
        events = []
        service.bus.subscribe(SandboxEventName.ON_SCHEMA_INVALIDATED, events.append)

        reports = await service.handle_schema_invalidation(users.namespace, "users")

        assert list(reports) == ["s-1"]
        assert not reports["s-1"].ok
        assert "email" in reports["s-1"].errors[0]
        assert events[0].data == {"database": "app", "table_name": "users"}
        assert len(service.list_changes("s-1")) == 1


class TestCreate:
    def test_create_without_store_has_no_backups(self, settings, provider, executor):
        service = SandboxService.create(provider, AsyncMock(), executor, settings=settings)

        assert service.backups is None
        assert isinstance(service.schema_provider, CachedSchemaProvider)
        assert service.store.state_repository is None

    def test_create_with_store(self, settings, provider, executor, users):
        kv = MemoryKeyValueStore()
        service = SandboxService.create(
            provider, AsyncMock(), executor, kv_store=kv, settings=settings
        )
        service.stage("s-1", "insert", users, values={"id": 5, "name": "Eve"})

        assert service.backups is not None
        assert service.backups.store is service.store

        reloaded = SandboxService.create(
            provider, AsyncMock(), executor, kv_store=kv, settings=settings
        )
        assert len(reloaded.list_changes("s-1")) == 1
