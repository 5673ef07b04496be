"""Sandbox service: the entry point used by the surrounding application.

Wires the store, validation, commit orchestration and backups together
and applies the error propagation policy: staging conflicts are refused
with a StageOutcome instead of raised, validation and execution failures
come back as outcome values unless the caller asks for exceptions.
"""

from typing import Any, Mapping, Optional

from rowsandbox.application.services.backup_manager import BackupManager
from rowsandbox.application.services.commit_orchestrator import CommitOrchestrator
from rowsandbox.application.services.overlay_view import OverlayView
from rowsandbox.application.services.sandbox_store import SandboxStore
from rowsandbox.core.config import Settings, get_settings
from rowsandbox.core.events import EventBus, SandboxEvent, SandboxEventName
from rowsandbox.core.exceptions import (
    ChangeValidationError,
    ConflictError,
    ExecutionError,
    InvalidValueError,
    JournalLimitError,
)
from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.change import ChangeKind, ChangeRecord
from rowsandbox.domain.entities.commit import (
    CommitOutcome,
    CommitStatus,
    ScriptOutcome,
    StageOutcome,
)
from rowsandbox.domain.entities.overlay import OverlayResult, QueryResult
from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import Namespace, TableTarget
from rowsandbox.domain.entities.validation import ValidationReport
from rowsandbox.domain.services.overlay_engine import (
    OverlayOptions,
    apply_overlay,
    empty_overlay_result,
)
from rowsandbox.domain.services.validation_engine import ValidationEngine
from rowsandbox.infrastructure.execution.base import ChangeExecutor, MigrationCompiler
from rowsandbox.infrastructure.persistence.backup_repository import BackupRepository
from rowsandbox.infrastructure.persistence.state_repository import SandboxStateRepository
from rowsandbox.infrastructure.schema.base import SchemaProvider
from rowsandbox.infrastructure.schema.cached_provider import CachedSchemaProvider
from rowsandbox.infrastructure.storage.base import KeyValueStore

logger = get_logger(__name__)


class SandboxService:
    """Facade over the sandbox components."""

    def __init__(
        self,
        store: SandboxStore,
        schema_provider: SchemaProvider,
        compiler: MigrationCompiler,
        executor: ChangeExecutor,
        backups: Optional[BackupManager] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Sandbox store owning journals and preferences.
            schema_provider: Schema-cache collaborator.
            compiler: Migration-compiler collaborator.
            executor: Executor collaborator.
            backups: Backup manager, if crash recovery is wanted.
            settings: Application settings.
        """
        self.settings = settings or get_settings()
        self.store = store
        self.schema_provider = schema_provider
        self.validation_engine = ValidationEngine(schema_provider, journals=store)
        self.orchestrator = CommitOrchestrator(
            store,
            self.validation_engine,
            compiler,
            executor,
            bus=store.bus,
            settings=self.settings,
        )
        self.backups = backups

    @classmethod
    def create(
        cls,
        schema_provider: SchemaProvider,
        compiler: MigrationCompiler,
        executor: ChangeExecutor,
        kv_store: Optional[KeyValueStore] = None,
        settings: Optional[Settings] = None,
    ) -> "SandboxService":
        """Build a fully wired service.

        The schema provider is wrapped in a TTL cache. Without a key-value
        store the sandbox lives in memory only and has no backups.
        """
        settings = settings or get_settings()
        bus = EventBus()
        store = SandboxStore(
            bus=bus,
            state_repository=SandboxStateRepository(kv_store) if kv_store else None,
            settings=settings,
        )
        backups = (
            BackupManager(BackupRepository(kv_store), store, settings=settings)
            if kv_store
            else None
        )
        cached = CachedSchemaProvider(schema_provider, ttl_seconds=settings.schema_cache_ttl_seconds)
        return cls(store, cached, compiler, executor, backups=backups, settings=settings)

    @property
    def bus(self) -> EventBus:
        return self.store.bus

    # ------------------------------------------------------------------
    # Staging

    def stage(
        self,
        session_id: str,
        kind: ChangeKind | str,
        target: TableTarget,
        identity: Optional[Mapping[str, Any]] = None,
        values: Optional[Mapping[str, Any]] = None,
        old_values: Optional[Mapping[str, Any]] = None,
        schema: Optional[TableSchema] = None,
    ) -> StageOutcome:
        """Stage an edit; conflicts, limits and bad values are refused, never raised."""
        journal = self.store.get_journal(session_id)
        try:
            change = journal.stage(
                kind,
                target,
                identity=identity,
                values=values,
                old_values=old_values,
                schema=schema,
            )
        except ConflictError as e:
            return StageOutcome(
                accepted=False, error=e.message, conflicting_change_id=e.change_id
            )
        except JournalLimitError as e:
            return StageOutcome(accepted=False, error=str(e))
        except InvalidValueError as e:
            return StageOutcome(accepted=False, error=e.message)
        return StageOutcome(accepted=True, change=change)

    def list_changes(
        self, session_id: str, target: Optional[TableTarget] = None
    ) -> list[ChangeRecord]:
        return self.store.get_journal(session_id).list(target)

    def discard(
        self,
        session_id: str,
        change_id: Optional[str] = None,
        target: Optional[TableTarget] = None,
    ) -> int:
        """Discard one change, one table's changes, or everything.

        Returns:
            Number of discarded changes.
        """
        journal = self.store.get_journal(session_id)
        if change_id is not None:
            return 1 if journal.remove(change_id) else 0
        return journal.clear(target)

    # ------------------------------------------------------------------
    # Overlay

    def overlay(
        self,
        session_id: str,
        target: TableTarget,
        base: QueryResult,
        schema: Optional[TableSchema] = None,
    ) -> OverlayResult:
        """One-off overlay of a table with the current preferences."""
        if not self.store.is_active(session_id):
            return empty_overlay_result(base)
        options = OverlayOptions(
            delete_display=self.store.get_preferences().delete_display,
            target=target,
        )
        journal = self.store.get_journal(session_id)
        return apply_overlay(base, journal.list(target), schema, options)

    def open_view(
        self,
        session_id: str,
        target: TableTarget,
        base: QueryResult,
        schema: Optional[TableSchema] = None,
    ) -> OverlayView:
        return OverlayView(self.store, session_id, target, base, schema)

    # ------------------------------------------------------------------
    # Validation / commit

    async def validate(self, session_id: str) -> ValidationReport:
        report = await self.validation_engine.validate(session_id)
        self.bus.emit(
            SandboxEvent(
                SandboxEventName.ON_VALIDATION_COMPLETED,
                session_id,
                {"errors": len(report.errors), "warnings": len(report.warnings)},
            )
        )
        return report

    async def generate_script(self, session_id: str) -> ScriptOutcome:
        return await self.orchestrator.generate_script(session_id)

    async def commit(
        self,
        session_id: str,
        use_atomic_transaction: bool = True,
        raise_on_failure: bool = False,
    ) -> CommitOutcome:
        """Commit the session's journal.

        Args:
            session_id: Session to commit.
            use_atomic_transaction: Ask the executor for all-or-nothing.
            raise_on_failure: Raise ChangeValidationError/ExecutionError
                instead of returning a failed outcome.
        """
        outcome = await self.orchestrator.commit(session_id, use_atomic_transaction)
        if not raise_on_failure:
            return outcome
        if outcome.status == CommitStatus.VALIDATION_FAILED and outcome.validation:
            raise ChangeValidationError(outcome.validation)
        if outcome.status == CommitStatus.EXECUTION_FAILED:
            raise ExecutionError(outcome.error or "Commit failed", outcome.failed_changes)
        return outcome

    async def handle_schema_invalidation(
        self,
        namespace: Optional[Namespace] = None,
        table_name: Optional[str] = None,
    ) -> dict[str, ValidationReport]:
        """React to DDL in the surrounding app.

        Drops cached schemas and re-validates every active session with
        pending changes. Journals are never modified here.

        Returns:
            Fresh validation reports keyed by session id.
        """
        self.schema_provider.invalidate(namespace, table_name)
        self.bus.emit(
            SandboxEvent(
                SandboxEventName.ON_SCHEMA_INVALIDATED,
                data={
                    "database": namespace.database if namespace else None,
                    "table_name": table_name,
                },
            )
        )
        reports: dict[str, ValidationReport] = {}
        for session_id in self.store.session_ids():
            journal = self.store.get_journal(session_id)
            if journal.is_active and journal.has_pending():
                reports[session_id] = await self.validate(session_id)
        logger.info("Revalidated after schema invalidation", sessions=len(reports))
        return reports
