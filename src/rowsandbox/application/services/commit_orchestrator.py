"""Commit orchestration: validate, serialize, delegate, clean up.

Two suspension points exist. Schema fetches during validation may
interleave with further staging, so a validation result only authorizes a
commit while its snapshot still equals the journal; otherwise validation
is re-run. The executor call is single-flight per session.
"""

from typing import Optional

from pydantic import ValidationError

from rowsandbox.core.config import Settings, get_settings
from rowsandbox.core.events import EventBus, SandboxEvent, SandboxEventName
from rowsandbox.core.logging import LoggingContext, get_logger
from rowsandbox.domain.entities.change import ChangeRecord
from rowsandbox.domain.entities.commit import (
    CommitOutcome,
    CommitStatus,
    FailedChangeRef,
    ScriptOutcome,
)
from rowsandbox.domain.entities.validation import ValidationReport
from rowsandbox.domain.services.change_journal import ChangeJournal
from rowsandbox.domain.services.validation_engine import JournalSource, ValidationEngine
from rowsandbox.infrastructure.execution.base import ChangeExecutor, MigrationCompiler
from rowsandbox.infrastructure.wire.dto import ApplyResult
from rowsandbox.infrastructure.wire.mappers import change_to_dto

logger = get_logger(__name__)


class CommitOrchestrator:
    """Drives script generation and commits for sandbox sessions."""

    def __init__(
        self,
        journals: JournalSource,
        validation_engine: ValidationEngine,
        compiler: MigrationCompiler,
        executor: ChangeExecutor,
        bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            journals: Source of session journals (usually the SandboxStore).
            validation_engine: Engine used before every commit/script.
            compiler: Migration-compiler collaborator.
            executor: Executor collaborator.
            bus: Event bus for commit notifications.
            settings: Application settings.
        """
        self.journals = journals
        self.validation_engine = validation_engine
        self.compiler = compiler
        self.executor = executor
        self.bus = bus or EventBus()
        self.settings = settings or get_settings()
        self._in_flight: set[str] = set()

    def is_committing(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def _validate_current(self, journal: ChangeJournal) -> tuple[ValidationReport, bool]:
        """Validate until the report matches the journal, within the retry budget."""
        attempts = self.settings.validation_max_attempts
        report = ValidationReport()
        for attempt in range(1, attempts + 1):
            report = await self.validation_engine.validate_changes(journal.export())
            if report.is_current(journal.list()):
                return report, True
            logger.info(
                "Journal changed during validation",
                session_id=journal.session_id,
                attempt=attempt,
            )
        return report, False

    async def generate_script(self, session_id: str) -> ScriptOutcome:
        """Validate the journal and render it as a reviewable script.

        Validation warnings are merged ahead of the compiler's own warnings.
        """
        journal = self.journals.get_journal(session_id)
        report, current = await self._validate_current(journal)
        if not current:
            return ScriptOutcome(
                error="Changes kept moving during validation; try again",
                validation=report,
            )
        if not report.ok:
            return ScriptOutcome(error="\n".join(report.errors), validation=report)

        try:
            dtos = [change_to_dto(change) for change in report.changes]
        except ValidationError as e:
            logger.warning("Changes could not be serialized", session_id=session_id, error=str(e))
            return ScriptOutcome(error=f"Changes could not be serialized: {e}", validation=report)

        try:
            script = await self.compiler.compile(session_id, dtos)
        except Exception as e:
            logger.error("Migration compiler failed", session_id=session_id, error=str(e))
            return ScriptOutcome(error=str(e), validation=report)

        return ScriptOutcome(
            sql=script.sql,
            statement_count=script.statement_count,
            warnings=report.warnings + list(script.warnings),
            validation=report,
        )

    async def commit(self, session_id: str, use_atomic_transaction: bool = True) -> CommitOutcome:
        """Validate and apply the journal of a session.

        Returns:
            CommitOutcome. On success the committed changes leave the journal
            and the session is deactivated once its journal is empty. On
            failure the journal is kept, see `partial_commit_policy`.
        """
        if session_id in self._in_flight:
            logger.warning("Commit refused, already in progress", session_id=session_id)
            return CommitOutcome(
                status=CommitStatus.IN_PROGRESS,
                error="A commit is already in progress for this session",
            )

        self._in_flight.add(session_id)
        try:
            with LoggingContext(session_id=session_id):
                outcome = await self._commit(session_id, use_atomic_transaction)
        finally:
            self._in_flight.discard(session_id)

        self.bus.emit(
            SandboxEvent(
                SandboxEventName.ON_COMMIT_COMPLETED,
                session_id,
                {
                    "status": outcome.status.value,
                    "applied_count": outcome.applied_count,
                    "journal_cleared": outcome.journal_cleared,
                },
            )
        )
        return outcome

    async def _commit(self, session_id: str, atomic: bool) -> CommitOutcome:
        journal = self.journals.get_journal(session_id)
        if not journal.has_pending():
            return CommitOutcome(status=CommitStatus.NOTHING_TO_COMMIT)

        report, current = await self._validate_current(journal)
        if not current:
            logger.warning("Commit refused, validation went stale")
            return CommitOutcome(
                status=CommitStatus.STALE_VALIDATION,
                error="Changes kept moving during validation; try again",
                validation=report,
            )
        if not report.ok:
            logger.info("Commit blocked by validation", errors=len(report.errors))
            return CommitOutcome(
                status=CommitStatus.VALIDATION_FAILED,
                error="\n".join(report.errors),
                validation=report,
            )

        changes = list(report.changes)
        try:
            dtos = [change_to_dto(change) for change in changes]
        except ValidationError as e:
            logger.warning("Commit blocked, changes could not be serialized", error=str(e))
            return CommitOutcome(
                status=CommitStatus.VALIDATION_FAILED,
                error=f"Changes could not be serialized: {e}",
                validation=report,
            )
        logger.info("Applying sandbox changes", changes=len(dtos), atomic=atomic)
        try:
            result = await self.executor.apply(session_id, dtos, atomic)
        except Exception as e:
            logger.error("Executor failed", error=str(e))
            result = ApplyResult(success=False, error=str(e))

        if result.success:
            self._drop_committed(journal, changes)
            cleared = not journal.has_pending()
            if cleared:
                journal.deactivate()
            logger.info("Sandbox changes committed", applied=result.applied_count)
            return CommitOutcome(
                status=CommitStatus.APPLIED,
                applied_count=result.applied_count,
                validation=report,
                journal_cleared=cleared,
            )

        failed = [
            FailedChangeRef(
                index=item.index,
                error=item.error,
                change_id=changes[item.index].id if 0 <= item.index < len(changes) else None,
            )
            for item in result.failed_changes
        ]

        if (
            not atomic
            and result.applied_count > 0
            and self.settings.partial_commit_policy == "drop_applied"
        ):
            failed_indices = {item.index for item in result.failed_changes}
            applied = [c for idx, c in enumerate(changes) if idx not in failed_indices]
            self._drop_committed(journal, applied)

        logger.warning(
            "Sandbox commit failed",
            error=result.error,
            applied=result.applied_count,
            failed=len(failed),
        )
        return CommitOutcome(
            status=CommitStatus.EXECUTION_FAILED,
            applied_count=result.applied_count,
            error=result.error or "Commit failed",
            failed_changes=failed,
            validation=report,
        )

    @staticmethod
    def _drop_committed(journal: ChangeJournal, committed: list[ChangeRecord]) -> None:
        """Remove committed records that were not edited while the commit ran."""
        by_id = {change.id: change for change in committed}
        done = [live.id for live in journal.list() if by_id.get(live.id) == live]
        kept = [live.id for live in journal.list() if live.id in by_id and live.id not in done]
        if kept:
            logger.warning(
                "Changes edited during commit were kept",
                session_id=journal.session_id,
                kept=len(kept),
            )
        journal.remove_many(done)
