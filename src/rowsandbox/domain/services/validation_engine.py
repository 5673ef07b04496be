"""Validation of staged changes against the live schema.

Runs before a commit or script generation. The live schema is fetched once
per distinct table referenced by the journal. Errors block the commit,
warnings are surfaced but do not.
"""

import asyncio
from typing import TYPE_CHECKING, Iterable, Optional, Protocol

from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.change import ChangeRecord
from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import TableTarget
from rowsandbox.domain.entities.validation import (
    IssueCode,
    IssueSeverity,
    ValidationIssue,
    ValidationReport,
)
from rowsandbox.domain.services.change_journal import ChangeJournal
from rowsandbox.domain.services.schema_compare import compare_schemas

if TYPE_CHECKING:
    from rowsandbox.infrastructure.schema.base import SchemaProvider

logger = get_logger(__name__)


class JournalSource(Protocol):
    """Anything that can hand out the journal of a session."""

    def get_journal(self, session_id: str) -> ChangeJournal: ...


class ValidationEngine:
    """Cross-checks staged changes with the live schema.

    Per table:
    - schema cannot be fetched        -> warning (destination may not exist yet)
    - snapshot differs from live      -> error (schema drift)
    - update/delete but no live PK    -> warning
    - update/delete without identity  -> error for that change
    """

    def __init__(
        self,
        schema_provider: "SchemaProvider",
        journals: Optional[JournalSource] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            schema_provider: Schema-cache collaborator.
            journals: Source of session journals, required by `validate`.
        """
        self.schema_provider = schema_provider
        self.journals = journals

    async def validate(self, session_id: str) -> ValidationReport:
        """Validate the journal of a session.

        The report carries the immutable copy of the journal that was
        validated; use `ValidationReport.is_current` before acting on it.
        """
        if self.journals is None:
            raise RuntimeError("ValidationEngine.validate requires a journal source")
        journal = self.journals.get_journal(session_id)
        return await self.validate_changes(journal.export())

    async def validate_changes(self, changes: Iterable[ChangeRecord]) -> ValidationReport:
        """Validate an explicit list of changes."""
        snapshot = tuple(change.clone() for change in changes)

        tables: dict[TableTarget, list[ChangeRecord]] = {}
        for change in snapshot:
            tables.setdefault(change.target, []).append(change)

        targets = list(tables)
        live_schemas = await asyncio.gather(*(self._fetch_schema(t) for t in targets))

        issues: list[ValidationIssue] = []
        for target, live in zip(targets, live_schemas):
            issues.extend(self._check_table(target, tables[target], live))

        report = ValidationReport(issues=issues, changes=snapshot)
        logger.debug(
            "Validation completed",
            tables=len(targets),
            changes=len(snapshot),
            errors=len(report.errors),
            warnings=len(report.warnings),
        )
        return report

    async def _fetch_schema(self, target: TableTarget) -> Optional[TableSchema]:
        try:
            return await self.schema_provider.get_table_schema(
                target.namespace, target.table_name
            )
        except Exception as e:
            logger.warning(
                "Schema fetch failed",
                table=target.display_name,
                error=str(e),
            )
            return None

    def _check_table(
        self,
        target: TableTarget,
        changes: list[ChangeRecord],
        live: Optional[TableSchema],
    ) -> list[ValidationIssue]:
        table = target.display_name
        issues: list[ValidationIssue] = []

        if live is None:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    code=IssueCode.SCHEMA_MISSING,
                    table=table,
                    message=f"Schema missing for {table}; the table may not exist yet",
                )
            )
        else:
            drifted = [
                (change, compare_schemas(change.schema_snapshot, live))
                for change in changes
                if change.schema_snapshot is not None
            ]
            drifted = [(change, diffs) for change, diffs in drifted if diffs]
            if drifted:
                details = "; ".join(d.message for d in drifted[0][1])
                issues.append(
                    ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        code=IssueCode.SCHEMA_DRIFT,
                        table=table,
                        message=f"Schema drift on {table}: {details}",
                    )
                )
                for change, _ in drifted:
                    issues.append(
                        ValidationIssue(
                            severity=IssueSeverity.ERROR,
                            code=IssueCode.SCHEMA_DRIFT,
                            table=table,
                            message=f"Change {change.id} on {table} was staged against an outdated schema",
                            change_id=change.id,
                        )
                    )

            has_writes = any(change.targets_existing_row for change in changes)
            if has_writes and not live.primary_key:
                issues.append(
                    ValidationIssue(
                        severity=IssueSeverity.WARNING,
                        code=IssueCode.NO_PRIMARY_KEY,
                        table=table,
                        message=f"No primary key on {table}; updates and deletes may target the wrong rows",
                    )
                )

        for change in changes:
            if change.targets_existing_row and not change.identity:
                issues.append(
                    ValidationIssue(
                        severity=IssueSeverity.ERROR,
                        code=IssueCode.MISSING_IDENTITY,
                        table=table,
                        message=f"Missing primary key on {change.kind.value} change {change.id} for {table}",
                        change_id=change.id,
                    )
                )

        return issues
