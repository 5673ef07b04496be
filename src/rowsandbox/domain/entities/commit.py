"""Commit, script-generation and staging outcomes.

Validation and execution failures are returned as values so that callers
can render inline messages instead of handling exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from rowsandbox.domain.entities.change import ChangeRecord
from rowsandbox.domain.entities.validation import ValidationReport


class CommitStatus(str, Enum):
    APPLIED = "applied"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    VALIDATION_FAILED = "validation_failed"
    STALE_VALIDATION = "stale_validation"
    IN_PROGRESS = "in_progress"
    EXECUTION_FAILED = "execution_failed"


@dataclass(frozen=True)
class FailedChangeRef:
    """An executor-reported failure mapped back to the staged change.

    Attributes:
        index: Position of the change in the submitted batch.
        error: Executor error message.
        change_id: Id of the staged change at that position, if known.
    """

    index: int
    error: str
    change_id: Optional[str] = None


@dataclass
class CommitOutcome:
    """Result of a commit attempt."""

    status: CommitStatus
    applied_count: int = 0
    error: Optional[str] = None
    failed_changes: list[FailedChangeRef] = field(default_factory=list)
    validation: Optional[ValidationReport] = None
    journal_cleared: bool = False

    @property
    def success(self) -> bool:
        return self.status == CommitStatus.APPLIED

    @property
    def failed_change_ids(self) -> set[str]:
        return {f.change_id for f in self.failed_changes if f.change_id}


@dataclass
class ScriptOutcome:
    """Result of generating a migration script for review."""

    sql: Optional[str] = None
    statement_count: int = 0
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None
    validation: Optional[ValidationReport] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class StageOutcome:
    """Result of a staging call made through the service facade.

    Attributes:
        accepted: False when the journal refused the edit.
        change: Live record for the row; None when refused or when an
            insert was annihilated by a delete.
        error: Reason the edit was refused.
        conflicting_change_id: Live change that caused a conflict.
    """

    accepted: bool
    change: Optional[ChangeRecord] = None
    error: Optional[str] = None
    conflicting_change_id: Optional[str] = None
