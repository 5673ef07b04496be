"""Validation results for a staged journal."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from rowsandbox.domain.entities.change import ChangeRecord


class IssueSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class IssueCode(str, Enum):
    """Machine readable validation issue codes."""

    SCHEMA_MISSING = "schema_missing"
    SCHEMA_DRIFT = "schema_drift"
    NO_PRIMARY_KEY = "no_primary_key"
    MISSING_IDENTITY = "missing_primary_key_on_change"


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation finding.

    Attributes:
        severity: Errors block commit, warnings do not.
        code: Issue code.
        table: Display name of the table concerned.
        message: Human readable message.
        change_id: The offending change, when the issue is change specific.
    """

    severity: IssueSeverity
    code: IssueCode
    table: str
    message: str
    change_id: Optional[str] = None


@dataclass
class ValidationReport:
    """Outcome of validating a journal against the live schema.

    `changes` is the immutable copy of the journal taken when validation
    started. A report only authorizes a commit while it still equals the
    journal (see `is_current`).
    """

    issues: list[ValidationIssue] = field(default_factory=list)
    changes: tuple[ChangeRecord, ...] = field(default_factory=tuple)

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def errors(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def ok(self) -> bool:
        return not self.errors

    def errors_for_change(self, change_id: str) -> list[str]:
        return [
            i.message
            for i in self.issues
            if i.severity == IssueSeverity.ERROR and i.change_id == change_id
        ]

    def is_current(self, changes: list[ChangeRecord]) -> bool:
        """Whether the journal still equals the snapshot that was validated."""
        return list(self.changes) == list(changes)
