"""Domain entities for RowSandbox.

Entities are pure Python dataclasses that represent the sandbox concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from rowsandbox.domain.entities.change import (
    ChangeGroup,
    ChangeKind,
    ChangeRecord,
    ColumnDiff,
    Value,
    generate_change_id,
)
from rowsandbox.domain.entities.commit import (
    CommitOutcome,
    CommitStatus,
    FailedChangeRef,
    ScriptOutcome,
    StageOutcome,
)
from rowsandbox.domain.entities.overlay import (
    OverlayResult,
    OverlayStats,
    QueryResult,
    RowMeta,
)
from rowsandbox.domain.entities.session import (
    DeleteDisplay,
    JournalBackup,
    SandboxPreferences,
    SandboxSession,
)
from rowsandbox.domain.entities.table_schema import ColumnDef, TableSchema
from rowsandbox.domain.entities.target import Namespace, TableTarget
from rowsandbox.domain.entities.validation import (
    IssueCode,
    IssueSeverity,
    ValidationIssue,
    ValidationReport,
)

__all__ = [
    "ChangeGroup",
    "ChangeKind",
    "ChangeRecord",
    "ColumnDef",
    "ColumnDiff",
    "CommitOutcome",
    "CommitStatus",
    "DeleteDisplay",
    "FailedChangeRef",
    "IssueCode",
    "JournalBackup",
    "IssueSeverity",
    "Namespace",
    "OverlayResult",
    "OverlayStats",
    "QueryResult",
    "RowMeta",
    "SandboxPreferences",
    "SandboxSession",
    "ScriptOutcome",
    "StageOutcome",
    "TableSchema",
    "TableTarget",
    "ValidationIssue",
    "ValidationReport",
    "Value",
    "generate_change_id",
]
