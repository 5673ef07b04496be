"""Change records: one staged mutation of one logical row."""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import Namespace, TableTarget

# JSON-shaped cell value: None, bool, int, float, str, list or dict.
Value = Any


class ChangeKind(str, Enum):
    """Kind of staged mutation."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


def generate_change_id() -> str:
    """Generate a unique change identifier."""
    return f"change_{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChangeRecord:
    """A staged mutation.

    Attributes:
        id: Unique identifier generated at staging time.
        kind: insert, update or delete. Changes as edits coalesce.
        timestamp: Staging time, used for display ordering only.
        session_id: Live connection session the change targets.
        target: Remote table the change applies to.
        identity: Primary-key column to value mapping. Required for update
            and delete, absent for inserts.
        baseline: Column values captured at first staging ("before").
            Entries are never overwritten once set.
        payload: Intended column values after all coalesced edits ("after").
        schema_snapshot: Table structure at creation time, used only for
            drift detection.
    """

    kind: ChangeKind
    session_id: str
    target: TableTarget
    identity: Optional[dict[str, Value]] = None
    baseline: dict[str, Value] = field(default_factory=dict)
    payload: dict[str, Value] = field(default_factory=dict)
    schema_snapshot: Optional[TableSchema] = None
    id: str = field(default_factory=generate_change_id)
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("Change session_id is required")
        if not isinstance(self.kind, ChangeKind):
            self.kind = ChangeKind(self.kind)

    @property
    def namespace(self) -> Namespace:
        return self.target.namespace

    @property
    def table_name(self) -> str:
        return self.target.table_name

    @property
    def targets_existing_row(self) -> bool:
        """Update and delete changes address a row that already exists remotely."""
        return self.kind in (ChangeKind.UPDATE, ChangeKind.DELETE)

    def clone(self) -> "ChangeRecord":
        """Deep copy, detached from the journal."""
        return copy.deepcopy(self)


@dataclass
class ChangeGroup:
    """Changes for one table, as shown in a changes panel."""

    target: TableTarget
    changes: list[ChangeRecord] = field(default_factory=list)
    counts: dict[str, int] = field(
        default_factory=lambda: {kind.value: 0 for kind in ChangeKind}
    )

    @property
    def display_name(self) -> str:
        return self.target.display_name

    @property
    def latest(self) -> datetime:
        return max(change.timestamp for change in self.changes)


@dataclass(frozen=True)
class ColumnDiff:
    """One column of a before/after diff."""

    column: str
    old_value: Value
    new_value: Value
