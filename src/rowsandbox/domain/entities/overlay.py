"""Overlay entities: base query results and their sandboxed projection."""

from dataclasses import dataclass, field
from typing import Optional

from rowsandbox.domain.entities.change import ChangeRecord, Value


@dataclass
class QueryResult:
    """Rows already fetched from the data source.

    Each row is a list of values aligned with `columns`.
    """

    columns: list[str]
    rows: list[list[Value]] = field(default_factory=list)

    def column_index(self, name: str) -> int:
        """Index of a column, or -1 if absent."""
        try:
            return self.columns.index(name)
        except ValueError:
            return -1


@dataclass
class RowMeta:
    """Display metadata for one overlaid row."""

    is_inserted: bool = False
    is_modified: bool = False
    is_deleted: bool = False
    modified_columns: set[str] = field(default_factory=set)
    change: Optional[ChangeRecord] = None


@dataclass
class OverlayStats:
    """Counts of what the overlay actually produced.

    Attributes:
        inserted: Insert rows prepended.
        modified: Base rows annotated as modified.
        deleted: Base rows matched by a delete (visible or hidden).
        hidden: Deleted rows dropped from the output (hidden mode).
        unmatched: Update/delete changes that matched no base row.
    """

    inserted: int = 0
    modified: int = 0
    deleted: int = 0
    hidden: int = 0
    unmatched: int = 0


@dataclass
class OverlayResult:
    """Base rows merged with pending changes, for display only."""

    columns: list[str]
    rows: list[list[Value]] = field(default_factory=list)
    row_metadata: dict[int, RowMeta] = field(default_factory=dict)
    stats: OverlayStats = field(default_factory=OverlayStats)
    unmatched: list[ChangeRecord] = field(default_factory=list)
    insert_only: bool = False
