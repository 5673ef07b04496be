"""Overlay engine: project staged changes onto already-fetched rows.

The projection is pure and deterministic. Inputs are never mutated, so
calling `apply_overlay` twice on the same inputs yields equal results.

Processing order is fixed:
1. Index base rows by primary key. Without a usable key the overlay runs
   in insert-only mode and updates/deletes are reported as unmatched.
2. Deleted rows are dropped (hidden) or annotated (strikethrough);
   updated rows get the changed columns spliced in.
3. Inserts are prepended, in staging order.
4. Stats are counted from what was actually produced.
"""

import copy
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from rowsandbox.domain.entities.change import ChangeKind, ChangeRecord, ColumnDiff, Value
from rowsandbox.domain.entities.overlay import OverlayResult, OverlayStats, QueryResult, RowMeta
from rowsandbox.domain.entities.session import DeleteDisplay
from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import TableTarget
from rowsandbox.domain.services.identity import identity_values_key


@dataclass(frozen=True)
class OverlayOptions:
    """Options for `apply_overlay`.

    Attributes:
        delete_display: Hide deleted rows or keep them annotated.
        primary_key: Overrides the schema's primary key when given.
        target: When given, changes for other tables are ignored.
    """

    delete_display: DeleteDisplay = DeleteDisplay.STRIKETHROUGH
    primary_key: Optional[tuple[str, ...]] = None
    target: Optional[TableTarget] = None


def _row_key(row: Sequence[Value], pk_indices: list[int], primary_key: Sequence[str]) -> str:
    return identity_values_key(
        {col: row[idx] for col, idx in zip(primary_key, pk_indices)}, primary_key
    )


def _change_key(change: ChangeRecord, primary_key: Sequence[str]) -> Optional[str]:
    identity = change.identity
    if not identity or any(col not in identity for col in primary_key):
        return None
    return identity_values_key(identity, primary_key)


def apply_overlay(
    base: QueryResult,
    changes: Iterable[ChangeRecord],
    schema: Optional[TableSchema],
    options: Optional[OverlayOptions] = None,
) -> OverlayResult:
    """Merge staged changes into a base result for display.

    Args:
        base: Rows already fetched from the data source.
        changes: Staged changes for the displayed table.
        schema: Current table structure, used for the primary key.
        options: Display options.

    Returns:
        OverlayResult with display rows, per-row metadata and stats.
    """
    options = options or OverlayOptions()
    columns = list(base.columns)
    primary_key = list(
        options.primary_key
        if options.primary_key is not None
        else (schema.primary_key if schema is not None else ())
    )

    table_changes = [
        change
        for change in changes
        if options.target is None or change.target == options.target
    ]
    inserts = [c for c in table_changes if c.kind == ChangeKind.INSERT]
    updates = [c for c in table_changes if c.kind == ChangeKind.UPDATE]
    deletes = [c for c in table_changes if c.kind == ChangeKind.DELETE]

    pk_indices = [base.column_index(col) for col in primary_key]
    insert_only = not primary_key or any(idx < 0 for idx in pk_indices)

    stats = OverlayStats()
    unmatched: list[ChangeRecord] = []
    delete_map: dict[str, ChangeRecord] = {}
    update_map: dict[str, ChangeRecord] = {}

    if insert_only:
        unmatched.extend(updates + deletes)
    else:
        for change in deletes:
            key = _change_key(change, primary_key)
            if key is None:
                unmatched.append(change)
            else:
                delete_map[key] = change
        for change in updates:
            key = _change_key(change, primary_key)
            if key is None:
                unmatched.append(change)
            else:
                update_map[key] = change

    matched_ids: set[str] = set()
    body_rows: list[list[Value]] = []
    body_meta: list[Optional[RowMeta]] = []

    for row in base.rows:
        key = None if insert_only else _row_key(row, pk_indices, primary_key)

        delete = delete_map.get(key) if key is not None else None
        if delete is not None:
            matched_ids.add(delete.id)
            stats.deleted += 1
            if options.delete_display == DeleteDisplay.HIDDEN:
                stats.hidden += 1
                continue
            body_rows.append(list(row))
            body_meta.append(RowMeta(is_deleted=True, change=delete))
            continue

        update = update_map.get(key) if key is not None else None
        if update is not None:
            matched_ids.add(update.id)
            new_row = list(row)
            modified: set[str] = set()
            for col, value in update.payload.items():
                idx = base.column_index(col)
                if idx >= 0:
                    new_row[idx] = copy.deepcopy(value)
                    modified.add(col)
            stats.modified += 1
            body_rows.append(new_row)
            body_meta.append(RowMeta(is_modified=True, modified_columns=modified, change=update))
            continue

        body_rows.append(list(row))
        body_meta.append(None)

    if not insert_only:
        unmatched.extend(
            c for c in list(delete_map.values()) + list(update_map.values())
            if c.id not in matched_ids
        )
    # Keep unmatched changes in staging order.
    order = {c.id: pos for pos, c in enumerate(table_changes)}
    unmatched.sort(key=lambda c: order[c.id])
    stats.unmatched = len(unmatched)

    rows: list[list[Value]] = []
    row_metadata: dict[int, RowMeta] = {}
    for change in inserts:
        row_metadata[len(rows)] = RowMeta(
            is_inserted=True,
            modified_columns=set(change.payload),
            change=change,
        )
        rows.append([copy.deepcopy(change.payload.get(col)) for col in columns])
    stats.inserted = len(rows)

    offset = len(rows)
    for pos, (row, meta) in enumerate(zip(body_rows, body_meta)):
        rows.append(row)
        if meta is not None:
            row_metadata[offset + pos] = meta

    return OverlayResult(
        columns=columns,
        rows=rows,
        row_metadata=row_metadata,
        stats=stats,
        unmatched=unmatched,
        insert_only=insert_only,
    )


def empty_overlay_result(base: QueryResult) -> OverlayResult:
    """Overlay result for when sandbox mode is off: base rows, no metadata."""
    return OverlayResult(columns=list(base.columns), rows=[list(row) for row in base.rows])


def get_row_metadata(result: OverlayResult, row_index: int) -> Optional[RowMeta]:
    return result.row_metadata.get(row_index)


def is_cell_modified(result: OverlayResult, row_index: int, column: str) -> bool:
    meta = result.row_metadata.get(row_index)
    return meta is not None and column in meta.modified_columns


def get_change_diff(change: ChangeRecord) -> list[ColumnDiff]:
    """Before/after pairs for display in a change list.

    Inserts have no "before", deletes have no "after"; updates pair each
    changed column with its baseline value.
    """
    if change.kind == ChangeKind.INSERT:
        return [ColumnDiff(col, None, value) for col, value in change.payload.items()]
    if change.kind == ChangeKind.UPDATE:
        return [
            ColumnDiff(col, change.baseline.get(col), value)
            for col, value in change.payload.items()
        ]
    return [ColumnDiff(col, value, None) for col, value in change.baseline.items()]
