"""Schema drift detection.

Compares the table structure captured when a change was staged with the
live structure. Drift on any of these blocks a commit:
- column set
- data type (case-insensitive)
- nullability
- primary-key column set
"""

from dataclasses import dataclass

from rowsandbox.domain.entities.table_schema import TableSchema


@dataclass(frozen=True)
class SchemaDifference:
    """A single structural difference between two schemas."""

    column: str | None
    message: str
    code: str


def compare_schemas(snapshot: TableSchema, live: TableSchema) -> list[SchemaDifference]:
    """List the differences between a captured snapshot and the live schema."""
    differences: list[SchemaDifference] = []

    snap_cols = {col.name: col for col in snapshot.columns}
    live_cols = {col.name: col for col in live.columns}

    for name in snap_cols:
        if name not in live_cols:
            differences.append(
                SchemaDifference(name, f"column '{name}' no longer exists", "column_removed")
            )
    for name in live_cols:
        if name not in snap_cols:
            differences.append(
                SchemaDifference(name, f"column '{name}' was added", "column_added")
            )

    for name, snap_col in snap_cols.items():
        live_col = live_cols.get(name)
        if live_col is None:
            continue
        if snap_col.data_type.lower() != live_col.data_type.lower():
            differences.append(
                SchemaDifference(
                    name,
                    f"column '{name}' changed type from '{snap_col.data_type}' "
                    f"to '{live_col.data_type}'",
                    "type_changed",
                )
            )
        if snap_col.nullable != live_col.nullable:
            now = "nullable" if live_col.nullable else "not nullable"
            differences.append(
                SchemaDifference(name, f"column '{name}' is now {now}", "nullability_changed")
            )

    if set(snapshot.primary_key) != set(live.primary_key):
        differences.append(
            SchemaDifference(
                None,
                f"primary key changed from {list(snapshot.primary_key)} "
                f"to {list(live.primary_key)}",
                "primary_key_changed",
            )
        )

    return differences


def schemas_compatible(snapshot: TableSchema, live: TableSchema) -> bool:
    """True when the live schema still matches the snapshot."""
    return not compare_schemas(snapshot, live)
