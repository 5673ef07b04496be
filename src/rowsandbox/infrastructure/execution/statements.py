"""Build SQLAlchemy Core statements from change DTOs."""

import json
from typing import Any

from sqlalchemy import and_, column, delete, insert, literal, table, update
from sqlalchemy.sql import ColumnElement, TableClause
from sqlalchemy.sql.dml import Delete, Insert, Update

from rowsandbox.infrastructure.wire.dto import ChangeDto


class StatementError(ValueError):
    """A change DTO cannot be turned into a statement."""

    pass


def bind_value(value: Any) -> Any:
    """Objects and arrays are written as JSON text."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return value


def _assignments(values: dict[str, Any]) -> dict[str, Any]:
    # Untyped columns: the literal carries a type inferred from the value.
    return {name: literal(bind_value(value)) for name, value in values.items()}


def _table_for(change: ChangeDto, *column_sets: dict[str, Any]) -> TableClause:
    names: list[str] = []
    for values in column_sets:
        for name in values:
            if name not in names:
                names.append(name)
    return table(
        change.table_name,
        *(column(name) for name in names),
        schema=change.namespace.schema_,
    )


def _where(tbl: TableClause, key: dict[str, Any]) -> ColumnElement[bool]:
    clauses = [
        tbl.c[name].is_(None) if value is None else tbl.c[name] == bind_value(value)
        for name, value in key.items()
    ]
    return and_(*clauses)


def build_statement(change: ChangeDto) -> Insert | Update | Delete:
    """Build the INSERT/UPDATE/DELETE statement for one change.

    Raises:
        StatementError: Required parts of the DTO are missing.
    """
    if change.change_type == "insert":
        if not change.new_values:
            raise StatementError("INSERT missing new_values")
        tbl = _table_for(change, change.new_values)
        return insert(tbl).values(_assignments(change.new_values))

    if change.primary_key is None or not change.primary_key.columns:
        raise StatementError(f"{change.change_type.upper()} missing primary_key")
    key = dict(change.primary_key.columns)

    if change.change_type == "update":
        if not change.new_values:
            raise StatementError("UPDATE missing new_values")
        tbl = _table_for(change, change.new_values, key)
        return (
            update(tbl)
            .where(_where(tbl, key))
            .values(_assignments(change.new_values))
        )

    tbl = _table_for(change, key)
    return delete(tbl).where(_where(tbl, key))
