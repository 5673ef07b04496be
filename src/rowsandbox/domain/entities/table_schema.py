"""Table structure as reported by the schema cache."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ColumnDef:
    """A single column definition.

    Attributes:
        name: Column name.
        data_type: Type name as reported by the data source.
        nullable: Whether NULL is accepted.
        is_primary_key: Whether the column is part of the primary key.
    """

    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False


@dataclass(frozen=True)
class TableSchema:
    """Columns of one table, in declaration order."""

    columns: tuple[ColumnDef, ...] = field(default_factory=tuple)

    @property
    def primary_key(self) -> tuple[str, ...]:
        """Names of the primary-key columns, in declaration order."""
        return tuple(col.name for col in self.columns if col.is_primary_key)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(col.name for col in self.columns)

    def column(self, name: str) -> ColumnDef | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableSchema":
        """Build a schema from `{"columns": [...], "primary_key": [...]}`.

        A `primary_key` list, when present, marks the named columns even if
        their own `is_primary_key` flag is missing.
        """
        pk = set(data.get("primary_key") or [])
        columns = tuple(
            ColumnDef(
                name=col["name"],
                data_type=col.get("data_type", ""),
                nullable=col.get("nullable", True),
                is_primary_key=col.get("is_primary_key", False) or col["name"] in pk,
            )
            for col in data.get("columns", [])
        )
        return cls(columns=columns)
