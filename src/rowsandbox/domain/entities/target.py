"""Table targets: which remote collection a change applies to."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Namespace:
    """Database namespace (database plus optional schema)."""

    database: str
    schema: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.database:
            raise ValueError("Namespace database is required")


@dataclass(frozen=True)
class TableTarget:
    """Identifies a remote table (or document collection).

    Attributes:
        namespace: Database and optional schema.
        table_name: Name of the table.
    """

    namespace: Namespace
    table_name: str

    def __post_init__(self) -> None:
        if not self.table_name:
            raise ValueError("Table name is required")

    @classmethod
    def of(cls, database: str, table_name: str, schema: Optional[str] = None) -> "TableTarget":
        """Shorthand constructor."""
        return cls(Namespace(database, schema), table_name)

    @property
    def display_name(self) -> str:
        """`schema.table` when a schema is set, otherwise just the table name."""
        if self.namespace.schema:
            return f"{self.namespace.schema}.{self.table_name}"
        return self.table_name

    @property
    def key(self) -> str:
        """Stable string form used in identity keys and group keys."""
        return f"{self.namespace.database}:{self.namespace.schema or ''}:{self.table_name}"
