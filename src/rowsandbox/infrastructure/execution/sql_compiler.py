"""Reference migration compiler rendering SQL through SQLAlchemy dialects."""

from typing import Callable

from sqlalchemy.dialects import mssql, mysql, postgresql, sqlite
from sqlalchemy.engine import Dialect

from rowsandbox.core.logging import get_logger
from rowsandbox.infrastructure.execution.base import MigrationCompiler
from rowsandbox.infrastructure.execution.statements import StatementError, build_statement
from rowsandbox.infrastructure.wire.dto import ChangeDto, MigrationScript

logger = get_logger(__name__)

DIALECTS: dict[str, tuple[str, Callable[[], Dialect]]] = {
    "postgresql": ("PostgreSQL", postgresql.dialect),
    "postgres": ("PostgreSQL", postgresql.dialect),
    "mysql": ("MySQL", mysql.dialect),
    "mariadb": ("MySQL", mysql.dialect),
    "sqlite": ("SQLite", sqlite.dialect),
    "mssql": ("SQL Server", mssql.dialect),
    "sqlserver": ("SQL Server", mssql.dialect),
}

DEFAULT_DIALECT = "postgresql"


class SqlAlchemyMigrationCompiler(MigrationCompiler):
    """Renders one literal SQL statement per change, wrapped in a transaction.

    Changes that cannot be rendered are skipped and reported as warnings
    (`Change N: reason`, 1-based).
    """

    def __init__(self, dialect_name: str = DEFAULT_DIALECT) -> None:
        self.dialect_name = dialect_name.lower()

    def _resolve_dialect(self, warnings: list[str]) -> tuple[str, Dialect]:
        entry = DIALECTS.get(self.dialect_name)
        if entry is None:
            warnings.append(
                f"Unknown dialect '{self.dialect_name}', defaulting to PostgreSQL syntax"
            )
            entry = DIALECTS[DEFAULT_DIALECT]
        label, factory = entry
        return label, factory()

    async def compile(self, session_id: str, changes: list[ChangeDto]) -> MigrationScript:
        warnings: list[str] = []
        label, dialect = self._resolve_dialect(warnings)

        statements: list[str] = []
        for idx, change in enumerate(changes):
            try:
                stmt = build_statement(change)
                compiled = stmt.compile(dialect=dialect, compile_kwargs={"literal_binds": True})
                statements.append(f"{compiled};")
            except StatementError as e:
                warnings.append(f"Change {idx + 1}: {e}")

        header = f"-- {label} Migration Script\n-- Generated by RowSandbox\n\n"
        if statements:
            sql = header + "BEGIN;\n\n" + "\n".join(statements) + "\n\nCOMMIT;"
        else:
            sql = header + "-- No changes to apply"

        logger.debug(
            "Migration script compiled",
            session_id=session_id,
            dialect=label,
            statements=len(statements),
            warnings=len(warnings),
        )
        return MigrationScript(sql=sql, statement_count=len(statements), warnings=warnings)
