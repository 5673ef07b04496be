"""Migration-compiler and executor collaborator implementations."""

from rowsandbox.infrastructure.execution.base import ChangeExecutor, MigrationCompiler
from rowsandbox.infrastructure.execution.sql_compiler import SqlAlchemyMigrationCompiler
from rowsandbox.infrastructure.execution.sql_executor import SqlAlchemyChangeExecutor
from rowsandbox.infrastructure.execution.statements import StatementError, build_statement

__all__ = [
    "ChangeExecutor",
    "MigrationCompiler",
    "SqlAlchemyChangeExecutor",
    "SqlAlchemyMigrationCompiler",
    "StatementError",
    "build_statement",
]
