"""Base abstractions for the migration-compiler and executor collaborators."""

from abc import ABC, abstractmethod

from rowsandbox.infrastructure.wire.dto import ApplyResult, ChangeDto, MigrationScript


class MigrationCompiler(ABC):
    """Turns a validated change list into a reviewable script."""

    @abstractmethod
    async def compile(self, session_id: str, changes: list[ChangeDto]) -> MigrationScript:
        ...


class ChangeExecutor(ABC):
    """Applies a change list to the remote data source.

    With `use_transaction=True` implementations must be all-or-nothing.
    """

    @abstractmethod
    async def apply(
        self, session_id: str, changes: list[ChangeDto], use_transaction: bool
    ) -> ApplyResult:
        ...
