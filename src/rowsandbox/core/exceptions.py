"""Exceptions raised by the sandbox subsystem."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rowsandbox.domain.entities.validation import ValidationReport


class SandboxError(Exception):
    """Base class for all sandbox errors."""

    pass


class ConflictError(SandboxError):
    """Raised when a staging call conflicts with a live change.

    Typical case: a row staged for deletion is edited again. The caller
    recovers by discarding the existing change first.
    """

    def __init__(self, message: str, change_id: str | None = None) -> None:
        self.message = message
        self.change_id = change_id
        super().__init__(message)


class JournalLimitError(SandboxError):
    """Raised when a journal already holds the maximum number of changes."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Sandbox journal is limited to {limit} changes")


class InvalidValueError(SandboxError):
    """Raised when a staged cell value has no JSON representation."""

    def __init__(self, message: str, columns: list[str] | None = None) -> None:
        self.message = message
        self.columns = columns or []
        super().__init__(message)


class ChangeValidationError(SandboxError):
    """Raised when staged changes fail validation against the live schema."""

    def __init__(self, report: "ValidationReport") -> None:
        self.report = report
        super().__init__("\n".join(report.errors) or "Validation failed")


class ExecutionError(SandboxError):
    """Raised when the executor reports a failed batch."""

    def __init__(self, message: str, failed_changes: list[Any] | None = None) -> None:
        self.message = message
        self.failed_changes = failed_changes or []
        super().__init__(message)


class StorageError(SandboxError):
    """Raised when the local key-value store cannot be read or written."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.message = message
        self.key = key
        super().__init__(message)
