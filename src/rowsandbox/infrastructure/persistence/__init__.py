"""Repositories persisting sandbox state into a key-value store."""

from rowsandbox.infrastructure.persistence.backup_repository import BACKUP_KEY, BackupRepository
from rowsandbox.infrastructure.persistence.state_repository import (
    PREFERENCES_KEY,
    STATE_KEY,
    SandboxStateRepository,
)

__all__ = [
    "BACKUP_KEY",
    "BackupRepository",
    "PREFERENCES_KEY",
    "STATE_KEY",
    "SandboxStateRepository",
]
