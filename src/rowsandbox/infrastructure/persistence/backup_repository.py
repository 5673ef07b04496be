"""Repository for per-connection journal backups."""

from typing import Optional

from pydantic import ValidationError

from rowsandbox.core.exceptions import StorageError
from rowsandbox.domain.entities.session import JournalBackup
from rowsandbox.infrastructure.storage.base import KeyValueStore
from rowsandbox.infrastructure.wire.mappers import backup_from_model, backup_to_model
from rowsandbox.infrastructure.wire.snapshots import BackupIndexModel

BACKUP_KEY = "rowsandbox_sandbox_backup"


class BackupRepository:
    """Stores all backups as one map: connection id -> {changes, saved_at}."""

    def __init__(self, store: KeyValueStore) -> None:
        """Initialize the repository.

        Args:
            store: Key-value store backing the backups.
        """
        self.store = store

    def _load_index(self) -> BackupIndexModel:
        raw = self.store.get(BACKUP_KEY)
        if raw is None:
            return BackupIndexModel()
        try:
            return BackupIndexModel.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt sandbox backups: {e}", key=BACKUP_KEY) from e

    def _save_index(self, index: BackupIndexModel) -> None:
        if not index.backups:
            self.store.delete(BACKUP_KEY)
            return
        self.store.set(BACKUP_KEY, index.model_dump_json().encode("utf-8"))

    def get(self, connection_id: str) -> Optional[JournalBackup]:
        model = self._load_index().backups.get(connection_id)
        if model is None:
            return None
        return backup_from_model(connection_id, model)

    def save(self, backup: JournalBackup) -> None:
        index = self._load_index()
        try:
            index.backups[backup.connection_id] = backup_to_model(backup)
        except ValidationError as e:
            raise StorageError(f"Unserializable sandbox backup: {e}", key=BACKUP_KEY) from e
        self._save_index(index)

    def delete(self, connection_id: str) -> bool:
        """Remove the backup of one connection.

        Returns:
            True if a backup was removed.
        """
        index = self._load_index()
        if index.backups.pop(connection_id, None) is None:
            return False
        self._save_index(index)
        return True

    def list_all(self) -> list[JournalBackup]:
        """All backups, most recently saved first."""
        index = self._load_index()
        backups = [backup_from_model(cid, model) for cid, model in index.backups.items()]
        return sorted(backups, key=lambda b: b.saved_at, reverse=True)
