"""Crash-recovery backups of sandbox journals.

Backups are keyed by the stable connection id rather than the session id,
which changes on every reconnect. Writes are debounced and never block
journal mutation; a failed write is logged, remembered in `last_error` and
announced with an ON_BACKUP_FAILED event.
"""

import asyncio
from typing import Callable, Optional

from rowsandbox.application.services.sandbox_store import SandboxStore
from rowsandbox.core.config import Settings, get_settings
from rowsandbox.core.events import SandboxEvent, SandboxEventName
from rowsandbox.core.exceptions import StorageError
from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.change import ChangeRecord, utcnow
from rowsandbox.domain.entities.session import JournalBackup
from rowsandbox.infrastructure.persistence.backup_repository import BackupRepository

logger = get_logger(__name__)


class BackupManager:
    """Persists and restores journal snapshots per connection."""

    def __init__(
        self,
        repository: BackupRepository,
        store: SandboxStore,
        settings: Optional[Settings] = None,
        debounce_seconds: Optional[float] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            repository: Backup repository.
            store: Sandbox store owning the journals.
            settings: Application settings.
            debounce_seconds: Overrides `backup_debounce_seconds`.
        """
        self.repository = repository
        self.store = store
        self.settings = settings or get_settings()
        self.debounce_seconds = (
            debounce_seconds
            if debounce_seconds is not None
            else self.settings.backup_debounce_seconds
        )
        self.last_error: Optional[StorageError] = None
        self._pending: dict[str, tuple[str, asyncio.TimerHandle]] = {}

    def _report_failure(self, action: str, connection_id: str, error: StorageError) -> None:
        self.last_error = error
        logger.warning(
            "Sandbox backup failed",
            action=action,
            connection_id=connection_id,
            error=str(error),
        )
        self.store.bus.emit(
            SandboxEvent(
                SandboxEventName.ON_BACKUP_FAILED,
                data={"connection_id": connection_id, "action": action, "error": str(error)},
            )
        )

    # ------------------------------------------------------------------
    # Snapshot / restore / clear

    def snapshot(self, connection_id: str, session_id: str) -> Optional[JournalBackup]:
        """Write the current journal of a session as the connection's backup.

        Returns:
            The written backup, or None when the write failed.
        """
        journal = self.store.get_journal(session_id)
        backup = JournalBackup(
            connection_id=connection_id,
            session_id=session_id,
            is_active=journal.is_active,
            changes=journal.export(),
            saved_at=journal.latest_timestamp() or utcnow(),
        )
        try:
            self.repository.save(backup)
        except StorageError as e:
            self._report_failure("snapshot", connection_id, e)
            return None
        self.last_error = None
        logger.debug(
            "Sandbox backup written",
            connection_id=connection_id,
            session_id=session_id,
            changes=len(backup.changes),
        )
        return backup

    def restore(self, connection_id: str) -> Optional[JournalBackup]:
        """Read the backup of a connection, if any."""
        try:
            return self.repository.get(connection_id)
        except StorageError as e:
            self._report_failure("restore", connection_id, e)
            return None

    def clear(self, connection_id: str) -> bool:
        """Delete the backup of a connection and cancel pending writes for it."""
        self._cancel(connection_id)
        try:
            return self.repository.delete(connection_id)
        except StorageError as e:
            self._report_failure("clear", connection_id, e)
            return False

    def list_backups(self) -> list[JournalBackup]:
        try:
            return self.repository.list_all()
        except StorageError as e:
            self._report_failure("list", "*", e)
            return []

    # ------------------------------------------------------------------
    # Debounced writes

    def watch(self, connection_id: str, session_id: str) -> Callable[[], None]:
        """Back up the session's journal whenever it changes while active.

        Returns:
            Callable that stops watching and cancels a pending write.
        """
        journal = self.store.get_journal(session_id)

        def on_change(event: SandboxEvent) -> None:
            if journal.is_active:
                self.schedule(connection_id, session_id)

        unsubscribe = journal.on_change(on_change)

        def unwatch() -> None:
            unsubscribe()
            self._cancel(connection_id)

        return unwatch

    def schedule(self, connection_id: str, session_id: str) -> None:
        """Schedule a snapshot, replacing any pending one for the connection.

        Without a debounce delay, or outside a running event loop, the
        snapshot is written immediately.
        """
        self._cancel(connection_id)
        if self.debounce_seconds <= 0:
            self.snapshot(connection_id, session_id)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.snapshot(connection_id, session_id)
            return
        handle = loop.call_later(self.debounce_seconds, self._fire, connection_id)
        self._pending[connection_id] = (session_id, handle)

    def _fire(self, connection_id: str) -> None:
        pending = self._pending.pop(connection_id, None)
        if pending is not None:
            self.snapshot(connection_id, pending[0])

    def _cancel(self, connection_id: str) -> None:
        pending = self._pending.pop(connection_id, None)
        if pending is not None:
            pending[1].cancel()

    def has_pending_write(self, connection_id: str) -> bool:
        return connection_id in self._pending

    def flush(self) -> int:
        """Write every pending snapshot now.

        Returns:
            Number of snapshots written.
        """
        written = 0
        for connection_id in list(self._pending):
            session_id, handle = self._pending.pop(connection_id)
            handle.cancel()
            if self.snapshot(connection_id, session_id) is not None:
                written += 1
        return written

    # ------------------------------------------------------------------
    # Reconnect flow

    def offer_restore(self, connection_id: str, session_id: str) -> Optional[JournalBackup]:
        """Backup to offer on reconnect.

        Only offered when the backup holds changes and the current
        session's journal is empty.
        """
        backup = self.restore(connection_id)
        if backup is None or not backup.has_changes:
            return None
        if self.store.get_journal(session_id).has_pending():
            return None
        return backup

    def accept_restore(
        self, connection_id: str, session_id: str, keep_backup: bool = False
    ) -> list[ChangeRecord]:
        """Import the offered backup into the session and delete it.

        Args:
            connection_id: Connection the backup was saved for.
            session_id: Session receiving the restored changes.
            keep_backup: Leave the stored backup in place; the caller clears
                it once the restored changes are safe elsewhere.

        Returns:
            The imported records (empty when there was nothing to restore).

        Raises:
            ConflictError: The backup holds colliding changes.
        """
        backup = self.offer_restore(connection_id, session_id)
        if backup is None:
            return []
        journal = self.store.get_journal(session_id)
        imported = journal.import_snapshot(backup.changes)
        if not journal.is_active:
            journal.activate()
        if not keep_backup:
            self.clear(connection_id)
        logger.info(
            "Sandbox backup restored",
            connection_id=connection_id,
            session_id=session_id,
            changes=len(imported),
        )
        return imported

    def discard_restore(self, connection_id: str) -> bool:
        """Drop the offered backup without importing it."""
        return self.clear(connection_id)
