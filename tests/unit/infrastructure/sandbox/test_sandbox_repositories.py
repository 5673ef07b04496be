from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rowsandbox.core.exceptions import StorageError
from rowsandbox.domain.entities import (
    ChangeKind,
    ChangeRecord,
    DeleteDisplay,
    JournalBackup,
    SandboxPreferences,
    SandboxSession,
)
from rowsandbox.domain.services import ChangeJournal
from rowsandbox.infrastructure.persistence import (
    BACKUP_KEY,
    STATE_KEY,
    BackupRepository,
    SandboxStateRepository,
)
from rowsandbox.infrastructure.storage import MemoryKeyValueStore


def _unserializable_change(target) -> ChangeRecord:
    return ChangeRecord(
        kind=ChangeKind.UPDATE,
        session_id="s-1",
        target=target,
        identity={"id": 1},
        payload={"age": Decimal("31")},
    )


class TestSandboxStateRepository:
    def test_empty_store(self):
        repo = SandboxStateRepository(MemoryKeyValueStore())
        assert repo.load_sessions() == {}
        assert repo.load_preferences() is None

    def test_sessions_round_trip(self, users):
        repo = SandboxStateRepository(MemoryKeyValueStore())
        journal = ChangeJournal("s-1")
        journal.activate()
        journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})

        repo.save_sessions({"s-1": journal.session})

        assert repo.load_sessions() == {"s-1": journal.session}

    def test_preferences_round_trip(self):
        repo = SandboxStateRepository(MemoryKeyValueStore())
        prefs = SandboxPreferences(delete_display=DeleteDisplay.HIDDEN, panel_page_size=50)

        repo.save_preferences(prefs)

        assert repo.load_preferences() == prefs

    def test_corrupt_state(self):
        store = MemoryKeyValueStore()
        store.set(STATE_KEY, b"{not json")

        with pytest.raises(StorageError) as exc_info:
            SandboxStateRepository(store).load_sessions()
        assert exc_info.value.key == STATE_KEY

    def test_unserializable_session_is_a_storage_error(self, users):
        store = MemoryKeyValueStore()
        session = SandboxSession(session_id="s-1", changes=[_unserializable_change(users)])

        with pytest.raises(StorageError) as exc_info:
            SandboxStateRepository(store).save_sessions({"s-1": session})

        assert exc_info.value.key == STATE_KEY
        assert store.get(STATE_KEY) is None


class TestBackupRepository:
    def _backup(self, connection_id: str, saved_at: datetime) -> JournalBackup:
        return JournalBackup(connection_id=connection_id, session_id="s-1", saved_at=saved_at)

    def test_save_get_delete(self, users):
        store = MemoryKeyValueStore()
        repo = BackupRepository(store)
        journal = ChangeJournal("s-1")
        journal.stage_delete(users, {"id": 2}, {"id": 2})
        backup = JournalBackup(
            connection_id="conn-1",
            session_id="s-1",
            is_active=True,
            changes=journal.export(),
            saved_at=journal.latest_timestamp(),
        )

        repo.save(backup)

        assert repo.get("conn-1") == backup
        assert repo.get("conn-2") is None
        assert repo.delete("conn-1") is True
        assert repo.delete("conn-1") is False
        assert store.get(BACKUP_KEY) is None

    def test_list_all_most_recent_first(self):
        repo = BackupRepository(MemoryKeyValueStore())
        now = datetime.now(timezone.utc)
        repo.save(self._backup("old", now - timedelta(hours=1)))
        repo.save(self._backup("new", now))

        assert [b.connection_id for b in repo.list_all()] == ["new", "old"]

    def test_backups_are_independent(self):
        repo = BackupRepository(MemoryKeyValueStore())
        now = datetime.now(timezone.utc)
        repo.save(self._backup("a", now))
        repo.save(self._backup("b", now))

        repo.delete("a")

        assert repo.get("b") is not None

    def test_quota_error_propagates(self):
        repo = BackupRepository(MemoryKeyValueStore(max_bytes=10))
        with pytest.raises(StorageError):
            repo.save(self._backup("a", datetime.now(timezone.utc)))

    def test_unserializable_backup_is_a_storage_error(self, users):
        store = MemoryKeyValueStore()
        repo = BackupRepository(store)
        repo.save(self._backup("a", datetime.now(timezone.utc)))
        backup = JournalBackup(
            connection_id="b",
            session_id="s-1",
            changes=[_unserializable_change(users)],
            saved_at=datetime.now(timezone.utc),
        )

        with pytest.raises(StorageError) as exc_info:
            repo.save(backup)

        assert exc_info.value.key == BACKUP_KEY
        assert [b.connection_id for b in repo.list_all()] == ["a"]
