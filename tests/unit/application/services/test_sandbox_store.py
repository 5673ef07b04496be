"""Unit tests for SandboxStore."""

import pytest

from rowsandbox.application.services import SandboxStore
from rowsandbox.core.events import SandboxEventName
from rowsandbox.core.exceptions import StorageError
from rowsandbox.domain.entities import DeleteDisplay
from rowsandbox.infrastructure.persistence import SandboxStateRepository
from rowsandbox.infrastructure.storage import MemoryKeyValueStore


class _FailingStore(MemoryKeyValueStore):
    def set(self, key: str, value: bytes) -> None:
        raise StorageError("quota exceeded", key=key)


class TestSessions:
    def test_get_journal_creates_once(self, settings):
        store = SandboxStore(settings=settings)

        assert store.get_journal("s-1") is store.get_journal("s-1")
        assert store.session_ids() == ["s-1"]

    def test_activate_keeps_existing_changes(self, settings, users):
        store = SandboxStore(settings=settings)
        journal = store.activate("s-1")
        journal.stage_update(users, {"id": 1}, {}, {"name": "a"})
        store.deactivate("s-1")

        store.activate("s-1")

        assert store.is_active("s-1")
        assert journal.count() == 1

    def test_deactivate_with_clear(self, settings, users):
        store = SandboxStore(settings=settings)
        store.activate("s-1").stage_update(users, {"id": 1}, {}, {"name": "a"})

        store.deactivate("s-1", clear_changes=True)

        assert store.is_active("s-1") is False
        assert store.get_journal("s-1").count() == 0

    def test_deactivate_unknown_session_is_noop(self, settings):
        store = SandboxStore(settings=settings)
        store.deactivate("nope")
        assert store.has_session("nope") is False

    def test_dispose_if_idle(self, settings, users):
        store = SandboxStore(settings=settings)
        store.activate("idle")
        store.activate("busy").stage_update(users, {"id": 1}, {}, {"name": "a"})

        assert store.dispose_if_idle("idle") is True
        assert store.dispose_if_idle("busy") is False
        assert store.dispose_if_idle("unknown") is False
        assert store.is_active("idle") is False
        assert store.is_active("busy") is True

    def test_remove_session(self, settings):
        store = SandboxStore(settings=settings)
        removed = []
        store.bus.subscribe(
            SandboxEventName.ON_SESSION_REMOVED, lambda e: removed.append(e.session_id)
        )
        store.activate("s-1")

        assert store.remove_session("s-1") is True
        assert store.remove_session("s-1") is False
        assert removed == ["s-1"]
        assert store.has_session("s-1") is False

    def test_on_change_is_per_session(self, settings, users):
        store = SandboxStore(settings=settings)
        seen = []
        unsubscribe = store.on_change("s-1", lambda e: seen.append(e.session_id))

        store.get_journal("s-2").stage_update(users, {"id": 1}, {}, {"name": "a"})
        store.get_journal("s-1").stage_update(users, {"id": 1}, {}, {"name": "a"})
        unsubscribe()
        store.get_journal("s-1").stage_update(users, {"id": 2}, {}, {"name": "b"})

        assert seen == ["s-1"]

    def test_journal_limit_comes_from_settings(self, settings):
        store = SandboxStore(settings=settings.model_copy(update={"max_changes_per_session": 7}))
        assert store.get_journal("s-1").max_changes == 7


class TestPersistence:
    def test_state_survives_restart(self, settings, users):
        kv = MemoryKeyValueStore()
        first = SandboxStore(state_repository=SandboxStateRepository(kv), settings=settings)
        first.activate("s-1").stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})
        first.set_preferences(delete_display="hidden")

        second = SandboxStore(state_repository=SandboxStateRepository(kv), settings=settings)

        assert second.is_active("s-1")
        assert second.get_journal("s-1").list() == first.get_journal("s-1").list()
        assert second.get_preferences().delete_display == DeleteDisplay.HIDDEN

    def test_storage_failure_keeps_working_in_memory(self, settings, users):
        store = SandboxStore(
            state_repository=SandboxStateRepository(_FailingStore()), settings=settings
        )

        journal = store.activate("s-1")
        journal.stage_update(users, {"id": 1}, {}, {"name": "a"})

        assert journal.count() == 1
        assert store.persist() is False

    def test_corrupt_state_is_ignored(self, settings):
        kv = MemoryKeyValueStore()
        kv.set("rowsandbox_sandbox_state", b"garbage")

        store = SandboxStore(state_repository=SandboxStateRepository(kv), settings=settings)

        assert store.session_ids() == []


class TestPreferences:
    def test_defaults_from_settings(self, settings):
        prefs = SandboxStore(settings=settings).get_preferences()

        assert prefs.delete_display == DeleteDisplay.STRIKETHROUGH
        assert prefs.confirm_on_discard is True
        assert prefs.auto_collapse_panel is False
        assert prefs.panel_page_size == 100

    def test_page_size_is_clamped(self, settings):
        store = SandboxStore(settings=settings)

        assert store.set_preferences(panel_page_size=5).panel_page_size == 20
        assert store.set_preferences(panel_page_size=250).panel_page_size == 250

    def test_get_preferences_returns_copy(self, settings):
        store = SandboxStore(settings=settings)
        prefs = store.get_preferences()
        prefs.panel_page_size = 1

        assert store.get_preferences().panel_page_size == 100

    def test_unknown_preference(self, settings):
        with pytest.raises(ValueError):
            SandboxStore(settings=settings).set_preferences(colour="blue")

    def test_change_event(self, settings):
        store = SandboxStore(settings=settings)
        events = []
        store.bus.subscribe(SandboxEventName.ON_PREFERENCES_CHANGED, events.append)

        store.set_preferences(confirm_on_discard=False, auto_collapse_panel=True)

        assert events[0].data["changed"] == ["auto_collapse_panel", "confirm_on_discard"]
