"""Sandbox store: registry of session journals and sandbox preferences.

One store is constructed per process and passed explicitly to the
components that need it. Sessions and preferences are written through to
the state repository when one is given; persistence failures are logged
and the store keeps working in memory.
"""

import dataclasses
from typing import Any, Callable, Optional

from rowsandbox.core.config import Settings, get_settings
from rowsandbox.core.events import EventBus, SandboxEvent, SandboxEventName
from rowsandbox.core.exceptions import StorageError
from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.session import DeleteDisplay, SandboxPreferences
from rowsandbox.domain.services.change_journal import ChangeJournal
from rowsandbox.infrastructure.persistence.state_repository import SandboxStateRepository

logger = get_logger(__name__)

PREFERENCE_FIELDS = frozenset(f.name for f in dataclasses.fields(SandboxPreferences))


class SandboxStore:
    """Owns one ChangeJournal per live session."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        state_repository: Optional[SandboxStateRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize the store and load any persisted state.

        Args:
            bus: Event bus shared by every journal of this store.
            state_repository: Where sessions and preferences are persisted.
            settings: Application settings.
        """
        self.settings = settings or get_settings()
        self.bus = bus or EventBus()
        self.state_repository = state_repository
        self._journals: dict[str, ChangeJournal] = {}
        self._preferences = SandboxPreferences(
            delete_display=DeleteDisplay(self.settings.default_delete_display),
            confirm_on_discard=self.settings.default_confirm_on_discard,
            auto_collapse_panel=self.settings.default_auto_collapse_panel,
            panel_page_size=self.settings.default_page_size,
        )
        self._load()

        self._unsubscribers = [
            self.bus.subscribe(name, self._persist_on_event, priority=100)
            for name in (
                SandboxEventName.ON_JOURNAL_CHANGED,
                SandboxEventName.ON_SESSION_ACTIVATED,
                SandboxEventName.ON_SESSION_DEACTIVATED,
            )
        ]

    def _load(self) -> None:
        if self.state_repository is None:
            return
        try:
            sessions = self.state_repository.load_sessions()
            preferences = self.state_repository.load_preferences()
        except StorageError as e:
            logger.warning("Could not load sandbox state", error=str(e))
            return

        for session_id, session in sessions.items():
            self._journals[session_id] = self._new_journal(session_id, session)
        if preferences is not None:
            preferences.panel_page_size = max(
                self.settings.min_page_size, preferences.panel_page_size
            )
            self._preferences = preferences
        logger.debug("Sandbox state loaded", sessions=len(sessions))

    def _new_journal(self, session_id: str, session: Any = None) -> ChangeJournal:
        return ChangeJournal(
            session_id,
            bus=self.bus,
            max_changes=self.settings.max_changes_per_session,
            session=session,
        )

    def _persist_on_event(self, event: SandboxEvent) -> None:
        self.persist()

    def persist(self) -> bool:
        """Write the session map to the state repository.

        Returns:
            False when the write failed (logged, not raised).
        """
        if self.state_repository is None:
            return True
        try:
            self.state_repository.save_sessions(
                {sid: journal.session for sid, journal in self._journals.items()}
            )
        except StorageError as e:
            logger.warning("Could not persist sandbox state", error=str(e))
            return False
        return True

    # ------------------------------------------------------------------
    # Sessions

    def get_journal(self, session_id: str) -> ChangeJournal:
        """Journal of a session, created on first use."""
        journal = self._journals.get(session_id)
        if journal is None:
            journal = self._new_journal(session_id)
            self._journals[session_id] = journal
        return journal

    def has_session(self, session_id: str) -> bool:
        return session_id in self._journals

    def session_ids(self) -> list[str]:
        return list(self._journals)

    def on_change(
        self, session_id: str, callback: Callable[[SandboxEvent], Any]
    ) -> Callable[[], None]:
        """Subscribe to journal mutations of one session."""
        return self.get_journal(session_id).on_change(callback)

    def activate(self, session_id: str) -> ChangeJournal:
        journal = self.get_journal(session_id)
        journal.activate()
        return journal

    def deactivate(self, session_id: str, clear_changes: bool = False) -> None:
        journal = self._journals.get(session_id)
        if journal is None:
            return
        journal.deactivate(clear_changes=clear_changes)

    def is_active(self, session_id: str) -> bool:
        journal = self._journals.get(session_id)
        return journal is not None and journal.is_active

    def remove_session(self, session_id: str) -> bool:
        """Forget a session, e.g. when its connection closes.

        Backups are keyed by connection and are not affected.
        """
        if self._journals.pop(session_id, None) is None:
            return False
        logger.debug("Sandbox session removed", session_id=session_id)
        self.persist()
        self.bus.emit(SandboxEvent(SandboxEventName.ON_SESSION_REMOVED, session_id))
        return True

    def dispose_if_idle(self, session_id: str) -> bool:
        """Deactivate an active session whose journal is empty."""
        journal = self._journals.get(session_id)
        if journal is None or not journal.is_active or journal.has_pending():
            return False
        journal.deactivate()
        return True

    # ------------------------------------------------------------------
    # Preferences

    def get_preferences(self) -> SandboxPreferences:
        return dataclasses.replace(self._preferences)

    def set_preferences(self, **changes: Any) -> SandboxPreferences:
        """Update some preferences.

        The page size is clamped to the configured minimum.

        Raises:
            ValueError: Unknown preference name or invalid delete display.
        """
        unknown = set(changes) - PREFERENCE_FIELDS
        if unknown:
            raise ValueError(f"Unknown preferences: {', '.join(sorted(unknown))}")
        if "delete_display" in changes:
            changes["delete_display"] = DeleteDisplay(changes["delete_display"])
        if "panel_page_size" in changes:
            changes["panel_page_size"] = max(
                self.settings.min_page_size, int(changes["panel_page_size"])
            )

        self._preferences = dataclasses.replace(self._preferences, **changes)
        if self.state_repository is not None:
            try:
                self.state_repository.save_preferences(self._preferences)
            except StorageError as e:
                logger.warning("Could not persist sandbox preferences", error=str(e))

        self.bus.emit(
            SandboxEvent(
                SandboxEventName.ON_PREFERENCES_CHANGED,
                data={"changed": sorted(changes)},
            )
        )
        return self.get_preferences()

    def close(self) -> None:
        """Detach the store from the event bus."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
