"""Repository for persisted sandbox sessions and preferences."""

from typing import Optional

from pydantic import ValidationError

from rowsandbox.core.exceptions import StorageError
from rowsandbox.domain.entities.session import SandboxPreferences, SandboxSession
from rowsandbox.infrastructure.storage.base import KeyValueStore
from rowsandbox.infrastructure.wire.mappers import (
    preferences_from_model,
    preferences_to_model,
    session_from_model,
    session_to_model,
)
from rowsandbox.infrastructure.wire.snapshots import PreferencesModel, SandboxStateModel

STATE_KEY = "rowsandbox_sandbox_state"
PREFERENCES_KEY = "rowsandbox_sandbox_prefs"


class SandboxStateRepository:
    """Reads and writes the session map and the preferences."""

    def __init__(self, store: KeyValueStore) -> None:
        """Initialize the repository.

        Args:
            store: Key-value store backing the state.
        """
        self.store = store

    def load_sessions(self) -> dict[str, SandboxSession]:
        """Load all persisted sessions keyed by session id.

        Raises:
            StorageError: The stored state cannot be read or parsed.
        """
        raw = self.store.get(STATE_KEY)
        if raw is None:
            return {}
        try:
            model = SandboxStateModel.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt sandbox state: {e}", key=STATE_KEY) from e
        return {sid: session_from_model(s) for sid, s in model.sessions.items()}

    def save_sessions(self, sessions: dict[str, SandboxSession]) -> None:
        """Replace the persisted session map.

        Raises:
            StorageError: A session holds values that cannot be serialized,
                or the store cannot be written.
        """
        try:
            model = SandboxStateModel(
                sessions={sid: session_to_model(s) for sid, s in sessions.items()}
            )
        except ValidationError as e:
            raise StorageError(f"Unserializable sandbox state: {e}", key=STATE_KEY) from e
        self.store.set(STATE_KEY, model.model_dump_json().encode("utf-8"))

    def load_preferences(self) -> Optional[SandboxPreferences]:
        """Load preferences, or None when nothing was saved yet."""
        raw = self.store.get(PREFERENCES_KEY)
        if raw is None:
            return None
        try:
            model = PreferencesModel.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt sandbox preferences: {e}", key=PREFERENCES_KEY) from e
        return preferences_from_model(model)

    def save_preferences(self, preferences: SandboxPreferences) -> None:
        try:
            model = preferences_to_model(preferences)
        except ValidationError as e:
            raise StorageError(
                f"Unserializable sandbox preferences: {e}", key=PREFERENCES_KEY
            ) from e
        self.store.set(PREFERENCES_KEY, model.model_dump_json().encode("utf-8"))
