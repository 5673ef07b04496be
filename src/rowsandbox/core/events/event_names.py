"""Sandbox event definitions.

Events are emitted synchronously by the journal, the session store and the
commit/backup services. Listeners subscribe through the EventBus.
"""


class SandboxEventName:
    """Sandbox event names.

    Naming pattern: ON_<SUBJECT>_<WHAT_HAPPENED>.
    """

    # Journal
    ON_JOURNAL_CHANGED = "on_journal_changed"

    # Session lifecycle
    ON_SESSION_ACTIVATED = "on_session_activated"
    ON_SESSION_DEACTIVATED = "on_session_deactivated"
    ON_SESSION_REMOVED = "on_session_removed"

    # Preferences
    ON_PREFERENCES_CHANGED = "on_preferences_changed"

    # Schema / validation / commit
    ON_SCHEMA_INVALIDATED = "on_schema_invalidated"
    ON_VALIDATION_COMPLETED = "on_validation_completed"
    ON_COMMIT_COMPLETED = "on_commit_completed"

    # Backups
    ON_BACKUP_FAILED = "on_backup_failed"


class JournalAction:
    """What a journal mutation did; carried in ON_JOURNAL_CHANGED events."""

    STAGED = "staged"
    COALESCED = "coalesced"
    ANNIHILATED = "annihilated"
    REMOVED = "removed"
    CLEARED = "cleared"
    IMPORTED = "imported"


def get_all_events() -> list[str]:
    """Get a list of all event names."""
    return [
        value
        for name, value in vars(SandboxEventName).items()
        if name.startswith("ON_")
    ]
