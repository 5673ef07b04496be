"""Sandbox sessions and user preferences."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from rowsandbox.domain.entities.change import ChangeRecord


class DeleteDisplay(str, Enum):
    """How rows staged for deletion are displayed."""

    STRIKETHROUGH = "strikethrough"
    HIDDEN = "hidden"


@dataclass
class SandboxSession:
    """Sandbox state for one live connection session.

    Attributes:
        session_id: Live connection session id (changes on every connect).
        is_active: Whether sandbox mode is on.
        activated_at: When sandbox mode was last turned on.
        changes: Staged changes in staging order.
    """

    session_id: str
    is_active: bool = False
    activated_at: Optional[datetime] = None
    changes: list[ChangeRecord] = field(default_factory=list)


@dataclass
class SandboxPreferences:
    """Process-wide sandbox preferences."""

    delete_display: DeleteDisplay = DeleteDisplay.STRIKETHROUGH
    confirm_on_discard: bool = True
    auto_collapse_panel: bool = False
    panel_page_size: int = 100

    def __post_init__(self) -> None:
        if not isinstance(self.delete_display, DeleteDisplay):
            self.delete_display = DeleteDisplay(self.delete_display)


@dataclass
class JournalBackup:
    """Crash-recovery snapshot of a journal, keyed by the stable connection id.

    Attributes:
        connection_id: Physical connection id (survives reconnects).
        session_id: Session the snapshot was taken from.
        is_active: Whether sandbox mode was on at snapshot time.
        changes: Snapshot of the staged changes.
        saved_at: Most recent change timestamp, or the save time when empty.
    """

    connection_id: str
    session_id: str
    saved_at: datetime
    is_active: bool = False
    changes: list[ChangeRecord] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)
