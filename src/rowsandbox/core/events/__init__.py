"""Sandbox event system.

Exports the event bus and event names used for reactive recomputation.
"""

from rowsandbox.core.events.event_bus import EventBus, RegisteredListener, SandboxEvent
from rowsandbox.core.events.event_names import (
    JournalAction,
    SandboxEventName,
    get_all_events,
)

__all__ = [
    "EventBus",
    "JournalAction",
    "RegisteredListener",
    "SandboxEvent",
    "SandboxEventName",
    "get_all_events",
]
