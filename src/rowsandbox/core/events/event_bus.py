"""Event bus - synchronous observer registry for sandbox events.

Journal mutations run to completion before any listener observes state,
so delivery is synchronous and in-order:
- Registration with optional tag filters (e.g. {"session_id": "s-1"})
- Delivery in priority order, then registration order
- A failing listener is logged and does not stop delivery to the others
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from rowsandbox.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SandboxEvent:
    """An event delivered to listeners.

    Attributes:
        name: Event name (see SandboxEventName).
        session_id: Session the event concerns, if any.
        data: Event specific payload.
    """

    name: str
    session_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class RegisteredListener:
    """Internal representation of a registered listener."""

    id: str
    event: str
    callback: Callable[[SandboxEvent], Any]
    filters: dict[str, Any] = field(default_factory=dict)
    priority: int = 0
    registration_order: int = 0


class EventBus:
    """Central listener registration and delivery.

    Example:
        bus = EventBus()
        unsubscribe = bus.subscribe(
            SandboxEventName.ON_JOURNAL_CHANGED,
            lambda event: print(event.data["action"]),
            filters={"session_id": "s-1"},
        )
        bus.emit(SandboxEvent(SandboxEventName.ON_JOURNAL_CHANGED, "s-1", {...}))
        unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[RegisteredListener]] = {}
        self._listener_map: dict[str, RegisteredListener] = {}
        self._registration_counter: int = 0

    def register(
        self,
        event: str,
        callback: Callable[[SandboxEvent], Any],
        filters: Optional[dict[str, Any]] = None,
        priority: int = 0,
    ) -> str:
        """Register a listener for an event.

        Args:
            event: Event name.
            callback: Called with the SandboxEvent.
            filters: Listener only fires if every filter key matches the
                     emitted event's tags.
            priority: Higher priority listeners run first.

        Returns:
            Unique listener id for later removal.
        """
        listener_id = f"lsn_{uuid.uuid4().hex[:12]}"
        self._registration_counter += 1

        listener = RegisteredListener(
            id=listener_id,
            event=event,
            callback=callback,
            filters=filters or {},
            priority=priority,
            registration_order=self._registration_counter,
        )
        self._listeners.setdefault(event, []).append(listener)
        self._listener_map[listener_id] = listener

        logger.debug(
            "Listener registered",
            listener_id=listener_id,
            sandbox_event=event,
            filters=filters,
        )
        return listener_id

    def unregister(self, listener_id: str) -> bool:
        """Remove a registered listener.

        Returns:
            True if the listener was removed, False if it was not found.
        """
        listener = self._listener_map.pop(listener_id, None)
        if listener is None:
            return False

        remaining = [
            lsn for lsn in self._listeners.get(listener.event, []) if lsn.id != listener_id
        ]
        if remaining:
            self._listeners[listener.event] = remaining
        else:
            self._listeners.pop(listener.event, None)
        return True

    def subscribe(
        self,
        event: str,
        callback: Callable[[SandboxEvent], Any],
        filters: Optional[dict[str, Any]] = None,
        priority: int = 0,
    ) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        listener_id = self.register(event, callback, filters=filters, priority=priority)

        def unsubscribe() -> None:
            self.unregister(listener_id)

        return unsubscribe

    def emit(self, event: SandboxEvent) -> int:
        """Deliver an event to every matching listener.

        Returns:
            Number of listeners that handled the event without raising.
        """
        listeners = self._listeners.get(event.name)
        if not listeners:
            return 0

        tags = {"session_id": event.session_id, **event.data}
        matching = [lsn for lsn in listeners if self._matches(lsn, tags)]
        delivered = 0
        for listener in sorted(matching, key=lambda lsn: (-lsn.priority, lsn.registration_order)):
            try:
                listener.callback(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "Event listener failed",
                    listener_id=listener.id,
                    sandbox_event=event.name,
                    session_id=event.session_id,
                    error=str(e),
                )
        return delivered

    @staticmethod
    def _matches(listener: RegisteredListener, tags: dict[str, Any]) -> bool:
        for key, value in listener.filters.items():
            if tags.get(key) != value:
                return False
        return True

    def listener_count(self, event: Optional[str] = None) -> int:
        """Count registered listeners, optionally for one event."""
        if event is None:
            return len(self._listener_map)
        return len(self._listeners.get(event, []))

    def clear(self) -> None:
        """Remove every listener."""
        self._listeners.clear()
        self._listener_map.clear()
