"""Reactive overlay of one table.

The view subscribes to journal and preference events and recomputes its
overlay whenever either changes, so readers always see the current state.
"""

from typing import Any, Callable, Optional

from rowsandbox.application.services.sandbox_store import SandboxStore
from rowsandbox.core.events import SandboxEvent, SandboxEventName
from rowsandbox.domain.entities.overlay import OverlayResult, QueryResult
from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import TableTarget
from rowsandbox.domain.services.overlay_engine import (
    OverlayOptions,
    apply_overlay,
    empty_overlay_result,
)


class OverlayView:
    """Keeps an OverlayResult for one (session, table) pair up to date.

    Example:
        view = OverlayView(store, "s-1", users, base_rows, schema)
        view.on_update(lambda result: render(result))
        store.get_journal("s-1").stage_delete(users, {"id": 2}, {"id": 2})
        # render() has been called with the new overlay
        view.close()
    """

    def __init__(
        self,
        store: SandboxStore,
        session_id: str,
        target: TableTarget,
        base: QueryResult,
        schema: Optional[TableSchema] = None,
    ) -> None:
        self.store = store
        self.session_id = session_id
        self.target = target
        self.base = base
        self.schema = schema
        self._callbacks: list[Callable[[OverlayResult], Any]] = []
        self._unsubscribers = [
            store.on_change(session_id, self._on_journal_event),
            store.bus.subscribe(
                SandboxEventName.ON_PREFERENCES_CHANGED, self._on_event
            ),
            store.bus.subscribe(
                SandboxEventName.ON_SESSION_ACTIVATED,
                self._on_event,
                filters={"session_id": session_id},
            ),
            store.bus.subscribe(
                SandboxEventName.ON_SESSION_DEACTIVATED,
                self._on_event,
                filters={"session_id": session_id},
            ),
        ]
        self.result = self._compute()

    def _compute(self) -> OverlayResult:
        if not self.store.is_active(self.session_id):
            return empty_overlay_result(self.base)
        journal = self.store.get_journal(self.session_id)
        options = OverlayOptions(
            delete_display=self.store.get_preferences().delete_display,
            target=self.target,
        )
        return apply_overlay(self.base, journal.list(self.target), self.schema, options)

    def _on_journal_event(self, event: SandboxEvent) -> None:
        table = event.data.get("table")
        if table is not None and table != self.target.key:
            return
        self.refresh()

    def _on_event(self, event: SandboxEvent) -> None:
        self.refresh()

    def refresh(self) -> OverlayResult:
        """Recompute the overlay and notify update callbacks."""
        self.result = self._compute()
        for callback in list(self._callbacks):
            callback(self.result)
        return self.result

    def set_base(self, base: QueryResult, schema: Optional[TableSchema] = None) -> OverlayResult:
        """Replace the base rows (e.g. after paging) and recompute."""
        self.base = base
        if schema is not None:
            self.schema = schema
        return self.refresh()

    def on_update(self, callback: Callable[[OverlayResult], Any]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._callbacks.clear()
