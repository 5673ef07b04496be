"""Change journal: the ordered set of staged row mutations of one session.

The journal owns coalescing. For any sequence of edits on one logical row
it holds a single record whose payload is the net result and whose
baseline is the value the row had before the sandbox touched it:

    insert + update  -> insert, payload merged
    insert + delete  -> record removed
    update + update  -> update, payload merged, baseline kept
    update + delete  -> delete, payload cleared, baseline kept
    delete + delete  -> unchanged
    delete + other   -> ConflictError

Coalescing swaps in a new record under the same id, so records returned
earlier keep their contents. Mutations are synchronous and emit an
ON_JOURNAL_CHANGED event once they are complete.
"""

import copy
import dataclasses
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import JsonValue, TypeAdapter, ValidationError

from rowsandbox.core.events import EventBus, JournalAction, SandboxEvent, SandboxEventName
from rowsandbox.core.exceptions import ConflictError, InvalidValueError, JournalLimitError
from rowsandbox.core.logging import get_logger
from rowsandbox.domain.entities.change import (
    ChangeGroup,
    ChangeKind,
    ChangeRecord,
    generate_change_id,
    utcnow,
)
from rowsandbox.domain.entities.session import SandboxSession
from rowsandbox.domain.entities.table_schema import TableSchema
from rowsandbox.domain.entities.target import TableTarget
from rowsandbox.domain.services.identity import (
    extract_identity,
    identity_key,
    values_match_identity,
)

logger = get_logger(__name__)

_ROW_VALUES = TypeAdapter(dict[str, JsonValue])


def _check_values(label: str, values: Mapping[str, Any]) -> None:
    """Reject cell values that have no JSON representation."""
    try:
        _ROW_VALUES.validate_python(dict(values))
    except ValidationError as e:
        columns = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise InvalidValueError(
            f"Unsupported {label} for column(s) {', '.join(columns) or '?'}; "
            "cell values must be JSON values (null, bool, number, string, list, object)",
            columns=columns,
        ) from e


class ChangeJournal:
    """Staged changes of one sandbox session.

    Example:
        journal = ChangeJournal("session-1")
        journal.activate()
        users = TableTarget.of("app", "users")
        journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})
        journal.stage_update(users, {"id": 1}, {"name": "Bobby"}, {"name": "Rob"})
        [change] = journal.list()
        assert change.baseline["name"] == "Bob"
        assert change.payload["name"] == "Rob"
    """

    def __init__(
        self,
        session_id: str,
        bus: Optional[EventBus] = None,
        max_changes: Optional[int] = None,
        session: Optional[SandboxSession] = None,
    ) -> None:
        """Initialize the journal.

        Args:
            session_id: Live connection session id.
            bus: Event bus to publish on. A private bus is created if omitted.
            max_changes: Optional cap on the number of live records.
            session: Previously persisted session state to resume from.
        """
        if not session_id:
            raise ValueError("Journal session_id is required")
        self.bus = bus or EventBus()
        self.max_changes = max_changes
        self.session = session or SandboxSession(session_id=session_id)
        self.version = 0

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def is_active(self) -> bool:
        return self.session.is_active

    # ------------------------------------------------------------------
    # Lifecycle

    def activate(self) -> None:
        """Turn sandbox mode on, keeping any existing changes."""
        self.session.is_active = True
        self.session.activated_at = utcnow()
        logger.debug("Sandbox activated", session_id=self.session_id)
        self.bus.emit(SandboxEvent(SandboxEventName.ON_SESSION_ACTIVATED, self.session_id))

    def deactivate(self, clear_changes: bool = False) -> None:
        """Turn sandbox mode off, optionally discarding all changes."""
        if clear_changes and self.session.changes:
            self.clear()
        self.session.is_active = False
        logger.debug(
            "Sandbox deactivated",
            session_id=self.session_id,
            remaining=len(self.session.changes),
        )
        self.bus.emit(SandboxEvent(SandboxEventName.ON_SESSION_DEACTIVATED, self.session_id))

    # ------------------------------------------------------------------
    # Observation

    def on_change(self, callback: Callable[[SandboxEvent], Any]) -> Callable[[], None]:
        """Subscribe to mutations of this journal; returns an unsubscribe callable."""
        return self.bus.subscribe(
            SandboxEventName.ON_JOURNAL_CHANGED,
            callback,
            filters={"session_id": self.session_id},
        )

    def _changed(self, action: str, change: Optional[ChangeRecord] = None, **extra: Any) -> None:
        self.version += 1
        data: dict[str, Any] = {"action": action, "version": self.version, **extra}
        if change is not None:
            data["change_id"] = change.id
            data["table"] = change.target.key
        self.bus.emit(SandboxEvent(SandboxEventName.ON_JOURNAL_CHANGED, self.session_id, data))

    # ------------------------------------------------------------------
    # Staging

    def stage(
        self,
        kind: ChangeKind | str,
        target: TableTarget,
        identity: Optional[Mapping[str, Any]] = None,
        values: Optional[Mapping[str, Any]] = None,
        old_values: Optional[Mapping[str, Any]] = None,
        schema: Optional[TableSchema] = None,
    ) -> Optional[ChangeRecord]:
        """Stage a mutation, coalescing it with any live change on the same row.

        Args:
            kind: insert, update or delete.
            target: Table the row belongs to.
            identity: Primary-key values of the row (update/delete).
            values: New column values (insert/update).
            old_values: Currently displayed values of the row, captured as
                the baseline on first staging (update/delete).
            schema: Table structure as currently known, stored as the
                record's drift snapshot.

        Returns:
            The live record for the row, or None when an insert was
            annihilated by a delete.

        Raises:
            ConflictError: The row is staged for deletion, or an insert
                collides with a live change for the same identity.
            JournalLimitError: A new record would exceed `max_changes`.
            InvalidValueError: A value has no JSON representation.
        """
        kind = ChangeKind(kind)
        _check_values("value", values or {})
        _check_values("old value", old_values or {})
        _check_values("primary key value", identity or {})
        values = copy.deepcopy(dict(values or {}))
        old_values = copy.deepcopy(dict(old_values or {}))
        identity = copy.deepcopy(dict(identity)) if identity else None

        if kind == ChangeKind.INSERT:
            return self._stage_insert(target, identity, values, schema)

        existing = self._find_live(target, identity)
        if existing is None:
            return self._append(
                ChangeRecord(
                    kind=kind,
                    session_id=self.session_id,
                    target=target,
                    identity=identity,
                    baseline=old_values,
                    payload=values if kind == ChangeKind.UPDATE else {},
                    schema_snapshot=schema,
                )
            )

        if existing.kind == ChangeKind.DELETE:
            if kind == ChangeKind.DELETE:
                return existing
            logger.warning(
                "Refused to stage change on deleted row",
                session_id=self.session_id,
                change_id=existing.id,
                table=target.display_name,
                kind=kind.value,
            )
            raise ConflictError(
                f"Row in {target.display_name} is staged for deletion; "
                "discard the delete before editing it",
                change_id=existing.id,
            )

        if existing.kind == ChangeKind.INSERT:
            if kind == ChangeKind.DELETE:
                self.session.changes.remove(existing)
                logger.debug(
                    "Insert annihilated by delete",
                    session_id=self.session_id,
                    change_id=existing.id,
                )
                self._changed(JournalAction.ANNIHILATED, existing)
                return None
            return self._replace(existing, payload={**existing.payload, **values})

        # existing is an update
        baseline = dict(existing.baseline)
        for col, value in old_values.items():
            baseline.setdefault(col, value)
        if kind == ChangeKind.DELETE:
            return self._replace(
                existing, kind=ChangeKind.DELETE, baseline=baseline, payload={}
            )
        return self._replace(
            existing, baseline=baseline, payload={**existing.payload, **values}
        )

    def _stage_insert(
        self,
        target: TableTarget,
        identity: Optional[dict[str, Any]],
        values: dict[str, Any],
        schema: Optional[TableSchema],
    ) -> ChangeRecord:
        resolved = identity
        if resolved is None and schema is not None:
            resolved = extract_identity(values, schema.primary_key)

        existing = self._find_live(target, resolved)
        if existing is not None:
            logger.warning(
                "Refused to stage duplicate insert",
                session_id=self.session_id,
                change_id=existing.id,
                table=target.display_name,
            )
            raise ConflictError(
                f"A {existing.kind.value} is already staged for this row in "
                f"{target.display_name}",
                change_id=existing.id,
            )

        if identity:
            # Make sure the identity columns are part of the written row.
            for col, value in identity.items():
                values.setdefault(col, value)

        return self._append(
            ChangeRecord(
                kind=ChangeKind.INSERT,
                session_id=self.session_id,
                target=target,
                identity=None,
                baseline={},
                payload=values,
                schema_snapshot=schema,
            )
        )

    def _append(self, change: ChangeRecord) -> ChangeRecord:
        if self.max_changes is not None and len(self.session.changes) >= self.max_changes:
            logger.warning(
                "Journal limit reached",
                session_id=self.session_id,
                limit=self.max_changes,
            )
            raise JournalLimitError(self.max_changes)
        self.session.changes.append(change)
        logger.debug(
            "Change staged",
            session_id=self.session_id,
            change_id=change.id,
            kind=change.kind.value,
            table=change.target.display_name,
        )
        self._changed(JournalAction.STAGED, change)
        return change

    def _replace(self, existing: ChangeRecord, **changes: Any) -> ChangeRecord:
        """Swap `existing` for a coalesced copy at the same journal position.

        Records handed out earlier are never mutated.
        """
        merged = dataclasses.replace(existing, timestamp=utcnow(), **changes)
        index = self.session.changes.index(existing)
        self.session.changes[index] = merged
        self._changed(JournalAction.COALESCED, merged)
        return merged

    def _find_live(
        self, target: TableTarget, identity: Optional[Mapping[str, Any]]
    ) -> Optional[ChangeRecord]:
        """Live record for the row named by `identity`, if any.

        Inserts carry no identity; they match when their payload holds the
        identity columns with equal values.
        """
        if not identity:
            return None
        return _match_row(self.session.changes, target, identity)

    # Convenience wrappers -------------------------------------------------

    def stage_insert(
        self,
        target: TableTarget,
        values: Mapping[str, Any],
        schema: Optional[TableSchema] = None,
    ) -> Optional[ChangeRecord]:
        return self.stage(ChangeKind.INSERT, target, values=values, schema=schema)

    def stage_update(
        self,
        target: TableTarget,
        identity: Optional[Mapping[str, Any]],
        old_values: Mapping[str, Any],
        new_values: Mapping[str, Any],
        schema: Optional[TableSchema] = None,
    ) -> Optional[ChangeRecord]:
        return self.stage(
            ChangeKind.UPDATE,
            target,
            identity=identity,
            values=new_values,
            old_values=old_values,
            schema=schema,
        )

    def stage_delete(
        self,
        target: TableTarget,
        identity: Optional[Mapping[str, Any]],
        old_values: Optional[Mapping[str, Any]] = None,
        schema: Optional[TableSchema] = None,
    ) -> Optional[ChangeRecord]:
        return self.stage(
            ChangeKind.DELETE,
            target,
            identity=identity,
            old_values=old_values,
            schema=schema,
        )

    # ------------------------------------------------------------------
    # Removal

    def remove(self, change_id: str) -> bool:
        """Discard one change by id."""
        for change in self.session.changes:
            if change.id == change_id:
                self.session.changes.remove(change)
                self._changed(JournalAction.REMOVED, change)
                return True
        return False

    def remove_many(self, change_ids: Iterable[str]) -> int:
        """Discard several changes at once, emitting a single event."""
        ids = set(change_ids)
        before = len(self.session.changes)
        self.session.changes = [c for c in self.session.changes if c.id not in ids]
        removed = before - len(self.session.changes)
        if removed:
            self._changed(JournalAction.REMOVED, removed=removed)
        return removed

    def clear(self, target: Optional[TableTarget] = None) -> int:
        """Discard all changes, or only those of one table.

        Returns:
            Number of discarded changes.
        """
        before = len(self.session.changes)
        if target is None:
            self.session.changes = []
        else:
            self.session.changes = [c for c in self.session.changes if c.target != target]
        removed = before - len(self.session.changes)
        if removed:
            logger.debug(
                "Journal cleared",
                session_id=self.session_id,
                table=target.display_name if target else None,
                removed=removed,
            )
            extra = {"table": target.key} if target else {}
            self._changed(JournalAction.CLEARED, removed=removed, **extra)
        return removed

    # ------------------------------------------------------------------
    # Import / export

    def import_snapshot(self, records: Iterable[ChangeRecord]) -> list[ChangeRecord]:
        """Append previously exported records (backup restore).

        Records get fresh ids and this journal's session id. The import is
        all-or-nothing: if any record collides with a live change (or with
        another imported record) nothing is imported.

        Raises:
            ConflictError: An imported identity is already staged.
            JournalLimitError: The import would exceed `max_changes`.
            InvalidValueError: A record holds a value with no JSON representation.
        """
        imported: list[ChangeRecord] = []
        for record in records:
            _check_values("value", record.payload)
            _check_values("old value", record.baseline)
            _check_values("primary key value", record.identity or {})
            clone = record.clone()
            clone.id = generate_change_id()
            clone.session_id = self.session_id
            imported.append(clone)

        staged = list(self.session.changes)
        for clone in imported:
            ident = clone.identity
            if ident is None and clone.kind == ChangeKind.INSERT and clone.schema_snapshot:
                ident = extract_identity(clone.payload, clone.schema_snapshot.primary_key)
            if ident and _match_row(staged, clone.target, ident) is not None:
                raise ConflictError(
                    f"Imported change for {clone.target.display_name} collides with a "
                    "staged change",
                )
            staged.append(clone)

        if self.max_changes is not None and len(staged) > self.max_changes:
            raise JournalLimitError(self.max_changes)

        self.session.changes = staged
        if imported:
            logger.info(
                "Changes imported",
                session_id=self.session_id,
                imported=len(imported),
            )
            self._changed(JournalAction.IMPORTED, imported=len(imported))
        return imported

    def export(self) -> list[ChangeRecord]:
        """Deep copies of all changes, detached from the journal."""
        return [change.clone() for change in self.session.changes]

    # ------------------------------------------------------------------
    # Queries

    def get(self, change_id: str) -> Optional[ChangeRecord]:
        for change in self.session.changes:
            if change.id == change_id:
                return change
        return None

    def count(self) -> int:
        return len(self.session.changes)

    def has_pending(self) -> bool:
        return bool(self.session.changes)

    def latest_timestamp(self) -> Optional[datetime]:
        if not self.session.changes:
            return None
        return max(change.timestamp for change in self.session.changes)

    def grouped(self) -> list[ChangeGroup]:
        """Changes grouped per table, most recently changed table first."""
        groups: dict[str, ChangeGroup] = {}
        for change in self.session.changes:
            group = groups.get(change.target.key)
            if group is None:
                group = ChangeGroup(target=change.target)
                groups[change.target.key] = group
            group.changes.append(change)
            group.counts[change.kind.value] += 1
        return sorted(groups.values(), key=lambda g: g.latest, reverse=True)

    def __len__(self) -> int:
        return len(self.session.changes)

    # Defined last: the method name shadows the builtin inside the class body.
    def list(self, target: Optional[TableTarget] = None) -> list[ChangeRecord]:
        """Changes in staging order, optionally for one table only."""
        if target is None:
            return [c for c in self.session.changes]
        return [c for c in self.session.changes if c.target == target]


def _match_row(
    changes: Iterable[ChangeRecord], target: TableTarget, identity: Mapping[str, Any]
) -> Optional[ChangeRecord]:
    key = identity_key(target, identity)
    for change in changes:
        if change.target != target:
            continue
        if change.identity:
            if identity_key(change.target, change.identity) == key:
                return change
        elif change.kind == ChangeKind.INSERT and values_match_identity(change.payload, identity):
            return change
    return None
