"""Unit tests for wire DTO and snapshot mapping."""

import json

from rowsandbox.domain.entities import ChangeKind, TableTarget
from rowsandbox.domain.services import ChangeJournal
from rowsandbox.infrastructure.wire import ChangeDto, change_to_dto
from rowsandbox.infrastructure.wire.mappers import (
    change_from_model,
    change_to_model,
    session_from_model,
    session_to_model,
)
from rowsandbox.infrastructure.wire.snapshots import ChangeRecordModel


def test_update_dto(journal, users):
    change = journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})

    dto = change_to_dto(change)

    assert dto.change_type == "update"
    assert dto.namespace.database == "app"
    assert dto.primary_key.columns == {"id": 1}
    assert dto.old_values == {"name": "Bob"}
    assert dto.new_values == {"name": "Bobby"}


def test_insert_dto_has_no_primary_key(journal, users):
    change = journal.stage_insert(users, {"id": 5, "name": "Eve"})

    dto = change_to_dto(change)

    assert dto.primary_key is None
    assert dto.old_values is None
    assert dto.new_values == {"id": 5, "name": "Eve"}


def test_delete_dto_has_no_new_values(journal, users):
    change = journal.stage_delete(users, {"id": 2}, {"id": 2, "name": "Alice"})

    dto = change_to_dto(change)

    assert dto.new_values is None
    assert dto.old_values == {"id": 2, "name": "Alice"}


def test_dto_serializes_schema_key(journal):
    target = TableTarget.of("app", "users", schema="public")
    change = journal.stage_update(target, {"id": 1}, {}, {"name": "x"})

    payload = json.loads(change_to_dto(change).model_dump_json(by_alias=True))

    assert payload["namespace"] == {"database": "app", "schema": "public"}
    assert ChangeDto.model_validate(payload).namespace.schema_ == "public"


def test_change_model_preserves_json_types(journal, users, users_schema):
    change = journal.stage_update(
        users,
        {"id": 1},
        {"meta": None, "flag": False},
        {"meta": {"b": [1, 2.5, "x"]}, "flag": True, "count": 1, "ratio": 1.0},
        schema=users_schema,
    )

    raw = change_to_model(change).model_dump_json()
    restored = change_from_model(ChangeRecordModel.model_validate_json(raw))

    assert restored == change
    assert restored.kind == ChangeKind.UPDATE
    assert type(restored.payload["count"]) is int
    assert type(restored.payload["ratio"]) is float
    assert restored.baseline["meta"] is None


def test_session_model(users):
    journal = ChangeJournal("s-1")
    journal.activate()
    journal.stage_delete(users, {"id": 3}, {"id": 3})

    restored = session_from_model(session_to_model(journal.session))

    assert restored == journal.session
