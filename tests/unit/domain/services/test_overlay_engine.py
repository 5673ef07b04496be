"""Unit tests for the overlay engine."""

import copy

import pytest

from rowsandbox.domain.entities import DeleteDisplay, QueryResult, TableTarget
from rowsandbox.domain.services import (
    ChangeJournal,
    OverlayOptions,
    apply_overlay,
    empty_overlay_result,
    get_change_diff,
    get_row_metadata,
    is_cell_modified,
)


@pytest.fixture
def base() -> QueryResult:
    return QueryResult(
        columns=["id", "name", "age"],
        rows=[[1, "Bob", 30], [2, "Alice", 25]],
    )


class TestDeleteDisplay:
    def test_hidden_mode_drops_deleted_row(self, journal, users, users_schema):
        base = QueryResult(columns=["id"], rows=[[1], [2]])
        journal.stage_delete(users, {"id": 2}, {"id": 2})

        result = apply_overlay(
            base, journal.list(), users_schema, OverlayOptions(delete_display=DeleteDisplay.HIDDEN)
        )

        assert result.rows == [[1]]
        assert result.stats.deleted == 1
        assert result.stats.hidden == 1

    def test_strikethrough_mode_annotates_deleted_row(self, journal, users, users_schema):
        base = QueryResult(columns=["id"], rows=[[1], [2]])
        journal.stage_delete(users, {"id": 2}, {"id": 2})

        result = apply_overlay(
            base,
            journal.list(),
            users_schema,
            OverlayOptions(delete_display=DeleteDisplay.STRIKETHROUGH),
        )

        assert result.rows == [[1], [2]]
        assert result.row_metadata[1].is_deleted is True
        assert 0 not in result.row_metadata
        assert result.stats.deleted == 1
        assert result.stats.hidden == 0


class TestOverlay:
    def test_update_splices_changed_columns(self, journal, users, users_schema, base):
        journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})

        result = apply_overlay(base, journal.list(), users_schema)

        assert result.rows[0] == [1, "Bobby", 30]
        meta = get_row_metadata(result, 0)
        assert meta.is_modified is True
        assert meta.modified_columns == {"name"}
        assert is_cell_modified(result, 0, "name") is True
        assert is_cell_modified(result, 0, "age") is False
        assert result.stats.modified == 1

    def test_inserts_are_prepended_in_staging_order(self, journal, users, users_schema, base):
        journal.stage_insert(users, {"id": 5, "name": "Eve"}, schema=users_schema)
        journal.stage_insert(users, {"id": 6, "name": "Finn", "age": 3}, schema=users_schema)

        result = apply_overlay(base, journal.list(), users_schema)

        assert result.rows[:2] == [[5, "Eve", None], [6, "Finn", 3]]
        assert result.rows[2:] == base.rows
        assert result.row_metadata[0].is_inserted is True
        assert result.row_metadata[0].modified_columns == {"id", "name"}
        assert result.stats.inserted == 2

    def test_row_metadata_indices_shift_after_inserts(self, journal, users, users_schema, base):
        journal.stage_insert(users, {"id": 5, "name": "Eve"}, schema=users_schema)
        journal.stage_update(users, {"id": 2}, {"name": "Alice"}, {"name": "Ally"})

        result = apply_overlay(base, journal.list(), users_schema)

        assert result.rows[2] == [2, "Ally", 25]
        assert result.row_metadata[2].is_modified is True
        assert 1 not in result.row_metadata

    def test_unmatched_changes_are_reported(self, journal, users, users_schema, base):
        journal.stage_update(users, {"id": 99}, {}, {"name": "ghost"})
        journal.stage_delete(users, {"id": 98}, {"id": 98})

        result = apply_overlay(base, journal.list(), users_schema)

        assert result.rows == base.rows
        assert result.stats.unmatched == 2
        assert [c.identity for c in result.unmatched] == [{"id": 99}, {"id": 98}]

    def test_insert_only_without_primary_key_column(self, journal, users, users_schema):
        base = QueryResult(columns=["name"], rows=[["Bob"]])
        journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})
        journal.stage_insert(users, {"id": 5, "name": "Eve"}, schema=users_schema)

        result = apply_overlay(base, journal.list(), users_schema)

        assert result.insert_only is True
        assert result.rows == [["Eve"], ["Bob"]]
        assert result.stats.unmatched == 1
        assert result.stats.modified == 0

    def test_insert_only_without_schema(self, journal, users, base):
        journal.stage_delete(users, {"id": 1}, {"id": 1})

        result = apply_overlay(base, journal.list(), None)

        assert result.insert_only is True
        assert result.rows == base.rows
        assert result.stats.unmatched == 1

    def test_primary_key_override(self, journal, users, base):
        journal.stage_delete(users, {"id": 1}, {"id": 1})

        result = apply_overlay(
            base,
            journal.list(),
            None,
            OverlayOptions(delete_display=DeleteDisplay.HIDDEN, primary_key=("id",)),
        )

        assert result.rows == [[2, "Alice", 25]]

    def test_target_option_filters_other_tables(self, journal, users, users_schema, base):
        orders = TableTarget.of("app", "orders")
        journal.stage_update(orders, {"id": 1}, {}, {"name": "not a user"})

        result = apply_overlay(base, journal.list(), users_schema, OverlayOptions(target=users))

        assert result.rows == base.rows
        assert result.stats.unmatched == 0

    def test_composite_primary_key(self, users):
        from rowsandbox.domain.entities import ColumnDef, TableSchema

        schema = TableSchema(
            columns=(
                ColumnDef("org", "TEXT", nullable=False, is_primary_key=True),
                ColumnDef("id", "INTEGER", nullable=False, is_primary_key=True),
                ColumnDef("name", "TEXT"),
            )
        )
        base = QueryResult(columns=["org", "id", "name"], rows=[["a", 1, "x"], ["b", 1, "y"]])
        journal = ChangeJournal("s-1")
        journal.stage_update(users, {"id": 1, "org": "b"}, {"name": "y"}, {"name": "z"})

        result = apply_overlay(base, journal.list(), schema)

        assert result.rows == [["a", 1, "x"], ["b", 1, "z"]]

    def test_overlay_is_deterministic_and_pure(self, journal, users, users_schema, base):
        journal.stage_insert(users, {"id": 5, "name": "Eve", "tags": ["x"]}, schema=users_schema)
        journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})
        journal.stage_delete(users, {"id": 2}, {"id": 2})
        changes = journal.list()
        base_before = copy.deepcopy(base)
        changes_before = copy.deepcopy(changes)

        first = apply_overlay(base, changes, users_schema)
        second = apply_overlay(base, changes, users_schema)

        assert first == second
        assert base == base_before
        assert changes == changes_before

        first.rows[1][1] = "mutated"
        assert base.rows[0][1] == "Bob"

    def test_earlier_result_survives_later_edits(self, journal, users, users_schema, base):
        journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})
        journal.stage_update(users, {"id": 2}, {"age": 25}, {"age": 26})
        earlier = apply_overlay(base, journal.list(), users_schema)

        journal.stage_update(users, {"id": 1}, {"name": "Bobby"}, {"name": "Rob"})
        journal.stage_delete(users, {"id": 2}, {"id": 2, "age": 26})

        assert earlier.row_metadata[0].change.payload == {"name": "Bobby"}
        assert earlier.row_metadata[1].change.kind.value == "update"
        assert earlier.row_metadata[1].change.payload == {"age": 26}
        assert earlier.rows == [[1, "Bobby", 30], [2, "Alice", 26]]

        later = apply_overlay(base, journal.list(), users_schema)
        assert later.rows == [[1, "Rob", 30], [2, "Alice", 25]]
        assert later.row_metadata[1].is_deleted is True


def test_empty_overlay_result(base):
    result = empty_overlay_result(base)

    assert result.rows == base.rows
    assert result.rows is not base.rows
    assert result.row_metadata == {}


class TestChangeDiff:
    def test_insert_diff(self, journal, users):
        change = journal.stage_insert(users, {"id": 5, "name": "Eve"})
        diffs = get_change_diff(change)
        assert [(d.column, d.old_value, d.new_value) for d in diffs] == [
            ("id", None, 5),
            ("name", None, "Eve"),
        ]

    def test_update_diff(self, journal, users):
        change = journal.stage_update(users, {"id": 1}, {"name": "Bob"}, {"name": "Bobby"})
        [diff] = get_change_diff(change)
        assert (diff.column, diff.old_value, diff.new_value) == ("name", "Bob", "Bobby")

    def test_delete_diff(self, journal, users):
        change = journal.stage_delete(users, {"id": 2}, {"id": 2, "name": "Alice"})
        diffs = get_change_diff(change)
        assert all(d.new_value is None for d in diffs)
        assert {d.column: d.old_value for d in diffs} == {"id": 2, "name": "Alice"}
