from rowsandbox.domain.entities import ColumnDef, TableSchema
from rowsandbox.domain.services import compare_schemas, schemas_compatible


def _schema(*columns: ColumnDef) -> TableSchema:
    return TableSchema(columns=columns)


ID = ColumnDef("id", "INTEGER", nullable=False, is_primary_key=True)


def test_identical_schemas_are_compatible():
    snapshot = _schema(ID, ColumnDef("age", "int"))
    assert schemas_compatible(snapshot, _schema(ID, ColumnDef("age", "int")))


def test_type_comparison_is_case_insensitive():
    assert schemas_compatible(
        _schema(ID, ColumnDef("age", "INT")), _schema(ID, ColumnDef("age", "int"))
    )


def test_type_change_is_drift():
    diffs = compare_schemas(
        _schema(ID, ColumnDef("age", "int")), _schema(ID, ColumnDef("age", "varchar"))
    )
    assert [d.code for d in diffs] == ["type_changed"]
    assert "varchar" in diffs[0].message


def test_column_set_changes():
    diffs = compare_schemas(
        _schema(ID, ColumnDef("age", "int")), _schema(ID, ColumnDef("email", "text"))
    )
    assert {d.code for d in diffs} == {"column_removed", "column_added"}


def test_nullability_change():
    diffs = compare_schemas(
        _schema(ID, ColumnDef("age", "int", nullable=True)),
        _schema(ID, ColumnDef("age", "int", nullable=False)),
    )
    assert [d.code for d in diffs] == ["nullability_changed"]


def test_primary_key_change():
    diffs = compare_schemas(
        _schema(ID, ColumnDef("email", "text", nullable=False)),
        _schema(
            ColumnDef("id", "INTEGER", nullable=False),
            ColumnDef("email", "text", nullable=False, is_primary_key=True),
        ),
    )
    assert [d.code for d in diffs] == ["primary_key_changed"]
