"""Conversions between domain entities and wire/persisted schemas."""

from rowsandbox.domain.entities.change import ChangeKind, ChangeRecord
from rowsandbox.domain.entities.session import (
    DeleteDisplay,
    JournalBackup,
    SandboxPreferences,
    SandboxSession,
)
from rowsandbox.domain.entities.table_schema import ColumnDef, TableSchema
from rowsandbox.domain.entities.target import Namespace, TableTarget
from rowsandbox.infrastructure.wire.dto import ChangeDto, NamespaceDto, PrimaryKeyDto
from rowsandbox.infrastructure.wire.snapshots import (
    ChangeRecordModel,
    ColumnModel,
    PreferencesModel,
    SandboxBackupModel,
    SandboxSessionModel,
    TableSchemaModel,
)


def namespace_to_dto(namespace: Namespace) -> NamespaceDto:
    return NamespaceDto(database=namespace.database, schema=namespace.schema)


def namespace_from_dto(dto: NamespaceDto) -> Namespace:
    return Namespace(database=dto.database, schema=dto.schema_)


def change_to_dto(change: ChangeRecord) -> ChangeDto:
    """Map a staged change to the DTO sent to the compiler/executor."""
    return ChangeDto(
        change_type=change.kind.value,
        namespace=namespace_to_dto(change.namespace),
        table_name=change.table_name,
        primary_key=PrimaryKeyDto(columns=change.identity) if change.identity else None,
        old_values=change.baseline or None,
        new_values=change.payload if change.kind != ChangeKind.DELETE else None,
    )


def schema_to_model(schema: TableSchema) -> TableSchemaModel:
    return TableSchemaModel(
        columns=[
            ColumnModel(
                name=col.name,
                data_type=col.data_type,
                nullable=col.nullable,
                is_primary_key=col.is_primary_key,
            )
            for col in schema.columns
        ]
    )


def schema_from_model(model: TableSchemaModel) -> TableSchema:
    return TableSchema(
        columns=tuple(
            ColumnDef(
                name=col.name,
                data_type=col.data_type,
                nullable=col.nullable,
                is_primary_key=col.is_primary_key,
            )
            for col in model.columns
        )
    )


def change_to_model(change: ChangeRecord) -> ChangeRecordModel:
    return ChangeRecordModel(
        id=change.id,
        kind=change.kind.value,
        timestamp=change.timestamp,
        session_id=change.session_id,
        namespace=namespace_to_dto(change.namespace),
        table_name=change.table_name,
        identity=change.identity,
        baseline=change.baseline,
        payload=change.payload,
        schema_snapshot=schema_to_model(change.schema_snapshot) if change.schema_snapshot else None,
    )


def change_from_model(model: ChangeRecordModel) -> ChangeRecord:
    return ChangeRecord(
        id=model.id,
        kind=ChangeKind(model.kind),
        timestamp=model.timestamp,
        session_id=model.session_id,
        target=TableTarget(namespace_from_dto(model.namespace), model.table_name),
        identity=dict(model.identity) if model.identity is not None else None,
        baseline=dict(model.baseline),
        payload=dict(model.payload),
        schema_snapshot=schema_from_model(model.schema_snapshot) if model.schema_snapshot else None,
    )


def session_to_model(session: SandboxSession) -> SandboxSessionModel:
    return SandboxSessionModel(
        session_id=session.session_id,
        is_active=session.is_active,
        activated_at=session.activated_at,
        changes=[change_to_model(c) for c in session.changes],
    )


def session_from_model(model: SandboxSessionModel) -> SandboxSession:
    return SandboxSession(
        session_id=model.session_id,
        is_active=model.is_active,
        activated_at=model.activated_at,
        changes=[change_from_model(c) for c in model.changes],
    )


def preferences_to_model(prefs: SandboxPreferences) -> PreferencesModel:
    return PreferencesModel(
        delete_display=prefs.delete_display.value,
        confirm_on_discard=prefs.confirm_on_discard,
        auto_collapse_panel=prefs.auto_collapse_panel,
        panel_page_size=prefs.panel_page_size,
    )


def preferences_from_model(model: PreferencesModel) -> SandboxPreferences:
    return SandboxPreferences(
        delete_display=DeleteDisplay(model.delete_display),
        confirm_on_discard=model.confirm_on_discard,
        auto_collapse_panel=model.auto_collapse_panel,
        panel_page_size=model.panel_page_size,
    )


def backup_to_model(backup: JournalBackup) -> SandboxBackupModel:
    return SandboxBackupModel(
        session_id=backup.session_id,
        is_active=backup.is_active,
        changes=[change_to_model(c) for c in backup.changes],
        saved_at=backup.saved_at,
    )


def backup_from_model(connection_id: str, model: SandboxBackupModel) -> JournalBackup:
    return JournalBackup(
        connection_id=connection_id,
        session_id=model.session_id,
        is_active=model.is_active,
        changes=[change_from_model(c) for c in model.changes],
        saved_at=model.saved_at,
    )
