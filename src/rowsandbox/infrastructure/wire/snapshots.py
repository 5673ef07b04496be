"""Pydantic schemas for locally persisted sandbox state.

Stored shapes:
- state: session id -> SandboxSession
- backups: connection id -> {changes, saved_at}
- preferences
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, JsonValue

from rowsandbox.infrastructure.wire.dto import NamespaceDto


class ColumnModel(BaseModel):
    name: str
    data_type: str = ""
    nullable: bool = True
    is_primary_key: bool = False


class TableSchemaModel(BaseModel):
    columns: list[ColumnModel] = Field(default_factory=list)


class ChangeRecordModel(BaseModel):
    """Serialized ChangeRecord."""

    id: str
    kind: Literal["insert", "update", "delete"]
    timestamp: datetime
    session_id: str
    namespace: NamespaceDto
    table_name: str
    identity: Optional[dict[str, JsonValue]] = None
    baseline: dict[str, JsonValue] = Field(default_factory=dict)
    payload: dict[str, JsonValue] = Field(default_factory=dict)
    schema_snapshot: Optional[TableSchemaModel] = None

    model_config = {"populate_by_name": True}


class SandboxSessionModel(BaseModel):
    session_id: str
    is_active: bool = False
    activated_at: Optional[datetime] = None
    changes: list[ChangeRecordModel] = Field(default_factory=list)


class SandboxStateModel(BaseModel):
    sessions: dict[str, SandboxSessionModel] = Field(default_factory=dict)


class SandboxBackupModel(BaseModel):
    session_id: str
    is_active: bool = False
    changes: list[ChangeRecordModel] = Field(default_factory=list)
    saved_at: datetime


class BackupIndexModel(BaseModel):
    backups: dict[str, SandboxBackupModel] = Field(default_factory=dict)


class PreferencesModel(BaseModel):
    delete_display: Literal["strikethrough", "hidden"] = "strikethrough"
    confirm_on_discard: bool = True
    auto_collapse_panel: bool = False
    panel_page_size: int = 100
