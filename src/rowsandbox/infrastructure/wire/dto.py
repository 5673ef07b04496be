"""Pydantic schemas exchanged with the migration compiler and executor."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, JsonValue


class NamespaceDto(BaseModel):
    """Database namespace on the wire."""

    database: str
    schema_: Optional[str] = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class PrimaryKeyDto(BaseModel):
    """Primary-key values identifying one row."""

    columns: dict[str, JsonValue]


class ChangeDto(BaseModel):
    """One staged change, as sent to the collaborators."""

    change_type: Literal["insert", "update", "delete"]
    namespace: NamespaceDto
    table_name: str = Field(..., min_length=1)
    primary_key: Optional[PrimaryKeyDto] = None
    old_values: Optional[dict[str, JsonValue]] = None
    new_values: Optional[dict[str, JsonValue]] = None

    model_config = {"populate_by_name": True}


class MigrationScript(BaseModel):
    """Migration-compiler response."""

    sql: str
    statement_count: int = Field(default=0, ge=0)
    warnings: list[str] = Field(default_factory=list)


class FailedChange(BaseModel):
    """A change the executor could not apply."""

    index: int = Field(..., ge=0)
    error: str


class ApplyResult(BaseModel):
    """Executor response."""

    success: bool
    applied_count: int = Field(default=0, ge=0)
    error: Optional[str] = None
    failed_changes: list[FailedChange] = Field(default_factory=list)
