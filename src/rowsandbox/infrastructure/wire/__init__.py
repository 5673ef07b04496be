"""Wire and persistence schemas (Pydantic)."""

from rowsandbox.infrastructure.wire.dto import (
    ApplyResult,
    ChangeDto,
    FailedChange,
    MigrationScript,
    NamespaceDto,
    PrimaryKeyDto,
)
from rowsandbox.infrastructure.wire.mappers import (
    change_from_model,
    change_to_dto,
    change_to_model,
)

__all__ = [
    "ApplyResult",
    "ChangeDto",
    "FailedChange",
    "MigrationScript",
    "NamespaceDto",
    "PrimaryKeyDto",
    "change_from_model",
    "change_to_dto",
    "change_to_model",
]
