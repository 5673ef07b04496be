"""Domain services for RowSandbox.

Services contain the sandbox logic: journal coalescing, overlay projection
and validation against the live schema.
"""

from rowsandbox.domain.services.change_journal import ChangeJournal
from rowsandbox.domain.services.overlay_engine import (
    OverlayOptions,
    apply_overlay,
    empty_overlay_result,
    get_change_diff,
    get_row_metadata,
    is_cell_modified,
)
from rowsandbox.domain.services.schema_compare import (
    SchemaDifference,
    compare_schemas,
    schemas_compatible,
)
from rowsandbox.domain.services.validation_engine import JournalSource, ValidationEngine

__all__ = [
    "ChangeJournal",
    "JournalSource",
    "OverlayOptions",
    "SchemaDifference",
    "ValidationEngine",
    "apply_overlay",
    "compare_schemas",
    "empty_overlay_result",
    "get_change_diff",
    "get_row_metadata",
    "is_cell_modified",
    "schemas_compatible",
]
