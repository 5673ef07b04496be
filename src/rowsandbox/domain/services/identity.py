"""Row identity helpers.

Identity keys are built from canonical JSON so that values of different
JSON types never collide (``1``, ``1.0``, ``"1"`` and ``true`` are all
distinct) and nested objects compare independently of key order.
"""

import json
from typing import Any, Iterable, Mapping, Optional

from rowsandbox.domain.entities.target import TableTarget


def canonical_json(value: Any) -> str:
    """Stable JSON rendering of a value (sorted keys, no whitespace)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def identity_values_key(identity: Mapping[str, Any], columns: Optional[Iterable[str]] = None) -> str:
    """Key for the identity values, in `columns` order or sorted column order."""
    ordered = list(columns) if columns is not None else sorted(identity)
    return "|".join(f"{col}={canonical_json(identity.get(col))}" for col in ordered)


def identity_key(target: TableTarget, identity: Mapping[str, Any]) -> str:
    """`target | identity-values` key naming one logical row."""
    return f"{target.key}|{identity_values_key(identity)}"


def values_match_identity(values: Mapping[str, Any], identity: Mapping[str, Any]) -> bool:
    """Whether `values` carries every identity column with an equal value."""
    if not identity:
        return False
    for col, expected in identity.items():
        if col not in values:
            return False
        if canonical_json(values[col]) != canonical_json(expected):
            return False
    return True


def extract_identity(values: Mapping[str, Any], primary_key: Iterable[str]) -> Optional[dict[str, Any]]:
    """Pull the primary-key columns out of a row, or None if any is missing."""
    pk = list(primary_key)
    if not pk or any(col not in values for col in pk):
        return None
    return {col: values[col] for col in pk}
