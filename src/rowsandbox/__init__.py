"""RowSandbox - a local mutation sandbox for tabular data.

Row edits are staged in a per-session journal, overlaid on fetched rows
for display, validated against the live schema and applied as one batch.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
