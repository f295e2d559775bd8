"""Schema validation of generated SQL.

Checks that the table/column references a statement makes exist in a
captured schema snapshot before the statement is shown to anyone.
"""

from gate_engine.contracts.schema_validator import resolve_table, validate_sql_references

__all__ = [
    "resolve_table",
    "validate_sql_references",
]
