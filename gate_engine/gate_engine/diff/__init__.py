"""Schema fingerprinting and structural diffing."""

from gate_engine.diff.fingerprint import canonical_json, fingerprint_tables, rolling_hash, tables_payload
from gate_engine.diff.structural_diff import compute_schema_diff, plan_schema_update

__all__ = [
    "canonical_json",
    "compute_schema_diff",
    "fingerprint_tables",
    "plan_schema_update",
    "rolling_hash",
    "tables_payload",
]
