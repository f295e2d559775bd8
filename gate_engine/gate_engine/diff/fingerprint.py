"""Deterministic schema fingerprints.

The fingerprint is a 32-bit multiplicative rolling hash (``h = h * 31 + c``
over UTF-16 code units) of the canonical JSON form of the table mapping,
rendered as eight lower-case hex digits.  Canonical JSON sorts object keys
and uses compact separators, so the insertion order of tables never
affects the result while column order (declaration order) does.

The hash is a change-detection signal for snapshot versioning, not a
security control.
"""

from __future__ import annotations

import json
import struct
from collections.abc import Mapping
from typing import Any

from gate_engine.models.schema import TableDef

_MASK_32 = 0xFFFFFFFF


def canonical_json(value: Any) -> str:
    """Serialise *value* with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def rolling_hash(text: str) -> str:
    """Return the 8-hex-digit rolling hash of *text*."""
    h = 0
    for (unit,) in struct.iter_unpack("<H", text.encode("utf-16-le")):
        h = (h * 31 + unit) & _MASK_32
    return f"{h:08x}"


def tables_payload(tables: Mapping[str, TableDef]) -> dict[str, Any]:
    """JSON-ready form of *tables* using the persisted field names."""
    return {name: table.model_dump(mode="json", by_alias=True, exclude_none=True) for name, table in tables.items()}


def fingerprint_tables(tables: Mapping[str, TableDef]) -> str:
    """Fingerprint of a table mapping."""
    return rolling_hash(canonical_json(tables_payload(tables)))
