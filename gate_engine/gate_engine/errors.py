"""Exception types shared across the gate engine.

Only genuinely exceptional input raises.  Dangerous statements, unknown
references and no-op schema updates are structured results, never
exceptions.
"""

from __future__ import annotations


class GateError(Exception):
    """Base exception for all gate engine errors."""


class InputError(GateError, ValueError):
    """Malformed or missing input (empty SQL, invalid schema payload, bad name)."""


class SnapshotNotFoundError(GateError, LookupError):
    """A named snapshot does not exist for the requesting owner."""

    def __init__(self, owner_id: str, name: str) -> None:
        self.owner_id = owner_id
        self.name = name
        super().__init__(f"Schema snapshot '{name}' not found")
