"""Marking data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

# Action ids used by the marking grid, mapped onto statuses.
_ALIASES = {
    "": "unset",
    "none": "unset",
    "checked": "pass",
    "cross": "fail",
    "empty": "reset",
}


class MarkStatus(str, Enum):
    UNSET = "unset"
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    RESET = "reset"

    @classmethod
    def parse(cls, value: Optional[str]) -> "MarkStatus":
        """Parse a status name or grid action id (case-insensitive)."""
        key = (value or "").strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown marking status: {value}") from None

    @property
    def is_decided(self) -> bool:
        return self in DECIDED_STATUSES


DECIDED_STATUSES = frozenset({MarkStatus.PASS, MarkStatus.FAIL, MarkStatus.SKIP})


class Marking(BaseModel):
    control_id: str
    status: MarkStatus = MarkStatus.UNSET
    explanation: str = ""
    notes: str = ""

    def is_default(self) -> bool:
        return self.status == MarkStatus.UNSET and not self.explanation and not self.notes
