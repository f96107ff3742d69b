"""Per-control marking state.

Markings are keyed by control id; the last write wins. There are two ways
of clearing:

- selecting the current status again (or ``reset(control_id)``) clears the
  status only, keeping explanation and notes;
- ``reset_all()`` clears status, explanation and notes for every control.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..models.marking import DECIDED_STATUSES, MarkStatus, Marking
from .errors import ValidationError

logger = logging.getLogger(__name__)


def validate_marking(marking: Marking) -> None:
    """A decided marking (pass/fail/skip) needs a non-empty explanation."""
    if marking.status in DECIDED_STATUSES and not marking.explanation.strip():
        raise ValidationError(
            f"An explanation is required to mark {marking.control_id} as {marking.status.value}.",
            field="explanation",
        )


class MarkingState:
    def __init__(self) -> None:
        self._markings: dict[str, Marking] = {}

    def get(self, control_id: str) -> Marking:
        """Current marking for a control, or the default record."""
        existing = self._markings.get(control_id)
        if existing is None:
            return Marking(control_id=control_id)
        return existing.model_copy()

    def _upsert(self, control_id: str, **changes) -> Marking:
        current = self._markings.get(control_id) or Marking(control_id=control_id)
        updated = current.model_copy(update=changes)
        self._markings[control_id] = updated
        return updated

    def set_status(self, control_id: str, status: MarkStatus) -> Marking:
        """Apply a status; selecting the current status again clears it."""
        status = MarkStatus(status)
        if status == MarkStatus.RESET:
            return self.reset(control_id)

        current = self.get(control_id).status
        new_status = MarkStatus.UNSET if status == current else status
        logger.debug("Control %s: %s -> %s", control_id, current.value, new_status.value)
        return self._upsert(control_id, status=new_status)

    def set_explanation(self, control_id: str, text: str) -> Marking:
        return self._upsert(control_id, explanation=text or "")

    def set_notes(self, control_id: str, text: str) -> Marking:
        return self._upsert(control_id, notes=text or "")

    def mark(
        self,
        control_id: str,
        status: MarkStatus,
        explanation: str,
        notes: Optional[str] = None,
    ) -> Marking:
        """Record a decision together with its explanation.

        Unlike set_status this never toggles: the given status is stored
        as-is. Validation runs before anything is written.
        """
        status = MarkStatus(status)
        if status == MarkStatus.RESET:
            status = MarkStatus.UNSET
        current = self.get(control_id)
        candidate = current.model_copy(update={
            "status": status,
            "explanation": explanation or "",
            "notes": current.notes if notes is None else notes,
        })
        validate_marking(candidate)
        self._markings[control_id] = candidate
        logger.debug("Control %s marked %s", control_id, status.value)
        return candidate.model_copy()

    def reset(self, control_id: str) -> Marking:
        """Clear the status of one control, keeping explanation and notes."""
        logger.debug("Control %s reset", control_id)
        return self._upsert(control_id, status=MarkStatus.UNSET)

    def reset_all(self) -> None:
        """Clear status, explanation and notes for every control."""
        logger.debug("Resetting %d markings", len(self._markings))
        self._markings.clear()

    def markings(self) -> dict[str, Marking]:
        """Snapshot of every non-default marking."""
        return {
            cid: m.model_copy()
            for cid, m in self._markings.items()
            if not m.is_default()
        }

    def status_of(self, control_id: str) -> MarkStatus:
        existing = self._markings.get(control_id)
        return existing.status if existing else MarkStatus.UNSET

    def has_decisions(self) -> bool:
        return any(m.status in DECIDED_STATUSES for m in self._markings.values())

    def __len__(self) -> int:
        return len(self.markings())

    def __contains__(self, control_id: object) -> bool:
        return control_id in self._markings
