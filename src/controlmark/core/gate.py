"""Completion gate: when a configuration may be saved and reported on.

Saving needs at least one decision; generating a report needs a decision
for every control in the catalog.
"""

from __future__ import annotations

from pydantic import BaseModel

from ..models.marking import DECIDED_STATUSES, MarkStatus
from .catalog import ControlCatalog
from .marking import MarkingState


class Progress(BaseModel):
    total: int
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    remaining: int = 0
    report_ready: bool = False
    save_eligible: bool = False

    @property
    def marked(self) -> int:
        return self.passed + self.failed + self.skipped

    def describe(self) -> str:
        if self.total == 0:
            return "No controls loaded"
        if self.remaining == 0:
            return f"All {self.total} controls marked"
        return f"{self.marked} of {self.total} controls marked, {self.remaining} remaining"


def is_report_ready(catalog: ControlCatalog, state: MarkingState) -> bool:
    """True iff every control in the catalog has a pass/fail/skip decision."""
    return remaining_count(catalog, state) == 0


def is_save_eligible(state: MarkingState) -> bool:
    """True iff at least one control has a decision."""
    return state.has_decisions()


def remaining_count(catalog: ControlCatalog, state: MarkingState) -> int:
    return sum(1 for c in catalog if state.status_of(c.id) not in DECIDED_STATUSES)


def missing_explanations(catalog: ControlCatalog, state: MarkingState) -> list[str]:
    """Ids of decided controls that still lack an explanation, in catalog order."""
    missing: list[str] = []
    for control in catalog:
        marking = state.get(control.id)
        if marking.status in DECIDED_STATUSES and not marking.explanation.strip():
            missing.append(control.id)
    return missing


def progress(catalog: ControlCatalog, state: MarkingState) -> Progress:
    counts = {MarkStatus.PASS: 0, MarkStatus.FAIL: 0, MarkStatus.SKIP: 0}
    for control in catalog:
        status = state.status_of(control.id)
        if status in counts:
            counts[status] += 1
    remaining = remaining_count(catalog, state)
    return Progress(
        total=len(catalog),
        passed=counts[MarkStatus.PASS],
        failed=counts[MarkStatus.FAIL],
        skipped=counts[MarkStatus.SKIP],
        remaining=remaining,
        report_ready=remaining == 0,
        save_eligible=is_save_eligible(state),
    )
