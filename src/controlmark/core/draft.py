"""Configuration drafts: packaging marking state for persistence."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from ..models.configuration import Check, CheckSummary, ConfigurationDraft, DeviceConfigurations, SavedConfiguration
from ..models.marking import MarkStatus
from .catalog import ControlCatalog
from .errors import ValidationError
from .gate import is_save_eligible
from .marking import MarkingState


def normalize_status(status: MarkStatus) -> Optional[bool]:
    """Collapse a marking status to the saved tri-state."""
    if status == MarkStatus.PASS:
        return True
    if status == MarkStatus.FAIL:
        return False
    return None


def build_draft(
    name: str,
    team_id: str,
    device_id: str,
    comments: Optional[str],
    catalog: ControlCatalog,
    state: MarkingState,
) -> ConfigurationDraft:
    """Package the marking state as a named draft.

    Checks follow catalog order, one per control, so the saved output does
    not depend on the order the controls were marked in.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Configuration name is required.", field="name")
    if not device_id:
        raise ValidationError("A device must be selected.", field="device_id")
    if not is_save_eligible(state):
        raise ValidationError("Mark at least one control before saving.", field="checks")

    checks = [
        Check(control_id=control.id, status=normalize_status(state.status_of(control.id)))
        for control in catalog
    ]
    return ConfigurationDraft(
        name=name,
        team_id=team_id or "",
        device_id=device_id,
        comments=(comments or "").strip() or None,
        checks=checks,
    )


def summarize_checks(checks: Iterable[Check]) -> CheckSummary:
    """Count tri-state checks; the score is passed / total as a rounded percentage."""
    summary = CheckSummary()
    for check in checks:
        summary.total += 1
        if check.status is True:
            summary.passed += 1
        elif check.status is False:
            summary.failed += 1
        else:
            summary.skipped += 1
    if summary.total:
        summary.compliance_score = round(summary.passed / summary.total * 100)
    return summary


def group_by_device(configs: Iterable[SavedConfiguration]) -> list[DeviceConfigurations]:
    """Roll saved configurations up per device, in first-seen device order.

    Counts are derived from the server's list, never incremented locally.
    """
    grouped: dict[str, list[SavedConfiguration]] = defaultdict(list)
    for config in configs:
        grouped[config.device_id].append(config)
    return [
        DeviceConfigurations(
            device_id=device_id,
            device_name=items[0].device_name,
            configurations=items,
        )
        for device_id, items in grouped.items()
    ]
