"""Rich table rendering for catalogs, markings and saved configurations."""

from __future__ import annotations

from typing import Optional

from rich.table import Table

from ..core.catalog import ControlCatalog
from ..core.marking import MarkingState
from ..models.configuration import DeviceConfigurations
from ..models.marking import MarkStatus

STATUS_STYLE = {
    MarkStatus.PASS: ("PASS", "green"),
    MarkStatus.FAIL: ("FAIL", "red"),
    MarkStatus.SKIP: ("SKIP", "yellow"),
    MarkStatus.UNSET: ("-", "dim"),
}

RISK_STYLE = {"high": "red", "medium": "yellow", "low": "green"}


def catalog_table(catalog: ControlCatalog, state: Optional[MarkingState] = None) -> Table:
    """One row per control, grouped under section header rows."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Control")
    table.add_column("Title")
    table.add_column("Risk")
    if state is not None:
        table.add_column("Status")
        table.add_column("Explanation")

    for section, controls in catalog.sections().items():
        table.add_row(f"[bold]{section}[/bold]")
        for control in controls:
            risk = control.risk_level.value
            row = [
                f"  {control.id}",
                control.title,
                f"[{RISK_STYLE.get(risk, 'white')}]{risk}[/]",
            ]
            if state is not None:
                marking = state.get(control.id)
                label, color = STATUS_STYLE.get(marking.status, ("-", "dim"))
                row.append(f"[{color}]{label}[/]")
                row.append(marking.explanation)
            table.add_row(*row)
    return table


def configurations_table(devices: list[DeviceConfigurations]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Device")
    table.add_column("Configuration")
    table.add_column("Saved")
    table.add_column("Checks")
    table.add_column("Report")

    for device in devices:
        table.add_row(
            f"[bold]{device.device_name}[/bold] ({device.config_count})",
            "", "", "", "",
        )
        for config in device.configurations:
            passed = sum(1 for c in config.checks if c.status is True)
            failed = sum(1 for c in config.checks if c.status is False)
            skipped = sum(1 for c in config.checks if c.status is None)
            report = f"{config.report.compliance_score}%" if config.report else "-"
            table.add_row(
                f"  {config.save_id}",
                config.name,
                config.saved_at,
                f"{passed} pass / {failed} fail / {skipped} skip",
                report,
            )
    return table
