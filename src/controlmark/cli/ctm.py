"""controlmark (ctm) - mark compliance controls and generate reports."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _session_path(config: dict) -> Path:
    from ..core.session import DEFAULT_SESSION_PATH

    configured = (config.get("session") or {}).get("path")
    return Path(configured).expanduser() if configured else DEFAULT_SESSION_PATH


def _load_markings(path: Path) -> list[dict]:
    """Read a markings file: a mapping of control id to fields, or a list of records."""
    data = yaml.safe_load(path.read_text(encoding="utf-8-sig")) or {}
    if isinstance(data, dict):
        records = []
        for control_id, fields in data.items():
            if isinstance(fields, str):
                fields = {"status": fields}
            records.append({"control_id": str(control_id), **(fields or {})})
        return records
    if isinstance(data, list):
        return [dict(item) for item in data]
    raise click.BadParameter("markings file must be a mapping or a list", param_hint="--markings")


def _redirect_to_login() -> None:
    console.print("  Session cleared. Run: [bold]ctm login[/bold]")


@click.group()
@click.pass_context
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project path holding .controlmark/config.yaml")
@click.option("--api-url", type=str, help="Backend base URL override")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Where downloaded reports are written")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def ctm_cli(
    ctx: click.Context,
    project: str,
    api_url: str | None,
    output_dir: str | None,
    verbose: bool,
) -> None:
    """controlmark - Mark compliance controls, save configurations and generate reports."""
    from ..core.config import get_effective_config

    _setup_logging(verbose)

    overrides: dict = {}
    if api_url:
        overrides.setdefault("api", {})["base_url"] = api_url
    if output_dir:
        overrides.setdefault("report", {})["output_dir"] = output_dir

    ctx.ensure_object(dict)
    ctx.obj["config"] = get_effective_config(Path(project), cli_overrides=overrides)


@ctm_cli.command()
@click.pass_context
@click.option("--token", required=True, help="Bearer token issued by the backend")
@click.option("--user-id", required=True)
@click.option("--name", default="")
@click.option("--email", default="")
@click.option("--role", type=click.Choice(["member", "validator", "team-lead", "organization-lead", "user"]), default="user")
def login(ctx: click.Context, token: str, user_id: str, name: str, email: str, role: str) -> None:
    """Store a session token for later commands."""
    from ..core.session import Session
    from ..models.session import User

    session = Session(token=token, user=User(user_id=user_id, name=name, email=email, role=role))
    path = session.persist(_session_path(ctx.obj["config"]))
    click.echo(f"Logged in as {name or user_id} ({role})")
    click.echo(f"Saved to {path}")


@ctm_cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Forget the stored session."""
    from ..core.session import Session

    Session.hydrate(_session_path(ctx.obj["config"])).teardown()
    click.echo("Logged out")


@ctm_cli.command()
@click.pass_context
@click.option("--file", "-f", "catalog_file", type=click.Path(exists=True, dir_okay=False), help="Catalog YAML file")
@click.option("--builtin", "-b", type=str, help="Packaged catalog name")
@click.option("--device-subtype", "-d", type=str, help="Fetch controls for a device subtype from the backend")
def catalog(ctx: click.Context, catalog_file: str | None, builtin: str | None, device_subtype: str | None) -> None:
    """Show the controls of a catalog grouped by section."""
    from ..core.notify import ConsoleNotifier
    from ..core.session import Session
    from ..core.workflow import MarkingWorkflow
    from ..formatters.tables import catalog_table

    config = ctx.obj["config"]
    workflow = MarkingWorkflow(
        config,
        Session.hydrate(_session_path(config)),
        notifier=ConsoleNotifier(console),
        on_auth_expired=_redirect_to_login,
    )
    loaded = asyncio.run(workflow.load_catalog(**_catalog_source(config, catalog_file, builtin, device_subtype)))
    if not loaded:
        ctx.exit(1)
        return
    console.print(catalog_table(loaded))


def _catalog_source(
    config: dict,
    catalog_file: Optional[str],
    builtin: Optional[str],
    device_subtype: Optional[str],
) -> dict:
    """Pick the catalog source: CLI flags first, then configured defaults."""
    if device_subtype:
        return {"device_subtype": device_subtype}
    if catalog_file:
        return {"file": Path(catalog_file)}
    if builtin:
        return {"builtin": builtin}
    configured = config.get("catalog") or {}
    if configured.get("device_subtype"):
        return {"device_subtype": configured["device_subtype"]}
    if configured.get("file"):
        return {"file": Path(configured["file"])}
    return {"builtin": configured.get("builtin")}


@ctm_cli.command()
@click.pass_context
@click.option("--markings", "-m", type=click.Path(exists=True, dir_okay=False), required=True, help="YAML markings file")
@click.option("--name", "-n", required=True, help="Configuration name")
@click.option("--team", "-t", "team_id", default="", help="Team id")
@click.option("--device", "-d", "device_id", required=True, help="Device id")
@click.option("--device-name", default="", help="Device name used for the report filename")
@click.option("--comments", "-c", default=None)
@click.option("--file", "-f", "catalog_file", type=click.Path(exists=True, dir_okay=False), help="Catalog YAML file")
@click.option("--builtin", "-b", type=str, help="Packaged catalog name")
@click.option("--device-subtype", type=str, help="Fetch controls for a device subtype from the backend")
@click.option("--no-report", is_flag=True, help="Save only; skip report generation")
def run(
    ctx: click.Context,
    markings: str,
    name: str,
    team_id: str,
    device_id: str,
    device_name: str,
    comments: str | None,
    catalog_file: str | None,
    builtin: str | None,
    device_subtype: str | None,
    no_report: bool,
) -> None:
    """Apply a markings file, save the configuration and generate its report.

    Example: ctm run -m markings.yaml -n "Web Server Q3" -d dev-01 --device-name "Web Server 01"
    """
    from ..core.notify import ConsoleNotifier
    from ..core.session import Session
    from ..core.workflow import MarkingWorkflow
    from ..formatters.tables import catalog_table
    from ..models.marking import MarkStatus

    config = ctx.obj["config"]
    workflow = MarkingWorkflow(
        config,
        Session.hydrate(_session_path(config)),
        team_id=team_id,
        device_id=device_id,
        device_name=device_name,
        notifier=ConsoleNotifier(console),
        on_auth_expired=_redirect_to_login,
    )

    async def _run() -> int:
        loaded = await workflow.load_catalog(**_catalog_source(config, catalog_file, builtin, device_subtype))
        if not loaded:
            return 1

        for record in _load_markings(Path(markings)):
            try:
                status = MarkStatus.parse(record.get("status"))
            except ValueError as e:
                raise click.BadParameter(str(e), param_hint="--markings") from None
            control_id = str(record.get("control_id", ""))
            if status.is_decided:
                if workflow.mark(control_id, status, record.get("explanation") or "", record.get("notes")) is None:
                    return 1
            elif record.get("notes"):
                if workflow.set_notes(control_id, record["notes"]) is None:
                    return 1

        console.print(catalog_table(workflow.catalog, workflow.state))
        console.print(f"  {workflow.progress.describe()}")

        if no_report:
            handle = await workflow.save(name, comments)
            return 0 if handle else 1

        result = await workflow.save_and_report(name, comments)
        if not result.ok:
            return 1
        if result.handle.report_ready and result.path is None:
            return 1
        if result.path is not None:
            console.print(f"  Report: {result.path}")
        return 0

    sys.exit(asyncio.run(_run()))


@ctm_cli.group()
def configs() -> None:
    """Saved configurations."""


@configs.command("list")
@click.pass_context
def list_configs(ctx: click.Context) -> None:
    """List saved configurations grouped by device."""
    from ..core.draft import group_by_device
    from ..core.notify import ConsoleNotifier
    from ..core.session import Session
    from ..core.workflow import MarkingWorkflow
    from ..formatters.tables import configurations_table

    config = ctx.obj["config"]
    workflow = MarkingWorkflow(
        config,
        Session.hydrate(_session_path(config)),
        notifier=ConsoleNotifier(console),
        on_auth_expired=_redirect_to_login,
    )
    items = asyncio.run(workflow.list_configurations())
    if workflow.last_error is not None:
        ctx.exit(1)
        return
    if not items:
        click.echo("No saved configurations")
        return
    console.print(configurations_table(group_by_device(items)))


@configs.command("delete")
@click.pass_context
@click.argument("save_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def delete_config(ctx: click.Context, save_id: str, yes: bool) -> None:
    """Delete a saved configuration."""
    from ..core.notify import ConsoleNotifier
    from ..core.session import Session
    from ..core.workflow import MarkingWorkflow

    if not yes:
        click.confirm(f"Delete configuration {save_id}?", abort=True)

    config = ctx.obj["config"]
    workflow = MarkingWorkflow(
        config,
        Session.hydrate(_session_path(config)),
        notifier=ConsoleNotifier(console),
        on_auth_expired=_redirect_to_login,
    )
    if not asyncio.run(workflow.delete_configuration(save_id)):
        ctx.exit(1)


@ctm_cli.command("reports")
@click.pass_context
def list_reports(ctx: click.Context) -> None:
    """List generated reports."""
    from ..core.notify import ConsoleNotifier
    from ..core.session import Session
    from ..core.workflow import MarkingWorkflow

    config = ctx.obj["config"]
    workflow = MarkingWorkflow(
        config,
        Session.hydrate(_session_path(config)),
        notifier=ConsoleNotifier(console),
        on_auth_expired=_redirect_to_login,
    )
    items = asyncio.run(workflow.list_reports())
    if workflow.last_error is not None:
        ctx.exit(1)
        return
    for report in items:
        click.echo(
            f"{report.report_id}  {report.generated_at}  score {report.compliance_score}%  "
            f"({report.passed_checks} pass, {report.failed_checks} fail, {report.skipped_checks} skip)"
        )


def main() -> None:
    ctm_cli()


if __name__ == "__main__":
    main()
