"""Compliance marking workflow.

Ties the catalog, marking state, completion gate, configuration service and
report request together for one signed-in session. Service failures are
caught here, mapped to the error taxonomy and surfaced as exactly one
notification; marking state is never touched by a failed call, so the user
can retry without re-entering anything. An expired session additionally
tears the session down and calls the redirect hook.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import httpx
from pydantic import BaseModel

from ..models.configuration import SavedConfiguration, SavedConfigurationHandle
from ..models.marking import MarkStatus, Marking
from ..models.report import Report
from ..services.catalog import CatalogService
from ..services.configurations import ConfigurationService
from ..services.reports import ReportService
from .catalog import ControlCatalog, load_builtin_catalog, load_catalog_file
from .draft import build_draft
from .errors import AuthExpired, CatalogUnavailable, ControlmarkError, ValidationError
from .gate import Progress, is_report_ready, is_save_eligible, progress, remaining_count
from .marking import MarkingState
from .notify import Level, Notification, Notifier, RecordingNotifier
from .report import ArtifactSink, FileSink, ReportRequest
from .roles import can
from .session import Session

logger = logging.getLogger(__name__)


class WorkflowResult(BaseModel):
    handle: Optional[SavedConfigurationHandle] = None
    report: Optional[Report] = None
    path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.handle is not None


class MarkingWorkflow:
    def __init__(
        self,
        config: dict,
        session: Session,
        team_id: str = "",
        device_id: str = "",
        device_name: str = "",
        notifier: Optional[Notifier] = None,
        sink: Optional[ArtifactSink] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_auth_expired: Optional[Callable[[], None]] = None,
    ):
        self.config = config
        self.session = session
        self.team_id = team_id
        self.device_id = device_id
        self.device_name = device_name or device_id
        self.notifier = notifier or RecordingNotifier()
        self.on_auth_expired = on_auth_expired

        report_config = config.get("report", {})
        self.catalog_service = CatalogService(config, session, transport)
        self.configuration_service = ConfigurationService(config, session, transport)
        self.reports = ReportRequest(
            ReportService(config, session, transport),
            sink or FileSink(Path(report_config.get("output_dir", "."))),
            content_type=report_config.get("content_type", "application/pdf"),
            extension=report_config.get("extension", ".pdf"),
        )

        self.catalog = ControlCatalog()
        self.state = MarkingState()
        self.marking_enabled = False
        self.field_errors: dict[str, str] = {}
        self.last_error: Optional[ControlmarkError] = None
        self.handles: list[SavedConfigurationHandle] = []
        self._detached = False

    # -- lifecycle -------------------------------------------------------

    def detach(self) -> None:
        """The caller has gone away; late completions must not touch state or notify."""
        self._detached = True
        self.reports.detach()

    @property
    def detached(self) -> bool:
        return self._detached

    def _notify(self, title: str, message: str) -> None:
        if not self._detached:
            self.notifier.notify(Notification(title=title, message=message, level=Level.SUCCESS))

    def _fail(self, error: ControlmarkError) -> None:
        if self._detached:
            logger.debug("Dropping %s after detach: %s", type(error).__name__, error.message)
            return
        logger.warning("%s: %s", error.title, error.message)
        self.last_error = error
        if isinstance(error, ValidationError) and error.field:
            self.field_errors[error.field] = error.message
        self.notifier.notify(Notification.from_error(error))
        if isinstance(error, AuthExpired):
            self.session.teardown()
            if self.on_auth_expired is not None:
                self.on_auth_expired()

    def _require(self, capability: str, action: str) -> None:
        user = self.session.user
        if user is not None and not can(user.role, capability):
            raise ValidationError(
                f"Your role ({user.role.value}) cannot {action}.",
                title="Access Restricted",
            )

    def _require_auth(self, action: str) -> None:
        if not self.session.is_authenticated:
            raise AuthExpired(
                f"Please log in to {action}.",
                title="Authentication Required",
            )

    # -- catalog ---------------------------------------------------------

    async def load_catalog(
        self,
        device_subtype: Optional[str] = None,
        file: Optional[Path] = None,
        builtin: Optional[str] = None,
    ) -> ControlCatalog:
        """Load the catalog from the service, a file or a packaged catalog.

        On failure the catalog is empty and marking stays disabled.
        """
        self.state.reset_all()
        try:
            if device_subtype:
                catalog = await self.catalog_service.load(device_subtype)
            elif file is not None:
                catalog = load_catalog_file(file)
            elif builtin:
                catalog = load_builtin_catalog(builtin)
            else:
                raise CatalogUnavailable("No catalog source given.")
        except (CatalogUnavailable, AuthExpired) as e:
            if self._detached:
                return ControlCatalog()
            self.catalog = ControlCatalog()
            self.marking_enabled = False
            self._fail(e)
            return self.catalog

        if self._detached:
            return catalog
        self.catalog = catalog
        self.marking_enabled = bool(catalog)
        logger.debug("Catalog ready: %d controls in %d sections", len(catalog), len(catalog.sections()))
        return catalog

    # -- marking ---------------------------------------------------------

    def _check_markable(self, control_id: str) -> None:
        if not self.marking_enabled:
            raise ValidationError("Marking is unavailable until controls are loaded.")
        if control_id not in self.catalog:
            raise ValidationError(f"Unknown control: {control_id}", field="control_id")
        self._require("mark_compliance", "mark compliance controls")

    def get(self, control_id: str) -> Marking:
        return self.state.get(control_id)

    def _apply(self, control_id: str, change: Callable[[], Marking]) -> Optional[Marking]:
        try:
            self._check_markable(control_id)
        except ValidationError as e:
            self._fail(e)
            return None
        self.field_errors.pop("control_id", None)
        return change()

    def set_status(self, control_id: str, status: MarkStatus) -> Optional[Marking]:
        return self._apply(control_id, lambda: self.state.set_status(control_id, status))

    def set_explanation(self, control_id: str, text: str) -> Optional[Marking]:
        return self._apply(control_id, lambda: self.state.set_explanation(control_id, text))

    def set_notes(self, control_id: str, text: str) -> Optional[Marking]:
        return self._apply(control_id, lambda: self.state.set_notes(control_id, text))

    def mark(
        self,
        control_id: str,
        status: MarkStatus,
        explanation: str,
        notes: Optional[str] = None,
    ) -> Optional[Marking]:
        """Mark a control; validation problems are surfaced, not raised."""
        try:
            self._check_markable(control_id)
            marking = self.state.mark(control_id, status, explanation, notes)
        except ValidationError as e:
            self._fail(e)
            return None
        self.field_errors.pop("explanation", None)
        self.field_errors.pop("control_id", None)
        return marking

    def reset(self, control_id: str) -> Optional[Marking]:
        return self._apply(control_id, lambda: self.state.reset(control_id))

    def reset_all(self) -> None:
        self.state.reset_all()

    # -- gate ------------------------------------------------------------

    @property
    def progress(self) -> Progress:
        return progress(self.catalog, self.state)

    def is_report_ready(self) -> bool:
        return bool(self.catalog) and is_report_ready(self.catalog, self.state)

    def is_save_eligible(self) -> bool:
        return self.marking_enabled and is_save_eligible(self.state)

    def remaining_count(self) -> int:
        return remaining_count(self.catalog, self.state)

    # -- save / report / download ----------------------------------------

    async def save(self, name: str, comments: Optional[str] = None) -> Optional[SavedConfigurationHandle]:
        """Build a draft from the current markings and persist it."""
        try:
            self._require("save_configuration", "save configurations")
            draft = build_draft(name, self.team_id, self.device_id, comments, self.catalog, self.state)
            self._require_auth("save configurations")
            report_ready = self.is_report_ready()
            handle = await self.configuration_service.submit(draft, self.device_name, report_ready)
        except ControlmarkError as e:
            self._fail(e)
            return None

        if self._detached:
            return handle
        self.field_errors.clear()
        self.handles.append(handle)
        self._notify("Success", "Configuration saved successfully.")
        return handle

    async def generate_report(self, handle: SavedConfigurationHandle) -> Optional[Report]:
        try:
            self._require("generate_report", "generate reports")
            self._require_auth("generate reports")
            report = await self.reports.generate(handle)
        except ControlmarkError as e:
            self._fail(e)
            return None
        self._notify("Success", "Report generated successfully.")
        return report

    async def download(self, report: Report, device_name: Optional[str] = None) -> Optional[Path]:
        try:
            self._require_auth("download reports")
            path = await self.reports.download(report, device_name or self.device_name)
        except ControlmarkError as e:
            self._fail(e)
            return None
        self._notify("Success", "Report downloaded successfully.")
        return path

    async def save_and_report(
        self,
        name: str,
        comments: Optional[str] = None,
        download: bool = True,
    ) -> WorkflowResult:
        """Save, then generate, then download; each step waits for the previous one."""
        result = WorkflowResult()
        result.handle = await self.save(name, comments)
        if result.handle is None or self._detached:
            return result
        if not result.handle.report_ready:
            logger.info("%d control(s) unmarked; report not generated", self.remaining_count())
            return result

        result.report = await self.generate_report(result.handle)
        if result.report is None or self._detached or not download:
            return result

        result.path = await self.download(result.report)
        return result

    # -- saved configuration library -------------------------------------

    async def list_configurations(self) -> list[SavedConfiguration]:
        try:
            self._require_auth("view configurations")
            return await self.configuration_service.list_configurations()
        except ControlmarkError as e:
            self._fail(e)
            return []

    async def delete_configuration(self, save_id: str) -> bool:
        try:
            self._require_auth("delete configurations")
            await self.configuration_service.delete_configuration(save_id)
        except ControlmarkError as e:
            self._fail(e)
            return False
        if not self._detached:
            self.handles = [h for h in self.handles if h.save_id != save_id]
        self._notify("Success", "Configuration deleted successfully.")
        return True

    async def list_reports(self) -> list[Report]:
        try:
            self._require_auth("view reports")
            return await self.reports.service.list_reports()
        except ControlmarkError as e:
            self._fail(e)
            return []
