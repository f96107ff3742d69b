"""Report generation and download.

Each saved configuration moves through Idle -> Generating -> Generated, or
-> Failed. A configuration that already has a report is not regenerated.
The downloaded artifact is never parsed; it is only checked for the
expected content type and a non-zero length before being handed to a sink.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

from ..models.configuration import SavedConfigurationHandle
from ..models.report import Report, ReportPhase
from ..services.base import server_message_from_bytes
from ..services.reports import ReportService
from ..utils.sanitize import report_filename
from .errors import EmptyArtifact, ReportGenerationFailed, ValidationError, WrongContentType

logger = logging.getLogger(__name__)


class ArtifactSink(Protocol):
    def __call__(self, filename: str, content: bytes) -> Path: ...


class FileSink:
    """Write artifacts into a directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def __call__(self, filename: str, content: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / filename
        target.write_bytes(content)
        return target


class ReportRequest:
    def __init__(
        self,
        service: ReportService,
        sink: ArtifactSink,
        content_type: str = "application/pdf",
        extension: str = ".pdf",
    ):
        self.service = service
        self.sink = sink
        self.content_type = content_type
        self.extension = extension
        self._phases: dict[str, ReportPhase] = {}
        self._reports: dict[str, Report] = {}
        self._detached = False

    def detach(self) -> None:
        """Stop recording results; in-flight requests still complete."""
        self._detached = True

    def phase(self, save_id: str) -> ReportPhase:
        return self._phases.get(save_id, ReportPhase.IDLE)

    def report_for(self, save_id: str) -> Optional[Report]:
        return self._reports.get(save_id)

    def can_generate(self, handle: SavedConfigurationHandle) -> bool:
        return handle.report_ready and self.phase(handle.save_id) in (ReportPhase.IDLE, ReportPhase.FAILED)

    async def generate(self, handle: SavedConfigurationHandle) -> Report:
        if not handle.report_ready:
            raise ValidationError(
                "Every control must be marked before a report can be generated.",
                field="checks",
            )
        phase = self.phase(handle.save_id)
        if phase == ReportPhase.GENERATED:
            raise ValidationError(f"A report was already generated for {handle.name}.")
        if phase == ReportPhase.GENERATING:
            raise ValidationError(f"A report for {handle.name} is already being generated.")

        if not self._detached:
            self._phases[handle.save_id] = ReportPhase.GENERATING
        logger.debug("Generating report for %s", handle.save_id)
        try:
            report = await self.service.generate(handle.save_id)
            self._check_report(report, handle)
        except BaseException:
            if not self._detached:
                self._phases[handle.save_id] = ReportPhase.FAILED
            raise

        if self._detached:
            return report
        self._phases[handle.save_id] = ReportPhase.GENERATED
        self._reports[handle.save_id] = report
        logger.info("Report %s generated for %s", report.report_id, handle.save_id)
        return report

    @staticmethod
    def _check_report(report: Report, handle: SavedConfigurationHandle) -> None:
        if not report.file_reference:
            raise ReportGenerationFailed("Report file reference is missing in response.")
        summary = handle.summary
        if summary is not None:
            if report.counted_checks > summary.total:
                raise ReportGenerationFailed(
                    f"Report counts {report.counted_checks} checks but the configuration has {summary.total}."
                )
            if (report.passed_checks, report.failed_checks) != (summary.passed, summary.failed):
                raise ReportGenerationFailed(
                    f"Report counts {report.passed_checks} passed and {report.failed_checks} failed checks "
                    f"but the configuration saved {summary.passed} and {summary.failed}."
                )
        elif handle.total_checks and report.counted_checks > handle.total_checks:
            raise ReportGenerationFailed(
                f"Report counts {report.counted_checks} checks but the configuration has {handle.total_checks}."
            )

    async def download(self, report: Report, device_name: str) -> Path:
        """Fetch the report artifact and save it under a name derived from device_name."""
        if not report.file_reference:
            raise ValidationError("Report file reference is missing.", field="file_reference")

        artifact = await self.service.fetch(report.file_reference)
        content_type = artifact.content_type.lower()
        if "application/json" in content_type:
            message = server_message_from_bytes(artifact.content)
            raise WrongContentType(message or "Failed to download report.")
        if self.content_type not in content_type:
            raise WrongContentType(
                f"Invalid response format. Expected {self.content_type}, got {artifact.content_type or 'nothing'}."
            )
        if not artifact.content:
            raise EmptyArtifact()

        filename = report_filename(device_name, self.extension)
        path = self.sink(filename, artifact.content)
        logger.info("Report %s saved to %s (%d bytes)", report.report_id, path, len(artifact.content))
        return path
