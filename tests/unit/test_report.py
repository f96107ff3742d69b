"""Tests for core/report.py and services/reports.py."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
import pytest

from controlmark.core.errors import (
    AuthExpired,
    EmptyArtifact,
    ReportDownloadFailed,
    ReportGenerationFailed,
    ValidationError,
    WrongContentType,
)
from controlmark.core.report import FileSink, ReportRequest
from controlmark.models.configuration import CheckSummary, SavedConfigurationHandle
from controlmark.models.report import Report, ReportPhase
from controlmark.services.reports import ReportService


def _handle(ready: bool = True, total: int = 2, summary: Optional[CheckSummary] = None) -> SavedConfigurationHandle:
    return SavedConfigurationHandle(
        save_id="S1",
        name="Config1",
        device_id="dev-1",
        device_name="Web Server 01",
        total_checks=total,
        report_ready=ready,
        summary=summary,
    )


@pytest.fixture
def request_for(config, session, sink):
    def build(backend) -> ReportRequest:
        return ReportRequest(ReportService(config, session, backend.transport), sink)
    return build


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generates_and_tracks_phase(self, backend, request_for, report_payload):
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        reports = request_for(backend)
        assert reports.phase("S1") == ReportPhase.IDLE

        report = await reports.generate(_handle())
        assert (report.passed_checks, report.failed_checks, report.skipped_checks) == (1, 1, 0)
        assert report.compliance_score == 50
        assert report.file_reference == "file-1"
        assert report.save_id == "S1"
        assert reports.phase("S1") == ReportPhase.GENERATED
        assert reports.report_for("S1") == report
        assert backend.bodies("POST", "/reports") == [{"save_id": "S1"}]

    @pytest.mark.asyncio
    async def test_not_ready_rejected_without_request(self, backend, request_for):
        reports = request_for(backend)
        with pytest.raises(ValidationError):
            await reports.generate(_handle(ready=False))
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_not_regenerated(self, backend, request_for, report_payload):
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        reports = request_for(backend)
        await reports.generate(_handle())
        assert reports.can_generate(_handle()) is False
        with pytest.raises(ValidationError, match="already"):
            await reports.generate(_handle())
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_failed_can_retry(self, backend, request_for, report_payload):
        backend.add("POST", "/reports", httpx.Response(502))
        reports = request_for(backend)
        with pytest.raises(ReportGenerationFailed) as exc:
            await reports.generate(_handle())
        assert exc.value.retryable is True
        assert reports.phase("S1") == ReportPhase.FAILED
        assert reports.can_generate(_handle()) is True

        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        await reports.generate(_handle())
        assert reports.phase("S1") == ReportPhase.GENERATED

    @pytest.mark.asyncio
    async def test_missing_file_reference(self, backend, request_for, report_payload):
        del report_payload["fileId"]
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        with pytest.raises(ReportGenerationFailed, match="file reference"):
            await request_for(backend).generate(_handle())

    @pytest.mark.asyncio
    async def test_counts_exceeding_checks(self, backend, request_for, report_payload):
        report_payload["skipped_checks"] = 5
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        with pytest.raises(ReportGenerationFailed):
            await request_for(backend).generate(_handle(total=2))

    @pytest.mark.asyncio
    async def test_counts_match_saved_checks(self, backend, request_for, report_payload):
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        summary = CheckSummary(total=2, passed=1, failed=1, skipped=0, compliance_score=50)
        report = await request_for(backend).generate(_handle(summary=summary))
        assert report.report_id == "R1"

    @pytest.mark.asyncio
    async def test_counts_disagree_with_saved_checks(self, backend, request_for, report_payload):
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        summary = CheckSummary(total=2, passed=2, failed=0, skipped=0, compliance_score=100)
        reports = request_for(backend)
        with pytest.raises(ReportGenerationFailed, match="saved 2 and 0"):
            await reports.generate(_handle(summary=summary))
        assert reports.phase("S1") == ReportPhase.FAILED

    @pytest.mark.asyncio
    async def test_score_out_of_range(self, backend, request_for, report_payload):
        report_payload["compliance_score"] = 140
        backend.add("POST", "/reports", httpx.Response(201, json=report_payload))
        with pytest.raises(ReportGenerationFailed, match="Malformed"):
            await request_for(backend).generate(_handle())

    @pytest.mark.asyncio
    async def test_unauthorized(self, backend, request_for):
        backend.add("POST", "/reports", httpx.Response(401))
        reports = request_for(backend)
        with pytest.raises(AuthExpired):
            await reports.generate(_handle())
        assert reports.phase("S1") == ReportPhase.FAILED


class TestDownload:
    def _report(self) -> Report:
        return Report(report_id="R1", fileId="file 1/a")

    @pytest.mark.asyncio
    async def test_saves_pdf(self, backend, request_for, sink):
        backend.add("GET", "/reports/download/file 1/a", httpx.Response(
            200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.7 body",
        ))
        path = await request_for(backend).download(self._report(), "Web Server 01")
        assert sink.saved == [("Web_Server_01_report.pdf", b"%PDF-1.7 body")]
        assert path.name == "Web_Server_01_report.pdf"
        assert backend.requests[0].url.raw_path == b"/reports/download/file%201%2Fa"

    @pytest.mark.asyncio
    async def test_empty_artifact(self, backend, request_for, sink):
        backend.add("GET", "/reports/download/file 1/a", httpx.Response(
            200, headers={"content-type": "application/pdf"}, content=b"",
        ))
        with pytest.raises(EmptyArtifact):
            await request_for(backend).download(self._report(), "dev")
        assert sink.saved == []

    @pytest.mark.asyncio
    async def test_json_body_is_wrong_type(self, backend, request_for):
        backend.add("GET", "/reports/download/file 1/a", httpx.Response(
            200, json={"message": "Report file expired"},
        ))
        with pytest.raises(WrongContentType) as exc:
            await request_for(backend).download(self._report(), "dev")
        assert exc.value.message == "Report file expired"
        assert exc.value.retryable is False

    @pytest.mark.asyncio
    async def test_other_content_type(self, backend, request_for):
        backend.add("GET", "/reports/download/file 1/a", httpx.Response(
            200, headers={"content-type": "text/html"}, content=b"<html></html>",
        ))
        with pytest.raises(WrongContentType, match="Expected application/pdf"):
            await request_for(backend).download(self._report(), "dev")

    @pytest.mark.asyncio
    async def test_server_error_retryable(self, backend, request_for):
        backend.add("GET", "/reports/download/file 1/a", httpx.Response(500))
        with pytest.raises(ReportDownloadFailed) as exc:
            await request_for(backend).download(self._report(), "dev")
        assert exc.value.retryable is True

    @pytest.mark.asyncio
    async def test_missing_reference(self, backend, request_for):
        with pytest.raises(ValidationError):
            await request_for(backend).download(Report(report_id="R1"), "dev")


class TestFileSink:
    def test_writes_bytes(self, tmp_path: Path):
        target = FileSink(tmp_path / "out")("a_report.pdf", b"data")
        assert target.read_bytes() == b"data"


class TestListReports:
    @pytest.mark.asyncio
    async def test_list(self, backend, config, session, report_payload):
        backend.add("GET", "/reports", httpx.Response(200, json=[report_payload]))
        items = await ReportService(config, session, backend.transport).list_reports()
        assert items[0].report_id == "R1"

    @pytest.mark.asyncio
    async def test_malformed_record(self, backend, config, session):
        backend.add("GET", "/reports", httpx.Response(200, json=[{"generated_at": "x"}]))
        with pytest.raises(ReportGenerationFailed, match="Failed to load reports."):
            await ReportService(config, session, backend.transport).list_reports()
