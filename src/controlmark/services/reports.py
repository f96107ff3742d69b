"""Report service client."""

from __future__ import annotations

from urllib.parse import quote

import pydantic
from pydantic import BaseModel

from ..core.errors import ReportDownloadFailed, ReportGenerationFailed
from ..models.report import Report
from .base import BaseService


class Artifact(BaseModel):
    """Raw report artifact as returned by the download endpoint."""

    content_type: str = ""
    content: bytes = b""


class ReportService(BaseService):
    name = "report"

    async def generate(self, save_id: str) -> Report:
        data = await self.request_json(
            "POST",
            self.endpoint("reports"),
            ReportGenerationFailed,
            json={"save_id": save_id},
        )
        if not isinstance(data, dict):
            raise ReportGenerationFailed("Unexpected response from report service.")
        try:
            report = Report.model_validate(data)
        except pydantic.ValidationError as e:
            raise ReportGenerationFailed(f"Malformed report metadata: {e.error_count()} invalid field(s).") from e
        return report.model_copy(update={"save_id": report.save_id or save_id})

    async def list_reports(self) -> list[Report]:
        data = await self.request_json(
            "GET",
            self.endpoint("reports"),
            ReportGenerationFailed,
            "Failed to load reports.",
        )
        if not isinstance(data, list):
            raise ReportGenerationFailed("Failed to load reports.")
        try:
            return [Report.model_validate(item) for item in data]
        except pydantic.ValidationError as e:
            raise ReportGenerationFailed("Failed to load reports.") from e

    async def fetch(self, file_id: str) -> Artifact:
        response = await self.request(
            "GET",
            self.endpoint("download", file_id=quote(file_id, safe="")),
            ReportDownloadFailed,
        )
        return Artifact(
            content_type=response.headers.get("content-type", ""),
            content=response.content,
        )
