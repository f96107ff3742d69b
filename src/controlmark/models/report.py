"""Report data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReportPhase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    GENERATED = "generated"
    FAILED = "failed"


class Report(BaseModel):
    """Metadata for a generated report. The artifact itself is fetched by file_reference."""

    model_config = ConfigDict(populate_by_name=True)

    report_id: str
    generated_at: str = ""
    passed_checks: int = Field(default=0, ge=0)
    failed_checks: int = Field(default=0, ge=0)
    skipped_checks: int = Field(default=0, ge=0)
    compliance_score: int = Field(default=0, ge=0, le=100)
    file_reference: Optional[str] = Field(default=None, alias="fileId")
    save_id: Optional[str] = None

    @property
    def counted_checks(self) -> int:
        return self.passed_checks + self.failed_checks + self.skipped_checks
