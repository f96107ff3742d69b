"""Configuration draft and saved configuration models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .report import Report


class Check(BaseModel):
    """One control result in tri-state form: True=pass, False=fail, None=skipped/unmarked."""

    model_config = ConfigDict(populate_by_name=True)

    control_id: str = Field(alias="check_id")
    status: Optional[bool] = None


class ConfigurationDraft(BaseModel):
    name: str
    team_id: str = ""
    device_id: str
    comments: Optional[str] = None
    checks: list[Check] = []

    def to_payload(self) -> dict:
        """Request body for the persistence endpoint."""
        payload: dict = {
            "device_id": self.device_id,
            "name": self.name,
            "checks": [c.model_dump(by_alias=True) for c in self.checks],
        }
        if self.team_id:
            payload["team_id"] = self.team_id
        if self.comments:
            payload["comments"] = self.comments
        return payload


class CheckSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    compliance_score: int = 0


class SavedConfigurationHandle(BaseModel):
    """Client-side reference to a configuration the server accepted.

    ``summary`` holds the counts of the checks that were submitted; a report
    generated for this configuration must agree with it.
    """

    save_id: str
    name: str
    device_id: str
    device_name: str = ""
    saved_at: str = ""
    total_checks: int = 0
    report_ready: bool = False
    summary: Optional[CheckSummary] = None


class SavedConfiguration(BaseModel):
    save_id: str
    user_id: str = ""
    device_id: str = ""
    device_name: str = "Unknown Device"
    name: str = ""
    saved_at: str = ""
    comments: Optional[str] = None
    checks: list[Check] = []
    report: Optional[Report] = None

    @classmethod
    def from_api(cls, data: dict) -> "SavedConfiguration":
        """Build from a saved-configurations API record.

        The device name is taken from the embedded device record, falling
        back through machine name, subtype and id.
        """
        device = data.get("device") or {}
        device_name = (
            device.get("machine_name")
            or device.get("device_subtype")
            or device.get("device_id")
            or data.get("device_name")
            or "Unknown Device"
        )
        return cls(
            save_id=data["save_id"],
            user_id=data.get("user_id") or "",
            device_id=data.get("device_id") or "",
            device_name=device_name,
            name=data.get("name") or "",
            saved_at=data.get("saved_at") or "",
            comments=data.get("comments") or None,
            checks=[Check.model_validate(c) for c in data.get("checks") or []],
            report=Report.model_validate(data["report"]) if data.get("report") else None,
        )


class DeviceConfigurations(BaseModel):
    """Saved configurations rolled up under one device."""

    device_id: str
    device_name: str
    configurations: list[SavedConfiguration] = []

    @property
    def config_count(self) -> int:
        return len(self.configurations)
