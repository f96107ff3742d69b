"""Compliance control data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Control(BaseModel):
    """A single compliance checkpoint supplied by a catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    section: str
    title: str = ""
    description: str = ""
    implementation: str = ""
    risk_level: RiskLevel = Field(default=RiskLevel.MEDIUM, alias="riskLevel")
    references: tuple[str, ...] = ()
