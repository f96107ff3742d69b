"""User and role data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, field_validator


class Role(str, Enum):
    MEMBER = "member"
    VALIDATOR = "validator"
    TEAM_LEAD = "team-lead"
    ORGANIZATION_LEAD = "organization-lead"
    USER = "user"


class User(BaseModel):
    user_id: str
    name: str = ""
    email: str = ""
    role: Role = Role.USER

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value: object) -> object:
        # Records written before roles existed carry no role, or one we no longer know.
        if value in (None, ""):
            return Role.USER
        if isinstance(value, str) and value not in {r.value for r in Role}:
            return Role.USER
        return value
