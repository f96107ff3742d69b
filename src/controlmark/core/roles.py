"""Role-based capability gating.

Every role must appear in every capability row; ``capabilities_for`` fails
loudly when a role has been added without being placed in the matrix.
"""

from __future__ import annotations

from ..models.session import Role

CAPABILITY_MATRIX: dict[str, dict[Role, bool]] = {
    "mark_compliance": {
        Role.USER: True,
        Role.MEMBER: True,
        Role.VALIDATOR: False,
        Role.TEAM_LEAD: True,
        Role.ORGANIZATION_LEAD: False,
    },
    "save_configuration": {
        Role.USER: True,
        Role.MEMBER: True,
        Role.VALIDATOR: False,
        Role.TEAM_LEAD: True,
        Role.ORGANIZATION_LEAD: False,
    },
    "generate_report": {
        Role.USER: True,
        Role.MEMBER: True,
        Role.VALIDATOR: True,
        Role.TEAM_LEAD: True,
        Role.ORGANIZATION_LEAD: True,
    },
    "validate_submissions": {
        Role.USER: False,
        Role.MEMBER: False,
        Role.VALIDATOR: True,
        Role.TEAM_LEAD: False,
        Role.ORGANIZATION_LEAD: False,
    },
    "manage_team": {
        Role.USER: False,
        Role.MEMBER: False,
        Role.VALIDATOR: False,
        Role.TEAM_LEAD: True,
        Role.ORGANIZATION_LEAD: True,
    },
    "manage_organization": {
        Role.USER: False,
        Role.MEMBER: False,
        Role.VALIDATOR: False,
        Role.TEAM_LEAD: False,
        Role.ORGANIZATION_LEAD: True,
    },
}


def capabilities_for(role: Role) -> set[str]:
    """All capabilities granted to a role."""
    granted: set[str] = set()
    for capability, row in CAPABILITY_MATRIX.items():
        if role not in row:
            raise KeyError(f"Role {role.value!r} missing from capability {capability!r}")
        if row[role]:
            granted.add(capability)
    return granted


def can(role: Role, capability: str) -> bool:
    """Check whether a role holds a capability. Unknown capabilities are denied."""
    row = CAPABILITY_MATRIX.get(capability)
    if row is None:
        return False
    if role not in row:
        raise KeyError(f"Role {role.value!r} missing from capability {capability!r}")
    return row[role]
