"""Role visibility policy.

Every role-dependent read goes through ``ROLE_POLICIES`` so that the rules for
who may see what are declared in one table rather than spread across
conditionals.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from timesheet_engine.models import UserRole


class Visibility(str, Enum):
    """How far a role can see for one kind of resource."""

    SELF = "self"  # only the actor's own rows
    TEAM = "team"  # the actor plus their direct reports
    REPORTS = "reports"  # direct reports only
    ASSIGNED = "assigned"  # projects the actor is assigned to
    MANAGED = "managed"  # projects the actor manages
    ORG = "org"  # whole organisation
    NONE = "none"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identity supplied by the request layer."""

    user_id: UUID
    org_id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER

    @property
    def is_employee(self) -> bool:
        return self.role == UserRole.EMPLOYEE


@dataclass(frozen=True)
class RolePolicy:
    timesheets: Visibility
    users: Visibility
    projects: Visibility
    approvals: Visibility
    reports: Visibility


ROLE_POLICIES: dict[str, RolePolicy] = {
    UserRole.EMPLOYEE: RolePolicy(
        timesheets=Visibility.SELF,
        users=Visibility.SELF,
        projects=Visibility.ASSIGNED,
        approvals=Visibility.NONE,
        reports=Visibility.SELF,
    ),
    UserRole.MANAGER: RolePolicy(
        timesheets=Visibility.TEAM,
        users=Visibility.TEAM,
        projects=Visibility.MANAGED,
        approvals=Visibility.REPORTS,
        reports=Visibility.TEAM,
    ),
    UserRole.ADMIN: RolePolicy(
        timesheets=Visibility.ORG,
        users=Visibility.ORG,
        projects=Visibility.ORG,
        approvals=Visibility.ORG,
        reports=Visibility.ORG,
    ),
}


def policy_for(role: str) -> RolePolicy:
    try:
        return ROLE_POLICIES[role]
    except KeyError:
        raise ValueError(f"Unknown role: {role!r}") from None
