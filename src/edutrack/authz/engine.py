"""
Authorization decision function.

`decide` is pure and total: no I/O, no retries, and every well-formed input
yields exactly one of `Allow` or `Deny(reason)`. Rules are evaluated in order
and the first Deny wins:

1. inactive principal                      -> Deny(INACTIVE)
2. unknown role, or role not required      -> Deny(ROLE_MISMATCH)
3. tenant-scoped and tenant differs        -> Deny(CROSS_TENANT)
4. otherwise                               -> Allow

Rule 3 runs even when rule 2 passed: no role crosses a tenant boundary.

Both the server-side enforcer (`edutrack.authz.enforce`) and the advisory
mirror (`edutrack.authz.advisory`) call this function; only the former is an
enforcement boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from edutrack.auth.models import AccessRequirement, Principal, parse_role


class DenyReason(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    ROLE_MISMATCH = "RoleMismatch"
    CROSS_TENANT = "CrossTenant"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class Allow:
    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    reason: DenyReason

    @property
    def allowed(self) -> bool:
        return False


AuthorizationDecision = Union[Allow, Deny]

ALLOW = Allow()


def decide(
    principal: Principal,
    requirement: AccessRequirement,
    resource_tenant_id: str | None = None,
) -> AuthorizationDecision:
    if principal.active is not True:
        return Deny(DenyReason.INACTIVE)

    role = parse_role(principal.role)
    if role is None:
        return Deny(DenyReason.ROLE_MISMATCH)
    if requirement.required_roles and role not in requirement.required_roles:
        return Deny(DenyReason.ROLE_MISMATCH)

    if requirement.tenant_scoped:
        # A scoped requirement without a target is treated as foreign.
        if resource_tenant_id is None or resource_tenant_id != principal.tenant_id:
            return Deny(DenyReason.CROSS_TENANT)

    return ALLOW
