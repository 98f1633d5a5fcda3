from __future__ import annotations

from edutrack.auth.models import AccessRequirement, Principal
from edutrack.authz.engine import Deny, decide
from edutrack.configs.logging_config import get_logger
from edutrack.errors import ForbiddenError

log = get_logger(__name__)

_MESSAGES = {
    "RoleMismatch": "forbidden: insufficient permissions",
    "CrossTenant": "forbidden: cannot access resources from another school",
    "Inactive": "account is inactive, please contact your administrator",
}


def enforce(
    principal: Principal,
    requirement: AccessRequirement,
    resource_tenant_id: str | None = None,
    *,
    operation: str = "",
) -> None:
    """
    Server-side evaluator. The only trust-bearing caller of `decide`:
    raises ForbiddenError on any Deny, returns None on Allow.
    """
    decision = decide(principal, requirement, resource_tenant_id)
    if isinstance(decision, Deny):
        reason = decision.reason.value
        log.info(
            "authz.deny operation=%s principal_id=%s tenant_id=%s target_tenant_id=%s reason=%s",
            operation,
            principal.id,
            principal.tenant_id,
            resource_tenant_id,
            reason,
        )
        raise ForbiddenError(_MESSAGES.get(reason, "forbidden"), reason=reason)
