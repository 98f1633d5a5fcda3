"""
Advisory access check for front-ends.

Lets a client decide, before rendering, whether to show a page or redirect
(to `/login` or `/unauthorized`) so unauthorized content never flashes. It
shares `decide` with the server but is never an enforcement boundary: a
client can ignore or forge its answer, and the RequestGuard does not consult
it. Data is only ever released by `edutrack.guard.request_guard`.
"""

from __future__ import annotations

from dataclasses import dataclass

from edutrack.auth.models import Principal
from edutrack.authz.engine import Deny, DenyReason, decide
from edutrack.operations import OPERATIONS, OperationSpec

LOGIN_PATH = "/login"
UNAUTHORIZED_PATH = "/unauthorized"


@dataclass(frozen=True)
class AccessHint:
    allowed: bool
    reason: DenyReason | None = None
    redirect_to: str | None = None

    def as_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "redirectTo": self.redirect_to,
        }


class AdvisoryEvaluator:
    def __init__(self, login_path: str = LOGIN_PATH, unauthorized_path: str = UNAUTHORIZED_PATH):
        self._login_path = login_path
        self._unauthorized_path = unauthorized_path

    def check(
        self,
        principal: Principal | None,
        operation: OperationSpec,
        target_tenant_id: str | None = None,
    ) -> AccessHint:
        if principal is None:
            return self.signed_out()
        # Dashboard operations target the caller's own school.
        if target_tenant_id is None and not operation.requirement.tenant_scoped:
            target_tenant_id = principal.tenant_id
        decision = decide(principal, operation.requirement, target_tenant_id)
        if isinstance(decision, Deny):
            return AccessHint(False, decision.reason, self._unauthorized_path)
        return AccessHint(True)

    def signed_out(self) -> AccessHint:
        return AccessHint(False, DenyReason.UNAUTHENTICATED, self._login_path)

    def allowed_operations(self, principal: Principal) -> list[str]:
        """Operations whose own-school variant the principal may open; drives navigation."""
        return sorted(
            op_id
            for op_id, spec in OPERATIONS.items()
            if self.check(principal, spec, principal.tenant_id).allowed
        )
