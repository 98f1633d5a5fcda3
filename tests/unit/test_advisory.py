from __future__ import annotations

from edutrack.auth.models import Principal
from edutrack.authz.advisory import AdvisoryEvaluator
from edutrack.authz.engine import DenyReason
from edutrack.operations import OPERATIONS

advisory = AdvisoryEvaluator()


def _p(role: str, tenant: str = "S1", active: bool = True) -> Principal:
    return Principal(id="u1", external_ref="ext-u1", role=role, tenant_id=tenant, active=active)


def test_signed_out_redirects_to_login() -> None:
    hint = advisory.check(None, OPERATIONS["dashboard.student.grades"])
    assert not hint.allowed
    assert hint.reason is DenyReason.UNAUTHENTICATED
    assert hint.redirect_to == "/login"


def test_wrong_role_redirects_to_unauthorized() -> None:
    hint = advisory.check(_p("STUDENT"), OPERATIONS["dashboard.principal.stats"])
    assert hint.as_dict() == {"allowed": False, "reason": "RoleMismatch", "redirectTo": "/unauthorized"}


def test_dashboard_targets_own_school() -> None:
    assert advisory.check(_p("TEACHER"), OPERATIONS["dashboard.teacher.stats"]).allowed


def test_school_resources_need_a_matching_target() -> None:
    op = OPERATIONS["schools.detail"]
    assert advisory.check(_p("PARENT"), op, "S1").allowed
    assert advisory.check(_p("PARENT"), op, "S2").reason is DenyReason.CROSS_TENANT
    assert advisory.check(_p("PARENT"), op).reason is DenyReason.CROSS_TENANT


def test_allowed_operations_per_role() -> None:
    parent = advisory.allowed_operations(_p("PARENT"))
    assert parent == ["dashboard.parent.children", "schools.detail", "users.me"]

    principal = advisory.allowed_operations(_p("PRINCIPAL"))
    assert "schools.classes" in principal
    assert not any(op.startswith("dashboard.teacher.") for op in principal)


def test_inactive_gets_nothing() -> None:
    assert advisory.allowed_operations(_p("PRINCIPAL", active=False)) == []
