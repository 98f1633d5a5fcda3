from __future__ import annotations

import itertools

import pytest

from edutrack.auth.models import AccessRequirement, Principal, Role
from edutrack.authz.engine import ALLOW, Allow, Deny, DenyReason, decide
from edutrack.authz.enforce import enforce
from edutrack.errors import ForbiddenError

ROLES = list(Role)


def _p(role, tenant="S1", active=True) -> Principal:
    return Principal(id="u1", external_ref="ext-u1", role=role, tenant_id=tenant, active=active)


# ----------------------------
# Concrete cases
# ----------------------------


def test_teacher_denied_principal_only_operation() -> None:
    d = decide(_p("TEACHER"), AccessRequirement.of(Role.PRINCIPAL))
    assert d == Deny(DenyReason.ROLE_MISMATCH)


def test_principal_denied_other_school() -> None:
    req = AccessRequirement.of(Role.PRINCIPAL, tenant_scoped=True)
    assert decide(_p("PRINCIPAL", "S1"), req, "S2") == Deny(DenyReason.CROSS_TENANT)


def test_inactive_parent_denied_even_when_everything_matches() -> None:
    req = AccessRequirement.of(Role.PARENT, tenant_scoped=True)
    assert decide(_p("PARENT", "S1", active=False), req, "S1") == Deny(DenyReason.INACTIVE)


def test_allow_when_role_and_tenant_match() -> None:
    req = AccessRequirement.of(Role.TEACHER, Role.PRINCIPAL, tenant_scoped=True)
    d = decide(_p("TEACHER"), req, "S1")
    assert d is ALLOW
    assert isinstance(d, Allow) and d.allowed


def test_empty_role_set_allows_any_known_role() -> None:
    for role in ROLES:
        assert decide(_p(role.value), AccessRequirement()).allowed


@pytest.mark.parametrize("role", ["ADMIN", "", "teacher", None, 3])
def test_unknown_role_is_role_mismatch_even_with_empty_requirement(role) -> None:
    assert decide(_p(role), AccessRequirement()) == Deny(DenyReason.ROLE_MISMATCH)


def test_tenant_scoped_without_target_fails_closed() -> None:
    req = AccessRequirement.of(tenant_scoped=True)
    assert decide(_p("PRINCIPAL"), req, None) == Deny(DenyReason.CROSS_TENANT)


def test_roles_do_not_inherit() -> None:
    # a principal is not implicitly a teacher
    assert decide(_p("PRINCIPAL"), AccessRequirement.of(Role.TEACHER)) == Deny(DenyReason.ROLE_MISMATCH)


def test_non_bool_active_is_inactive() -> None:
    assert decide(_p("STUDENT", active="yes"), AccessRequirement()) == Deny(DenyReason.INACTIVE)


# ----------------------------
# Exhaustive properties over the closed role set
# ----------------------------


def _role_subsets():
    for n in range(1, len(ROLES) + 1):
        yield from itertools.combinations(ROLES, n)


def test_role_outside_required_set_always_mismatch() -> None:
    for subset in _role_subsets():
        req = AccessRequirement.of(*subset)
        for role in ROLES:
            d = decide(_p(role.value), req)
            if role in subset:
                assert d is ALLOW
            else:
                assert d == Deny(DenyReason.ROLE_MISMATCH)


def test_cross_tenant_denied_regardless_of_role() -> None:
    for role, scoped_roles in itertools.product(ROLES, [(), tuple(ROLES)]):
        req = AccessRequirement.of(*scoped_roles, tenant_scoped=True)
        assert decide(_p(role.value, "A"), req, "B") == Deny(DenyReason.CROSS_TENANT)


def test_inactive_denied_regardless_of_role_or_tenant() -> None:
    for role, target in itertools.product(ROLES, ["S1", "S2", None]):
        for req in (AccessRequirement(), AccessRequirement.of(role, tenant_scoped=True)):
            assert decide(_p(role.value, active=False), req, target) == Deny(DenyReason.INACTIVE)


# ----------------------------
# enforce
# ----------------------------


def test_enforce_raises_forbidden_with_reason() -> None:
    with pytest.raises(ForbiddenError) as ei:
        enforce(_p("STUDENT", "S1"), AccessRequirement.of(Role.STUDENT, tenant_scoped=True), "S2")
    assert ei.value.http_status == 403
    assert ei.value.reason == "CrossTenant"


def test_enforce_returns_quietly_on_allow() -> None:
    assert enforce(_p("PARENT"), AccessRequirement.of(Role.PARENT)) is None
