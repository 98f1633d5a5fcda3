"""
Static access declarations for every guarded operation.

Each operation lists its own allowed roles; nothing is inherited. Dashboard
operations target the caller's own school (handlers filter by
`principal.tenant_id`), so they are not tenant-scoped by path. Operations
addressed by a school id in the URL are tenant-scoped.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from edutrack.auth.models import AccessRequirement, Principal, Role
from edutrack.cache.policy import Volatility


@dataclass(frozen=True)
class OperationSpec:
    operation_id: str
    requirement: AccessRequirement
    volatility: Volatility
    # Payload belongs to one user; the cache key is qualified with the principal id.
    per_principal: bool = False

    def cache_operation(self, principal: Principal, variant: str | None = None) -> str:
        op = self.operation_id
        if variant:
            op = f"{op}/{quote(variant, safe='')}"
        if self.per_principal:
            op = f"{op}@{quote(principal.id, safe='')}"
        return op


def _op(
    operation_id: str,
    roles: tuple[Role, ...],
    volatility: Volatility,
    *,
    tenant_scoped: bool = False,
    per_principal: bool = False,
) -> OperationSpec:
    return OperationSpec(
        operation_id=operation_id,
        requirement=AccessRequirement.of(*roles, tenant_scoped=tenant_scoped),
        volatility=volatility,
        per_principal=per_principal,
    )


P, T, S, G = Role.PRINCIPAL, Role.TEACHER, Role.STUDENT, Role.PARENT

OPERATIONS: dict[str, OperationSpec] = {
    spec.operation_id: spec
    for spec in (
        # principal dashboard
        _op("dashboard.principal.stats", (P,), Volatility.MODERATE),
        _op("dashboard.principal.teachers", (P,), Volatility.SLOW),
        _op("dashboard.principal.classes", (P,), Volatility.SLOW),
        _op("dashboard.principal.subjects", (P,), Volatility.STATIC),
        _op("dashboard.principal.average-grade", (P,), Volatility.SLOW),
        _op("dashboard.principal.activity", (P,), Volatility.REALTIME),
        _op("dashboard.principal.alerts", (P,), Volatility.REALTIME),
        _op("dashboard.principal.events", (P,), Volatility.MODERATE),
        _op("dashboard.principal.fee-records", (P,), Volatility.MODERATE),
        # teacher dashboard
        _op("dashboard.teacher.stats", (T,), Volatility.MODERATE, per_principal=True),
        _op("dashboard.teacher.classes-today", (T,), Volatility.MODERATE, per_principal=True),
        _op("dashboard.teacher.pending-tasks", (T,), Volatility.REALTIME, per_principal=True),
        _op("dashboard.teacher.alerts", (T,), Volatility.REALTIME, per_principal=True),
        # student dashboard
        _op("dashboard.student.stats", (S,), Volatility.MODERATE, per_principal=True),
        _op("dashboard.student.grades", (S,), Volatility.SLOW, per_principal=True),
        _op("dashboard.student.attendance", (S,), Volatility.SLOW, per_principal=True),
        _op("dashboard.student.schedule", (S,), Volatility.STATIC, per_principal=True),
        _op("dashboard.student.announcements", (S,), Volatility.MODERATE),
        # parent dashboard
        _op("dashboard.parent.children", (G,), Volatility.SLOW, per_principal=True),
        # school resources addressed by id
        _op("schools.detail", (), Volatility.STATIC, tenant_scoped=True),
        _op("schools.classes", (P, T), Volatility.SLOW, tenant_scoped=True),
        # self
        _op("users.me", (), Volatility.REALTIME, per_principal=True),
    )
}


def get_operation(operation_id: str) -> OperationSpec | None:
    return OPERATIONS.get(operation_id)
