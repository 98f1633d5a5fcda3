from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Closed set of actor kinds. Not hierarchical: no role implies another."""

    PRINCIPAL = "PRINCIPAL"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


def parse_role(value: object) -> Role | None:
    """Return the matching Role, or None for anything unknown or malformed."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except (ValueError, TypeError):
        return None


@dataclass(frozen=True)
class Tenant:
    id: str
    external_org_ref: str
    name: str


@dataclass(frozen=True)
class Principal:
    id: str
    external_ref: str
    # Raw stored value; unknown roles are kept so the engine can reject them.
    role: str
    tenant_id: str
    active: bool = True


@dataclass(frozen=True)
class AccessRequirement:
    required_roles: frozenset[Role] = field(default_factory=frozenset)
    tenant_scoped: bool = False

    @classmethod
    def of(cls, *roles: Role, tenant_scoped: bool = False) -> AccessRequirement:
        return cls(required_roles=frozenset(roles), tenant_scoped=tenant_scoped)


@dataclass(frozen=True)
class ExternalIdentity:
    """What the identity provider vouches for: its stable subject reference."""

    ref: str
    claims: dict = field(default_factory=dict, compare=False, repr=False)
