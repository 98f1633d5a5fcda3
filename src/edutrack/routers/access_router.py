from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from edutrack.auth.dependencies import (
    enforce_rate_limit,
    get_advisory,
    get_credential,
    get_guard,
    get_optional_principal,
)
from edutrack.auth.models import Principal
from edutrack.authz.advisory import AdvisoryEvaluator
from edutrack.errors import NotFoundError
from edutrack.guard.request_guard import HandlerContext, RequestGuard
from edutrack.operations import OPERATIONS, get_operation
from edutrack.utils.response import guarded, success

router = APIRouter(prefix="/api", tags=["access"], dependencies=[Depends(enforce_rate_limit)])


@router.get("/access/check")
async def access_check(
    operation: str = Query(...),
    school_id: str | None = Query(default=None),
    principal: Principal | None = Depends(get_optional_principal),
    advisory: AdvisoryEvaluator = Depends(get_advisory),
) -> dict:
    """
    Client-side routing hint. Never grants access: the data endpoints run
    their own checks regardless of what this returns.
    """
    op = get_operation(operation)
    if op is None:
        if principal is None:
            return success(advisory.signed_out().as_dict())
        raise NotFoundError(f"unknown operation: {operation}")
    hint = advisory.check(principal, op, school_id)
    return success(hint.as_dict())


@router.get("/users/me")
async def me(
    response: Response,
    credential: str = Depends(get_credential),
    guard: RequestGuard = Depends(get_guard),
    advisory: AdvisoryEvaluator = Depends(get_advisory),
) -> dict:
    async def load(ctx: HandlerContext) -> dict:
        p = ctx.principal
        return {
            "id": p.id,
            "role": p.role,
            "schoolId": p.tenant_id,
            "active": p.active,
            "allowedOperations": advisory.allowed_operations(p),
        }

    result = await guard.run(credential, OPERATIONS["users.me"], load)
    return guarded(result, response)
