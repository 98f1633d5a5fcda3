from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from edutrack.auth.dependencies import enforce_rate_limit, get_credential, get_guard
from edutrack.errors import NotFoundError
from edutrack.guard.request_guard import HandlerContext, RequestGuard
from edutrack.operations import OPERATIONS
from edutrack.repositories.dashboard_repository import DashboardRepository
from edutrack.repositories.principal_repository import PrincipalStore
from edutrack.utils.response import guarded

router = APIRouter(
    prefix="/api/schools",
    tags=["schools"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.get("/{school_id}")
async def school_detail(
    school_id: str,
    request: Request,
    response: Response,
    credential: str = Depends(get_credential),
    guard: RequestGuard = Depends(get_guard),
) -> dict:
    store: PrincipalStore = request.app.state.principal_store

    async def load(ctx: HandlerContext) -> dict:
        tenant = await store.get_tenant(ctx.tenant_id)
        if tenant is None:
            raise NotFoundError("school not found")
        return {"id": tenant.id, "name": tenant.name, "externalOrgRef": tenant.external_org_ref}

    result = await guard.run(credential, OPERATIONS["schools.detail"], load, target_tenant_id=school_id)
    return guarded(result, response)


@router.get("/{school_id}/classes")
async def school_classes(
    school_id: str,
    request: Request,
    response: Response,
    credential: str = Depends(get_credential),
    guard: RequestGuard = Depends(get_guard),
) -> dict:
    repo: DashboardRepository = request.app.state.dashboard_repo

    async def load(ctx: HandlerContext) -> dict:
        classes = await repo.find("classes", ctx.tenant_id, sort=[("grade", 1), ("name", 1)], limit=500)
        return {"classes": classes, "total": len(classes)}

    result = await guard.run(credential, OPERATIONS["schools.classes"], load, target_tenant_id=school_id)
    return guarded(result, response)
