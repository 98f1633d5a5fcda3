from __future__ import annotations

from functools import partial

from fastapi import APIRouter, Depends, Request, Response

from edutrack.auth.dependencies import enforce_rate_limit, get_credential, get_guard
from edutrack.errors import NotFoundError
from edutrack.guard.request_guard import RequestGuard
from edutrack.operations import get_operation
from edutrack.services.dashboard_service import SECTION_HANDLERS
from edutrack.utils.response import guarded
from edutrack.configs.logging_config import get_logger

log = get_logger(__name__)

router = APIRouter(
    prefix="/api/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.get("/{role}/{section}")
async def dashboard_section(
    role: str,
    section: str,
    request: Request,
    response: Response,
    credential: str = Depends(get_credential),
    guard: RequestGuard = Depends(get_guard),
) -> dict:
    operation_id = f"dashboard.{role.lower()}.{section.lower()}"
    op = get_operation(operation_id)
    handler = SECTION_HANDLERS.get(operation_id)
    if op is None or handler is None:
        # unknown sections answer 404 only to a valid session
        settings = request.app.state.settings
        await guard.resolver.resolve(credential, timeout=settings.session_timeout_seconds)
        raise NotFoundError(f"unknown dashboard section: {role}/{section}")

    result = await guard.run(
        credential, op, partial(handler, request.app.state.dashboard_repo)
    )
    log.info(
        "dashboard.section.done operation=%s tenant_id=%s cache=%s",
        operation_id,
        result.principal.tenant_id,
        result.cache_status.value,
    )
    return guarded(result, response)
