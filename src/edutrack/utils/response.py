from __future__ import annotations

from typing import Any

from fastapi import Response

from edutrack.guard.request_guard import CacheStatus, GuardResult
from edutrack.utils.time_utils import now_ms


def success(data: Any, message: str = "request processed successfully") -> dict[str, Any]:
    return {"status": "success", "message": message, "data": data, "timestamp": now_ms()}


def failure(message: str, **extra: Any) -> dict[str, Any]:
    body = {"status": "failure", "message": message, "timestamp": now_ms()}
    body.update(extra)
    return body


def guarded(result: GuardResult, response: Response) -> dict[str, Any]:
    """Envelope a guard result and set the caching headers for its tier."""
    response.headers["Cache-Control"] = result.cache_control
    response.headers["X-Cache"] = result.cache_status.value
    if result.cache_status in (CacheStatus.HIT, CacheStatus.STALE):
        response.headers["Age"] = str(int(result.age))
    return success(result.payload)
