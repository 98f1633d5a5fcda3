from __future__ import annotations


class AppError(Exception):
    """Base error for expected failures."""

    def __init__(self, message: str, *, http_status: int = 400):
        super().__init__(message)
        self.message = message
        self.http_status = http_status


class AuthError(AppError):
    def __init__(self, message: str = "unauthorized"):
        super().__init__(message, http_status=401)


class ForbiddenError(AppError):
    def __init__(self, message: str = "forbidden", *, reason: str | None = None):
        super().__init__(message, http_status=403)
        self.reason = reason


class NotFoundError(AppError):
    def __init__(self, message: str = "not found"):
        super().__init__(message, http_status=404)


class RateLimitError(AppError):
    def __init__(self, retry_after: int, *, limit: int, reset_at: int):
        super().__init__(
            f"rate limit exceeded, retry in {retry_after} seconds", http_status=429
        )
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at


class UpstreamUnavailableError(AppError):
    def __init__(self, message: str = "upstream unavailable"):
        super().__init__(message, http_status=503)


class CacheBackendError(Exception):
    """Raised by cache backends. Never mapped to a response; callers degrade to direct compute."""
