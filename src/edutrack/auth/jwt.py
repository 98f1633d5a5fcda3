from __future__ import annotations

from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from edutrack.configs.settings import Settings
from edutrack.errors import AuthError
from edutrack.configs.logging_config import get_logger

log = get_logger(__name__)


def decode_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Decode and validate a session JWT issued by the identity provider.

    Signature, `exp` and (when configured) `iss`/`aud` are verified. The token
    itself is never logged.
    """
    try:
        options = {"verify_aud": settings.jwt_audience is not None}
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_alg],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options=options,
        )
    except ExpiredSignatureError as e:
        log.info("jwt.decode expired")
        raise AuthError("session expired") from e
    except JWTError as e:
        log.info("jwt.decode failed: %s", str(e))
        raise AuthError("invalid token") from e

    if not claims.get("sub"):
        log.info("jwt.decode missing_sub")
        raise AuthError("token missing required claims")
    return claims
