from __future__ import annotations

from typing import Any, Literal

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """
    Central configuration.

    - Values loaded from `.env`
    - Comma-separated lists for multi-value settings like CORS_ORIGINS
    """

    # ----------------------------
    # Service
    # ----------------------------
    SERVICE_NAME: str = "edutrack-api"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ----------------------------
    # Mongo (principal / tenant store, dashboard reads)
    # ----------------------------
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "edutrack"
    mongo_ensure_indexes: bool = False

    # ----------------------------
    # Redis
    # ----------------------------
    redis_url: str = "redis://localhost:6379/0"

    # ----------------------------
    # Response cache
    # ----------------------------
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_key_prefix: str = "edutrack:cache"
    cache_purge_interval_seconds: int = 300  # memory backend only
    cache_timeout_seconds: float = 0.5

    # ----------------------------
    # Identity provider
    # ----------------------------
    identity_provider: Literal["jwt", "introspection"] = "jwt"

    jwt_alg: str = "HS256"
    jwt_secret: str = "change-me"
    jwt_audience: str | None = None
    jwt_issuer: str | None = None

    introspection_url: str = "http://localhost:5055/oauth2/introspect"
    oauth2_token_url: str = "http://localhost:5055/oauth2/token"
    oauth2_client_id: str = "edutrack-api"
    oauth2_client_secret: str = "change-me"
    oauth2_scope: str | None = None

    # ----------------------------
    # Timeouts (seconds)
    # ----------------------------
    session_timeout_seconds: float = 5.0
    handler_timeout_seconds: float = 10.0

    # ----------------------------
    # Rate limiting (dashboard routes)
    # ----------------------------
    rate_limit_max_requests: int = 30
    rate_limit_window_seconds: int = 60

    # ----------------------------
    # CORS
    # ----------------------------
    # store as raw string list from env; we will normalize in code
    CORS_ORIGINS: Any = Field(default_factory=list)

    # Pydantic settings config (v2 style)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        raw = self.CORS_ORIGINS
        if isinstance(raw, str):
            return [o.strip() for o in raw.split(",") if o.strip()]
        if isinstance(raw, (list, tuple, set)):
            return list(raw)
        return []


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
