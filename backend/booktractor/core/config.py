from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    # Remote RPC backend (tRPC over HTTP). Procedures live under RPC_PATH.
    API_BASE_URL: str = "http://localhost:3000"
    RPC_PATH: str = "/api/trpc"
    # The web client sends queries as POST (methodOverride); keep GET available
    # for backends that only accept the default query transport.
    RPC_METHOD_OVERRIDE_POST: bool = False

    # Hosted auth provider. Defaults to the same origin as the RPC backend.
    AUTH_BASE_URL: str = ""
    AUTH_PATH: str = "/api/auth"

    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Redis connection URL for the query cache ("disabled" turns caching off)
    REDIS_URL: str = "redis://localhost:6379/0"
    QUERY_CACHE_TTL: int = 60

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8081"]
    CORS_ALLOW_ALL: bool = False

    # Base frontend URL used for social sign-in callbacks
    FRONTEND_URL: str = "http://localhost:3000"

    # Entry routes
    LOGIN_ROUTE: str = "/auth/login"
    DEFAULT_LOGIN_REDIRECT: str = "/owner"

    # Observability
    LOG_LEVEL: str = "INFO"
    ENABLE_TRACING: bool = False
    ENABLE_CONSOLE_TRACING: bool = False
    OTEL_TRACES_SAMPLER_RATIO: float = 1.0

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("API_BASE_URL", "AUTH_BASE_URL", "FRONTEND_URL", mode="before")
    def strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(self) -> "Settings":
        if self.CORS_ALLOW_ALL:
            self.CORS_ORIGINS = ["*"]
        return self

    @model_validator(mode="after")
    def default_auth_origin(self) -> "Settings":
        if not self.AUTH_BASE_URL:
            self.AUTH_BASE_URL = self.API_BASE_URL
        return self

    @property
    def rpc_url(self) -> str:
        return f"{self.API_BASE_URL}{self.RPC_PATH}"

    @property
    def auth_url(self) -> str:
        return f"{self.AUTH_BASE_URL}{self.AUTH_PATH}"


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
