from __future__ import annotations

import os
from typing import Any, List

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

from staffapi.logging import get_logger

logger = get_logger(__name__)

DEFAULT_JWT_SECRET = "StaffAPI-Demo-Signing-Key-Replace-Before-Deploying!"

_NON_PRODUCTION_ENVS = frozenset({"development", "dev", "local", "test", "testing"})

_DEV_CORS_ORIGINS = [
    "http://localhost:3000",
    "https://localhost:3001",
    "http://localhost:8080",
]


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the staff management service."""

    app_name: str = env_field("Staff Management API", "APP_NAME")
    app_env: str = env_field(
        "Production",
        "APP_ENV",
        description="Deployment environment; anything outside development/test is production-like",
    )
    host: str = env_field("0.0.0.0", "HOST")
    port: int = env_field(8000, "PORT")

    jwt_secret: str = env_field(DEFAULT_JWT_SECRET, "JWT_SECRET")
    jwt_issuer: str = env_field("StaffAPI", "JWT_ISSUER")
    jwt_audience: str = env_field("StaffAPI.Users", "JWT_AUDIENCE")
    token_ttl_seconds: int = env_field(
        3600, "TOKEN_TTL_SECONDS", description="Bearer token lifetime in seconds"
    )

    enable_hsts: bool = env_field(True, "ENABLE_HSTS")
    cors_allow_origins: List[str] = env_field([], "CORS_ALLOW_ORIGINS")

    audit_request_body_limit: int = env_field(500, "AUDIT_REQUEST_BODY_LIMIT")
    audit_response_body_limit: int = env_field(1000, "AUDIT_RESPONSE_BODY_LIMIT")
    audit_max_entries: int = env_field(
        10_000,
        "AUDIT_MAX_ENTRIES",
        description="Entries kept in memory for inspection; older entries roll off",
    )

    memory_threshold_bytes: int = env_field(1024 * 1024 * 1024, "MEMORY_THRESHOLD_BYTES")
    health_check_timeout_seconds: float = env_field(3, "HEALTH_CHECK_TIMEOUT_SECONDS")
    seed_sample_data: bool = env_field(True, "SEED_SAMPLE_DATA")

    log_level: str = env_field("INFO", "LOG_LEVEL")
    log_json: bool = env_field(True, "LOG_JSON")
    log_dev_mode: bool = env_field(False, "LOG_DEV_MODE")

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls, env_file: str = ".env") -> "Settings":
        env_file_values = dotenv_values(env_file)
        merged: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        settings = cls(**merged)
        if settings.is_production_like and settings.jwt_secret == DEFAULT_JWT_SECRET:
            logger.warning(
                "jwt_secret_default_in_production",
                app_env=settings.app_env,
                message="Set JWT_SECRET; the built-in signing key is for demonstration only",
            )
        return settings

    @property
    def is_production_like(self) -> bool:
        return self.app_env.strip().lower() not in _NON_PRODUCTION_ENVS

    @property
    def allowed_origins(self) -> List[str]:
        if self.cors_allow_origins:
            return self.cors_allow_origins
        if self.is_production_like:
            return []
        return list(_DEV_CORS_ORIGINS)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("jwt_secret")
    @classmethod
    def _check_jwt_secret(cls, value: str) -> str:
        if not value or len(value) < 32:
            raise ValueError("jwt_secret must be at least 32 characters")
        return value

    @field_validator("token_ttl_seconds", "audit_request_body_limit", "audit_response_body_limit")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value
