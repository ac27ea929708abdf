"""Application configuration from environment and per-tenant training policy."""
import hashlib
import json
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from awareness.core.errors import TenantNotFound


class TenantPolicyOverride(BaseModel):
    """Per-tenant overrides; unset fields fall back to the defaults in Settings."""

    pass_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    max_attempts: int | None = Field(default=None, ge=1)
    max_modules: int | None = Field(default=None, ge=1, le=20)
    retention_days: int | None = Field(default=None, ge=0)
    transcripts_enabled: bool | None = None
    enable_remediation: bool | None = None


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    app_name: str = "Security Awareness Training"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./awareness.db"
    sqlite_busy_timeout: float = 30.0  # seconds a writer waits for the lock

    # Language model (OpenAI-compatible chat completions endpoint)
    llm_api_url: str = "http://localhost:4891/v1/chat/completions"
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str | None = None
    llm_timeout: float = 60.0

    # Maintenance routes (transcript purge)
    admin_token: str = "change-me-in-production-use-env"

    # Default training policy
    pass_threshold: float = 0.7
    max_attempts: int = 3
    max_modules: int = 8
    retention_days: int | None = None
    transcripts_enabled: bool = True
    enable_remediation: bool = True

    # Tenants: JSON object {"acme": {"pass_threshold": 0.8}, ...}
    tenants: dict[str, TenantPolicyOverride] = {}
    allow_unknown_tenants: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


class PolicyContext(BaseModel):
    """Training policy snapshot resolved once per request and handed to the engines."""

    model_config = {"frozen": True}

    tenant_id: str
    pass_threshold: float = Field(ge=0.0, le=1.0)
    max_attempts: int = Field(ge=1)
    max_modules: int = Field(ge=1, le=20)
    retention_days: int | None = None
    transcripts_enabled: bool = True
    enable_remediation: bool = True
    config_hash: str = ""


def _hash_policy(values: dict) -> str:
    canonical = json.dumps(values, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def resolve_policy(tenant_id: str, settings: Settings | None = None) -> PolicyContext:
    """Merge tenant overrides onto the defaults and pin the result with a hash."""
    settings = settings or get_settings()
    override = settings.tenants.get(tenant_id)
    if override is None and not settings.allow_unknown_tenants:
        raise TenantNotFound(f"Tenant '{tenant_id}' is not configured")

    values = {
        "pass_threshold": settings.pass_threshold,
        "max_attempts": settings.max_attempts,
        "max_modules": settings.max_modules,
        "retention_days": settings.retention_days,
        "transcripts_enabled": settings.transcripts_enabled,
        "enable_remediation": settings.enable_remediation,
    }
    if override is not None:
        values.update(override.model_dump(exclude_none=True))

    return PolicyContext(
        tenant_id=tenant_id,
        config_hash=_hash_policy({"tenant_id": tenant_id, **values}),
        **values,
    )

