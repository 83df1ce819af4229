"""Environment variable resolution utilities.

Canonical env names with legacy fallbacks, resolved once at process start into
a frozen Settings object that the application factory injects everywhere.
Only values the service cannot run without fail fast; Supabase credentials are
checked lazily when a client is first built.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}

_DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    """Read a positive integer env var.

    Raises:
        ValueError: If the value is not an integer or is below ``minimum``
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


def get_crm_env() -> str:
    """Get environment name.

    Priority:
    1. CRM_ENV (canonical)
    2. NODE_ENV (legacy, shared with the web frontend's .env files)
    3. Default: "development"

    Returns:
        Environment name (lowercase)
    """
    return (os.getenv("CRM_ENV") or os.getenv("NODE_ENV") or "development").lower()


def is_production_env() -> bool:
    return get_crm_env() in {"prod", "production"}


def get_cors_allowed_origins() -> list[str]:
    """Explicit CORS allowlist (comma-separated); localhost variants otherwise.

    Credentials mode cannot use wildcard origins, so "*" is never produced here.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS") or os.getenv("CORS_ORIGIN") or ""
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or list(_DEFAULT_CORS_ORIGINS)


def get_supabase_url() -> Optional[str]:
    return os.getenv("SUPABASE_URL") or None


def get_supabase_anon_key() -> Optional[str]:
    """Publishable (anon) key: SB_PUBLISHABLE_KEY, legacy SUPABASE_ANON_KEY."""
    return os.getenv("SB_PUBLISHABLE_KEY") or os.getenv("SUPABASE_ANON_KEY") or None


def get_supabase_service_key() -> Optional[str]:
    """Secret (service role) key: SB_SECRET_KEY, then the two legacy names."""
    return (
        os.getenv("SB_SECRET_KEY")
        or os.getenv("SUPABASE_SERVICE_KEY")
        or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        or None
    )


@dataclass(frozen=True)
class Settings:
    """Process configuration, resolved once and injected (never re-read per request)."""

    env: str = "development"
    log_level: str = "INFO"
    json_logs: bool = True
    api_base_url: str = "http://localhost:8000"
    cors_allowed_origins: list[str] = field(default_factory=lambda: list(_DEFAULT_CORS_ORIGINS))
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_key: Optional[str] = None
    auth_provider_timeout_seconds: float = 5.0
    rate_limit_enabled: bool = False
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900
    auth_rate_limit_max_requests: int = 5
    redis_url: str = "redis://localhost:6379/0"
    redis_password: Optional[str] = None
    auth_audit_dir: Optional[str] = None
    max_request_body_bytes: int = 10 * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.env in {"prod", "production"}


def load_settings() -> Settings:
    """Resolve Settings from the environment.

    Raises:
        ValueError: If a numeric variable is malformed, or if production is
            missing Supabase configuration
    """
    settings = Settings(
        env=get_crm_env(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        json_logs=_env_bool("CRM_JSON_LOGS", True),
        api_base_url=os.getenv("API_BASE_URL", "http://localhost:8000"),
        cors_allowed_origins=get_cors_allowed_origins(),
        supabase_url=get_supabase_url(),
        supabase_anon_key=get_supabase_anon_key(),
        supabase_service_key=get_supabase_service_key(),
        auth_provider_timeout_seconds=_env_float("AUTH_PROVIDER_TIMEOUT_SECONDS", 5.0),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", False),
        rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 100),
        rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 900),
        auth_rate_limit_max_requests=_env_int("AUTH_RATE_LIMIT_MAX_REQUESTS", 5),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        redis_password=os.getenv("REDIS_PASSWORD") or None,
        auth_audit_dir=os.getenv("AUTH_AUDIT_DIR") or None,
        max_request_body_bytes=_env_int("MAX_REQUEST_BODY_BYTES", 10 * 1024 * 1024),
    )

    if settings.is_production:
        missing = [
            name
            for name, value in (
                ("SUPABASE_URL", settings.supabase_url),
                ("SUPABASE_ANON_KEY", settings.supabase_anon_key),
                ("SUPABASE_SERVICE_KEY", settings.supabase_service_key),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                f"PRODUCTION GUARDRAIL: {', '.join(missing)} must be set when CRM_ENV=production. "
                "Check deployment configuration and secrets injection."
            )

    return settings
