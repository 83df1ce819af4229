"""Kitchen Pantry CRM API - FastAPI Application Entry Point."""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kpcrm_api.audit.sinks import AuditSink, get_default_audit_sink
from kpcrm_api.auth.identity import (
    IdentityProvider,
    ProfileStore,
    SupabaseIdentityProvider,
    SupabaseProfileStore,
)
from kpcrm_api.auth.session_auth import Authenticator
from kpcrm_api.config.env import Settings, load_settings
from kpcrm_api.db.redis_client import create_redis_client
from kpcrm_api.errors import (
    AuthenticationError,
    CrmError,
    FieldError,
    RateLimitedError,
    ValidationError,
)
from kpcrm_api.middleware import (
    RateLimitMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from kpcrm_api.rate_limiter import NoOpRateLimiter, RateLimiter, RedisRateLimiter
from kpcrm_api.responses import (
    crm_error_response,
    error_response,
    success_body,
    validation_error_response,
)
from kpcrm_api.routers import auth, entities, health, users
from kpcrm_api.supabase_client import SupabaseClients
from kpcrm_api.utils import configure_json_logging

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
API_VERSION = "1.0.0"

_STATUS_MESSAGES = {
    400: "Bad request",
    401: "Authentication required",
    403: "Insufficient permissions",
    404: "Resource not found",
    405: "Method not allowed",
    429: "Too many requests, please try again later",
    500: "An unexpected error occurred",
}


def _build_rate_limiter(app: FastAPI, settings: Settings) -> RateLimiter:
    if not settings.rate_limit_enabled:
        return NoOpRateLimiter(quota=settings.rate_limit_max_requests, window=settings.rate_limit_window_seconds)

    redis_client = create_redis_client(settings.redis_url, settings.redis_password)
    app.state.redis = redis_client
    logger.info(
        "Rate limiting enabled",
        extra={
            "quota": settings.rate_limit_max_requests,
            "auth_quota": settings.auth_rate_limit_max_requests,
            "window_seconds": settings.rate_limit_window_seconds,
        },
    )
    return RedisRateLimiter(
        redis_client,
        quota=settings.rate_limit_max_requests,
        window=settings.rate_limit_window_seconds,
        auth_quota=settings.auth_rate_limit_max_requests,
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """400 with every violated field: {success: false, errors, meta}."""
        return validation_error_response(exc)

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        # reason stays server side; clients only ever see the generic message
        return error_response(exc.status_code, exc.message, headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
        return error_response(exc.status_code, exc.message, headers={"Retry-After": str(exc.retry_after)})

    @app.exception_handler(CrmError)
    async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
        """MalformedBodyError, AuthorizationError, NotFoundError and the rest of the family."""
        return crm_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Framework-level parameter errors use the same envelope as payload validation."""
        errors = [
            FieldError(
                field=".".join(str(part) for part in error.get("loc", ())[1:]) or "request",
                message=error.get("msg", "Invalid value"),
            )
            for error in exc.errors()
        ]
        return validation_error_response(ValidationError(errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = _STATUS_MESSAGES.get(exc.status_code) or str(exc.detail)
        return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """500 with a generic body; the real exception is only logged."""
        logger.error(f"Unhandled exception: {type(exc).__name__}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, _STATUS_MESSAGES[500])


def _install_openapi(app: FastAPI) -> None:
    def custom_openapi():
        """Add the Bearer security scheme and apply it globally."""
        if app.openapi_schema:
            return app.openapi_schema

        from fastapi.openapi.utils import get_openapi

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
            servers=app.servers,
        )

        components = openapi_schema.setdefault("components", {})
        components.setdefault("securitySchemes", {})["BearerAuth"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Supabase access token from POST /api/v1/auth/login.",
        }
        openapi_schema["security"] = [{"BearerAuth": []}]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi


def create_app(
    settings: Optional[Settings] = None,
    *,
    identity_provider: Optional[IdentityProvider] = None,
    profile_store: Optional[ProfileStore] = None,
    data_client=None,
    auth_client=None,
    audit_sink: Optional[AuditSink] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the application with every collaborator injected.

    Anything not supplied is built from settings: Supabase-backed identity
    provider / profile store / clients (created lazily on first use), the
    configured audit sink and rate limiter.

    Args:
        settings: Resolved configuration (load_settings() when omitted)
        identity_provider / profile_store: Authenticator collaborators
        data_client: Client for table access and admin auth calls
        auth_client: Client for password sign-in
        audit_sink: Receiver of access-denial records
        rate_limiter: Request limiter for /api/v1/*
    """
    settings = settings or load_settings()

    if settings.json_logs:
        configure_json_logging(log_level=settings.log_level)

    app = FastAPI(
        title="Kitchen Pantry CRM API",
        description="Food-service sales CRM: organizations, contacts, interactions, opportunities and products.",
        version=API_VERSION,
        docs_url="/api-docs",
        redoc_url="/redoc",
        servers=[
            {"url": settings.api_base_url, "description": "Configured base URL"},
            {"url": "http://localhost:8000", "description": "Local development"},
        ],
    )
    app.state.settings = settings

    clients = SupabaseClients(settings)
    app.state.supabase = clients
    app.state.data_client_factory = (lambda: data_client) if data_client is not None else (lambda: clients.admin)
    app.state.auth_client_factory = (lambda: auth_client) if auth_client is not None else clients.sign_in_client

    app.state.authenticator = Authenticator(
        identity_provider=identity_provider or SupabaseIdentityProvider(lambda: clients.anon),
        profile_store=profile_store or SupabaseProfileStore(lambda: clients.admin),
        timeout_seconds=settings.auth_provider_timeout_seconds,
        audit_sink=audit_sink if audit_sink is not None else get_default_audit_sink(settings),
    )
    app.state.rate_limiter = rate_limiter or _build_rate_limiter(app, settings)

    # Registration order: last added is outermost
    # (CORS > security headers > request context > rate limit)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,  # never "*" with credentials
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "RateLimit-Policy", "RateLimit", "Retry-After"],
    )

    _register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(entities.organizations, prefix=API_PREFIX)
    app.include_router(entities.contacts, prefix=API_PREFIX)
    app.include_router(entities.interactions, prefix=API_PREFIX)
    app.include_router(entities.opportunities, prefix=API_PREFIX)
    app.include_router(entities.products, prefix=API_PREFIX)
    app.include_router(users.router, prefix=API_PREFIX)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        return success_body(
            {
                "name": app.title,
                "version": API_VERSION,
                "environment": settings.env,
                "docs": "/api-docs",
                "health": "/health",
            }
        )

    _install_openapi(app)

    logger.info("Application created", extra={"env": settings.env})
    return app


app = create_app()
