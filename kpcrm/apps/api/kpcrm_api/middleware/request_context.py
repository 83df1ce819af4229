"""Request id propagation and request completion logging.

Must wrap every middleware that logs (only CORS and the security headers sit
outside it) so request_id is set before any other middleware logs, and so the
completion line is emitted even when an inner middleware answers early
(e.g. 429).
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from kpcrm_api.context import organization_id_var, request_id_var, user_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign X-Request-ID and emit one "http.request.completed" line per request."""

    async def dispatch(self, request: Request, call_next):
        # per-request context must not leak across reused tasks
        user_id_var.set("")
        organization_id_var.set("")

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            # identity is attached downstream, in a child context; read it from request.state
            auth = getattr(request.state, "auth", None)
            extra = {
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            }
            if auth is not None:
                extra["user_id"] = auth.user_id
                if auth.organization_id:
                    extra["organization_id"] = auth.organization_id

            logger.info("http.request.completed", extra=extra)

            request_id_var.set("")
            user_id_var.set("")
            organization_id_var.set("")
