from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from orderflow.core.request_context import clear_request_context, get_tenant_id, set_request_context

logger = logging.getLogger(__name__)

# health checks stay out of the INFO stream
QUIET_PATHS = frozenset({"/", "/health"})


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id propagation plus one structured access line per request."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        status_code = 500
        response = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            path = request.url.path
            level = logging.DEBUG if path in QUIET_PATHS and status_code < 400 else logging.INFO
            if status_code >= 500:
                level = logging.WARNING
            logger.log(
                level,
                "%s %s -> %s",
                request.method,
                path,
                status_code,
                extra={
                    "request_id": request_id,
                    "tenant_id": _request_tenant(request),
                    "user_id": _request_user(request),
                    "endpoint": path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            if response is not None:
                response.headers["X-Request-ID"] = request_id
            clear_request_context()


def _request_tenant(request: Request) -> str | None:
    # storefront routes carry the slug; staff routes set the context var
    slug = request.path_params.get("slug")
    return str(slug) if slug else get_tenant_id()


def _request_user(request: Request) -> str | None:
    actor = getattr(request.state, "actor", None)
    user_id = getattr(actor, "user_id", None)
    return str(user_id) if user_id is not None else None
