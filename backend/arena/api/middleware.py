"""
Request middleware: correlation ids, caller context and timing.

Every log line written while a request is handled carries request_id and
the caller kind. Authenticated calls add user_id and role once the bearer
token has been decoded (see core.security); Stripe deliveries are tagged
so webhook logs can be pulled out of the API stream.
"""

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from arena.core.logging import get_logger

logger = get_logger(__name__)

# Caller-supplied ids are echoed back, so only short opaque tokens are kept.
_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Health checks and scrapes are polled constantly and only logged on failure.
QUIET_PATHS = {"/health", "/metrics"}


def request_id_for(request: Request) -> str:
    supplied = request.headers.get("X-Request-ID", "")
    return supplied if _REQUEST_ID.match(supplied) else uuid.uuid4().hex[:12]


def caller_kind(request: Request) -> str:
    if "stripe-signature" in request.headers:
        return "stripe_webhook"
    if request.headers.get("authorization", "").lower().startswith("bearer "):
        return "user"
    return "guest"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request_id_for(request)
        caller = caller_kind(request)
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            caller=caller,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error("request_failed", error=str(e), duration_ms=duration_ms)
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        if request.url.path not in QUIET_PATHS or response.status_code >= 500:
            log = logger.warning if response.status_code >= 500 else logger.info
            log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
