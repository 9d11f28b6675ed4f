import uuid
import time
import logging
import structlog
import os
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .config import settings


def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:10])
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response: Response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id
        return response


def level_for_status(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warn"
    return "info"


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Writes one log row per API request with method, path, status and duration."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response: Response = await call_next(request)
        if not settings.log_requests or not request.url.path.startswith("/api"):
            return response
        # Imported here: log_store pulls in the ORM models
        from .services.log_store import awrite_log

        duration_ms = int((time.perf_counter() - started) * 1000)
        await awrite_log(
            level_for_status(response.status_code),
            "server",
            f"{request.method} {request.url.path} {response.status_code} in {duration_ms}ms",
            details={"method": request.method, "path": request.url.path, "query": dict(request.query_params)},
            user_id=getattr(request.state, "user_id", None),
            request_id=getattr(request.state, "request_id", None),
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None,
        )
        return response
