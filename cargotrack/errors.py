"""
Application error taxonomy and the FastAPI handlers that render it.

Services raise these instead of HTTPException so they stay usable outside a
request (scripts, tests). Every error renders as {"detail": ..., **extra}.
"""
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, **self.extra}


class ValidationError(AppError):
    """Malformed or missing input. `errors` carries field-level detail."""
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, errors=errors or [])
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class InvalidTransitionError(ConflictError):
    def __init__(self, current: str, requested: str, allowed: Optional[List[str]] = None):
        super().__init__(
            f"Invalid status transition {current} -> {requested}",
            current=current,
            requested=requested,
            allowed=sorted(allowed or []),
        )
        self.current = current
        self.requested = requested


def _request_validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "invalid")})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={"detail": "Validation failed", "errors": _request_validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        # Imported here: log_store pulls in the ORM models
        from .services.log_store import log_exception

        structlog.get_logger().error("unhandled_exception", path=request.url.path, error=str(exc))
        await log_exception(
            exc,
            request_id=getattr(request.state, "request_id", None),
            user_id=getattr(request.state, "user_id", None),
            details={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
