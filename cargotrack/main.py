import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import structlog

from .config import settings
from .db import Base, engine
from .errors import register_exception_handlers
from .logging import setup_logging, RequestIdMiddleware, RequestLogMiddleware
from .auth.router import router as auth_router
from .routes.registry import router as registry_router
from .routes.operations import router as operations_router
from .routes.users import router as users_router
from .routes.logs import router as logs_router
from .routes.reports import router as reports_router


def init_db() -> None:
    log = structlog.get_logger("cargotrack.startup")
    # Ensure local SQLite directory exists
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    from sqlalchemy import inspect
    existing_tables = set(inspect(engine).get_table_names())
    missing = set(Base.metadata.tables.keys()) - existing_tables
    if missing:
        log.info("creating_tables", tables=sorted(missing))
        Base.metadata.create_all(bind=engine)
    else:
        log.info("tables_present", count=len(existing_tables))


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares (last added runs first)
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(registry_router)
    app.include_router(operations_router)
    app.include_router(users_router)
    app.include_router(logs_router)
    app.include_router(reports_router)

    @app.get("/api/health")
    def health():
        return {"status": "ok", "app": settings.app_name, "environment": settings.environment}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        if settings.auto_create_db:
            init_db()

    return app


app = create_app()
