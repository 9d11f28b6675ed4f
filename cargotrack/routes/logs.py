from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..auth.security import (
    require_permissions,
    get_request_context,
    get_anonymous_context,
    RequestContext,
)
from ..schemas.auth import Permission
from ..schemas.logs import ClientLogCreate, LogResponse, LogCleanupResponse, LogLevel, LogSource
from ..services import log_store


router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("", response_model=List[LogResponse])
def list_logs(
    limit: int = Query(100, ge=1, le=1000),
    level: Optional[LogLevel] = Query(None),
    source: Optional[LogSource] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_permissions(Permission.logs_view)),
):
    return log_store.get_logs(
        db,
        limit=limit,
        level=level.value if level else None,
        source=source.value if source else None,
    )


@router.post("/client")
def create_client_log(entry: ClientLogCreate, ctx: RequestContext = Depends(get_anonymous_context)):
    """Browser-side errors; accepted without a session so login failures are visible too"""
    log_store.write_log(
        entry.level.value,
        "client",
        entry.message,
        details=entry.details,
        stack_trace=entry.stack_trace,
        **ctx.log_fields(),
    )
    return {"success": True}


@router.delete("/cleanup", response_model=LogCleanupResponse)
def cleanup_logs(
    days: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.logs_view)),
):
    if days is None:
        days = settings.log_retention_days
    deleted = log_store.delete_old_logs(db, days)
    log_store.write_log("info", "server", f"Cleaned logs older than {days} days", details={"deleted": deleted}, **ctx.log_fields())
    return LogCleanupResponse(message=f"Logs older than {days} days were removed", deleted=deleted)
