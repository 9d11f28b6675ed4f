"""
Persisted application log.
Server and client entries go to the logs table and are mirrored to structlog.
If the database write fails the entry is still emitted through structlog.
"""
import traceback
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .. import db as _db
from ..models.models import Log
from ..schemas.logs import LogLevel, LogSource
from ..utils import utcnow, as_utc


logger = structlog.get_logger("cargotrack.log_store")


def _emit(level: str, source: str, message: str, **fields: Any) -> None:
    fields = {k: v for k, v in fields.items() if v is not None}
    method = {"warn": "warning"}.get(level, level)
    getattr(logger, method, logger.info)(message, source=source, **fields)


def write_log(
    level: str,
    source: str,
    message: str,
    *,
    details: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    stack_trace: Optional[str] = None,
) -> Optional[Log]:
    """
    Append a log entry.

    Opens its own session so a failed request transaction never takes the
    log row down with it. Returns None when the write fell back to structlog.
    """
    level = LogLevel(level).value
    source = LogSource(source).value
    entry = Log(
        level=level,
        source=source,
        message=message,
        details=details,
        user_id=str(user_id) if user_id else None,
        request_id=request_id,
        user_agent=user_agent,
        ip_address=ip_address,
        stack_trace=stack_trace,
        created_at=utcnow(),
    )
    db = _db.SessionLocal()
    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("log_store_write_failed", error=str(e))
        _emit(level, source, message, details=details, request_id=request_id, user_id=user_id)
        return None
    finally:
        db.close()
    _emit(level, source, message, details=details, request_id=request_id, user_id=user_id)
    return entry


async def awrite_log(level: str, source: str, message: str, **kwargs: Any) -> Optional[Log]:
    return await run_in_threadpool(write_log, level, source, message, **kwargs)


async def log_exception(exc: BaseException, **kwargs: Any) -> Optional[Log]:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    details = dict(kwargs.pop("details", None) or {})
    details["error"] = {"name": type(exc).__name__, "message": str(exc)}
    return await awrite_log(
        "error", "server", f"Error: {exc}", details=details, stack_trace=stack, **kwargs
    )


def get_logs(
    db: Session,
    limit: int = 100,
    level: Optional[str] = None,
    source: Optional[str] = None,
) -> List[Log]:
    """Newest first, optionally filtered by level and source."""
    query = db.query(Log)
    if level:
        query = query.filter(Log.level == level)
    if source:
        query = query.filter(Log.source == source)
    return query.order_by(Log.created_at.desc()).limit(limit).all()


def delete_old_logs(db: Session, days: int, now: Optional[datetime] = None) -> int:
    """Delete entries created more than `days` days ago. Returns the number removed."""
    cutoff = (as_utc(now) or utcnow()) - timedelta(days=days)
    removed = db.query(Log).filter(Log.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    return removed
