import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_permissions, get_request_context, RequestContext
from ..schemas.auth import Permission
from ..schemas.common import MessageResponse
from ..schemas.operations import (
    OperationCreate,
    OperationUpdate,
    OperationResponse,
    OperationStatus,
    StatusChange,
    ProgressChange,
    TimestampMark,
    StatsResponse,
    AllowedTransitionsResponse,
)
from ..services import operations as lifecycle
from ..services.log_store import write_log

router = APIRouter(prefix="/api", tags=["operations"])

OPERATION_READERS = (
    Permission.dashboard_view,
    Permission.simplified_view,
    Permission.complete_view,
    Permission.report_view,
)
OPERATION_EDITORS = (Permission.complete_edit, Permission.dashboard_edit)


@router.get("/operations", response_model=List[OperationResponse])
def list_operations(
    status: Optional[OperationStatus] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_permissions(*OPERATION_READERS)),
):
    """List operations newest first, optionally filtered by status"""
    return lifecycle.list_operations(db, status)


@router.get("/operations/{operation_id}", response_model=OperationResponse)
def get_operation(
    operation_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(*OPERATION_READERS)),
):
    return lifecycle.get_operation(db, operation_id)


@router.get("/operations/{operation_id}/transitions", response_model=AllowedTransitionsResponse)
def get_allowed_transitions(
    operation_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(*OPERATION_READERS)),
):
    """Statuses the operation can move to next"""
    op = lifecycle.get_operation(db, operation_id)
    return AllowedTransitionsResponse(
        status=op.status,
        allowed=sorted(lifecycle.allowed_next_statuses(op.status, op.type)),
    )


@router.post("/operations", response_model=OperationResponse, status_code=201)
def create_operation(
    operation: OperationCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.complete_create)),
):
    op = lifecycle.create_operation(db, operation.model_dump())
    write_log("info", "server", f"Operation created: {op.id}", **ctx.log_fields())
    return op


@router.put("/operations/{operation_id}", response_model=OperationResponse)
def update_operation(
    operation_id: uuid.UUID,
    operation_update: OperationUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(*OPERATION_EDITORS)),
):
    op = lifecycle.get_operation(db, operation_id)
    previous = op.status
    op = lifecycle.update_operation(db, op, operation_update.model_dump(exclude_unset=True))
    if op.status != previous:
        _log_transition(op, previous, ctx)
    return op


@router.post("/operations/{operation_id}/status", response_model=OperationResponse)
def change_status(
    operation_id: uuid.UUID,
    change: StatusChange,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(*OPERATION_EDITORS)),
):
    op = lifecycle.get_operation(db, operation_id)
    previous = op.status
    op = lifecycle.transition(db, op, change.status, expected_revision=change.revision)
    if op.status != previous:
        _log_transition(op, previous, ctx)
    return op


@router.post("/operations/{operation_id}/progress", response_model=OperationResponse)
def change_progress(
    operation_id: uuid.UUID,
    change: ProgressChange,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(*OPERATION_EDITORS)),
):
    op = lifecycle.get_operation(db, operation_id)
    return lifecycle.set_progress(db, op, change.progress, expected_revision=change.revision)


@router.post("/operations/{operation_id}/start", response_model=OperationResponse)
def mark_start(
    operation_id: uuid.UUID,
    mark: Optional[TimestampMark] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(*OPERATION_EDITORS)),
):
    mark = mark or TimestampMark()
    op = lifecycle.get_operation(db, operation_id)
    return lifecycle.record_actual_start(db, op, mark.at, expected_revision=mark.revision)


@router.post("/operations/{operation_id}/finish", response_model=OperationResponse)
def mark_finish(
    operation_id: uuid.UUID,
    mark: Optional[TimestampMark] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(*OPERATION_EDITORS)),
):
    mark = mark or TimestampMark()
    op = lifecycle.get_operation(db, operation_id)
    return lifecycle.record_actual_end(db, op, mark.at, expected_revision=mark.revision)


@router.delete("/operations/{operation_id}", response_model=MessageResponse)
def delete_operation(
    operation_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.complete_delete)),
):
    op = lifecycle.get_operation(db, operation_id)
    lifecycle.delete_operation(db, op)
    write_log("info", "server", f"Operation deleted: {operation_id}", **ctx.log_fields())
    return MessageResponse(message="Operation deleted successfully")


# ---------- DASHBOARD ----------
@router.get("/stats", response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db), _=Depends(require_permissions(*OPERATION_READERS))):
    """Counts per status for the TV dashboard"""
    return StatsResponse(**lifecycle.get_stats(db))


def _log_transition(op, previous: str, ctx: RequestContext) -> None:
    write_log(
        "info",
        "server",
        f"Operation {op.id} moved {previous} -> {op.status}",
        details={"operation_id": str(op.id), "from": previous, "to": op.status, "revision": op.revision},
        **ctx.log_fields(),
    )
