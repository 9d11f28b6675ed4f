"""
Operation lifecycle.

scheduled -> at_gate -> loading|unloading -> completed

The operation type (loading/unloading) is fixed at creation and selects which
mid-pipeline status is reachable. Every write is a single commit guarded by
the operation's revision counter (compare-and-swap).
"""
import uuid
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Set, Iterable

from sqlalchemy import update, func
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ValidationError, NotFoundError, ConflictError, InvalidTransitionError
from ..models.models import Operation, Vehicle, Material
from ..schemas.operations import OperationStatus, OperationType
from ..utils import utcnow, as_utc


REQUIRED_FIELDS = ("vehicle_id", "material_id", "type", "driver", "transport_company")
DESCRIPTIVE_FIELDS = (
    "driver",
    "transport_company",
    "scheduled_date",
    "scheduled_time",
    "destination",
    "origin",
    "dock_number",
    "notes",
)
# May only change before the operation leaves the schedule
PLANNING_FIELDS = ("vehicle_id", "material_id", "type")
PROGRESS_STATUSES = {OperationStatus.loading.value, OperationStatus.unloading.value}


def _value(v):
    return v.value if hasattr(v, "value") else v


# ---------- TRANSITION RULES ----------
def allowed_next_statuses(current: str, op_type: str) -> Set[str]:
    """Statuses reachable in one step from `current` for an operation of `op_type`."""
    current = _value(current)
    op_type = _value(op_type)
    if current == OperationStatus.scheduled.value:
        return {OperationStatus.at_gate.value}
    if current == OperationStatus.at_gate.value:
        return {op_type}  # loading|unloading status matches the type name
    if current == op_type:
        return {OperationStatus.completed.value}
    return set()


def check_transition(current: str, requested: str, op_type: str, strict: Optional[bool] = None) -> None:
    """
    Raise InvalidTransitionError unless `requested` may follow `current`.

    Re-applying the current status is always accepted. With strict mode off any
    known status is accepted.
    """
    current = _value(current)
    requested = _value(requested)
    try:
        OperationStatus(requested)
    except ValueError:
        raise ValidationError.for_field("status", f"unknown status '{requested}'")
    if requested == current:
        return
    if strict is None:
        strict = settings.strict_status_transitions
    if not strict:
        return
    allowed = allowed_next_statuses(current, op_type)
    if requested not in allowed:
        raise InvalidTransitionError(current, requested, sorted(allowed))


def check_progress(value: Any, status: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError.for_field("progress", "progress must be an integer")
    if value < 0 or value > 100:
        raise ValidationError.for_field("progress", "progress must be between 0 and 100")
    if _value(status) not in PROGRESS_STATUSES:
        raise ValidationError.for_field(
            "progress", f"progress can only be set while loading or unloading (status is {_value(status)})"
        )
    return value


def check_actual_times(start: Optional[datetime], end: Optional[datetime]) -> None:
    start, end = as_utc(start), as_utc(end)
    if start is not None and end is not None and end < start:
        raise ValidationError.for_field("actual_end_time", "end time must not precede start time")


# ---------- PERSISTENCE ----------
def get_operation(db: Session, operation_id) -> Operation:
    op = db.query(Operation).filter(Operation.id == parse_id(operation_id, "id")).first()
    if not op:
        raise NotFoundError("Operation not found")
    return op


def list_operations(db: Session, status: Optional[str] = None) -> List[Operation]:
    query = db.query(Operation)
    if status:
        query = query.filter(Operation.status == _value(status))
    return query.order_by(Operation.created_at.desc()).all()


def parse_id(value, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise ValidationError.for_field(field, f"invalid id '{value}'")


def _ensure_references(db: Session, vehicle_id=None, material_id=None) -> None:
    if vehicle_id is not None and not db.query(Vehicle.id).filter(Vehicle.id == vehicle_id).first():
        raise NotFoundError("Vehicle not found", field="vehicle_id")
    if material_id is not None and not db.query(Material.id).filter(Material.id == material_id).first():
        raise NotFoundError("Material not found", field="material_id")


def _check_revision(op: Operation, expected_revision: Optional[int]) -> None:
    """For writes that turn out to be no-ops: a stale revision is still a conflict."""
    if expected_revision is not None and expected_revision != op.revision:
        raise ConflictError("Operation was modified by another request", expected_revision=expected_revision)


def _commit(db: Session, op: Operation, changes: Dict[str, Any], expected_revision: Optional[int]) -> Operation:
    """
    Write `changes` with a compare-and-swap on the revision counter.

    `expected_revision` defaults to the revision loaded with `op`. A concurrent
    writer that got there first makes the update match no row.
    """
    if expected_revision is None:
        expected_revision = op.revision
    values = dict(changes)
    values["updated_at"] = utcnow()
    values["revision"] = expected_revision + 1
    result = db.execute(
        update(Operation)
        .where(Operation.id == op.id, Operation.revision == expected_revision)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError(
            "Operation was modified by another request",
            expected_revision=expected_revision,
        )
    db.commit()
    db.refresh(op)
    return op


# ---------- OPERATIONS ----------
def create_operation(db: Session, data: Dict[str, Any]) -> Operation:
    """Create an operation in `scheduled` with zero progress."""
    data = {k: _value(v) for k, v in data.items()}
    errors = []
    for field in REQUIRED_FIELDS:
        v = data.get(field)
        if v is None or (isinstance(v, str) and not v.strip()):
            errors.append({"field": field, "message": f"{field} is required"})
    op_type = data.get("type")
    if op_type is not None and op_type not in {t.value for t in OperationType}:
        errors.append({"field": "type", "message": "type must be 'loading' or 'unloading'"})
    if errors:
        raise ValidationError("Invalid operation", errors=errors)

    vehicle_id = parse_id(data["vehicle_id"], "vehicle_id")
    material_id = parse_id(data["material_id"], "material_id")
    _ensure_references(db, vehicle_id, material_id)

    now = utcnow()
    op = Operation(
        vehicle_id=vehicle_id,
        material_id=material_id,
        type=op_type,
        status=OperationStatus.scheduled.value,
        progress=0,
        revision=0,
        driver=data["driver"].strip(),
        transport_company=data["transport_company"].strip(),
        scheduled_date=as_utc(data.get("scheduled_date")),
        scheduled_time=data.get("scheduled_time"),
        destination=data.get("destination"),
        origin=data.get("origin"),
        dock_number=data.get("dock_number"),
        notes=data.get("notes"),
        created_at=now,
        updated_at=now,
    )
    db.add(op)
    db.commit()
    db.refresh(op)
    return op


def transition(db: Session, op: Operation, new_status, expected_revision: Optional[int] = None) -> Operation:
    new_status = _value(new_status)
    check_transition(op.status, new_status, op.type)
    if new_status == op.status:
        _check_revision(op, expected_revision)
        return op
    return _commit(db, op, {"status": new_status}, expected_revision)


def set_progress(db: Session, op: Operation, value: int, expected_revision: Optional[int] = None) -> Operation:
    check_progress(value, op.status)
    if value == op.progress:
        _check_revision(op, expected_revision)
        return op
    return _commit(db, op, {"progress": value}, expected_revision)


def record_actual_start(
    db: Session, op: Operation, at: Optional[datetime] = None, expected_revision: Optional[int] = None
) -> Operation:
    at = as_utc(at) or utcnow()
    check_actual_times(at, op.actual_end_time)
    return _commit(db, op, {"actual_start_time": at}, expected_revision)


def record_actual_end(
    db: Session, op: Operation, at: Optional[datetime] = None, expected_revision: Optional[int] = None
) -> Operation:
    at = as_utc(at) or utcnow()
    check_actual_times(op.actual_start_time, at)
    return _commit(db, op, {"actual_end_time": at}, expected_revision)


def _same(current, new) -> bool:
    if isinstance(current, datetime) and isinstance(new, datetime):
        return as_utc(current) == as_utc(new)
    return current == new


def update_operation(db: Session, op: Operation, data: Dict[str, Any]) -> Operation:
    """
    Apply a partial update from the management table.

    Status, progress and actual times go through the lifecycle rules; progress
    is checked against the status this update leaves the operation in.
    """
    data = {k: _value(v) for k, v in data.items()}
    expected_revision = data.pop("revision", None)
    changes: Dict[str, Any] = {}

    for field in DESCRIPTIVE_FIELDS:
        if field in data:
            v = data[field]
            if field in ("driver", "transport_company"):
                if v is None or not str(v).strip():
                    raise ValidationError.for_field(field, f"{field} is required")
                v = v.strip()
            if field == "scheduled_date":
                v = as_utc(v)
            changes[field] = v

    planning = {f: data[f] for f in PLANNING_FIELDS if f in data and data[f] is not None}
    planning = {f: v for f, v in planning.items() if str(v) != str(getattr(op, f))}
    if planning:
        if op.status != OperationStatus.scheduled.value:
            raise ValidationError(
                "Vehicle, material and type can only change while scheduled",
                errors=[{"field": f, "message": "locked after scheduling"} for f in sorted(planning)],
            )
        if "type" in planning and planning["type"] not in {t.value for t in OperationType}:
            raise ValidationError.for_field("type", "type must be 'loading' or 'unloading'")
        if "vehicle_id" in planning:
            planning["vehicle_id"] = parse_id(planning["vehicle_id"], "vehicle_id")
        if "material_id" in planning:
            planning["material_id"] = parse_id(planning["material_id"], "material_id")
        _ensure_references(db, planning.get("vehicle_id"), planning.get("material_id"))
        changes.update(planning)

    op_type = changes.get("type", op.type)
    status = op.status
    if data.get("status") is not None:
        check_transition(op.status, data["status"], op_type)
        status = data["status"]
        if status != op.status:
            changes["status"] = status

    if data.get("progress") is not None and data["progress"] != op.progress:
        changes["progress"] = check_progress(data["progress"], status)

    start = as_utc(data["actual_start_time"]) if "actual_start_time" in data else op.actual_start_time
    end = as_utc(data["actual_end_time"]) if "actual_end_time" in data else op.actual_end_time
    check_actual_times(start, end)
    if "actual_start_time" in data:
        changes["actual_start_time"] = start
    if "actual_end_time" in data:
        changes["actual_end_time"] = end

    changes = {k: v for k, v in changes.items() if not _same(getattr(op, k), v)}
    if not changes:
        _check_revision(op, expected_revision)
        return op
    return _commit(db, op, changes, expected_revision)


def delete_operation(db: Session, op: Operation) -> None:
    db.delete(op)
    db.commit()


# ---------- READ VIEWS ----------
def get_stats(db: Session) -> Dict[str, int]:
    """Counts per active status for the dashboard."""
    rows = db.query(Operation.status, func.count(Operation.id)).group_by(Operation.status).all()
    counts = {status: count for status, count in rows}
    return {
        "scheduled": counts.get(OperationStatus.scheduled.value, 0),
        "at_gate": counts.get(OperationStatus.at_gate.value, 0),
        "loading": counts.get(OperationStatus.loading.value, 0),
        "unloading": counts.get(OperationStatus.unloading.value, 0),
    }


def stuck_operations(db: Session, now: Optional[datetime] = None, hours: Optional[float] = None) -> List[Operation]:
    """Operations loading/unloading for longer than the configured hours."""
    now = as_utc(now) or utcnow()
    threshold = timedelta(hours=settings.stuck_operation_hours if hours is None else hours)
    return (
        db.query(Operation)
        .filter(
            Operation.status.in_(sorted(PROGRESS_STATUSES)),
            Operation.actual_start_time.isnot(None),
            Operation.actual_start_time < now - threshold,
        )
        .order_by(Operation.actual_start_time.asc())
        .all()
    )


def count_by_status(ops: Iterable[Operation]) -> Dict[str, int]:
    counts = {s.value: 0 for s in OperationStatus}
    for op in ops:
        counts[op.status] = counts.get(op.status, 0) + 1
    return counts
