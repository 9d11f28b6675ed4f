"""
Reporting views over operations: daily summary, durations, stuck list,
per-company breakdown and CSV export.
"""
import csv
import io
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from ..models.models import Operation
from ..schemas.operations import OperationStatus
from ..utils import utcnow, as_utc
from .operations import list_operations, stuck_operations, count_by_status, PROGRESS_STATUSES


RECENT_COMPLETED_LIMIT = 10
CSV_COLUMNS = [
    "id",
    "status",
    "type",
    "vehicle_plate",
    "material",
    "driver",
    "transport_company",
    "origin",
    "destination",
    "dock_number",
    "scheduled_date",
    "scheduled_time",
    "actual_start_time",
    "actual_end_time",
    "duration_minutes",
    "progress",
]


def duration_minutes(op: Operation) -> Optional[int]:
    if op.actual_start_time is None or op.actual_end_time is None:
        return None
    return int((as_utc(op.actual_end_time) - as_utc(op.actual_start_time)).total_seconds() // 60)


def format_duration(minutes: Optional[float]) -> Optional[str]:
    """120 -> '2h 0min'"""
    if minutes is None:
        return None
    minutes = int(minutes)
    return f"{minutes // 60}h {minutes % 60}min"


def _average(values: List[int]) -> Optional[float]:
    return round(sum(values) / len(values), 1) if values else None


def elapsed_hours(op: Operation, now: datetime) -> Optional[float]:
    if op.actual_start_time is None:
        return None
    return round((as_utc(now) - as_utc(op.actual_start_time)).total_seconds() / 3600, 1)


def summary(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = as_utc(now) or utcnow()
    day_start = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)
    operations = list_operations(db)

    completed = [op for op in operations if op.status == OperationStatus.completed.value]
    durations = [d for d in (duration_minutes(op) for op in completed) if d is not None]
    completed_today = [
        op for op in operations
        if op.actual_end_time is not None and day_start <= as_utc(op.actual_end_time) < day_end
    ]
    recent = sorted(completed, key=lambda op: as_utc(op.updated_at or op.created_at), reverse=True)[:RECENT_COMPLETED_LIMIT]
    avg = _average(durations)

    return {
        "generated_at": now,
        "status_counts": count_by_status(operations),
        "completed_today": len(completed_today),
        "in_progress": sum(1 for op in operations if op.status in PROGRESS_STATUSES),
        "active_issues": len(stuck_operations(db, now=now)),
        "average_duration_minutes": avg,
        "average_duration": format_duration(avg),
        "recent_completed": recent,
    }


def stuck_report(db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = as_utc(now) or utcnow()
    return [
        {"operation": op, "hours_in_progress": elapsed_hours(op, now)}
        for op in stuck_operations(db, now=now)
    ]


def company_breakdown(db: Session) -> List[Dict[str, Any]]:
    """Totals per transport company, busiest first."""
    rows: Dict[str, Dict[str, Any]] = {}
    durations: Dict[str, List[int]] = {}
    for op in list_operations(db):
        row = rows.setdefault(op.transport_company, {
            "transport_company": op.transport_company,
            "total": 0,
            "completed": 0,
            "in_progress": 0,
            "loading": 0,
            "unloading": 0,
        })
        row["total"] += 1
        row[op.type] += 1
        if op.status == OperationStatus.completed.value:
            row["completed"] += 1
            d = duration_minutes(op)
            if d is not None:
                durations.setdefault(op.transport_company, []).append(d)
        elif op.status in PROGRESS_STATUSES:
            row["in_progress"] += 1
    for company, row in rows.items():
        row["average_duration_minutes"] = _average(durations.get(company, []))
    return sorted(rows.values(), key=lambda r: (-r["total"], r["transport_company"]))


def _fmt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return str(value)


def export_csv(db: Session, status: Optional[str] = None) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for op in list_operations(db, status):
        writer.writerow([
            _fmt(op.id),
            op.status,
            op.type,
            _fmt(op.vehicle.plate if op.vehicle else None),
            _fmt(op.material.name if op.material else None),
            op.driver,
            op.transport_company,
            _fmt(op.origin),
            _fmt(op.destination),
            _fmt(op.dock_number),
            _fmt(op.scheduled_date),
            _fmt(op.scheduled_time),
            _fmt(op.actual_start_time),
            _fmt(op.actual_end_time),
            _fmt(duration_minutes(op)),
            op.progress,
        ])
    return buffer.getvalue()
