from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_permissions, require_all_permissions, get_request_context, RequestContext
from ..schemas.auth import Permission
from ..schemas.operations import OperationStatus
from ..schemas.reports import ReportSummary, StuckOperation, CompanyReportRow
from ..services import reports
from ..services.log_store import write_log
from ..utils import utcnow


router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/summary", response_model=ReportSummary)
def get_summary(db: Session = Depends(get_db), _=Depends(require_permissions(Permission.report_view))):
    return reports.summary(db)


@router.get("/stuck", response_model=List[StuckOperation])
def get_stuck(db: Session = Depends(get_db), _=Depends(require_permissions(Permission.report_view))):
    """Operations loading/unloading for longer than the configured threshold"""
    return reports.stuck_report(db)


@router.get("/companies", response_model=List[CompanyReportRow])
def get_companies(db: Session = Depends(get_db), _=Depends(require_permissions(Permission.report_management))):
    return reports.company_breakdown(db)


@router.get("/export.csv")
def export_operations(
    status: Optional[OperationStatus] = Query(None),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_all_permissions(Permission.report_view, Permission.report_export)),
):
    content = reports.export_csv(db, status.value if status else None)
    filename = f"operations-{utcnow().strftime('%Y%m%d-%H%M')}.csv"
    write_log("info", "server", "Operations exported", details={"status": status.value if status else None}, **ctx.log_fields())
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
