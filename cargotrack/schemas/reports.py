from typing import Optional, List, Dict

from .common import ApiModel, UtcDateTime
from .operations import OperationResponse


class ReportSummary(ApiModel):
    generated_at: UtcDateTime
    status_counts: Dict[str, int]
    completed_today: int
    in_progress: int
    active_issues: int
    average_duration_minutes: Optional[float] = None
    average_duration: Optional[str] = None
    recent_completed: List[OperationResponse] = []


class StuckOperation(ApiModel):
    operation: OperationResponse
    hours_in_progress: Optional[float] = None


class CompanyReportRow(ApiModel):
    transport_company: str
    total: int
    completed: int
    in_progress: int
    loading: int
    unloading: int
    average_duration_minutes: Optional[float] = None
