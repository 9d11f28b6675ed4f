import uuid
from enum import Enum
from typing import Optional, List

from .common import ApiModel, UtcDateTime
from .registry import VehicleResponse, MaterialResponse


# Enums
class OperationStatus(str, Enum):
    scheduled = "scheduled"
    at_gate = "at_gate"
    loading = "loading"
    unloading = "unloading"
    completed = "completed"


class OperationType(str, Enum):
    loading = "loading"
    unloading = "unloading"


# Operation Schemas
class OperationCreate(ApiModel):
    vehicle_id: uuid.UUID
    material_id: uuid.UUID
    type: OperationType
    driver: str
    transport_company: str
    scheduled_date: Optional[UtcDateTime] = None
    scheduled_time: Optional[str] = None
    destination: Optional[str] = None
    origin: Optional[str] = None
    dock_number: Optional[str] = None
    notes: Optional[str] = None


class OperationUpdate(ApiModel):
    vehicle_id: Optional[uuid.UUID] = None
    material_id: Optional[uuid.UUID] = None
    type: Optional[OperationType] = None
    status: Optional[OperationStatus] = None
    progress: Optional[int] = None
    driver: Optional[str] = None
    transport_company: Optional[str] = None
    scheduled_date: Optional[UtcDateTime] = None
    scheduled_time: Optional[str] = None
    actual_start_time: Optional[UtcDateTime] = None
    actual_end_time: Optional[UtcDateTime] = None
    destination: Optional[str] = None
    origin: Optional[str] = None
    dock_number: Optional[str] = None
    notes: Optional[str] = None
    revision: Optional[int] = None


class StatusChange(ApiModel):
    status: OperationStatus
    revision: Optional[int] = None


class ProgressChange(ApiModel):
    progress: int
    revision: Optional[int] = None


class TimestampMark(ApiModel):
    at: Optional[UtcDateTime] = None
    revision: Optional[int] = None


class OperationResponse(ApiModel):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    material_id: uuid.UUID
    status: OperationStatus
    type: OperationType
    scheduled_date: Optional[UtcDateTime] = None
    scheduled_time: Optional[str] = None
    actual_start_time: Optional[UtcDateTime] = None
    actual_end_time: Optional[UtcDateTime] = None
    destination: Optional[str] = None
    origin: Optional[str] = None
    dock_number: Optional[str] = None
    progress: int = 0
    driver: str
    transport_company: str
    notes: Optional[str] = None
    revision: int = 0
    created_at: Optional[UtcDateTime] = None
    updated_at: Optional[UtcDateTime] = None
    vehicle: Optional[VehicleResponse] = None
    material: Optional[MaterialResponse] = None


class StatsResponse(ApiModel):
    scheduled: int = 0
    at_gate: int = 0
    loading: int = 0
    unloading: int = 0


class AllowedTransitionsResponse(ApiModel):
    status: OperationStatus
    allowed: List[OperationStatus]
