import uuid
from enum import Enum
from typing import Optional, Annotated

from pydantic import AfterValidator

from .common import ApiModel, UtcDateTime


class VehicleType(str, Enum):
    truck = "truck"
    carreta = "carreta"


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


RequiredText = Annotated[str, AfterValidator(_strip_required)]


# Vehicle Schemas
class VehicleBase(ApiModel):
    plate: RequiredText
    type: VehicleType
    trailer_plate: Optional[str] = None
    capacity: Optional[int] = None
    transport_company: Optional[str] = None
    primary_driver: Optional[str] = None
    notes: Optional[str] = None


class VehicleCreate(VehicleBase):
    pass


class VehicleUpdate(ApiModel):
    plate: Optional[RequiredText] = None
    type: Optional[VehicleType] = None
    trailer_plate: Optional[str] = None
    capacity: Optional[int] = None
    transport_company: Optional[str] = None
    primary_driver: Optional[str] = None
    notes: Optional[str] = None


class VehicleResponse(VehicleBase):
    id: uuid.UUID
    created_at: Optional[UtcDateTime] = None


# Material Schemas
class MaterialBase(ApiModel):
    name: RequiredText
    category: RequiredText
    unit: RequiredText = "toneladas"
    specific_weight: Optional[int] = None
    risk_class: Optional[str] = None
    description: Optional[str] = None


class MaterialCreate(MaterialBase):
    pass


class MaterialUpdate(ApiModel):
    name: Optional[RequiredText] = None
    category: Optional[RequiredText] = None
    unit: Optional[RequiredText] = None
    specific_weight: Optional[int] = None
    risk_class: Optional[str] = None
    description: Optional[str] = None


class MaterialResponse(MaterialBase):
    id: uuid.UUID
    created_at: Optional[UtcDateTime] = None
