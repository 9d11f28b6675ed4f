import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import require_permissions, get_request_context, RequestContext
from ..schemas.auth import Permission
from ..schemas.common import MessageResponse
from ..schemas.registry import (
    VehicleCreate,
    VehicleUpdate,
    VehicleResponse,
    MaterialCreate,
    MaterialUpdate,
    MaterialResponse,
)
from ..services import registry
from ..services.log_store import write_log

router = APIRouter(prefix="/api", tags=["registry"])

# Operation forms need the registries to pick a vehicle and a material
VEHICLE_READERS = (
    Permission.register_vehicles,
    Permission.complete_view,
    Permission.complete_create,
    Permission.complete_edit,
)
MATERIAL_READERS = (
    Permission.register_materials,
    Permission.complete_view,
    Permission.complete_create,
    Permission.complete_edit,
)


# ---------- VEHICLES ----------
@router.get("/vehicles", response_model=List[VehicleResponse])
def list_vehicles(db: Session = Depends(get_db), _=Depends(require_permissions(*VEHICLE_READERS))):
    return registry.list_vehicles(db)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(vehicle_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions(*VEHICLE_READERS))):
    return registry.get_vehicle(db, vehicle_id)


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
def create_vehicle(
    vehicle: VehicleCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.register_vehicles)),
):
    new_vehicle = registry.create_vehicle(db, vehicle.model_dump())
    write_log("info", "server", f"Vehicle registered: {new_vehicle.plate}", **ctx.log_fields())
    return new_vehicle


@router.put("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    vehicle_id: uuid.UUID,
    vehicle_update: VehicleUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(Permission.register_vehicles)),
):
    vehicle = registry.get_vehicle(db, vehicle_id)
    return registry.update_vehicle(db, vehicle, vehicle_update.model_dump(exclude_unset=True))


@router.delete("/vehicles/{vehicle_id}", response_model=MessageResponse)
def delete_vehicle(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.register_vehicles)),
):
    vehicle = registry.get_vehicle(db, vehicle_id)
    plate = vehicle.plate
    registry.delete_vehicle(db, vehicle)
    write_log("info", "server", f"Vehicle deleted: {plate}", **ctx.log_fields())
    return MessageResponse(message="Vehicle deleted successfully")


# ---------- MATERIALS ----------
@router.get("/materials", response_model=List[MaterialResponse])
def list_materials(db: Session = Depends(get_db), _=Depends(require_permissions(*MATERIAL_READERS))):
    return registry.list_materials(db)


@router.get("/materials/{material_id}", response_model=MaterialResponse)
def get_material(material_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permissions(*MATERIAL_READERS))):
    return registry.get_material(db, material_id)


@router.post("/materials", response_model=MaterialResponse, status_code=201)
def create_material(
    material: MaterialCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.register_materials)),
):
    new_material = registry.create_material(db, material.model_dump())
    write_log("info", "server", f"Material registered: {new_material.name}", **ctx.log_fields())
    return new_material


@router.put("/materials/{material_id}", response_model=MaterialResponse)
def update_material(
    material_id: uuid.UUID,
    material_update: MaterialUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_permissions(Permission.register_materials)),
):
    material = registry.get_material(db, material_id)
    return registry.update_material(db, material, material_update.model_dump(exclude_unset=True))


@router.delete("/materials/{material_id}", response_model=MessageResponse)
def delete_material(
    material_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    _=Depends(require_permissions(Permission.register_materials)),
):
    material = registry.get_material(db, material_id)
    name = material.name
    registry.delete_material(db, material)
    write_log("info", "server", f"Material deleted: {name}", **ctx.log_fields())
    return MessageResponse(message="Material deleted successfully")
