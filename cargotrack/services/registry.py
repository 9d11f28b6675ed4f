"""
Vehicle and material registrations.
"""
from typing import Dict, Any, List, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ConflictError
from ..models.models import Vehicle, Material, Operation
from .operations import parse_id

VEHICLE_REQUIRED = {"plate", "type"}
MATERIAL_REQUIRED = {"name", "category", "unit"}


def _unique_taken(db: Session, model: Type, field: str, value, exclude_id=None) -> bool:
    query = db.query(model).filter(getattr(model, field) == value)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.first() is not None


def _commit_unique(db: Session, obj, label: str, field: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"{label} with this {field} already exists", field=field)
    db.refresh(obj)
    return obj


# ---------- VEHICLES ----------
def list_vehicles(db: Session) -> List[Vehicle]:
    return db.query(Vehicle).order_by(Vehicle.created_at.desc()).all()


def get_vehicle(db: Session, vehicle_id) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == parse_id(vehicle_id, "id")).first()
    if not vehicle:
        raise NotFoundError("Vehicle not found")
    return vehicle


def create_vehicle(db: Session, data: Dict[str, Any]) -> Vehicle:
    if _unique_taken(db, Vehicle, "plate", data["plate"]):
        raise ConflictError("Vehicle with this plate already exists", field="plate")
    vehicle = Vehicle(**data)
    db.add(vehicle)
    return _commit_unique(db, vehicle, "Vehicle", "plate")


def update_vehicle(db: Session, vehicle: Vehicle, data: Dict[str, Any]) -> Vehicle:
    data = {k: v for k, v in data.items() if v is not None or k not in VEHICLE_REQUIRED}
    if data.get("plate") and _unique_taken(db, Vehicle, "plate", data["plate"], exclude_id=vehicle.id):
        raise ConflictError("Vehicle with this plate already exists", field="plate")
    for key, value in data.items():
        setattr(vehicle, key, value)
    return _commit_unique(db, vehicle, "Vehicle", "plate")


def delete_vehicle(db: Session, vehicle: Vehicle) -> None:
    in_use = db.query(Operation).filter(Operation.vehicle_id == vehicle.id).count()
    if in_use:
        raise ConflictError(f"Vehicle is referenced by {in_use} operation(s)", operations=in_use)
    db.delete(vehicle)
    db.commit()


# ---------- MATERIALS ----------
def list_materials(db: Session) -> List[Material]:
    return db.query(Material).order_by(Material.created_at.desc()).all()


def get_material(db: Session, material_id) -> Material:
    material = db.query(Material).filter(Material.id == parse_id(material_id, "id")).first()
    if not material:
        raise NotFoundError("Material not found")
    return material


def create_material(db: Session, data: Dict[str, Any]) -> Material:
    if _unique_taken(db, Material, "name", data["name"]):
        raise ConflictError("Material with this name already exists", field="name")
    material = Material(**data)
    db.add(material)
    return _commit_unique(db, material, "Material", "name")


def update_material(db: Session, material: Material, data: Dict[str, Any]) -> Material:
    data = {k: v for k, v in data.items() if v is not None or k not in MATERIAL_REQUIRED}
    if data.get("name") and _unique_taken(db, Material, "name", data["name"], exclude_id=material.id):
        raise ConflictError("Material with this name already exists", field="name")
    for key, value in data.items():
        setattr(material, key, value)
    return _commit_unique(db, material, "Material", "name")


def delete_material(db: Session, material: Material) -> None:
    in_use = db.query(Operation).filter(Operation.material_id == material.id).count()
    if in_use:
        raise ConflictError(f"Material is referenced by {in_use} operation(s)", operations=in_use)
    db.delete(material)
    db.commit()
