"""
Insert demo vehicles, materials and operations for local development.
Existing plates and material names are left untouched.
"""
import sys
import os
from datetime import timedelta

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cargotrack.db import SessionLocal, Base, engine
from cargotrack.models.models import Vehicle, Material, Operation
from cargotrack.services import operations as lifecycle
from cargotrack.utils import utcnow


VEHICLES = [
    {"plate": "ABC1D23", "type": "truck", "capacity": 14, "transport_company": "Transportes Rio Doce", "primary_driver": "Carlos Silva"},
    {"plate": "QWE4R56", "type": "carreta", "trailer_plate": "QWE4R57", "capacity": 32, "transport_company": "LogSul", "primary_driver": "Ana Souza"},
    {"plate": "JKL7M89", "type": "truck", "capacity": 12, "transport_company": "LogSul", "primary_driver": "Pedro Lima"},
]

MATERIALS = [
    {"name": "Minério de ferro", "category": "mineral", "unit": "toneladas", "specific_weight": 5},
    {"name": "Calcário", "category": "mineral", "unit": "toneladas", "specific_weight": 3},
    {"name": "Ácido sulfúrico", "category": "químico", "unit": "litros", "risk_class": "8"},
]


def ensure(db, model, key: str, data: dict):
    row = db.query(model).filter(getattr(model, key) == data[key]).first()
    if row:
        return row
    row = model(**data)
    db.add(row)
    db.flush()
    return row


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        vehicles = [ensure(db, Vehicle, "plate", v) for v in VEHICLES]
        materials = [ensure(db, Material, "name", m) for m in MATERIALS]
        db.commit()

        if db.query(Operation).count() > 0:
            print("Operations already present, skipping.")
            return

        now = utcnow()
        plans = [
            (vehicles[0], materials[0], "loading", []),
            (vehicles[1], materials[1], "unloading", ["at_gate"]),
            (vehicles[2], materials[0], "loading", ["at_gate", "loading"]),
        ]
        for vehicle, material, op_type, path in plans:
            op = lifecycle.create_operation(db, {
                "vehicle_id": vehicle.id,
                "material_id": material.id,
                "type": op_type,
                "driver": vehicle.primary_driver,
                "transport_company": vehicle.transport_company,
                "scheduled_date": now + timedelta(hours=2),
                "dock_number": "D1",
            })
            for status in path:
                op = lifecycle.transition(db, op, status)
            if op.status == op_type:
                op = lifecycle.record_actual_start(db, op, now - timedelta(minutes=40))
                op = lifecycle.set_progress(db, op, 35)
        print("Seed completed: vehicles, materials and operations upserted.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
