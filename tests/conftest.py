import os
import tempfile
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Settings are read at import time, so point them at a throwaway database first
_DB_DIR = tempfile.mkdtemp(prefix="cargotrack-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["LOG_REQUESTS"] = "false"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["COMPANY_DOMAIN"] = "empresa.com"
os.environ["ADMIN_EMAILS"] = "chefe@empresa.com"

from cargotrack.db import Base, engine, SessionLocal  # noqa: E402
from cargotrack.main import app  # noqa: E402
from cargotrack.models.models import User, Vehicle, Material  # noqa: E402
from cargotrack.auth.security import create_access_token  # noqa: E402
from cargotrack.utils import utcnow  # noqa: E402


@pytest.fixture(autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db):
    """Create a user and return (user, auth headers)."""
    counter = {"n": 0}

    def _make(permissions: Optional[List[str]] = None, role: str = "viewer", email: Optional[str] = None):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@empresa.com",
            name=f"User {counter['n']}",
            role=role,
            permissions=list(permissions or []),
            created_at=utcnow(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        headers = {"Authorization": f"Bearer {create_access_token(str(user.id))}"}
        return user, headers

    return _make


@pytest.fixture()
def admin_headers(make_user):
    _, headers = make_user(role="admin")
    return headers


@pytest.fixture()
def vehicle(db) -> Vehicle:
    v = Vehicle(plate="ABC1D23", type="truck", transport_company="Transportes Sul", capacity=30)
    db.add(v)
    db.commit()
    db.refresh(v)
    return v


@pytest.fixture()
def material(db) -> Material:
    m = Material(name="Minério de ferro", category="Minério", unit="toneladas")
    db.add(m)
    db.commit()
    db.refresh(m)
    return m


@pytest.fixture()
def operation_payload(vehicle, material):
    return {
        "vehicleId": str(vehicle.id),
        "materialId": str(material.id),
        "type": "loading",
        "driver": "João Silva",
        "transportCompany": "Transportes Sul",
        "scheduledTime": "08:30",
        "dockNumber": "3",
    }
