import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from ..utils import utcnow


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="viewer")  # admin|operator|viewer
    permissions: Mapped[Optional[list]] = mapped_column(JSON, default=list)  # list of permission keys
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    plate: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # truck|carreta
    trailer_plate: Mapped[Optional[str]] = mapped_column(String(20))
    capacity: Mapped[Optional[int]] = mapped_column(Integer)
    transport_company: Mapped[Optional[str]] = mapped_column(String(255))
    primary_driver: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    operations = relationship("Operation", back_populates="vehicle")


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="toneladas")
    specific_weight: Mapped[Optional[int]] = mapped_column(Integer)
    risk_class: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    operations = relationship("Operation", back_populates="material")


class Operation(Base):
    """A loading or unloading movement tracked through the status pipeline"""
    __tablename__ = "operations"

    id: Mapped[uuid.UUID] = uuid_pk()
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False, index=True)
    material_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("materials.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled", index=True)  # scheduled|at_gate|loading|unloading|completed
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # loading|unloading
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    scheduled_time: Mapped[Optional[str]] = mapped_column(String(10))  # HH:MM
    actual_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    destination: Mapped[Optional[str]] = mapped_column(String(255))
    origin: Mapped[Optional[str]] = mapped_column(String(255))
    dock_number: Mapped[Optional[str]] = mapped_column(String(50))
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    driver: Mapped[str] = mapped_column(String(255), nullable=False)
    transport_company: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # compare-and-swap counter
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    vehicle = relationship("Vehicle", back_populates="operations", lazy="joined")
    material = relationship("Material", back_populates="operations", lazy="joined")

    __table_args__ = (
        Index('idx_operation_status_created', 'status', 'created_at'),
    )


class Log(Base):
    """Append-only application log (server and client entries)"""
    __tablename__ = "logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    level: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # info|warn|error|debug
    source: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # server|client
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    user_id: Mapped[Optional[str]] = mapped_column(String(64))
    request_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    stack_trace: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
