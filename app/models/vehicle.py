"""
Vehicle, VehicleRoute & Driver models: the fleet the TA assigns from.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (CheckConstraint, Column, DateTime, Enum, ForeignKey,
                        Integer, String, UniqueConstraint)

from app.db.base import Base
from app.models.enums import VehicleType


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (CheckConstraint("capacity > 0", name="ck_vehicle_capacity_positive"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    vehicle_no: str = Column(String(50), unique=True, nullable=False)  # type: ignore[assignment]
    registration_no: str | None = Column(String(50), nullable=True)  # type: ignore[assignment]
    fleet_no: str | None = Column(String(50), nullable=True)  # type: ignore[assignment]
    vehicle_type: VehicleType = Column(  # type: ignore[assignment]
        Enum(VehicleType, name="vehicle_type", native_enum=False, length=10),
        nullable=False,
    )
    capacity: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    owner_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class VehicleRoute(Base):
    """Route coverage; a vehicle may serve several routes."""

    __tablename__ = "vehicle_routes"
    __table_args__ = (UniqueConstraint("vehicle_id", "route_id", name="uq_vehicle_route"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    vehicle_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    route_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False
    )


class Driver(Base):
    __tablename__ = "drivers"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    full_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
