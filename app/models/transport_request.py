"""
Transport request models: the request itself, its roster, its vehicle
assignments and the append-only approvals audit.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import (Boolean, CheckConstraint, Column, Date, DateTime, Enum,
                        ForeignKey, Index, Integer, String, Text, Time,
                        UniqueConstraint, text)

from app.db.base import Base
from app.models.enums import OverbookStatus, RequestStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransportRequest(Base):
    __tablename__ = "transport_requests"
    __table_args__ = (
        # One daily master per calendar date
        Index(
            "ux_daily_master_per_day",
            "request_date",
            unique=True,
            postgresql_where=text("is_daily_master"),
            sqlite_where=text("is_daily_master = 1"),
        ),
        Index("ix_request_date_status", "request_date", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    request_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    request_time: time = Column(Time, nullable=False)  # type: ignore[assignment]
    # NULL for the cross-department daily master
    department_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=True
    )
    created_by_user_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    status: RequestStatus = Column(  # type: ignore[assignment]
        Enum(RequestStatus, name="request_status", native_enum=False, length=30),
        nullable=False,
        default=RequestStatus.DRAFT,
    )
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    is_daily_master: bool = Column(  # type: ignore[assignment]
        Boolean, nullable=False, default=False, server_default="false"
    )
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class RequestEmployee(Base):
    """One employee on a request, with optional per-request route override."""

    __tablename__ = "transport_request_employees"
    __table_args__ = (
        UniqueConstraint("request_id", "employee_id", name="uq_request_employee"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    request_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("transport_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False
    )
    effective_route_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True
    )
    effective_sub_route_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("sub_routes.id", ondelete="SET NULL"), nullable=True
    )


class RequestAssignment(Base):
    """One vehicle assigned to a (route, sub-route) group of a request."""

    __tablename__ = "request_assignments"
    __table_args__ = (
        CheckConstraint(
            "overbook_amount >= 0 AND overbook_amount <= 2",
            name="ck_overbook_amount_range",
        ),
        Index("ix_assignment_request_group", "request_id", "route_id", "sub_route_id"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    request_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("transport_requests.id", ondelete="CASCADE"), nullable=False
    )
    route_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("routes.id", ondelete="RESTRICT"), nullable=False
    )
    # NULL covers the whole route group
    sub_route_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("sub_routes.id", ondelete="SET NULL"), nullable=True
    )
    vehicle_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False
    )
    driver_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True
    )
    driver_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    driver_phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    instructions: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    overbook_amount: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    overbook_reason: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    overbook_status: OverbookStatus = Column(  # type: ignore[assignment]
        Enum(OverbookStatus, name="overbook_status", native_enum=False, length=20),
        nullable=False,
        default=OverbookStatus.NONE,
    )
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]


class ApprovalsAudit(Base):
    """Append-only log, one row per status transition."""

    __tablename__ = "approvals_audit"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    request_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("transport_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action_by_user_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    action: str = Column(String(40), nullable=False)  # type: ignore[assignment]
    comment: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
