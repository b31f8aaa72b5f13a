"""
Employee model: the people who ride, with their default pickup grouping.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    emp_no: str = Column(String(50), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    full_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    department_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    # Fallback grouping when a request carries no override
    default_route_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True
    )
    default_sub_route_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("sub_routes.id", ondelete="SET NULL"), nullable=True
    )
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
