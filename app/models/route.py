"""
Route & SubRoute models: the two legs of an employee's pickup grouping.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from app.db.base import Base


class Route(Base):
    __tablename__ = "routes"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    route_no: str = Column(String(20), unique=True, nullable=False)  # type: ignore[assignment]
    route_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]


class SubRoute(Base):
    __tablename__ = "sub_routes"
    __table_args__ = (UniqueConstraint("route_id", "sub_name", name="uq_sub_route_name"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    route_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sub_name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
