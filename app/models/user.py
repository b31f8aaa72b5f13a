"""
User model: login identity & role-based access control.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String

from app.db.base import Base
from app.models.enums import Role, UserStatus


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str | None = Column(String(320), unique=True, nullable=True, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    previous_password_hash: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    full_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    role: Role = Column(  # type: ignore[assignment]
        Enum(Role, name="user_role", native_enum=False, length=10),
        nullable=False,
    )
    status: UserStatus = Column(  # type: ignore[assignment]
        Enum(UserStatus, name="user_status", native_enum=False, length=20),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    department_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    employee_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
