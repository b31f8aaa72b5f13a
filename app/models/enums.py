"""
Closed enumerations for every status / role / type column.

Values read from storage are mapped onto these classes at the model
boundary, so an unknown string fails when the row is loaded instead of deep
inside transition logic.
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    HOD = "HOD"
    HR = "HR"
    TA = "TA"
    EMP = "EMP"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING_HOD = "PENDING_HOD"
    PENDING_ADMIN = "PENDING_ADMIN"
    DISABLED = "DISABLED"


class RequestStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    LOCKED = "LOCKED"
    SUBMITTED = "SUBMITTED"
    ADMIN_APPROVED = "ADMIN_APPROVED"
    TA_ASSIGNED_PENDING_HR = "TA_ASSIGNED_PENDING_HR"
    TA_ASSIGNED = "TA_ASSIGNED"
    TA_FIX_REQUIRED = "TA_FIX_REQUIRED"
    HR_FINAL_APPROVED = "HR_FINAL_APPROVED"
    REJECTED = "REJECTED"


class VehicleType(str, enum.Enum):
    VAN = "VAN"
    BUS = "BUS"
    TUKTUK = "TUKTUK"


class OverbookStatus(str, enum.Enum):
    NONE = "NONE"
    PENDING_HR = "PENDING_HR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def parse_status(value: str | RequestStatus) -> RequestStatus:
    """Map a raw status string onto ``RequestStatus``.

    Raises ``ValueError`` for anything outside the nine known states.
    """
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(value)
    except ValueError:
        raise ValueError(f"Unknown request status: {value!r}") from None
