"""Pydantic schemas for departments, routes, employees, vehicles and drivers."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.enums import VehicleType


def _strip(v: str) -> str:
    return v.strip()


# ── Departments ─────────────────────────────────────────────────────
class DepartmentCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return _strip(v)


class DepartmentRead(BaseModel):
    id: int
    name: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Routes ──────────────────────────────────────────────────────────
class RouteCreate(BaseModel):
    route_no: str = Field(min_length=1, max_length=20)
    route_name: str = Field(min_length=1, max_length=200)

    @field_validator("route_no", "route_name")
    @classmethod
    def _strip_fields(cls, v: str) -> str:
        return _strip(v)


class RouteRead(BaseModel):
    id: int
    route_no: str
    route_name: str

    model_config = {"from_attributes": True}


class SubRouteCreate(BaseModel):
    sub_name: str = Field(min_length=1, max_length=200)

    @field_validator("sub_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return _strip(v)


class SubRouteBulkCreate(BaseModel):
    """Names as a list and/or one per line in ``lines``."""

    sub_names: list[str] = []
    lines: str | None = None

    def names(self) -> list[str]:
        raw = list(self.sub_names)
        if self.lines:
            raw.extend(self.lines.splitlines())
        # dedupe, keep first-seen order
        return list(dict.fromkeys(n.strip() for n in raw if n and n.strip()))


class SubRouteBulkResult(BaseModel):
    ok: bool = True
    inserted: int
    total: int


class SubRouteRead(BaseModel):
    id: int
    route_id: int
    sub_name: str

    model_config = {"from_attributes": True}


class RoutesTree(BaseModel):
    routes: list[RouteRead]
    sub_routes: list[SubRouteRead]


# ── Employees ───────────────────────────────────────────────────────
class EmployeeCreate(BaseModel):
    full_name: str = Field(min_length=2, max_length=200)
    emp_no: str = Field(min_length=1, max_length=50)
    default_route_id: int | None = Field(default=None, gt=0)
    default_sub_route_id: int | None = Field(default=None, gt=0)
    email: str | None = None
    password: str | None = Field(default=None, min_length=6)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class EmployeeUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=2, max_length=200)
    default_route_id: int | None = Field(default=None, gt=0)
    default_sub_route_id: int | None = Field(default=None, gt=0)
    is_active: bool | None = None


class EmployeeRead(BaseModel):
    id: int
    emp_no: str
    full_name: str
    department_id: int
    default_route_id: int | None
    default_sub_route_id: int | None
    is_active: bool

    model_config = {"from_attributes": True}


class EmployeeCreated(BaseModel):
    employee: EmployeeRead
    user_id: int | None = None


# ── Vehicles & drivers ──────────────────────────────────────────────
class VehicleCreate(BaseModel):
    vehicle_no: str = Field(min_length=1, max_length=50)
    registration_no: str | None = Field(default=None, max_length=50)
    fleet_no: str | None = Field(default=None, max_length=50)
    vehicle_type: VehicleType
    capacity: int = Field(gt=0)
    owner_name: str | None = Field(default=None, max_length=200)
    route_ids: list[int] = []


class VehicleRead(BaseModel):
    id: int
    vehicle_no: str
    registration_no: str | None
    fleet_no: str | None
    vehicle_type: VehicleType
    capacity: int
    owner_name: str | None
    route_ids: list[int] = []

    model_config = {"from_attributes": True}


class DriverCreate(BaseModel):
    full_name: str = Field(min_length=2, max_length=200)
    phone: str | None = Field(default=None, max_length=30)


class DriverRead(BaseModel):
    id: int
    full_name: str
    phone: str | None

    model_config = {"from_attributes": True}


# ── Service ─────────────────────────────────────────────────────────
class HealthResponse(BaseModel):
    db: bool
    redis: bool
