"""Pydantic schemas for transport requests, groups, assignments and reports."""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator

from app.models.enums import OverbookStatus, RequestStatus, VehicleType
from app.services.capacity import OVERBOOK_MAX


# ── Requests ────────────────────────────────────────────────────────
class RequestCreate(BaseModel):
    request_date: date
    request_time: time
    notes: str | None = None
    employee_ids: list[int] = Field(min_length=1)

    @field_validator("employee_ids")
    @classmethod
    def _positive_ids(cls, v: list[int]) -> list[int]:
        if any(i <= 0 for i in v):
            raise ValueError("employee_ids must be positive integers")
        return v


class RequestRead(BaseModel):
    id: int
    request_date: date
    request_time: time
    department_id: int | None
    department_name: str | None = None
    created_by_user_id: int
    status: RequestStatus
    notes: str | None
    is_daily_master: bool
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class RequestEmployeeRead(BaseModel):
    employee_id: int
    emp_no: str
    full_name: str
    effective_route_id: int | None
    effective_sub_route_id: int | None


class RequestDetail(BaseModel):
    request: RequestRead
    employees: list[RequestEmployeeRead]


class RosterChangeIn(BaseModel):
    employee_id: int = Field(gt=0)
    effective_route_id: int | None = Field(default=None, gt=0)
    effective_sub_route_id: int | None = Field(default=None, gt=0)
    remove: bool = False
    persist_to_employee: bool = False

    def route_updates(self) -> dict[str, int | None]:
        """Only the route fields present in the payload."""
        return {
            name: getattr(self, name)
            for name in ("effective_route_id", "effective_sub_route_id")
            if name in self.model_fields_set
        }


class RosterUpdate(BaseModel):
    changes: list[RosterChangeIn] = Field(min_length=1)


class DecisionIn(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class StatusResponse(BaseModel):
    ok: bool = True
    id: int
    status: RequestStatus


# ── Groups & assignments ────────────────────────────────────────────
class GroupRead(BaseModel):
    route_id: int | None
    route_no: str | None
    route_name: str | None
    sub_route_id: int | None
    sub_name: str | None
    headcount: int
    employee_ids: list[int]

    model_config = {"from_attributes": True}


class AssignmentItem(BaseModel):
    """One vehicle for a group.  ``overbook_status`` is server-derived and ignored."""

    vehicle_id: int = Field(gt=0)
    driver_id: int | None = Field(default=None, gt=0)
    driver_name: str | None = Field(default=None, max_length=200)
    driver_phone: str | None = Field(default=None, max_length=30)
    instructions: str | None = None
    overbook_amount: int = Field(default=0, ge=0, le=OVERBOOK_MAX)
    overbook_reason: str | None = None

    model_config = {"extra": "ignore"}


class GroupAssignmentSave(BaseModel):
    route_id: int = Field(gt=0)
    sub_route_id: int | None = Field(default=None, gt=0)
    assignments: list[AssignmentItem] = Field(min_length=1)


class AssignmentRead(BaseModel):
    id: int
    request_id: int
    route_id: int
    sub_route_id: int | None
    vehicle_id: int
    vehicle_no: str | None = None
    vehicle_type: VehicleType | None = None
    capacity: int | None = None
    driver_id: int | None
    driver_name: str | None
    driver_phone: str | None
    instructions: str | None
    overbook_amount: int
    overbook_reason: str | None
    overbook_status: OverbookStatus

    model_config = {"from_attributes": True}


class CapacityCheckRead(BaseModel):
    route_id: int | None
    sub_route_id: int | None
    required: int
    available: int
    overbook: int


class SubmitResult(BaseModel):
    ok: bool = True
    id: int
    status: RequestStatus
    checks: list[CapacityCheckRead]


# ── Daily run ───────────────────────────────────────────────────────
class LockRunIn(BaseModel):
    run_date: date


class LockRunResult(BaseModel):
    ok: bool = True
    master_request_id: int
    status: RequestStatus
    precondition: str
    approved_request_ids: list[int]
    employee_count: int


class DepartmentRunRead(BaseModel):
    request_id: int
    department_id: int | None
    department_name: str | None
    status: RequestStatus
    headcount: int

    model_config = {"from_attributes": True}


class RunSummaryRead(BaseModel):
    run_date: date
    master_request_id: int | None
    master_status: RequestStatus | None
    master_headcount: int
    departments: list[DepartmentRunRead]
    groups: list[GroupRead]


# ── Reports ─────────────────────────────────────────────────────────
class RosterLineRead(BaseModel):
    employee_id: int
    emp_no: str
    full_name: str
    department_name: str | None

    model_config = {"from_attributes": True}


class VehicleLineRead(BaseModel):
    assignment_id: int
    vehicle_no: str
    registration_no: str | None
    fleet_no: str | None
    vehicle_type: str
    capacity: int
    overbook_amount: int
    driver_name: str | None
    driver_phone: str | None
    instructions: str | None

    model_config = {"from_attributes": True}


class RouteSectionRead(BaseModel):
    route_id: int | None
    route_no: str | None
    route_name: str | None
    sub_route_id: int | None
    sub_name: str | None
    headcount: int
    employees: list[RosterLineRead]
    vehicles: list[VehicleLineRead]

    model_config = {"from_attributes": True}


class RouteWiseReport(BaseModel):
    request_id: int
    request_date: date
    total_employees: int
    sections: list[RouteSectionRead]


class VehicleManifestRead(BaseModel):
    vehicle: VehicleLineRead
    route_id: int
    route_no: str | None
    route_name: str | None
    sub_route_id: int | None
    sub_name: str | None
    group_headcount: int
    employees: list[RosterLineRead]

    model_config = {"from_attributes": True}


class VehicleReport(BaseModel):
    request_id: int
    request_date: date
    vehicles: list[VehicleManifestRead]


# ── Employee view ───────────────────────────────────────────────────
class RouteRefRead(BaseModel):
    id: int
    route_no: str
    route_name: str

    model_config = {"from_attributes": True}


class SubRouteRefRead(BaseModel):
    id: int
    sub_name: str

    model_config = {"from_attributes": True}


class TodayVehicle(BaseModel):
    vehicle_no: str
    vehicle_registration_no: str | None
    fleet_no: str | None
    driver_name: str | None
    driver_phone: str | None
    instructions: str | None


class TodayTransport(BaseModel):
    has_transport: bool
    service_date: date
    request_id: int | None = None
    route: RouteRefRead | None = None
    sub_route: SubRouteRefRead | None = None
    vehicles: list[TodayVehicle] = []
    message: str | None = None
