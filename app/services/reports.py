"""
Report views for a final-approved request or daily run.

Every builder refuses a request that has not reached HR_FINAL_APPROVED.  The
route-wise and vehicle views reuse the grouping engine so their ordering
matches what the TA saw while assigning.
"""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationFailed
from app.models.department import Department
from app.models.employee import Employee
from app.models.enums import RequestStatus
from app.models.route import Route, SubRoute
from app.models.transport_request import RequestAssignment, RequestEmployee, TransportRequest
from app.models.vehicle import Vehicle
from app.services.daily_run import get_master
from app.services.grouping import GroupKey, compute_groups


def _require_final(request: TransportRequest) -> None:
    if request.status != RequestStatus.HR_FINAL_APPROVED:
        raise ValidationFailed("Reports available only after HR final approval")


async def ensure_final_approved(db: AsyncSession, request_id: int) -> TransportRequest:
    request = await db.get(TransportRequest, request_id)
    if request is None:
        raise NotFoundError("Request not found")
    _require_final(request)
    return request


async def master_request_id(db: AsyncSession, run_date: date) -> int:
    master = await get_master(db, run_date)
    if master is None:
        raise NotFoundError("Daily run not found for that date")
    return master.id


@dataclass
class RosterLine:
    employee_id: int
    emp_no: str
    full_name: str
    department_name: str | None


@dataclass
class VehicleLine:
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


@dataclass
class RouteSection:
    route_id: int | None
    route_no: str | None
    route_name: str | None
    sub_route_id: int | None
    sub_name: str | None
    employees: list[RosterLine] = field(default_factory=list)
    vehicles: list[VehicleLine] = field(default_factory=list)

    @property
    def headcount(self) -> int:
        return len(self.employees)


async def _roster_lines(db: AsyncSession, employee_ids: set[int]) -> dict[int, RosterLine]:
    if not employee_ids:
        return {}
    result = await db.execute(
        select(Employee.id, Employee.emp_no, Employee.full_name, Department.name)
        .outerjoin(Department, Department.id == Employee.department_id)
        .where(Employee.id.in_(employee_ids))
    )
    return {row[0]: RosterLine(*row) for row in result.all()}


async def _vehicle_lines(db: AsyncSession, request_id: int) -> dict[GroupKey, list[VehicleLine]]:
    result = await db.execute(
        select(RequestAssignment, Vehicle)
        .join(Vehicle, Vehicle.id == RequestAssignment.vehicle_id)
        .where(RequestAssignment.request_id == request_id)
        .order_by(RequestAssignment.id)
    )
    by_key: dict[GroupKey, list[VehicleLine]] = defaultdict(list)
    for assignment, vehicle in result.all():
        by_key[(assignment.route_id, assignment.sub_route_id)].append(
            VehicleLine(
                assignment_id=assignment.id,
                vehicle_no=vehicle.vehicle_no,
                registration_no=vehicle.registration_no or vehicle.vehicle_no,
                fleet_no=vehicle.fleet_no,
                vehicle_type=vehicle.vehicle_type.value,
                capacity=vehicle.capacity,
                overbook_amount=assignment.overbook_amount,
                driver_name=assignment.driver_name,
                driver_phone=assignment.driver_phone,
                instructions=assignment.instructions,
            )
        )
    return by_key


async def _route_sections(
    db: AsyncSession, request_id: int, vehicles: dict[GroupKey, list[VehicleLine]]
) -> list[RouteSection]:
    groups = await compute_groups(db, request_id)
    lines = await _roster_lines(db, {e for g in groups for e in g.employee_ids})

    sections = []
    for group in groups:
        employees = sorted(
            (lines[e] for e in group.employee_ids if e in lines),
            key=lambda line: (line.full_name.casefold(), line.emp_no),
        )
        sections.append(
            RouteSection(
                route_id=group.route_id,
                route_no=group.route_no,
                route_name=group.route_name,
                sub_route_id=group.sub_route_id,
                sub_name=group.sub_name,
                employees=employees,
                vehicles=vehicles.get(group.key, []),
            )
        )
    return sections


async def route_wise(db: AsyncSession, request: TransportRequest) -> list[RouteSection]:
    """One section per group, employees sorted by name, with its vehicles."""
    _require_final(request)
    return await _route_sections(db, request.id, await _vehicle_lines(db, request.id))


@dataclass
class VehicleManifest:
    vehicle: VehicleLine
    route_id: int
    route_no: str | None
    route_name: str | None
    sub_route_id: int | None
    sub_name: str | None
    group_headcount: int
    employees: list[RosterLine] = field(default_factory=list)


async def vehicle_manifest(db: AsyncSession, request: TransportRequest) -> list[VehicleManifest]:
    """One entry per assigned vehicle, listing the group it carries."""
    _require_final(request)
    vehicles = await _vehicle_lines(db, request.id)
    sections = await _route_sections(db, request.id, vehicles)
    by_key = {(s.route_id, s.sub_route_id): s for s in sections}

    manifests = []
    for key, lines in vehicles.items():
        section = by_key.get(key)
        if section is None:
            # Assignment saved on a key no employee maps to any more
            route = await db.get(Route, key[0])
            sub = await db.get(SubRoute, key[1]) if key[1] is not None else None
            section = RouteSection(
                route_id=key[0],
                route_no=route.route_no if route else None,
                route_name=route.route_name if route else None,
                sub_route_id=key[1],
                sub_name=sub.sub_name if sub else None,
            )
        manifests.extend(
            VehicleManifest(
                vehicle=line,
                route_id=section.route_id,
                route_no=section.route_no,
                route_name=section.route_name,
                sub_route_id=section.sub_route_id,
                sub_name=section.sub_name,
                group_headcount=section.headcount,
                employees=section.employees,
            )
            for line in lines
        )
    manifests.sort(key=lambda m: (m.vehicle.vehicle_no, m.vehicle.assignment_id))
    return manifests


@dataclass
class DepartmentRoster:
    department_id: int | None
    department_name: str | None
    employees: list[RosterLine] = field(default_factory=list)


async def department_roster(
    db: AsyncSession, request_id: int, department_id: int | None = None
) -> list[DepartmentRoster]:
    """Employees of a final-approved request grouped by department name."""
    await ensure_final_approved(db, request_id)
    query = (
        select(
            Employee.id,
            Employee.emp_no,
            Employee.full_name,
            Department.name,
            Employee.department_id,
        )
        .join(RequestEmployee, RequestEmployee.employee_id == Employee.id)
        .outerjoin(Department, Department.id == Employee.department_id)
        .where(RequestEmployee.request_id == request_id)
        .order_by(Department.name, Employee.full_name, Employee.emp_no)
    )
    if department_id is not None:
        query = query.where(Employee.department_id == department_id)
    result = await db.execute(query)

    departments: dict[int | None, DepartmentRoster] = {}
    for emp_id, emp_no, full_name, dep_name, dep_id in result.all():
        roster = departments.get(dep_id)
        if roster is None:
            roster = departments[dep_id] = DepartmentRoster(dep_id, dep_name)
        roster.employees.append(RosterLine(emp_id, emp_no, full_name, dep_name))
    return list(departments.values())


def department_roster_csv(rosters: list[DepartmentRoster], off_time: str | None = None) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Department", "Emp No", "Name", "Off Time"])
    for roster in rosters:
        for line in roster.employees:
            writer.writerow([roster.department_name or "", line.emp_no, line.full_name, off_time or ""])
    return output.getvalue()
