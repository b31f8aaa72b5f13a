"""
Response builders shared by the role routers.
"""

from __future__ import annotations

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.department import Department
from app.models.employee import Employee
from app.models.transport_request import RequestAssignment, RequestEmployee, TransportRequest
from app.models.vehicle import Vehicle
from app.schemas.transport import (AssignmentRead, CapacityCheckRead,
                                   DepartmentRunRead, GroupRead, RequestDetail,
                                   RequestEmployeeRead, RequestRead,
                                   RunSummaryRead)
from app.services.capacity import CapacityCheck
from app.services.daily_run import RunSummary
from app.services.grouping import Group
from app.services.requests import load_request
from app.services.state_machine import Actor


def _request_read(request: TransportRequest, department_name: str | None) -> RequestRead:
    read = RequestRead.model_validate(request)
    read.department_name = department_name
    return read


async def request_reads(db: AsyncSession, query: Select) -> list[RequestRead]:
    """Run a ``select(TransportRequest)`` query and attach department names."""
    query = query.add_columns(Department.name).outerjoin(
        Department, Department.id == TransportRequest.department_id
    )
    result = await db.execute(query)
    return [_request_read(request, name) for request, name in result.all()]


async def request_detail(
    db: AsyncSession, request_id: int, actor: Actor | None = None
) -> RequestDetail:
    request = await load_request(db, request_id, actor=actor)
    department = (
        await db.get(Department, request.department_id) if request.department_id else None
    )
    result = await db.execute(
        select(
            RequestEmployee.employee_id,
            Employee.emp_no,
            Employee.full_name,
            RequestEmployee.effective_route_id,
            RequestEmployee.effective_sub_route_id,
        )
        .join(Employee, Employee.id == RequestEmployee.employee_id)
        .where(RequestEmployee.request_id == request.id)
        .order_by(Employee.full_name, Employee.emp_no)
    )
    employees = [
        RequestEmployeeRead(
            employee_id=emp_id,
            emp_no=emp_no,
            full_name=name,
            effective_route_id=route_id,
            effective_sub_route_id=sub_id,
        )
        for emp_id, emp_no, name, route_id, sub_id in result.all()
    ]
    return RequestDetail(
        request=_request_read(request, department.name if department else None),
        employees=employees,
    )


def group_reads(groups: list[Group]) -> list[GroupRead]:
    return [GroupRead.model_validate(g) for g in groups]


def capacity_reads(checks: list[CapacityCheck]) -> list[CapacityCheckRead]:
    return [
        CapacityCheckRead(
            route_id=c.key[0],
            sub_route_id=c.key[1],
            required=c.required,
            available=c.available,
            overbook=c.overbook,
        )
        for c in checks
    ]


async def assignment_reads(db: AsyncSession, request_id: int) -> list[AssignmentRead]:
    result = await db.execute(
        select(RequestAssignment, Vehicle)
        .join(Vehicle, Vehicle.id == RequestAssignment.vehicle_id)
        .where(RequestAssignment.request_id == request_id)
        .order_by(RequestAssignment.route_id, RequestAssignment.sub_route_id, RequestAssignment.id)
    )
    reads = []
    for assignment, vehicle in result.all():
        read = AssignmentRead.model_validate(assignment)
        read.vehicle_no = vehicle.vehicle_no
        read.vehicle_type = vehicle.vehicle_type
        read.capacity = vehicle.capacity
        reads.append(read)
    return reads


def run_summary_read(summary: RunSummary) -> RunSummaryRead:
    master = summary.master
    return RunSummaryRead(
        run_date=summary.run_date,
        master_request_id=master.id if master else None,
        master_status=master.status if master else None,
        master_headcount=summary.master_headcount,
        departments=[DepartmentRunRead.model_validate(d) for d in summary.departments],
        groups=group_reads(summary.groups),
    )
