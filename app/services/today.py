"""
An employee's transport for the current local day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.models.employee import Employee
from app.models.enums import RequestStatus
from app.models.route import Route, SubRoute
from app.models.transport_request import RequestAssignment, RequestEmployee, TransportRequest
from app.models.vehicle import Vehicle
from app.services.grouping import effective_key


def local_today(now: datetime | None = None) -> date:
    tz = ZoneInfo(settings.APP_TIMEZONE)
    return (now or datetime.now(timezone.utc)).astimezone(tz).date()


@dataclass
class TodayAssignment:
    vehicle: Vehicle
    driver_name: str | None
    driver_phone: str | None
    instructions: str | None


@dataclass
class TodayPlan:
    service_date: date
    request_id: int | None = None
    route: Route | None = None
    sub_route: SubRoute | None = None
    assignments: list[TodayAssignment] = field(default_factory=list)

    @property
    def has_transport(self) -> bool:
        return bool(self.assignments)


async def today_plan(
    db: AsyncSession, employee_id: int | None, service_date: date | None = None
) -> TodayPlan:
    """Find the vehicle for the employee's group on a final-approved request.

    Looks for the most recent HR_FINAL_APPROVED request of the day carrying
    the employee.  The effective route falls back to the employee's default
    and the assignment lookup falls back from (route, sub-route) to the
    route-level entry (route, None).
    """
    if employee_id is None:
        raise NotFoundError("No employee linked to this account")
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")

    plan = TodayPlan(service_date=service_date or local_today())
    result = await db.execute(
        select(TransportRequest, RequestEmployee)
        .join(RequestEmployee, RequestEmployee.request_id == TransportRequest.id)
        .where(
            TransportRequest.request_date == plan.service_date,
            TransportRequest.status == RequestStatus.HR_FINAL_APPROVED,
            RequestEmployee.employee_id == employee.id,
        )
        .order_by(
            TransportRequest.is_daily_master.desc(),
            TransportRequest.created_at.desc(),
            TransportRequest.id.desc(),
        )
        .limit(1)
    )
    row = result.first()
    if row is None:
        return plan

    request, entry = row
    plan.request_id = request.id
    default_sub = (
        await db.get(SubRoute, employee.default_sub_route_id)
        if employee.default_sub_route_id is not None
        else None
    )
    route_id, sub_route_id = effective_key(
        entry.effective_route_id,
        entry.effective_sub_route_id,
        employee.default_route_id,
        employee.default_sub_route_id,
        default_sub.route_id if default_sub else None,
    )
    if route_id is None:
        return plan

    plan.route = await db.get(Route, route_id)
    plan.sub_route = await db.get(SubRoute, sub_route_id) if sub_route_id else None

    for candidate in dict.fromkeys([sub_route_id, None]):
        query = (
            select(RequestAssignment, Vehicle)
            .join(Vehicle, Vehicle.id == RequestAssignment.vehicle_id)
            .where(
                RequestAssignment.request_id == request.id,
                RequestAssignment.route_id == route_id,
            )
            .order_by(RequestAssignment.id)
        )
        if candidate is None:
            query = query.where(RequestAssignment.sub_route_id.is_(None))
        else:
            query = query.where(RequestAssignment.sub_route_id == candidate)
        rows = (await db.execute(query)).all()
        if rows:
            plan.assignments = [
                TodayAssignment(vehicle, a.driver_name, a.driver_phone, a.instructions)
                for a, vehicle in rows
            ]
            break
    return plan
