"""
HOD side of a department request: creating it and editing its roster.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationFailed
from app.models.employee import Employee
from app.models.enums import RequestStatus, Role
from app.models.transport_request import RequestEmployee, TransportRequest
from app.services import state_machine
from app.services.requests import commit_transition, load_request
from app.services.routes import ensure_route_pair
from app.services.state_machine import Actor, Event

logger = logging.getLogger(__name__)

_ROUTE_FIELDS = ("effective_route_id", "effective_sub_route_id")


def _require_hod(actor: Actor) -> int:
    if actor.role != Role.HOD:
        raise ForbiddenError("HOD role required")
    if actor.department_id is None:
        raise ValidationFailed("HOD has no department")
    return actor.department_id


async def create_request(
    db: AsyncSession,
    actor: Actor,
    request_date: date,
    request_time: time,
    employee_ids: list[int],
    notes: str | None = None,
) -> TransportRequest:
    """New DRAFT request; each employee's defaults become the effective route."""
    department_id = _require_hod(actor)
    wanted = list(dict.fromkeys(employee_ids))
    if not wanted:
        raise ValidationFailed("At least one employee is required")

    result = await db.execute(
        select(Employee).where(Employee.department_id == department_id, Employee.id.in_(wanted))
    )
    employees = {e.id: e for e in result.scalars().all()}
    if len(employees) != len(wanted):
        raise ValidationFailed("Some employees not found in your department")

    request = TransportRequest(
        request_date=request_date,
        request_time=request_time,
        department_id=department_id,
        created_by_user_id=actor.user_id,
        status=RequestStatus.DRAFT,
        notes=notes,
        is_daily_master=False,
    )
    db.add(request)
    await db.flush()
    db.add_all(
        RequestEmployee(
            request_id=request.id,
            employee_id=emp.id,
            effective_route_id=emp.default_route_id,
            effective_sub_route_id=emp.default_sub_route_id,
        )
        for emp in (employees[i] for i in wanted)
    )
    await db.flush()
    logger.info(
        "Request %d created for department %d with %d employee(s)",
        request.id,
        department_id,
        len(wanted),
    )
    return request


@dataclass
class RosterChange:
    """One roster edit.

    ``updates`` only carries the route fields the caller actually sent, so
    an explicit ``None`` clears an override while an absent key keeps it.
    """

    employee_id: int
    remove: bool = False
    persist_to_employee: bool = False
    updates: dict[str, int | None] = field(default_factory=dict)


async def update_roster(
    db: AsyncSession, request_id: int, actor: Actor, changes: list[RosterChange]
) -> TransportRequest:
    department_id = _require_hod(actor)
    if not changes:
        raise ValidationFailed("No changes")

    request = await load_request(db, request_id, actor=actor, for_update=True)
    state_machine.ensure_editable(request.status, Role.HOD)

    for change in changes:
        if change.remove:
            await db.execute(
                delete(RequestEmployee).where(
                    RequestEmployee.request_id == request.id,
                    RequestEmployee.employee_id == change.employee_id,
                )
            )
            continue

        result = await db.execute(
            select(RequestEmployee).where(
                RequestEmployee.request_id == request.id,
                RequestEmployee.employee_id == change.employee_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Employee not in request")

        for name, value in change.updates.items():
            if name in _ROUTE_FIELDS:
                setattr(row, name, value)
        route_id = row.effective_route_id
        if route_id is None and row.effective_sub_route_id is not None:
            employee = await db.get(Employee, change.employee_id)
            route_id = employee.default_route_id if employee is not None else None
        await ensure_route_pair(db, route_id, row.effective_sub_route_id)

        if change.persist_to_employee:
            employee = await db.get(Employee, change.employee_id)
            if employee is not None and employee.department_id == department_id:
                employee.default_route_id = row.effective_route_id
                employee.default_sub_route_id = row.effective_sub_route_id

    await db.flush()
    logger.info("Request %d: %d roster change(s) applied", request.id, len(changes))
    return request


async def submit_request(db: AsyncSession, request_id: int, actor: Actor) -> TransportRequest:
    _require_hod(actor)
    request = await load_request(db, request_id, actor=actor, for_update=True)
    return await commit_transition(db, request, Event.HOD_SUBMIT, actor)
