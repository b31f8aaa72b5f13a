"""
TA vehicle assignment and the HR overbook gate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationFailed
from app.models.enums import OverbookStatus, Role
from app.models.transport_request import RequestAssignment, TransportRequest
from app.models.vehicle import Driver, Vehicle
from app.services import state_machine
from app.services.capacity import CapacityCheck, Seat, ensure_capacity, normalise_overbook
from app.services.grouping import compute_groups
from app.services.requests import commit_transition, load_request
from app.services.routes import ensure_route_pair
from app.services.state_machine import Actor, Event

logger = logging.getLogger(__name__)


@dataclass
class AssignmentInput:
    vehicle_id: int
    driver_id: int | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    instructions: str | None = None
    overbook_amount: int = 0
    overbook_reason: str | None = None


def _group_filter(route_id: int | None, sub_route_id: int | None) -> list:
    # NULL-safe equality on both legs
    return [
        RequestAssignment.route_id.is_(None)
        if route_id is None
        else RequestAssignment.route_id == route_id,
        RequestAssignment.sub_route_id.is_(None)
        if sub_route_id is None
        else RequestAssignment.sub_route_id == sub_route_id,
    ]


async def load_seats(db: AsyncSession, request_id: int) -> list[Seat]:
    result = await db.execute(
        select(
            RequestAssignment.route_id,
            RequestAssignment.sub_route_id,
            Vehicle.capacity,
            RequestAssignment.overbook_amount,
        )
        .join(Vehicle, Vehicle.id == RequestAssignment.vehicle_id)
        .where(RequestAssignment.request_id == request_id)
    )
    return [
        Seat(route_id=r, sub_route_id=s, capacity=c, overbook_amount=o or 0)
        for r, s, c, o in result.all()
    ]


async def save_group_assignment(
    db: AsyncSession,
    request_id: int,
    actor: Actor,
    route_id: int,
    sub_route_id: int | None,
    items: list[AssignmentInput],
) -> list[RequestAssignment]:
    """Replace every assignment of one group.  No status change."""
    if actor.role != Role.TA:
        raise ForbiddenError("TA role required to save assignments")
    if not items:
        raise ValidationFailed("At least one vehicle assignment is required")

    request = await load_request(db, request_id, for_update=True)
    state_machine.ensure_editable(request.status, Role.TA)
    await ensure_route_pair(db, route_id, sub_route_id)

    rows: list[RequestAssignment] = []
    for item in items:
        amount, reason = normalise_overbook(item.overbook_amount, item.overbook_reason)
        if await db.get(Vehicle, item.vehicle_id) is None:
            raise NotFoundError(f"Vehicle {item.vehicle_id} not found")

        driver_name, driver_phone = item.driver_name, item.driver_phone
        if item.driver_id is not None:
            driver = await db.get(Driver, item.driver_id)
            if driver is None:
                raise NotFoundError(f"Driver {item.driver_id} not found")
            driver_name = driver_name or driver.full_name
            driver_phone = driver_phone or driver.phone
        if not driver_name:
            raise ValidationFailed("Each assignment needs a driver_id or driver_name")

        rows.append(
            RequestAssignment(
                request_id=request.id,
                route_id=route_id,
                sub_route_id=sub_route_id,
                vehicle_id=item.vehicle_id,
                driver_id=item.driver_id,
                driver_name=driver_name,
                driver_phone=driver_phone,
                instructions=item.instructions,
                overbook_amount=amount,
                overbook_reason=reason,
                # Derived server-side; set to PENDING_HR on submit
                overbook_status=OverbookStatus.NONE,
            )
        )

    await db.execute(
        delete(RequestAssignment).where(
            RequestAssignment.request_id == request.id,
            *_group_filter(route_id, sub_route_id),
        )
    )
    db.add_all(rows)
    await db.flush()
    logger.info(
        "Request %d: saved %d assignment(s) for route %s / sub-route %s",
        request.id,
        len(rows),
        route_id,
        sub_route_id,
    )
    return rows


async def submit_assignments(
    db: AsyncSession, request_id: int, actor: Actor
) -> tuple[TransportRequest, list[CapacityCheck]]:
    """Validate capacity for every group and hand the request on.

    Any overbooked assignment routes the request to HR first.
    """
    request = await load_request(db, request_id, for_update=True)
    state_machine.check(request.status, Event.TA_SUBMIT, actor)

    groups = await compute_groups(db, request.id)
    seats = await load_seats(db, request.id)
    checks = ensure_capacity(groups, seats)

    group_keys = {g.key for g in groups}
    overbook_used = any(s.overbook_amount > 0 and s.key in group_keys for s in seats)
    await db.execute(
        update(RequestAssignment)
        .where(RequestAssignment.request_id == request.id, RequestAssignment.overbook_amount > 0)
        .values(overbook_status=OverbookStatus.PENDING_HR)
    )
    await db.execute(
        update(RequestAssignment)
        .where(RequestAssignment.request_id == request.id, RequestAssignment.overbook_amount == 0)
        .values(overbook_status=OverbookStatus.NONE)
    )

    event = Event.TA_SUBMIT_OVERBOOK if overbook_used else Event.TA_SUBMIT
    await commit_transition(db, request, event, actor)
    return request, checks


async def decide_overbook(
    db: AsyncSession,
    request_id: int,
    actor: Actor,
    approve: bool,
    comment: str | None = None,
) -> TransportRequest:
    """HR gate: approve → TA_ASSIGNED, reject → TA_FIX_REQUIRED."""
    request = await load_request(db, request_id, for_update=True)
    event = Event.HR_OVERBOOK_APPROVE if approve else Event.HR_OVERBOOK_REJECT
    state_machine.check(request.status, event, actor)

    decision = OverbookStatus.APPROVED if approve else OverbookStatus.REJECTED
    await db.execute(
        update(RequestAssignment)
        .where(RequestAssignment.request_id == request.id, RequestAssignment.overbook_amount > 0)
        .values(overbook_status=decision)
    )
    await commit_transition(db, request, event, actor, comment)
    return request
