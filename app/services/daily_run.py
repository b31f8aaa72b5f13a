"""
Daily run consolidation.

Locking a date approves every SUBMITTED department request of that date and
rebuilds one cross-department *daily master* request whose roster is the
de-duplicated union of all approved department rosters.  The roster is
cleared and rebuilt on every lock, so locking twice before the TA picks the
run up gives the same result.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from app.models.department import Department
from app.models.enums import RequestStatus, Role
from app.models.transport_request import RequestAssignment, RequestEmployee, TransportRequest
from app.services import state_machine
from app.services.grouping import Group, compute_groups
from app.services.requests import commit_transition
from app.services.state_machine import Actor, Event

logger = logging.getLogger(__name__)


class LockPrecondition(str, enum.Enum):
    OK = "OK"  # no master yet
    LOCKED = "LOCKED"  # master exists and may be rebuilt
    ALREADY_IN_PROGRESS = "ALREADY_IN_PROGRESS"  # picked up downstream


def lock_precondition(master_status: RequestStatus | None) -> LockPrecondition:
    if master_status is None:
        return LockPrecondition.OK
    if master_status in state_machine.DOWNSTREAM_STATUSES:
        return LockPrecondition.ALREADY_IN_PROGRESS
    return LockPrecondition.LOCKED


@dataclass(frozen=True)
class ApprovedRosterRow:
    employee_id: int
    request_id: int
    request_created_at: datetime | None
    effective_route_id: int | None
    effective_sub_route_id: int | None


def select_latest_rosters(rows: Iterable[ApprovedRosterRow]) -> list[ApprovedRosterRow]:
    """One row per employee: the most recently created request wins.

    Ties on creation time fall to the higher request id.  Output is ordered
    by employee id.
    """
    latest: dict[int, ApprovedRosterRow] = {}
    for row in rows:
        current = latest.get(row.employee_id)
        if current is None or _recency(row) > _recency(current):
            latest[row.employee_id] = row
    return [latest[k] for k in sorted(latest)]


def _recency(row: ApprovedRosterRow) -> tuple:
    created = row.request_created_at
    return (created is not None, created or datetime.min, row.request_id)


@dataclass
class LockResult:
    master: TransportRequest
    precondition: LockPrecondition
    approved_request_ids: list[int] = field(default_factory=list)
    employee_count: int = 0


def _master_time() -> time:
    return time.fromisoformat(settings.DAILY_MASTER_REQUEST_TIME)


async def get_master(
    db: AsyncSession, run_date: date, *, for_update: bool = False
) -> TransportRequest | None:
    query = select(TransportRequest).where(
        TransportRequest.request_date == run_date,
        TransportRequest.is_daily_master.is_(True),
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _drop_orphan_assignments(db: AsyncSession, request_id: int) -> int:
    """Delete assignments whose (route, sub-route) is no longer a roster group."""
    keys = {group.key for group in await compute_groups(db, request_id)}
    rows = await db.execute(
        select(RequestAssignment.id, RequestAssignment.route_id, RequestAssignment.sub_route_id).where(
            RequestAssignment.request_id == request_id
        )
    )
    stale = [a_id for a_id, route_id, sub_id in rows.all() if (route_id, sub_id) not in keys]
    if stale:
        await db.execute(delete(RequestAssignment).where(RequestAssignment.id.in_(stale)))
    return len(stale)


async def lock_daily_run(db: AsyncSession, run_date: date, actor: Actor) -> LockResult:
    if actor.role != Role.ADMIN:
        raise ForbiddenError("ADMIN role required to lock a daily run")

    master = await get_master(db, run_date, for_update=True)
    precondition = lock_precondition(master.status if master else None)
    if precondition is LockPrecondition.ALREADY_IN_PROGRESS:
        raise InvalidStateError(
            "lock the daily run for", master.status, state_machine.TRANSITIONS[Event.LOCK_RUN].sources
        )

    # 1. Approve the day's outstanding department submissions
    submitted = await db.execute(
        select(TransportRequest)
        .where(
            TransportRequest.request_date == run_date,
            TransportRequest.is_daily_master.is_(False),
            TransportRequest.status == RequestStatus.SUBMITTED,
        )
        .order_by(TransportRequest.id)
        .with_for_update()
    )
    approved_ids = []
    for request in submitted.scalars().all():
        await commit_transition(db, request, Event.ADMIN_APPROVE, actor, comment="daily run lock")
        approved_ids.append(request.id)

    # 2. Upsert the master and clear its roster
    if master is None:
        master = TransportRequest(
            request_date=run_date,
            request_time=_master_time(),
            department_id=None,
            created_by_user_id=actor.user_id,
            status=RequestStatus.DRAFT,
            notes=f"Daily master {run_date.isoformat()}",
            is_daily_master=True,
        )
        db.add(master)
        await db.flush()
    else:
        await db.execute(delete(RequestEmployee).where(RequestEmployee.request_id == master.id))

    # 3. Latest approved roster row per employee
    rows = await db.execute(
        select(
            RequestEmployee.employee_id,
            TransportRequest.id,
            TransportRequest.created_at,
            RequestEmployee.effective_route_id,
            RequestEmployee.effective_sub_route_id,
        )
        .join(TransportRequest, TransportRequest.id == RequestEmployee.request_id)
        .where(
            TransportRequest.request_date == run_date,
            TransportRequest.is_daily_master.is_(False),
            TransportRequest.status == RequestStatus.ADMIN_APPROVED,
        )
    )
    roster = select_latest_rosters(ApprovedRosterRow(*row) for row in rows.all())
    db.add_all(
        RequestEmployee(
            request_id=master.id,
            employee_id=row.employee_id,
            effective_route_id=row.effective_route_id,
            effective_sub_route_id=row.effective_sub_route_id,
        )
        for row in roster
    )
    await db.flush()

    # 4. A rebuilt roster may have lost groups the TA already covered
    dropped = 0
    if precondition is LockPrecondition.LOCKED:
        dropped = await _drop_orphan_assignments(db, master.id)

    # 5. Master → ADMIN_APPROVED, audited as ADMIN_LOCK_RUN
    await commit_transition(db, master, Event.LOCK_RUN, actor)
    logger.info(
        "Daily run %s locked (%s): master %d, %d request(s) approved, %d employee(s), "
        "%d stale assignment(s) dropped",
        run_date.isoformat(),
        precondition.value,
        master.id,
        len(approved_ids),
        len(roster),
        dropped,
    )
    return LockResult(
        master=master,
        precondition=precondition,
        approved_request_ids=approved_ids,
        employee_count=len(roster),
    )


@dataclass
class DepartmentRunRow:
    request_id: int
    department_id: int | None
    department_name: str | None
    status: RequestStatus
    headcount: int


@dataclass
class RunSummary:
    run_date: date
    master: TransportRequest | None
    master_headcount: int
    departments: list[DepartmentRunRow]
    groups: list[Group]


async def get_run_summary(db: AsyncSession, run_date: date) -> RunSummary:
    headcount = (
        select(RequestEmployee.request_id, func.count().label("n"))
        .group_by(RequestEmployee.request_id)
        .subquery()
    )
    result = await db.execute(
        select(
            TransportRequest.id,
            TransportRequest.department_id,
            Department.name,
            TransportRequest.status,
            func.coalesce(headcount.c.n, 0),
        )
        .outerjoin(Department, Department.id == TransportRequest.department_id)
        .outerjoin(headcount, headcount.c.request_id == TransportRequest.id)
        .where(
            TransportRequest.request_date == run_date,
            TransportRequest.is_daily_master.is_(False),
        )
        .order_by(Department.name, TransportRequest.id)
    )
    departments = [DepartmentRunRow(*row) for row in result.all()]

    master = await get_master(db, run_date)
    if master is None and not departments:
        raise NotFoundError(f"No transport requests for {run_date.isoformat()}")

    groups = await compute_groups(db, master.id) if master is not None else []
    return RunSummary(
        run_date=run_date,
        master=master,
        master_headcount=sum(g.headcount for g in groups),
        departments=departments,
        groups=groups,
    )
