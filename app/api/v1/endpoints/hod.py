"""
HOD endpoints: the department's employees, pending EMP registrations and
transport requests.  Everything is scoped to the HOD's own department.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import actor_from_user, get_db, require_hod
from app.api.v1.views import group_reads, request_detail, request_reads
from app.core.exceptions import ValidationFailed
from app.models.employee import Employee
from app.models.enums import Role
from app.models.transport_request import TransportRequest
from app.models.user import User
from app.schemas.masterdata import (EmployeeCreate, EmployeeCreated,
                                    EmployeeRead, EmployeeUpdate)
from app.schemas.transport import (GroupRead, RequestCreate, RequestDetail,
                                   RequestRead, RosterUpdate, StatusResponse)
from app.schemas.user import PendingRegistration
from app.services import accounts, roster
from app.services.grouping import compute_groups
from app.services.requests import load_request
from app.services.routes import ensure_route_pair

router = APIRouter(prefix="/hod", tags=["hod"])


# ── Employees ───────────────────────────────────────────────────────
@router.get("/employees", response_model=list[EmployeeRead])
async def list_employees(
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> list[Employee]:
    result = await db.execute(
        select(Employee)
        .where(Employee.department_id == hod.department_id)
        .order_by(Employee.full_name)
    )
    return list(result.scalars().all())


@router.post("/employees", response_model=EmployeeCreated, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> EmployeeCreated:
    """Add an employee; with email + password an active EMP login is created too."""
    employee, user = await accounts.create_employee(
        db,
        actor_from_user(hod),
        full_name=body.full_name,
        emp_no=body.emp_no,
        default_route_id=body.default_route_id,
        default_sub_route_id=body.default_sub_route_id,
        email=body.email,
        password=body.password,
    )
    await db.commit()
    await db.refresh(employee)
    return EmployeeCreated(
        employee=EmployeeRead.model_validate(employee),
        user_id=user.id if user else None,
    )


@router.patch("/employees/{employee_id}", response_model=EmployeeRead)
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> Employee:
    """Partial update: only fields present in the body are written."""
    employee = await accounts.get_department_employee(db, employee_id, hod.department_id)
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No changes")
    if changes.get("full_name") is None:
        changes.pop("full_name", None)
    if changes.get("is_active") is None:
        changes.pop("is_active", None)

    for name, value in changes.items():
        setattr(employee, name, value)
    await ensure_route_pair(db, employee.default_route_id, employee.default_sub_route_id)
    await db.commit()
    await db.refresh(employee)
    return employee


# ── Pending self-registrations ──────────────────────────────────────
@router.get("/registrations/pending", response_model=list[PendingRegistration])
async def pending_registrations(
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> list[User]:
    return await accounts.list_pending(db, Role.EMP, department_id=hod.department_id)


@router.post("/registrations/{user_id}/approve", response_model=PendingRegistration)
async def approve_registration(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> User:
    user = await accounts.decide_registration(db, user_id, Role.EMP, actor_from_user(hod), True)
    await db.commit()
    return user


@router.post("/registrations/{user_id}/reject", response_model=PendingRegistration)
async def reject_registration(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> User:
    user = await accounts.decide_registration(db, user_id, Role.EMP, actor_from_user(hod), False)
    await db.commit()
    return user


# ── Requests ────────────────────────────────────────────────────────
@router.post("/requests", response_model=RequestDetail, status_code=201)
async def create_request(
    body: RequestCreate,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> RequestDetail:
    actor = actor_from_user(hod)
    request = await roster.create_request(
        db,
        actor,
        request_date=body.request_date,
        request_time=body.request_time,
        employee_ids=body.employee_ids,
        notes=body.notes,
    )
    await db.commit()
    return await request_detail(db, request.id, actor)


@router.get("/requests", response_model=list[RequestRead])
async def list_requests(
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> list[RequestRead]:
    query = (
        select(TransportRequest)
        .where(
            TransportRequest.department_id == hod.department_id,
            TransportRequest.is_daily_master.is_(False),
        )
        .order_by(TransportRequest.request_date.desc(), TransportRequest.created_at.desc())
        .limit(50)
    )
    return await request_reads(db, query)


@router.get("/requests/{request_id}", response_model=RequestDetail)
async def get_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> RequestDetail:
    return await request_detail(db, request_id, actor_from_user(hod))


@router.patch("/requests/{request_id}/employees", response_model=RequestDetail)
async def update_request_employees(
    request_id: int,
    body: RosterUpdate,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> RequestDetail:
    """Remove employees or change their effective route while still editable."""
    actor = actor_from_user(hod)
    changes = [
        roster.RosterChange(
            employee_id=c.employee_id,
            remove=c.remove,
            persist_to_employee=c.persist_to_employee,
            updates=c.route_updates(),
        )
        for c in body.changes
    ]
    await roster.update_roster(db, request_id, actor, changes)
    await db.commit()
    return await request_detail(db, request_id, actor)


@router.post("/requests/{request_id}/submit", response_model=StatusResponse)
async def submit_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> StatusResponse:
    request = await roster.submit_request(db, request_id, actor_from_user(hod))
    await db.commit()
    return StatusResponse(id=request.id, status=request.status)


@router.get("/requests/{request_id}/groups", response_model=list[GroupRead])
async def request_groups(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    hod: User = Depends(require_hod),
) -> list[GroupRead]:
    request = await load_request(db, request_id, actor=actor_from_user(hod))
    return group_reads(await compute_groups(db, request.id))
