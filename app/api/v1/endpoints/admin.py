"""
Admin endpoints: master data, HOD registrations, request review and the
daily run.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import actor_from_user, get_db, require_admin
from app.api.v1.views import request_detail, request_reads, run_summary_read
from app.core.exceptions import ConflictError, NotFoundError, ValidationFailed
from app.models.department import Department
from app.models.enums import Role
from app.models.route import Route, SubRoute
from app.models.transport_request import TransportRequest
from app.models.user import User
from app.schemas.masterdata import (DepartmentCreate, DepartmentRead,
                                    RouteCreate, RouteRead, SubRouteBulkCreate,
                                    SubRouteBulkResult, SubRouteCreate,
                                    SubRouteRead)
from app.schemas.transport import (DecisionIn, LockRunIn, LockRunResult,
                                   RequestDetail, RequestRead, RunSummaryRead,
                                   StatusResponse)
from app.schemas.user import PendingRegistration
from app.services import accounts, daily_run
from app.services.requests import review_request
from app.services.routes import count_sub_routes, ensure_sub_route_room, get_route

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Departments ─────────────────────────────────────────────────────
@router.get("/departments", response_model=list[DepartmentRead])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[Department]:
    result = await db.execute(select(Department).order_by(Department.name))
    return list(result.scalars().all())


@router.post("/departments", response_model=DepartmentRead, status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Department:
    existing = await db.execute(select(Department.id).where(Department.name == body.name))
    if existing.first() is not None:
        raise ConflictError("Department already exists")
    department = Department(name=body.name)
    db.add(department)
    await db.commit()
    await db.refresh(department)
    return department


@router.patch("/departments/{department_id}", response_model=DepartmentRead)
async def rename_department(
    department_id: int,
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Department:
    department = await accounts.get_department(db, department_id)
    department.name = body.name
    await db.commit()
    await db.refresh(department)
    return department


@router.delete("/departments/{department_id}", status_code=204)
async def delete_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Response:
    department = await accounts.get_department(db, department_id)
    await db.delete(department)
    await db.commit()
    return Response(status_code=204)


# ── Routes & sub-routes ─────────────────────────────────────────────
@router.get("/routes", response_model=list[RouteRead])
async def list_routes(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[Route]:
    result = await db.execute(select(Route).order_by(Route.route_no))
    return list(result.scalars().all())


@router.post("/routes", response_model=RouteRead, status_code=201)
async def create_route(
    body: RouteCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Route:
    existing = await db.execute(select(Route.id).where(Route.route_no == body.route_no))
    if existing.first() is not None:
        raise ConflictError("route_no already exists")
    route = Route(route_no=body.route_no, route_name=body.route_name)
    db.add(route)
    await db.commit()
    await db.refresh(route)
    return route


@router.patch("/routes/{route_id}", response_model=RouteRead)
async def update_route(
    route_id: int,
    body: RouteCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Route:
    route = await get_route(db, route_id)
    route.route_no = body.route_no
    route.route_name = body.route_name
    await db.commit()
    await db.refresh(route)
    return route


@router.delete("/routes/{route_id}", status_code=204)
async def delete_route(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Response:
    route = await get_route(db, route_id)
    await db.execute(delete(SubRoute).where(SubRoute.route_id == route.id))
    await db.delete(route)
    await db.commit()
    return Response(status_code=204)


@router.get("/routes/{route_id}/subroutes", response_model=list[SubRouteRead])
async def list_sub_routes(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[SubRoute]:
    await get_route(db, route_id)
    result = await db.execute(
        select(SubRoute).where(SubRoute.route_id == route_id).order_by(SubRoute.sub_name)
    )
    return list(result.scalars().all())


@router.post("/routes/{route_id}/subroutes", response_model=SubRouteRead, status_code=201)
async def create_sub_route(
    route_id: int,
    body: SubRouteCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> SubRoute:
    await get_route(db, route_id)
    await ensure_sub_route_room(db, route_id, adding=1)
    sub = SubRoute(route_id=route_id, sub_name=body.sub_name)
    db.add(sub)
    await db.commit()
    await db.refresh(sub)
    return sub


@router.post("/routes/{route_id}/subroutes/bulk", response_model=SubRouteBulkResult)
async def bulk_create_sub_routes(
    route_id: int,
    body: SubRouteBulkCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> SubRouteBulkResult:
    """Insert many names at once; names already on the route are skipped."""
    await get_route(db, route_id)
    names = body.names()
    if not names:
        raise ValidationFailed("No sub-route names")

    existing = await db.execute(
        select(SubRoute.sub_name).where(SubRoute.route_id == route_id, SubRoute.sub_name.in_(names))
    )
    taken = set(existing.scalars().all())
    fresh = [n for n in names if n not in taken]
    await ensure_sub_route_room(db, route_id, adding=len(fresh))

    db.add_all(SubRoute(route_id=route_id, sub_name=n) for n in fresh)
    await db.commit()
    return SubRouteBulkResult(inserted=len(fresh), total=await count_sub_routes(db, route_id))


@router.patch("/subroutes/{sub_route_id}", response_model=SubRouteRead)
async def rename_sub_route(
    sub_route_id: int,
    body: SubRouteCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> SubRoute:
    sub = await db.get(SubRoute, sub_route_id)
    if sub is None:
        raise NotFoundError("Sub-route not found")
    sub.sub_name = body.sub_name
    await db.commit()
    await db.refresh(sub)
    return sub


@router.delete("/subroutes/{sub_route_id}", status_code=204)
async def delete_sub_route(
    sub_route_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Response:
    sub = await db.get(SubRoute, sub_route_id)
    if sub is None:
        raise NotFoundError("Sub-route not found")
    await db.delete(sub)
    await db.commit()
    return Response(status_code=204)


# ── HOD registrations ──────────────────────────────────────────────
@router.get("/hod-registrations", response_model=list[PendingRegistration])
async def pending_hod_registrations(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[User]:
    return await accounts.list_pending(db, Role.HOD)


@router.post("/hod-registrations/{user_id}/approve", response_model=PendingRegistration)
async def approve_hod(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> User:
    user = await accounts.decide_registration(db, user_id, Role.HOD, actor_from_user(admin), True)
    await db.commit()
    return user


@router.post("/hod-registrations/{user_id}/reject", response_model=PendingRegistration)
async def reject_hod(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> User:
    user = await accounts.decide_registration(db, user_id, Role.HOD, actor_from_user(admin), False)
    await db.commit()
    return user


# ── Requests ────────────────────────────────────────────────────────
@router.get("/requests", response_model=list[RequestRead])
async def list_requests(
    request_date: date | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[RequestRead]:
    query = select(TransportRequest)
    if request_date is not None:
        query = query.where(TransportRequest.request_date == request_date)
    query = query.order_by(
        TransportRequest.request_date.desc(), TransportRequest.created_at.desc()
    ).limit(limit)
    return await request_reads(db, query)


@router.get("/requests/{request_id}", response_model=RequestDetail)
async def get_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> RequestDetail:
    return await request_detail(db, request_id)


@router.post("/requests/{request_id}/approve", response_model=StatusResponse)
async def approve_request(
    request_id: int,
    body: DecisionIn | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> StatusResponse:
    request = await review_request(
        db, request_id, actor_from_user(admin), True, body.comment if body else None
    )
    await db.commit()
    return StatusResponse(id=request.id, status=request.status)


@router.post("/requests/{request_id}/reject", response_model=StatusResponse)
async def reject_request(
    request_id: int,
    body: DecisionIn | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> StatusResponse:
    request = await review_request(
        db, request_id, actor_from_user(admin), False, body.comment if body else None
    )
    await db.commit()
    return StatusResponse(id=request.id, status=request.status)


# ── Daily run ───────────────────────────────────────────────────────
@router.post("/daily-run/lock", response_model=LockRunResult)
async def lock_daily_run(
    body: LockRunIn,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> LockRunResult:
    """Approve the day's submissions and rebuild the daily master."""
    result = await daily_run.lock_daily_run(db, body.run_date, actor_from_user(admin))
    await db.commit()
    return LockRunResult(
        master_request_id=result.master.id,
        status=result.master.status,
        precondition=result.precondition.value,
        approved_request_ids=result.approved_request_ids,
        employee_count=result.employee_count,
    )


@router.get("/daily-run/{run_date}", response_model=RunSummaryRead)
async def daily_run_summary(
    run_date: date,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> RunSummaryRead:
    return run_summary_read(await daily_run.get_run_summary(db, run_date))
