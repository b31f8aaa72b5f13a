"""
TA endpoints: fleet, drivers, and vehicle assignment for approved requests.
"""

from __future__ import annotations

from collections import defaultdict

from fastapi import APIRouter, Depends, Response
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import actor_from_user, get_db, require_ta
from app.api.v1.views import (assignment_reads, capacity_reads, group_reads,
                              request_reads)
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.models.route import Route
from app.models.transport_request import TransportRequest
from app.models.user import User
from app.models.vehicle import Driver, Vehicle, VehicleRoute
from app.schemas.masterdata import (DriverCreate, DriverRead, VehicleCreate,
                                    VehicleRead)
from app.schemas.transport import (AssignmentRead, GroupAssignmentSave,
                                   GroupRead, RequestRead, SubmitResult)
from app.services import state_machine
from app.services.assignments import (AssignmentInput, save_group_assignment,
                                      submit_assignments)
from app.services.grouping import compute_groups
from app.services.requests import load_request

router = APIRouter(prefix="/ta", tags=["ta"])


# ── Vehicles ────────────────────────────────────────────────────────
async def _route_ids_by_vehicle(db: AsyncSession) -> dict[int, list[int]]:
    result = await db.execute(
        select(VehicleRoute.vehicle_id, VehicleRoute.route_id).order_by(VehicleRoute.route_id)
    )
    coverage: dict[int, list[int]] = defaultdict(list)
    for vehicle_id, route_id in result.all():
        coverage[vehicle_id].append(route_id)
    return coverage


def _vehicle_read(vehicle: Vehicle, route_ids: list[int]) -> VehicleRead:
    read = VehicleRead.model_validate(vehicle)
    read.route_ids = route_ids
    return read


async def _replace_coverage(db: AsyncSession, vehicle_id: int, route_ids: list[int]) -> list[int]:
    wanted = sorted(set(route_ids))
    if wanted:
        found = await db.execute(select(Route.id).where(Route.id.in_(wanted)))
        missing = set(wanted) - set(found.scalars().all())
        if missing:
            raise NotFoundError(f"Route(s) not found: {sorted(missing)}")
    await db.execute(delete(VehicleRoute).where(VehicleRoute.vehicle_id == vehicle_id))
    db.add_all(VehicleRoute(vehicle_id=vehicle_id, route_id=r) for r in wanted)
    return wanted


@router.get("/vehicles", response_model=list[VehicleRead])
async def list_vehicles(
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> list[VehicleRead]:
    vehicles = (await db.execute(select(Vehicle).order_by(Vehicle.vehicle_no))).scalars().all()
    coverage = await _route_ids_by_vehicle(db)
    return [_vehicle_read(v, coverage.get(v.id, [])) for v in vehicles]


@router.post("/vehicles", response_model=VehicleRead, status_code=201)
async def create_vehicle(
    body: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> VehicleRead:
    existing = await db.execute(select(Vehicle.id).where(Vehicle.vehicle_no == body.vehicle_no))
    if existing.first() is not None:
        raise ConflictError("vehicle_no already exists")
    vehicle = Vehicle(
        vehicle_no=body.vehicle_no,
        registration_no=body.registration_no or body.vehicle_no,
        fleet_no=body.fleet_no,
        vehicle_type=body.vehicle_type,
        capacity=body.capacity,
        owner_name=body.owner_name,
    )
    db.add(vehicle)
    await db.flush()
    route_ids = await _replace_coverage(db, vehicle.id, body.route_ids)
    await db.commit()
    await db.refresh(vehicle)
    return _vehicle_read(vehicle, route_ids)


@router.put("/vehicles/{vehicle_id}", response_model=VehicleRead)
async def update_vehicle(
    vehicle_id: int,
    body: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> VehicleRead:
    """Replace a vehicle's details and its route coverage."""
    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    vehicle.vehicle_no = body.vehicle_no
    vehicle.registration_no = body.registration_no or body.vehicle_no
    vehicle.fleet_no = body.fleet_no
    vehicle.vehicle_type = body.vehicle_type
    vehicle.capacity = body.capacity
    vehicle.owner_name = body.owner_name
    route_ids = await _replace_coverage(db, vehicle.id, body.route_ids)
    await db.commit()
    await db.refresh(vehicle)
    return _vehicle_read(vehicle, route_ids)


@router.delete("/vehicles/{vehicle_id}", status_code=204)
async def delete_vehicle(
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> Response:
    vehicle = await db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    await db.execute(delete(VehicleRoute).where(VehicleRoute.vehicle_id == vehicle.id))
    await db.delete(vehicle)
    await db.commit()
    return Response(status_code=204)


# ── Drivers ─────────────────────────────────────────────────────────
@router.get("/drivers", response_model=list[DriverRead])
async def list_drivers(
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> list[Driver]:
    result = await db.execute(select(Driver).order_by(Driver.full_name))
    return list(result.scalars().all())


@router.post("/drivers", response_model=DriverRead, status_code=201)
async def create_driver(
    body: DriverCreate,
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> Driver:
    driver = Driver(full_name=body.full_name.strip(), phone=body.phone)
    db.add(driver)
    await db.commit()
    await db.refresh(driver)
    return driver


# ── Requests ────────────────────────────────────────────────────────
async def _visible_request(db: AsyncSession, request_id: int) -> TransportRequest:
    request = await load_request(db, request_id)
    if request.status not in state_machine.TA_VISIBLE:
        raise InvalidStateError("view assignments for", request.status, state_machine.TA_VISIBLE)
    return request


@router.get("/requests/approved", response_model=list[RequestRead])
async def ready_requests(
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> list[RequestRead]:
    """Requests waiting for (re)assignment."""
    query = (
        select(TransportRequest)
        .where(TransportRequest.status.in_(state_machine.TA_EDITABLE))
        .order_by(TransportRequest.request_date.desc(), TransportRequest.created_at.desc())
        .limit(50)
    )
    return await request_reads(db, query)


@router.get("/requests/{request_id}/groups", response_model=list[GroupRead])
async def request_groups(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> list[GroupRead]:
    request = await _visible_request(db, request_id)
    return group_reads(await compute_groups(db, request.id))


@router.get("/requests/{request_id}/assignments", response_model=list[AssignmentRead])
async def request_assignments(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    _ta: User = Depends(require_ta),
) -> list[AssignmentRead]:
    request = await _visible_request(db, request_id)
    return await assignment_reads(db, request.id)


@router.post("/requests/{request_id}/assignments", response_model=list[AssignmentRead])
async def save_assignments(
    request_id: int,
    body: GroupAssignmentSave,
    db: AsyncSession = Depends(get_db),
    ta: User = Depends(require_ta),
) -> list[AssignmentRead]:
    """Replace the vehicles of one (route, sub-route) group."""
    items = [
        AssignmentInput(
            vehicle_id=a.vehicle_id,
            driver_id=a.driver_id,
            driver_name=a.driver_name,
            driver_phone=a.driver_phone,
            instructions=a.instructions,
            overbook_amount=a.overbook_amount,
            overbook_reason=a.overbook_reason,
        )
        for a in body.assignments
    ]
    await save_group_assignment(
        db, request_id, actor_from_user(ta), body.route_id, body.sub_route_id, items
    )
    await db.commit()
    return await assignment_reads(db, request_id)


@router.post("/requests/{request_id}/submit", response_model=SubmitResult)
async def submit(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    ta: User = Depends(require_ta),
) -> SubmitResult:
    """Validate capacity and hand the request to HR."""
    request, checks = await submit_assignments(db, request_id, actor_from_user(ta))
    await db.commit()
    return SubmitResult(id=request.id, status=request.status, checks=capacity_reads(checks))
