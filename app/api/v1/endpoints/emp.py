"""
EMP endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_emp
from app.models.user import User
from app.schemas.transport import (RouteRefRead, SubRouteRefRead,
                                   TodayTransport, TodayVehicle)
from app.services.today import today_plan

router = APIRouter(prefix="/emp", tags=["emp"])


@router.get("/today-transport", response_model=TodayTransport)
async def today_transport(
    db: AsyncSession = Depends(get_db),
    emp: User = Depends(require_emp),
) -> TodayTransport:
    """Vehicle and driver for the caller's group on today's approved run."""
    plan = await today_plan(db, emp.employee_id)
    if plan.request_id is None:
        message = "No approved transport for today"
    elif not plan.has_transport:
        message = "No vehicle assigned to your route yet"
    else:
        message = None
    return TodayTransport(
        has_transport=plan.has_transport,
        service_date=plan.service_date,
        request_id=plan.request_id,
        route=RouteRefRead.model_validate(plan.route) if plan.route else None,
        sub_route=SubRouteRefRead.model_validate(plan.sub_route) if plan.sub_route else None,
        vehicles=[
            TodayVehicle(
                vehicle_no=a.vehicle.vehicle_no,
                vehicle_registration_no=a.vehicle.registration_no or a.vehicle.vehicle_no,
                fleet_no=a.vehicle.fleet_no,
                driver_name=a.driver_name,
                driver_phone=a.driver_phone,
                instructions=a.instructions,
            )
            for a in plan.assignments
        ],
        message=message,
    )
