"""
Report endpoints.

Route-wise and vehicle reports are JSON; the department roster is a CSV
download.  Each report exists per request id and per daily-run date (the
day's master request).  Only HR_FINAL_APPROVED requests are reportable.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_report_reader, require_role
from app.models.enums import Role
from app.models.user import User
from app.schemas.transport import (RosterLineRead, RouteSectionRead,
                                   RouteWiseReport, VehicleLineRead,
                                   VehicleManifestRead, VehicleReport)
from app.services import reports

router = APIRouter(prefix="/reports", tags=["reports"])
logger = logging.getLogger(__name__)

require_roster_reader = require_role(Role.ADMIN, Role.HR)


# ── Builders ────────────────────────────────────────────────────────
async def _route_wise_report(db: AsyncSession, request_id: int) -> RouteWiseReport:
    request = await reports.ensure_final_approved(db, request_id)
    sections = await reports.route_wise(db, request)
    return RouteWiseReport(
        request_id=request.id,
        request_date=request.request_date,
        total_employees=sum(s.headcount for s in sections),
        sections=[
            RouteSectionRead(
                route_id=s.route_id,
                route_no=s.route_no,
                route_name=s.route_name,
                sub_route_id=s.sub_route_id,
                sub_name=s.sub_name,
                headcount=s.headcount,
                employees=[RosterLineRead.model_validate(e) for e in s.employees],
                vehicles=[VehicleLineRead.model_validate(v) for v in s.vehicles],
            )
            for s in sections
        ],
    )


async def _vehicle_report(db: AsyncSession, request_id: int) -> VehicleReport:
    request = await reports.ensure_final_approved(db, request_id)
    manifests = await reports.vehicle_manifest(db, request)
    return VehicleReport(
        request_id=request.id,
        request_date=request.request_date,
        vehicles=[
            VehicleManifestRead(
                vehicle=VehicleLineRead.model_validate(m.vehicle),
                route_id=m.route_id,
                route_no=m.route_no,
                route_name=m.route_name,
                sub_route_id=m.sub_route_id,
                sub_name=m.sub_name,
                group_headcount=m.group_headcount,
                employees=[RosterLineRead.model_validate(e) for e in m.employees],
            )
            for m in manifests
        ],
    )


# ── By request ──────────────────────────────────────────────────────
@router.get("/route-wise", response_model=RouteWiseReport)
async def route_wise_by_request(
    request_id: int = Query(..., gt=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_report_reader),
) -> RouteWiseReport:
    return await _route_wise_report(db, request_id)


@router.get("/vehicle", response_model=VehicleReport)
async def vehicle_by_request(
    request_id: int = Query(..., gt=0),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_report_reader),
) -> VehicleReport:
    return await _vehicle_report(db, request_id)


@router.get("/department-csv")
async def department_csv_by_request(
    request_id: int = Query(..., gt=0),
    department_id: int | None = Query(default=None, gt=0),
    off_time: str | None = Query(default=None, max_length=20),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_roster_reader),
) -> StreamingResponse:
    rosters = await reports.department_roster(db, request_id, department_id)
    return _csv_response(
        reports.department_roster_csv(rosters, off_time), f"department_roster_{request_id}.csv"
    )


# ── By daily-run date ──────────────────────────────────────────────
@router.get("/daily/route-wise", response_model=RouteWiseReport)
async def route_wise_by_date(
    run_date: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_report_reader),
) -> RouteWiseReport:
    return await _route_wise_report(db, await reports.master_request_id(db, run_date))


@router.get("/daily/vehicle", response_model=VehicleReport)
async def vehicle_by_date(
    run_date: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_report_reader),
) -> VehicleReport:
    return await _vehicle_report(db, await reports.master_request_id(db, run_date))


@router.get("/daily/department-csv")
async def department_csv_by_date(
    run_date: date = Query(..., alias="date"),
    department_id: int | None = Query(default=None, gt=0),
    off_time: str | None = Query(default=None, max_length=20),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_roster_reader),
) -> StreamingResponse:
    """Export the day's master roster by department as a CSV file download."""
    request_id = await reports.master_request_id(db, run_date)
    rosters = await reports.department_roster(db, request_id, department_id)
    return _csv_response(
        reports.department_roster_csv(rosters, off_time), f"department_roster_{run_date}.csv"
    )


def _csv_response(body: str, filename: str) -> StreamingResponse:
    logger.info("CSV export %s", filename)
    return StreamingResponse(
        iter([body]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
