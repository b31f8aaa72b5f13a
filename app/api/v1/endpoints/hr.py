"""
HR endpoints: the overbook gate and final approval.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import actor_from_user, get_db, require_hr
from app.api.v1.views import assignment_reads, request_reads
from app.models.enums import RequestStatus
from app.models.transport_request import TransportRequest
from app.models.user import User
from app.schemas.transport import (AssignmentRead, DecisionIn, RequestRead,
                                   StatusResponse)
from app.services.assignments import decide_overbook
from app.services.requests import final_approve, load_request

router = APIRouter(prefix="/hr", tags=["hr"])

_AWAITING_HR = (RequestStatus.TA_ASSIGNED_PENDING_HR, RequestStatus.TA_ASSIGNED)


@router.get("/requests", response_model=list[RequestRead])
async def awaiting_hr(
    db: AsyncSession = Depends(get_db),
    _hr: User = Depends(require_hr),
) -> list[RequestRead]:
    query = (
        select(TransportRequest)
        .where(TransportRequest.status.in_(_AWAITING_HR))
        .order_by(TransportRequest.request_date.desc(), TransportRequest.created_at.desc())
        .limit(100)
    )
    return await request_reads(db, query)


@router.get("/requests/{request_id}/assignments", response_model=list[AssignmentRead])
async def request_assignments(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    _hr: User = Depends(require_hr),
) -> list[AssignmentRead]:
    request = await load_request(db, request_id)
    return await assignment_reads(db, request.id)


@router.post("/requests/{request_id}/overbook/approve", response_model=StatusResponse)
async def approve_overbook(
    request_id: int,
    body: DecisionIn | None = None,
    db: AsyncSession = Depends(get_db),
    hr: User = Depends(require_hr),
) -> StatusResponse:
    request = await decide_overbook(
        db, request_id, actor_from_user(hr), True, body.comment if body else None
    )
    await db.commit()
    return StatusResponse(id=request.id, status=request.status)


@router.post("/requests/{request_id}/overbook/reject", response_model=StatusResponse)
async def reject_overbook(
    request_id: int,
    body: DecisionIn | None = None,
    db: AsyncSession = Depends(get_db),
    hr: User = Depends(require_hr),
) -> StatusResponse:
    """Send the request back to the TA to fix its assignments."""
    request = await decide_overbook(
        db, request_id, actor_from_user(hr), False, body.comment if body else None
    )
    await db.commit()
    return StatusResponse(id=request.id, status=request.status)


@router.post("/requests/{request_id}/final-approve", response_model=StatusResponse)
async def final_approval(
    request_id: int,
    body: DecisionIn | None = None,
    db: AsyncSession = Depends(get_db),
    hr: User = Depends(require_hr),
) -> StatusResponse:
    request = await final_approve(
        db, request_id, actor_from_user(hr), body.comment if body else None
    )
    await db.commit()
    return StatusResponse(id=request.id, status=request.status)
