"""
Persistence side of the request lifecycle.

``commit_transition`` writes the new status with a conditional UPDATE
(``WHERE id = ? AND status = <current>``) and adds the audit row in the same
session, so a concurrent writer that already moved the request makes this
one fail instead of silently overwriting it.  Callers commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationFailed
from app.models.enums import Role
from app.models.transport_request import ApprovalsAudit, TransportRequest
from app.services import state_machine
from app.services.state_machine import Actor, Event

logger = logging.getLogger(__name__)


async def load_request(
    db: AsyncSession,
    request_id: int,
    *,
    actor: Actor | None = None,
    for_update: bool = False,
) -> TransportRequest:
    """Fetch a request, scoped to the HOD's department when ``actor`` is a HOD.

    Out-of-scope requests are reported exactly like missing ones.
    """
    query = select(TransportRequest).where(TransportRequest.id == request_id)
    if actor is not None and actor.role == Role.HOD:
        query = query.where(
            TransportRequest.department_id == actor.department_id,
            TransportRequest.is_daily_master.is_(False),
        )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found")
    return request


async def commit_transition(
    db: AsyncSession,
    request: TransportRequest,
    event: Event,
    actor: Actor,
    comment: str | None = None,
) -> TransportRequest:
    current = request.status
    new_status, entry = state_machine.apply(request.id, current, event, actor, comment)

    result = await db.execute(
        update(TransportRequest)
        .where(TransportRequest.id == request.id, TransportRequest.status == current)
        .values(status=new_status, updated_at=datetime.now(timezone.utc))
    )
    if result.rowcount != 1:
        # Someone else moved the request between our read and this write
        raise InvalidStateError(
            state_machine.TRANSITIONS[event].verb, "<changed concurrently>", [current]
        )

    db.add(
        ApprovalsAudit(
            request_id=entry.request_id,
            action_by_user_id=entry.action_by_user_id,
            action=entry.action,
            comment=entry.comment,
        )
    )
    logger.info(
        "Request %d: %s -> %s (%s by user %d)",
        request.id,
        current.value,
        new_status.value,
        entry.action,
        actor.user_id,
    )
    return request


async def review_request(
    db: AsyncSession,
    request_id: int,
    actor: Actor,
    approve: bool,
    comment: str | None = None,
) -> TransportRequest:
    """Admin decision on a single department request."""
    request = await load_request(db, request_id, for_update=True)
    if request.is_daily_master:
        raise ValidationFailed("Daily master requests are approved by locking the run")
    event = Event.ADMIN_APPROVE if approve else Event.ADMIN_REJECT
    return await commit_transition(db, request, event, actor, comment)


async def final_approve(
    db: AsyncSession, request_id: int, actor: Actor, comment: str | None = None
) -> TransportRequest:
    request = await load_request(db, request_id, for_update=True)
    return await commit_transition(db, request, Event.HR_FINAL_APPROVE, actor, comment)
