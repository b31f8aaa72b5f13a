"""
Transport request lifecycle.

The transition table is the single source of truth for which role may move
a request from which statuses to which status.  ``apply`` is pure: it
validates a transition and returns the new status together with the audit
entry describing it, leaving persistence to the caller so both land in one
database transaction.

    DRAFT ──submit──▶ SUBMITTED ──approve──▶ ADMIN_APPROVED ──ta submit──▶ TA_ASSIGNED ──final──▶ HR_FINAL_APPROVED
                          │                        │                          ▲
                          └──reject──▶ REJECTED    └─(overbook)─▶ TA_ASSIGNED_PENDING_HR
                                                                   │ hr approve ─┘
                                                                   └ hr reject ─▶ TA_FIX_REQUIRED
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from app.core.exceptions import ForbiddenError, InvalidStateError
from app.models.enums import RequestStatus, Role

S = RequestStatus

TERMINAL_STATUSES = frozenset({S.HR_FINAL_APPROVED, S.REJECTED})

# Edit windows: no transition, but only while the request sits in these
HOD_EDITABLE = frozenset({S.DRAFT, S.SUBMITTED})
TA_EDITABLE = frozenset({S.ADMIN_APPROVED, S.TA_FIX_REQUIRED, S.TA_ASSIGNED_PENDING_HR})

# Statuses in which the TA (and HR, read-only) may look at groups/assignments
TA_VISIBLE = frozenset(
    {
        S.ADMIN_APPROVED,
        S.TA_FIX_REQUIRED,
        S.TA_ASSIGNED,
        S.TA_ASSIGNED_PENDING_HR,
        S.HR_FINAL_APPROVED,
    }
)

# A daily master in one of these has been picked up downstream
DOWNSTREAM_STATUSES = frozenset(
    {S.TA_ASSIGNED_PENDING_HR, S.TA_ASSIGNED, S.TA_FIX_REQUIRED, S.HR_FINAL_APPROVED}
)


class Event(str, enum.Enum):
    HOD_SUBMIT = "HOD_SUBMIT"
    ADMIN_APPROVE = "ADMIN_APPROVE"
    ADMIN_REJECT = "ADMIN_REJECT"
    LOCK_RUN = "LOCK_RUN"
    TA_SUBMIT = "TA_SUBMIT"
    TA_SUBMIT_OVERBOOK = "TA_SUBMIT_OVERBOOK"
    HR_OVERBOOK_APPROVE = "HR_OVERBOOK_APPROVE"
    HR_OVERBOOK_REJECT = "HR_OVERBOOK_REJECT"
    HR_FINAL_APPROVE = "HR_FINAL_APPROVE"


@dataclass(frozen=True)
class Transition:
    role: Role
    sources: frozenset[RequestStatus]
    target: RequestStatus
    action: str  # audit tag
    verb: str  # used in error messages


TRANSITIONS: dict[Event, Transition] = {
    Event.HOD_SUBMIT: Transition(Role.HOD, HOD_EDITABLE, S.SUBMITTED, "SUBMIT", "submit"),
    Event.ADMIN_APPROVE: Transition(
        Role.ADMIN, frozenset({S.SUBMITTED}), S.ADMIN_APPROVED, "ADMIN_APPROVE", "approve"
    ),
    Event.ADMIN_REJECT: Transition(
        Role.ADMIN, frozenset({S.SUBMITTED}), S.REJECTED, "ADMIN_REJECT", "reject"
    ),
    Event.LOCK_RUN: Transition(
        Role.ADMIN,
        frozenset({S.DRAFT, S.LOCKED, S.SUBMITTED, S.ADMIN_APPROVED}),
        S.ADMIN_APPROVED,
        "ADMIN_LOCK_RUN",
        "lock the daily run for",
    ),
    Event.TA_SUBMIT: Transition(
        Role.TA,
        frozenset({S.ADMIN_APPROVED, S.TA_FIX_REQUIRED, S.TA_ASSIGNED}),
        S.TA_ASSIGNED,
        "TA_SUBMIT",
        "submit assignments for",
    ),
    Event.TA_SUBMIT_OVERBOOK: Transition(
        Role.TA,
        frozenset({S.ADMIN_APPROVED, S.TA_FIX_REQUIRED, S.TA_ASSIGNED}),
        S.TA_ASSIGNED_PENDING_HR,
        "TA_SUBMIT",
        "submit assignments for",
    ),
    Event.HR_OVERBOOK_APPROVE: Transition(
        Role.HR,
        frozenset({S.TA_ASSIGNED_PENDING_HR}),
        S.TA_ASSIGNED,
        "HR_OVERBOOK_APPROVE",
        "approve the overbook of",
    ),
    Event.HR_OVERBOOK_REJECT: Transition(
        Role.HR,
        frozenset({S.TA_ASSIGNED_PENDING_HR}),
        S.TA_FIX_REQUIRED,
        "HR_OVERBOOK_REJECT",
        "reject the overbook of",
    ),
    Event.HR_FINAL_APPROVE: Transition(
        Role.HR,
        frozenset({S.TA_ASSIGNED}),
        S.HR_FINAL_APPROVED,
        "HR_FINAL_APPROVE",
        "final-approve",
    ),
}


@dataclass(frozen=True)
class Actor:
    """Authenticated identity as seen by the workflow core."""

    user_id: int
    role: Role
    department_id: int | None = None
    employee_id: int | None = None


@dataclass(frozen=True)
class AuditEntry:
    request_id: int
    action_by_user_id: int
    action: str
    comment: str | None = None


def check(current: RequestStatus, event: Event, actor: Actor) -> Transition:
    """Validate ``event`` for ``actor`` against ``current`` and return its row."""
    transition = TRANSITIONS[event]
    if actor.role != transition.role:
        raise ForbiddenError(f"{transition.role.value} role required to {transition.verb} a request")
    if current not in transition.sources:
        raise InvalidStateError(transition.verb, current, transition.sources)
    return transition


def apply(
    request_id: int,
    current: RequestStatus,
    event: Event,
    actor: Actor,
    comment: str | None = None,
) -> tuple[RequestStatus, AuditEntry]:
    transition = check(current, event, actor)
    entry = AuditEntry(
        request_id=request_id,
        action_by_user_id=actor.user_id,
        action=transition.action,
        comment=comment,
    )
    return transition.target, entry


def ensure_editable(current: RequestStatus, role: Role) -> None:
    """Raise unless ``role`` may still edit a request in ``current``."""
    if role == Role.HOD:
        window, verb = HOD_EDITABLE, "edit employees of"
    elif role == Role.TA:
        window, verb = TA_EDITABLE, "save assignments for"
    else:
        raise ForbiddenError(f"{role.value} role cannot edit requests")
    if current not in window:
        raise InvalidStateError(verb, current, window)


def reachable(current: RequestStatus) -> frozenset[RequestStatus]:
    """Statuses one transition away from ``current``."""
    return frozenset(t.target for t in TRANSITIONS.values() if current in t.sources)
