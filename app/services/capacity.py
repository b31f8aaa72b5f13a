"""
Capacity validation for TA vehicle assignments.

A group passes when the seats of every vehicle assigned to exactly that
(route, sub-route) key, plus their overbook seats, cover its headcount.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from app.core.exceptions import CapacityViolation, ValidationFailed
from app.services.grouping import Group, GroupKey

OVERBOOK_MAX = 2


@dataclass(frozen=True)
class Seat:
    """Seats one assignment row contributes to its group."""

    route_id: int | None
    sub_route_id: int | None
    capacity: int
    overbook_amount: int = 0

    @property
    def key(self) -> GroupKey:
        return (self.route_id, self.sub_route_id)

    @property
    def total(self) -> int:
        return self.capacity + self.overbook_amount


@dataclass(frozen=True)
class CapacityCheck:
    key: GroupKey
    required: int
    available: int
    overbook: int

    @property
    def passed(self) -> bool:
        return self.available >= self.required


def normalise_overbook(amount: int | None, reason: str | None) -> tuple[int, str | None]:
    """Validate an overbook on save; the reason is dropped when nothing is overbooked."""
    amount = amount or 0
    if amount < 0 or amount > OVERBOOK_MAX:
        raise ValidationFailed(f"overbook_amount must be between 0 and {OVERBOOK_MAX}")
    if amount == 0:
        return 0, None
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A reason is required for an overbook (+1/+2)")
    return amount, reason


def validate_capacity(group: Group, seats: Iterable[Seat]) -> CapacityCheck:
    mine = [s for s in seats if s.key == group.key]
    return CapacityCheck(
        key=group.key,
        required=group.headcount,
        available=sum(s.total for s in mine),
        overbook=sum(s.overbook_amount for s in mine),
    )


def ensure_capacity(groups: Iterable[Group], seats: Iterable[Seat]) -> list[CapacityCheck]:
    """Check every group; raise ``CapacityViolation`` for the first short one."""
    seats = list(seats)
    checks = []
    for group in groups:
        result = validate_capacity(group, seats)
        if not result.passed:
            raise CapacityViolation(
                required=result.required,
                available=result.available,
                route_id=group.route_id,
                sub_route_id=group.sub_route_id,
            )
        checks.append(result)
    return checks
