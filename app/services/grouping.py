"""
Grouping engine: partitions a request's roster by (route, sub-route).

Both legs of the key are nullable.  Keys are plain ``(route_id,
sub_route_id)`` tuples of optionals, so ``None == None`` groups the
"no route assigned" employees together without relying on SQL's
``IS NOT DISTINCT FROM``.  Output order is a contract for the TA screens and
the reports: route number ascending, then sub-route name ascending, missing
values last.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.employee import Employee
from app.models.route import Route, SubRoute
from app.models.transport_request import RequestEmployee

GroupKey = tuple[Optional[int], Optional[int]]


@dataclass(frozen=True)
class RosterEntry:
    employee_id: int
    route_id: int | None
    sub_route_id: int | None
    route_no: str | None = None
    route_name: str | None = None
    sub_name: str | None = None

    @property
    def key(self) -> GroupKey:
        return (self.route_id, self.sub_route_id)


@dataclass
class Group:
    route_id: int | None
    sub_route_id: int | None
    route_no: str | None = None
    route_name: str | None = None
    sub_name: str | None = None
    employee_ids: list[int] = field(default_factory=list)

    @property
    def key(self) -> GroupKey:
        return (self.route_id, self.sub_route_id)

    @property
    def headcount(self) -> int:
        return len(self.employee_ids)


def effective_key(
    override_route_id: int | None,
    override_sub_route_id: int | None,
    default_route_id: int | None,
    default_sub_route_id: int | None,
    default_sub_route_parent_id: int | None = None,
) -> GroupKey:
    """Resolve the (route, sub-route) pair a roster row travels on.

    Without a route override the row rides the employee's default route,
    with its sub-route override or default.  With a route override the pair
    is taken as a unit: the default sub-route only carries over when it
    hangs off the overriding route (``default_sub_route_parent_id``).
    """
    if override_route_id is None:
        sub_route_id = (
            override_sub_route_id if override_sub_route_id is not None else default_sub_route_id
        )
        return (default_route_id, sub_route_id)
    if override_sub_route_id is not None:
        return (override_route_id, override_sub_route_id)
    if default_sub_route_id is not None and default_sub_route_parent_id == override_route_id:
        return (override_route_id, default_sub_route_id)
    return (override_route_id, None)


def route_no_sort_key(route_no: str | None) -> tuple:
    if route_no is None:
        return (1, 0, 0, "")
    stripped = route_no.strip()
    if stripped.isdigit():
        return (0, 0, int(stripped), stripped)
    return (0, 1, 0, stripped.casefold())


def group_sort_key(group: Group) -> tuple:
    sub = group.sub_name
    return (
        route_no_sort_key(group.route_no),
        (sub is None, (sub or "").casefold()),
        # ids keep the order total when names collide or are missing
        (group.route_id is None, group.route_id or 0),
        (group.sub_route_id is None, group.sub_route_id or 0),
    )


def group_roster(entries: Iterable[RosterEntry]) -> list[Group]:
    groups: dict[GroupKey, Group] = {}
    for entry in entries:
        group = groups.get(entry.key)
        if group is None:
            group = groups[entry.key] = Group(
                route_id=entry.route_id,
                sub_route_id=entry.sub_route_id,
                route_no=entry.route_no,
                route_name=entry.route_name,
                sub_name=entry.sub_name,
            )
        group.employee_ids.append(entry.employee_id)
    return sorted(groups.values(), key=group_sort_key)


async def load_roster(db: AsyncSession, request_id: int) -> list[RosterEntry]:
    """Roster rows of a request with effective route/sub-route resolved."""
    default_sub = aliased(SubRoute)
    result = await db.execute(
        select(
            RequestEmployee.employee_id,
            RequestEmployee.effective_route_id,
            RequestEmployee.effective_sub_route_id,
            Employee.default_route_id,
            Employee.default_sub_route_id,
            default_sub.route_id,
        )
        .join(Employee, Employee.id == RequestEmployee.employee_id)
        .outerjoin(default_sub, default_sub.id == Employee.default_sub_route_id)
        .where(RequestEmployee.request_id == request_id)
        .order_by(RequestEmployee.id)
    )
    keyed = [
        (employee_id, effective_key(route_id, sub_id, default_route, default_sub_id, parent_id))
        for employee_id, route_id, sub_id, default_route, default_sub_id, parent_id in result.all()
    ]

    route_ids = {key[0] for _, key in keyed if key[0] is not None}
    sub_ids = {key[1] for _, key in keyed if key[1] is not None}
    routes: dict[int, Route] = {}
    subs: dict[int, SubRoute] = {}
    if route_ids:
        rows = await db.execute(select(Route).where(Route.id.in_(route_ids)))
        routes = {r.id: r for r in rows.scalars().all()}
    if sub_ids:
        rows = await db.execute(select(SubRoute).where(SubRoute.id.in_(sub_ids)))
        subs = {s.id: s for s in rows.scalars().all()}

    entries = []
    for employee_id, (route_id, sub_id) in keyed:
        route = routes.get(route_id) if route_id is not None else None
        sub = subs.get(sub_id) if sub_id is not None else None
        entries.append(
            RosterEntry(
                employee_id=employee_id,
                route_id=route_id,
                sub_route_id=sub_id,
                route_no=route.route_no if route else None,
                route_name=route.route_name if route else None,
                sub_name=sub.sub_name if sub else None,
            )
        )
    return entries


async def compute_groups(db: AsyncSession, request_id: int) -> list[Group]:
    return group_roster(await load_roster(db, request_id))
