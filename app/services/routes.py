"""Route / sub-route lookups shared by the HOD, TA and admin endpoints."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationFailed
from app.models.route import Route, SubRoute


async def get_route(db: AsyncSession, route_id: int) -> Route:
    route = await db.get(Route, route_id)
    if route is None:
        raise NotFoundError("Route not found")
    return route


async def ensure_route_pair(
    db: AsyncSession, route_id: int | None, sub_route_id: int | None
) -> None:
    """Both ids must exist and the sub-route must hang off the route."""
    if route_id is not None:
        await get_route(db, route_id)
    if sub_route_id is None:
        return
    sub = await db.get(SubRoute, sub_route_id)
    if sub is None:
        raise NotFoundError("Sub-route not found")
    if route_id is not None and sub.route_id != route_id:
        raise ValidationFailed(f"Sub-route {sub_route_id} does not belong to route {route_id}")


async def count_sub_routes(db: AsyncSession, route_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(SubRoute).where(SubRoute.route_id == route_id)
    )
    return int(result.scalar_one())


async def ensure_sub_route_room(db: AsyncSession, route_id: int, adding: int) -> int:
    """Raise when ``adding`` more sub-routes would exceed the per-route cap."""
    existing = await count_sub_routes(db, route_id)
    limit = settings.MAX_SUB_ROUTES_PER_ROUTE
    if existing + adding > limit:
        raise ValidationFailed(f"Max {limit} sub-routes per route")
    return existing
