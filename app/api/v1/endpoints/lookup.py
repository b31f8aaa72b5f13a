"""
Lookup endpoints: department list for the registration form, the
routes tree for dropdowns, and the health check.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db
from app.core.config import settings
from app.models.department import Department
from app.models.route import Route, SubRoute
from app.models.user import User
from app.schemas.masterdata import (DepartmentRead, HealthResponse, RouteRead,
                                    RoutesTree, SubRouteRead)
from app.services.grouping import route_no_sort_key

router = APIRouter(tags=["lookup"])
logger = logging.getLogger(__name__)


# ── Public ──────────────────────────────────────────────────────────
@router.get("/public/departments", response_model=list[DepartmentRead])
async def public_departments(db: AsyncSession = Depends(get_db)) -> list[Department]:
    result = await db.execute(select(Department).order_by(Department.name))
    return list(result.scalars().all())


# ── Authenticated ──────────────────────────────────────────────────
@router.get("/lookup/routes-tree", response_model=RoutesTree)
async def routes_tree(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> RoutesTree:
    """Routes ordered numerically by route number, sub-routes by name."""
    routes = (await db.execute(select(Route))).scalars().all()
    subs = (
        await db.execute(select(SubRoute).order_by(SubRoute.route_id, SubRoute.sub_name))
    ).scalars().all()
    ordered = sorted(routes, key=lambda r: (route_no_sort_key(r.route_no), r.route_name))
    return RoutesTree(
        routes=[RouteRead.model_validate(r) for r in ordered],
        sub_routes=[SubRouteRead.model_validate(s) for s in subs],
    )


# ── Health ──────────────────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check: DB and Redis connectivity."""
    result = HealthResponse(db=False, redis=False)

    try:
        await db.execute(text("SELECT 1"))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)

    try:
        import redis.asyncio as aioredis

        r = aioredis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        result.redis = True
    except Exception as e:
        logger.error("Health check Redis failure: %s", e)

    return result
