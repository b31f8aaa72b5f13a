"""
Shuttle: application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `services/` package; `api/`, `models/` and `core/` wire it up.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.limiter import limiter
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from app.models.department import Department  # noqa: F401
from app.models.employee import Employee  # noqa: F401
from app.models.enums import Role, UserStatus
from app.models.password_reset import PasswordResetRequest  # noqa: F401
from app.models.route import Route, SubRoute  # noqa: F401
from app.models.transport_request import (ApprovalsAudit,  # noqa: F401
                                          RequestAssignment, RequestEmployee,
                                          TransportRequest)
from app.models.user import User
from app.models.vehicle import Driver, Vehicle, VehicleRoute  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_first_admin(session: AsyncSession) -> bool:
    """Create the configured ADMIN account unless that email already exists."""
    existing = await session.scalar(select(User.id).where(User.email == settings.FIRST_ADMIN_EMAIL))
    if existing is not None:
        return False
    session.add(
        User(
            email=settings.FIRST_ADMIN_EMAIL,
            hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            full_name="System Administrator",
            role=Role.ADMIN,
            status=UserStatus.ACTIVE,
        )
    )
    await session.commit()
    logger.info("First admin seeded: %s", settings.FIRST_ADMIN_EMAIL)
    return True


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready (%d tables)", len(Base.metadata.tables))

    async with async_session_factory() as session:
        await seed_first_admin(session)

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Department shuttle transport requests",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
