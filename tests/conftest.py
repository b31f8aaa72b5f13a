"""
Shared test fixtures for the shuttle transport test suite.

Async throughout (aiosqlite + AsyncSession).  Each test gets freshly created
tables and a small seeded world: one department with its HOD, the four
privileged roles, two routes and a fleet.
"""

import os
import sys
from dataclasses import dataclass
from datetime import date, timedelta
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.main import app
from app.models.department import Department
from app.models.employee import Employee
from app.models.enums import Role, UserStatus, VehicleType
from app.models.route import Route, SubRoute
from app.models.user import User
from app.models.vehicle import Driver, Vehicle

API = "/api/v1"

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Seed helpers ────────────────────────────────────────────────────
def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


async def make_user(
    db: AsyncSession,
    role: Role,
    email: str,
    password: str = "secret123",
    department_id: int | None = None,
    employee_id: int | None = None,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        full_name=email.split("@")[0],
        role=role,
        status=status,
        department_id=department_id,
        employee_id=employee_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_employee(
    db: AsyncSession,
    department_id: int,
    full_name: str,
    emp_no: str,
    route_id: int | None = None,
    sub_route_id: int | None = None,
) -> Employee:
    employee = Employee(
        full_name=full_name,
        emp_no=emp_no,
        department_id=department_id,
        default_route_id=route_id,
        default_sub_route_id=sub_route_id,
        is_active=True,
    )
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    return employee


@dataclass
class World:
    department: Department
    other_department: Department
    admin: User
    hod: User
    other_hod: User
    ta: User
    hr: User
    route1: Route
    route2: Route
    sub5: SubRoute
    van: Vehicle
    bus: Vehicle
    coach: Vehicle
    driver: Driver
    run_date: date

    def headers(self, user: User) -> dict[str, str]:
        return auth_headers(user)


@pytest.fixture
async def world(db_session: AsyncSession) -> World:
    """Departments, one user per role, routes 1 and 2 (sub-route on 2), fleet."""
    ops = Department(name="Operations")
    fin = Department(name="Finance")
    route1 = Route(route_no="1", route_name="Colombo - Kandy")
    route2 = Route(route_no="2", route_name="Colombo - Galle")
    db_session.add_all([ops, fin, route1, route2])
    await db_session.commit()

    sub5 = SubRoute(route_id=route2.id, sub_name="Panadura")
    van = Vehicle(vehicle_no="VAN-4", vehicle_type=VehicleType.VAN, capacity=4)
    bus = Vehicle(vehicle_no="BUS-5", vehicle_type=VehicleType.BUS, capacity=5)
    coach = Vehicle(vehicle_no="BUS-10", vehicle_type=VehicleType.BUS, capacity=10)
    driver = Driver(full_name="Sunil Perera", phone="0771234567")
    db_session.add_all([sub5, van, bus, coach, driver])
    await db_session.commit()

    return World(
        department=ops,
        other_department=fin,
        admin=await make_user(db_session, Role.ADMIN, "admin@test.local"),
        hod=await make_user(db_session, Role.HOD, "hod@test.local", department_id=ops.id),
        other_hod=await make_user(db_session, Role.HOD, "hod2@test.local", department_id=fin.id),
        ta=await make_user(db_session, Role.TA, "ta@test.local"),
        hr=await make_user(db_session, Role.HR, "hr@test.local"),
        route1=route1,
        route2=route2,
        sub5=sub5,
        van=van,
        bus=bus,
        coach=coach,
        driver=driver,
        run_date=date.today() + timedelta(days=1),
    )


# ── Flow helpers ────────────────────────────────────────────────────
async def create_request(
    client: AsyncClient, hod: User, employee_ids: list[int], request_date: date
) -> int:
    resp = await client.post(
        f"{API}/hod/requests",
        json={
            "request_date": request_date.isoformat(),
            "request_time": "17:30:00",
            "employee_ids": employee_ids,
        },
        headers=auth_headers(hod),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["request"]["id"]


async def submitted_request(
    client: AsyncClient, hod: User, employee_ids: list[int], request_date: date
) -> int:
    request_id = await create_request(client, hod, employee_ids, request_date)
    resp = await client.post(f"{API}/hod/requests/{request_id}/submit", headers=auth_headers(hod))
    assert resp.status_code == 200, resp.text
    return request_id


async def approved_request(
    client: AsyncClient, world: World, employee_ids: list[int]
) -> int:
    request_id = await submitted_request(client, world.hod, employee_ids, world.run_date)
    resp = await client.post(
        f"{API}/admin/requests/{request_id}/approve", headers=auth_headers(world.admin)
    )
    assert resp.status_code == 200, resp.text
    return request_id


async def save_assignment(
    client: AsyncClient,
    world: World,
    request_id: int,
    route_id: int,
    sub_route_id: int | None,
    assignments: list[dict],
):
    return await client.post(
        f"{API}/ta/requests/{request_id}/assignments",
        json={"route_id": route_id, "sub_route_id": sub_route_id, "assignments": assignments},
        headers=auth_headers(world.ta),
    )
