"""Tests for departments, routes, sub-routes, fleet and lookups."""

import pytest
from httpx import AsyncClient

from app.core.config import settings
from conftest import API


@pytest.mark.asyncio
async def test_department_crud(async_client: AsyncClient, world):
    admin = world.headers(world.admin)
    resp = await async_client.post(f"{API}/admin/departments", json={"name": "  Stores "}, headers=admin)
    assert resp.status_code == 201
    dep_id = resp.json()["id"]
    assert resp.json()["name"] == "Stores"

    dup = await async_client.post(f"{API}/admin/departments", json={"name": "Stores"}, headers=admin)
    assert dup.status_code == 409

    public = await async_client.get(f"{API}/public/departments")
    assert [d["name"] for d in public.json()] == ["Finance", "Operations", "Stores"]

    resp = await async_client.delete(f"{API}/admin/departments/{dep_id}", headers=admin)
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_duplicate_route_number(async_client: AsyncClient, world):
    resp = await async_client.post(
        f"{API}/admin/routes",
        json={"route_no": "1", "route_name": "Again"},
        headers=world.headers(world.admin),
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_routes_tree_numeric_order(async_client: AsyncClient, world):
    admin = world.headers(world.admin)
    await async_client.post(f"{API}/admin/routes", json={"route_no": "10", "route_name": "Negombo"}, headers=admin)

    resp = await async_client.get(f"{API}/lookup/routes-tree", headers=world.headers(world.hod))
    assert resp.status_code == 200
    tree = resp.json()
    assert [r["route_no"] for r in tree["routes"]] == ["1", "2", "10"]
    assert [s["sub_name"] for s in tree["sub_routes"]] == ["Panadura"]

    assert (await async_client.get(f"{API}/lookup/routes-tree")).status_code == 401


@pytest.mark.asyncio
async def test_sub_route_cap(async_client: AsyncClient, world):
    admin = world.headers(world.admin)
    limit = settings.MAX_SUB_ROUTES_PER_ROUTE
    names = [f"Stop {i:02d}" for i in range(limit)]

    resp = await async_client.post(
        f"{API}/admin/routes/{world.route1.id}/subroutes/bulk",
        json={"sub_names": names},
        headers=admin,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"ok": True, "inserted": limit, "total": limit}

    # Names already present are skipped, not counted
    again = await async_client.post(
        f"{API}/admin/routes/{world.route1.id}/subroutes/bulk",
        json={"sub_names": names[:3]},
        headers=admin,
    )
    assert again.json()["inserted"] == 0

    over = await async_client.post(
        f"{API}/admin/routes/{world.route1.id}/subroutes",
        json={"sub_name": "One too many"},
        headers=admin,
    )
    assert over.status_code == 400
    assert over.json()["detail"] == f"Max {limit} sub-routes per route"


@pytest.mark.asyncio
async def test_vehicle_with_route_coverage(async_client: AsyncClient, world):
    ta = world.headers(world.ta)
    resp = await async_client.post(
        f"{API}/ta/vehicles",
        json={
            "vehicle_no": "NB-1234",
            "vehicle_type": "VAN",
            "capacity": 12,
            "route_ids": [world.route2.id, world.route1.id, world.route1.id],
        },
        headers=ta,
    )
    assert resp.status_code == 201, resp.text
    vehicle = resp.json()
    assert vehicle["registration_no"] == "NB-1234"
    assert vehicle["route_ids"] == sorted([world.route1.id, world.route2.id])

    resp = await async_client.put(
        f"{API}/ta/vehicles/{vehicle['id']}",
        json={"vehicle_no": "NB-1234", "vehicle_type": "BUS", "capacity": 30, "route_ids": [world.route2.id]},
        headers=ta,
    )
    assert resp.json()["route_ids"] == [world.route2.id]
    assert resp.json()["capacity"] == 30

    bad = await async_client.post(
        f"{API}/ta/vehicles",
        json={"vehicle_no": "NB-9", "vehicle_type": "VAN", "capacity": 0},
        headers=ta,
    )
    assert bad.status_code == 422

    dup = await async_client.post(
        f"{API}/ta/vehicles",
        json={"vehicle_no": "NB-1234", "vehicle_type": "VAN", "capacity": 4},
        headers=ta,
    )
    assert dup.status_code == 409


@pytest.mark.asyncio
async def test_drivers(async_client: AsyncClient, world):
    ta = world.headers(world.ta)
    resp = await async_client.post(f"{API}/ta/drivers", json={"full_name": "Asanka"}, headers=ta)
    assert resp.status_code == 201
    listed = await async_client.get(f"{API}/ta/drivers", headers=ta)
    assert [d["full_name"] for d in listed.json()] == ["Asanka", "Sunil Perera"]


@pytest.mark.asyncio
async def test_hod_employee_management(async_client: AsyncClient, world):
    hod = world.headers(world.hod)
    resp = await async_client.post(
        f"{API}/hod/employees",
        json={
            "full_name": "Ruwani",
            "emp_no": "OPS-9",
            "default_route_id": world.route2.id,
            "default_sub_route_id": world.sub5.id,
            "email": "ruwani@test.local",
            "password": "secret123",
        },
        headers=hod,
    )
    assert resp.status_code == 201, resp.text
    employee = resp.json()["employee"]
    assert employee["department_id"] == world.department.id
    assert resp.json()["user_id"] is not None

    resp = await async_client.patch(
        f"{API}/hod/employees/{employee['id']}",
        json={"default_route_id": world.route1.id, "default_sub_route_id": None},
        headers=hod,
    )
    assert resp.status_code == 200
    assert resp.json()["default_route_id"] == world.route1.id
    assert resp.json()["default_sub_route_id"] is None

    other = await async_client.patch(
        f"{API}/hod/employees/{employee['id']}",
        json={"full_name": "Stolen"},
        headers=world.headers(world.other_hod),
    )
    assert other.status_code == 404


@pytest.mark.asyncio
async def test_health_reports_database(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/health")
    assert resp.status_code == 200
    assert resp.json()["db"] is True
