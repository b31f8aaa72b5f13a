"""End-to-end tests for a department request: HOD, Admin, TA and HR."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.transport_request import ApprovalsAudit
from conftest import (API, approved_request, create_request, make_employee,
                      save_assignment, submitted_request)


async def _ten_on_route_one(db, world):
    employees = [
        await make_employee(db, world.department.id, f"Worker {i:02d}", f"W-{i:02d}", world.route1.id)
        for i in range(10)
    ]
    return [e.id for e in employees]


async def _submit(client, world, request_id):
    return await client.post(f"{API}/ta/requests/{request_id}/submit", headers=world.headers(world.ta))


# ── HOD ─────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_create_request_copies_defaults(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1", world.route2.id, world.sub5.id)
    request_id = await create_request(async_client, world.hod, [emp.id, emp.id], world.run_date)

    resp = await async_client.get(f"{API}/hod/requests/{request_id}", headers=world.headers(world.hod))
    assert resp.status_code == 200
    data = resp.json()
    assert data["request"]["status"] == "DRAFT"
    assert data["request"]["department_name"] == "Operations"
    assert data["employees"] == [
        {
            "employee_id": emp.id,
            "emp_no": "K-1",
            "full_name": "Kamal",
            "effective_route_id": world.route2.id,
            "effective_sub_route_id": world.sub5.id,
        }
    ]


@pytest.mark.asyncio
async def test_foreign_employee_rejected(async_client: AsyncClient, world, db_session: AsyncSession):
    outsider = await make_employee(db_session, world.other_department.id, "Nimal", "N-1")
    resp = await async_client.post(
        f"{API}/hod/requests",
        json={
            "request_date": world.run_date.isoformat(),
            "request_time": "17:30:00",
            "employee_ids": [outsider.id],
        },
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 400
    assert "not found in your department" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_other_department_request_is_not_found(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1")
    request_id = await create_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.get(f"{API}/hod/requests/{request_id}", headers=world.headers(world.other_hod))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_roster_edit_and_persist(async_client: AsyncClient, world, db_session: AsyncSession):
    keep = await make_employee(db_session, world.department.id, "Keep", "K-1", world.route1.id)
    drop = await make_employee(db_session, world.department.id, "Drop", "D-1", world.route1.id)
    request_id = await create_request(async_client, world.hod, [keep.id, drop.id], world.run_date)

    resp = await async_client.patch(
        f"{API}/hod/requests/{request_id}/employees",
        json={
            "changes": [
                {"employee_id": drop.id, "remove": True},
                {
                    "employee_id": keep.id,
                    "effective_route_id": world.route2.id,
                    "effective_sub_route_id": world.sub5.id,
                    "persist_to_employee": True,
                },
            ]
        },
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 200, resp.text
    employees = resp.json()["employees"]
    assert [e["employee_id"] for e in employees] == [keep.id]
    assert employees[0]["effective_sub_route_id"] == world.sub5.id

    listed = await async_client.get(f"{API}/hod/employees", headers=world.headers(world.hod))
    kept = next(e for e in listed.json() if e["id"] == keep.id)
    assert kept["default_route_id"] == world.route2.id
    assert kept["default_sub_route_id"] == world.sub5.id


@pytest.mark.asyncio
async def test_sub_route_must_belong_to_route(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1", world.route1.id)
    request_id = await create_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.patch(
        f"{API}/hod/requests/{request_id}/employees",
        json={"changes": [{"employee_id": emp.id, "effective_sub_route_id": world.sub5.id}]},
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 400

@pytest.mark.asyncio
async def test_route_override_drops_default_sub_route_of_other_route(
    async_client: AsyncClient, world, db_session: AsyncSession
):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1", world.route2.id, world.sub5.id)
    request_id = await create_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.patch(
        f"{API}/hod/requests/{request_id}/employees",
        json={
            "changes": [
                {"employee_id": emp.id, "effective_route_id": world.route1.id, "effective_sub_route_id": None}
            ]
        },
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 200, resp.text
    await async_client.post(f"{API}/hod/requests/{request_id}/submit", headers=world.headers(world.hod))
    await async_client.post(f"{API}/admin/requests/{request_id}/approve", headers=world.headers(world.admin))

    groups = await async_client.get(f"{API}/ta/requests/{request_id}/groups", headers=world.headers(world.ta))
    assert [(g["route_id"], g["sub_route_id"]) for g in groups.json()] == [(world.route1.id, None)]

    resp = await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [{"vehicle_id": world.van.id, "driver_id": world.driver.id}],
    )
    assert resp.status_code == 200, resp.text
    resp = await _submit(async_client, world, request_id)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "TA_ASSIGNED"


@pytest.mark.asyncio
async def test_sub_route_override_checked_against_default_route(
    async_client: AsyncClient, world, db_session: AsyncSession
):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1", world.route1.id)
    request_id = await create_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.patch(
        f"{API}/hod/requests/{request_id}/employees",
        json={
            "changes": [
                {"employee_id": emp.id, "effective_route_id": None, "effective_sub_route_id": world.sub5.id}
            ]
        },
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 400



@pytest.mark.asyncio
async def test_hod_cannot_edit_after_approval(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1", world.route1.id)
    request_id = await approved_request(async_client, world, [emp.id])

    resp = await async_client.patch(
        f"{API}/hod/requests/{request_id}/employees",
        json={"changes": [{"employee_id": emp.id, "remove": True}]},
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 400
    assert resp.json()["status"] == "ADMIN_APPROVED"


# ── Admin ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_admin_approve_on_draft_is_invalid(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1")
    request_id = await create_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.post(
        f"{API}/admin/requests/{request_id}/approve", headers=world.headers(world.admin)
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["status"] == "DRAFT"
    assert body["allowed"] == ["SUBMITTED"]


@pytest.mark.asyncio
async def test_admin_reject_is_audited(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1")
    request_id = await submitted_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.post(
        f"{API}/admin/requests/{request_id}/reject",
        json={"comment": "duplicate"},
        headers=world.headers(world.admin),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "REJECTED"

    audit = await db_session.execute(
        select(ApprovalsAudit.action, ApprovalsAudit.comment)
        .where(ApprovalsAudit.request_id == request_id)
        .order_by(ApprovalsAudit.id)
    )
    assert audit.all() == [("SUBMIT", None), ("ADMIN_REJECT", "duplicate")]


@pytest.mark.asyncio
async def test_roles_are_enforced(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1")
    request_id = await submitted_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.post(
        f"{API}/admin/requests/{request_id}/approve", headers=world.headers(world.hod)
    )
    assert resp.status_code == 403
    resp = await async_client.get(f"{API}/ta/requests/approved")
    assert resp.status_code == 401


# ── TA & HR ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_groups_for_ta(async_client: AsyncClient, world, db_session: AsyncSession):
    ids = []
    for i in range(3):
        ids.append((await make_employee(db_session, world.department.id, f"R1-{i}", f"A{i}", world.route1.id)).id)
    for i in range(2):
        ids.append(
            (await make_employee(db_session, world.department.id, f"R2-{i}", f"B{i}", world.route2.id, world.sub5.id)).id
        )
    request_id = await approved_request(async_client, world, ids)

    listed = await async_client.get(f"{API}/ta/requests/approved", headers=world.headers(world.ta))
    assert [r["id"] for r in listed.json()] == [request_id]

    resp = await async_client.get(f"{API}/ta/requests/{request_id}/groups", headers=world.headers(world.ta))
    assert resp.status_code == 200
    groups = resp.json()
    assert [(g["route_id"], g["sub_route_id"], g["headcount"]) for g in groups] == [
        (world.route1.id, None, 3),
        (world.route2.id, world.sub5.id, 2),
    ]
    assert groups[1]["sub_name"] == "Panadura"


@pytest.mark.asyncio
async def test_ta_cannot_see_unapproved_request(async_client: AsyncClient, world, db_session: AsyncSession):
    emp = await make_employee(db_session, world.department.id, "Kamal", "K-1", world.route1.id)
    request_id = await submitted_request(async_client, world.hod, [emp.id], world.run_date)

    resp = await async_client.get(f"{API}/ta/requests/{request_id}/groups", headers=world.headers(world.ta))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_capacity_shortfall_blocks_submit(async_client: AsyncClient, world, db_session: AsyncSession):
    request_id = await approved_request(async_client, world, await _ten_on_route_one(db_session, world))
    resp = await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [
            {"vehicle_id": world.van.id, "driver_id": world.driver.id},
            {"vehicle_id": world.bus.id, "driver_name": "Ruwan", "driver_phone": "0712222222"},
        ],
    )
    assert resp.status_code == 200, resp.text
    assert len(resp.json()) == 2

    resp = await _submit(async_client, world, request_id)
    assert resp.status_code == 400
    body = resp.json()
    assert body["required"] == 10
    assert body["available"] == 9


@pytest.mark.asyncio
async def test_overbook_requires_reason(async_client: AsyncClient, world, db_session: AsyncSession):
    request_id = await approved_request(async_client, world, await _ten_on_route_one(db_session, world))
    resp = await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [{"vehicle_id": world.bus.id, "driver_id": world.driver.id, "overbook_amount": 1}],
    )
    assert resp.status_code == 400

    resp = await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [{"vehicle_id": world.bus.id, "driver_id": world.driver.id, "overbook_amount": 3, "overbook_reason": "x"}],
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_overbook_goes_through_hr(async_client: AsyncClient, world, db_session: AsyncSession):
    """4 + 5 seats plus one overbook seat carry ten once HR agrees."""
    request_id = await approved_request(async_client, world, await _ten_on_route_one(db_session, world))
    resp = await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [
            {"vehicle_id": world.van.id, "driver_id": world.driver.id},
            {
                "vehicle_id": world.bus.id,
                "driver_id": world.driver.id,
                "overbook_amount": 1,
                "overbook_reason": "Night shift",
                "overbook_status": "APPROVED",
            },
        ],
    )
    assert resp.status_code == 200, resp.text
    assert {a["overbook_status"] for a in resp.json()} == {"NONE"}

    resp = await _submit(async_client, world, request_id)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "TA_ASSIGNED_PENDING_HR"
    assert resp.json()["checks"][0]["available"] == 10

    hr = world.headers(world.hr)
    waiting = await async_client.get(f"{API}/hr/requests", headers=hr)
    assert [r["id"] for r in waiting.json()] == [request_id]

    # Final approval is not possible while the overbook is pending
    resp = await async_client.post(f"{API}/hr/requests/{request_id}/final-approve", headers=hr)
    assert resp.status_code == 400

    resp = await async_client.post(f"{API}/hr/requests/{request_id}/overbook/reject", headers=hr)
    assert resp.json()["status"] == "TA_FIX_REQUIRED"
    rows = (await async_client.get(f"{API}/hr/requests/{request_id}/assignments", headers=hr)).json()
    assert {r["vehicle_id"]: r["overbook_status"] for r in rows} == {
        world.van.id: "NONE",
        world.bus.id: "REJECTED",
    }

    resp = await _submit(async_client, world, request_id)
    assert resp.json()["status"] == "TA_ASSIGNED_PENDING_HR"

    resp = await async_client.post(f"{API}/hr/requests/{request_id}/overbook/approve", headers=hr)
    assert resp.json()["status"] == "TA_ASSIGNED"
    rows = (await async_client.get(f"{API}/hr/requests/{request_id}/assignments", headers=hr)).json()
    assert {r["vehicle_id"]: r["overbook_status"] for r in rows} == {
        world.van.id: "NONE",
        world.bus.id: "APPROVED",
    }

    resp = await async_client.post(f"{API}/hr/requests/{request_id}/final-approve", headers=hr)
    assert resp.status_code == 200
    assert resp.json()["status"] == "HR_FINAL_APPROVED"


@pytest.mark.asyncio
async def test_submit_without_overbook_skips_hr_gate(async_client: AsyncClient, world, db_session: AsyncSession):
    request_id = await approved_request(async_client, world, await _ten_on_route_one(db_session, world))
    await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [{"vehicle_id": world.coach.id, "driver_id": world.driver.id}],
    )

    resp = await _submit(async_client, world, request_id)
    assert resp.status_code == 200
    assert resp.json()["status"] == "TA_ASSIGNED"

    # TA_ASSIGNED is outside the TA edit window
    resp = await save_assignment(
        async_client, world, request_id, world.route1.id, None,
        [{"vehicle_id": world.coach.id, "driver_id": world.driver.id}],
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_resave_replaces_group(async_client: AsyncClient, world, db_session: AsyncSession):
    request_id = await approved_request(async_client, world, await _ten_on_route_one(db_session, world))
    for vehicle in (world.van, world.coach):
        resp = await save_assignment(
            async_client, world, request_id, world.route1.id, None,
            [{"vehicle_id": vehicle.id, "driver_id": world.driver.id}],
        )
    assert [a["vehicle_id"] for a in resp.json()] == [world.coach.id]
    assert resp.json()[0]["driver_name"] == "Sunil Perera"
