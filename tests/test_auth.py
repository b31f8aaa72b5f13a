"""Tests for login, self-registration and the password reset flow."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import DependencyFailure
from app.models.enums import Role, UserStatus
from app.models.password_reset import PasswordResetRequest
from app.models.user import User
from conftest import API, auth_headers, make_user


async def _login(client, email, password):
    return await client.post(
        f"{API}/auth/login", data={"username": email, "password": password}
    )


# ── Login ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_sets_cookies(async_client: AsyncClient, db_session: AsyncSession):
    await make_user(db_session, Role.TA, "ta@test.local", password="secret123")
    resp = await _login(async_client, "TA@test.local", "secret123")

    assert resp.status_code == 200
    data = resp.json()
    assert data["role"] == "TA"
    assert data["access_token"]
    assert "access_token=" in resp.headers.get("set-cookie", "")

    me = await async_client.get(
        f"{API}/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert me.json()["email"] == "ta@test.local"


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, db_session: AsyncSession):
    await make_user(db_session, Role.TA, "ta@test.local", password="secret123")
    resp = await _login(async_client, "ta@test.local", "nope")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_pending_account_cannot_log_in(async_client: AsyncClient, db_session: AsyncSession):
    user = await make_user(db_session, Role.EMP, "emp@test.local", status=UserStatus.PENDING_HOD)
    resp = await _login(async_client, "emp@test.local", "secret123")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Account not active: waiting for HOD approval"
    # A token minted earlier is refused as well
    resp = await async_client.get(f"{API}/auth/me", headers=auth_headers(user))
    assert resp.status_code == 403


# ── Registration ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_emp_registration_approved_by_hod(async_client: AsyncClient, world):
    resp = await async_client.post(
        f"{API}/auth/register",
        json={
            "emp_name": "Saman Kumara",
            "emp_no": "OPS-77",
            "email": "saman@test.local",
            "department_id": world.department.id,
            "password": "secret123",
        },
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["status"] == "PENDING_HOD"
    user_id = resp.json()["user_id"]

    # The other department's HOD cannot see it
    other = await async_client.get(
        f"{API}/hod/registrations/pending", headers=world.headers(world.other_hod)
    )
    assert other.json() == []
    resp = await async_client.post(
        f"{API}/hod/registrations/{user_id}/approve", headers=world.headers(world.other_hod)
    )
    assert resp.status_code == 404

    resp = await async_client.post(
        f"{API}/hod/registrations/{user_id}/approve", headers=world.headers(world.hod)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "ACTIVE"

    assert (await _login(async_client, "saman@test.local", "secret123")).status_code == 200
    employees = await async_client.get(f"{API}/hod/employees", headers=world.headers(world.hod))
    assert [e["is_active"] for e in employees.json() if e["emp_no"] == "OPS-77"] == [True]


@pytest.mark.asyncio
async def test_duplicate_registration(async_client: AsyncClient, world):
    body = {
        "emp_name": "Saman Kumara",
        "emp_no": "OPS-77",
        "email": "saman@test.local",
        "department_id": world.department.id,
        "password": "secret123",
    }
    assert (await async_client.post(f"{API}/auth/register", json=body)).status_code == 201
    body["emp_no"] = "OPS-78"
    resp = await async_client.post(f"{API}/auth/register", json=body)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Email already exists"


@pytest.mark.asyncio
async def test_hod_registration_rejected_by_admin(async_client: AsyncClient, world):
    resp = await async_client.post(
        f"{API}/auth/register-hod",
        json={
            "hod_name": "Priya Silva",
            "emp_no": "FIN-01",
            "email": "priya@test.local",
            "department_id": world.other_department.id,
            "password": "secret123",
        },
    )
    assert resp.json()["status"] == "PENDING_ADMIN"
    user_id = resp.json()["user_id"]

    admin = world.headers(world.admin)
    pending = await async_client.get(f"{API}/admin/hod-registrations", headers=admin)
    assert [u["id"] for u in pending.json()] == [user_id]

    resp = await async_client.post(f"{API}/admin/hod-registrations/{user_id}/reject", headers=admin)
    assert resp.json()["status"] == "DISABLED"
    assert (await _login(async_client, "priya@test.local", "secret123")).status_code == 403


@pytest.mark.asyncio
async def test_admin_creates_privileged_user(async_client: AsyncClient, world):
    resp = await async_client.post(
        f"{API}/auth/users",
        json={"email": "hr2@test.local", "password": "secret123", "role": "HR"},
        headers=world.headers(world.admin),
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["role"] == "HR"
    assert resp.json()["is_active"] is True

    resp = await async_client.post(
        f"{API}/auth/users",
        json={"email": "x@test.local", "password": "secret123", "role": "HR"},
        headers=world.headers(world.hod),
    )
    assert resp.status_code == 403


# ── Password reset ─────────────────────────────────────────────────
@pytest.fixture
def outbox(monkeypatch):
    sent = []

    async def _fake_send(to_email, otp, minutes, to_name=None, client=None):
        sent.append({"to": to_email, "otp": otp, "minutes": minutes})

    monkeypatch.setattr("app.services.password_reset.send_otp_email", _fake_send)
    return sent


@pytest.mark.asyncio
async def test_password_reset_round(async_client: AsyncClient, db_session: AsyncSession, outbox):
    await make_user(db_session, Role.HR, "hr@test.local", password="oldpass1")

    resp = await async_client.post(f"{API}/auth/password-reset/request", json={"email": "hr@test.local"})
    assert resp.status_code == 200, resp.text
    assert len(outbox) == 1
    otp = outbox[0]["otp"]
    assert len(otp) == 6 and otp.isdigit()

    wrong = "000000" if otp != "000000" else "111111"
    resp = await async_client.post(
        f"{API}/auth/password-reset/confirm",
        json={"email": "hr@test.local", "otp": wrong, "new_password": "newpass1"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid OTP"

    resp = await async_client.post(
        f"{API}/auth/password-reset/confirm",
        json={"email": "hr@test.local", "otp": otp, "new_password": "newpass1"},
    )
    assert resp.status_code == 200
    assert (await _login(async_client, "hr@test.local", "newpass1")).status_code == 200
    assert (await _login(async_client, "hr@test.local", "oldpass1")).status_code == 401

    # The code is single-use
    resp = await async_client.post(
        f"{API}/auth/password-reset/confirm",
        json={"email": "hr@test.local", "otp": otp, "new_password": "another1"},
    )
    assert resp.json()["detail"] == "No active OTP. Please request again."


@pytest.mark.asyncio
async def test_password_reset_daily_limit(async_client: AsyncClient, db_session: AsyncSession, outbox):
    await make_user(db_session, Role.HR, "hr@test.local")
    for _ in range(3):
        resp = await async_client.post(f"{API}/auth/password-reset/request", json={"email": "hr@test.local"})
        assert resp.status_code == 200
    resp = await async_client.post(f"{API}/auth/password-reset/request", json={"email": "hr@test.local"})
    assert resp.status_code == 429
    assert len(outbox) == 3


@pytest.mark.asyncio
async def test_password_reset_unknown_account(async_client: AsyncClient, outbox):
    resp = await async_client.post(f"{API}/auth/password-reset/request", json={"emp_no": "NOPE"})
    assert resp.status_code == 404
    assert outbox == []


@pytest.mark.asyncio
async def test_mail_failure_rolls_back_reset_row(async_client: AsyncClient, db_session: AsyncSession, monkeypatch):
    await make_user(db_session, Role.HR, "hr@test.local")

    async def _broken(*args, **kwargs):
        raise DependencyFailure("Failed to send OTP email")

    monkeypatch.setattr("app.services.password_reset.send_otp_email", _broken)
    resp = await async_client.post(f"{API}/auth/password-reset/request", json={"email": "hr@test.local"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to send OTP email"

    count = await db_session.execute(select(func.count()).select_from(PasswordResetRequest))
    assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_first_admin_seeded_once(db_session: AsyncSession):
    from app.main import seed_first_admin

    assert await seed_first_admin(db_session) is True
    assert await seed_first_admin(db_session) is False
    admin = await db_session.scalar(select(User).where(User.email == settings.FIRST_ADMIN_EMAIL))
    assert admin.role == Role.ADMIN
    assert admin.status == UserStatus.ACTIVE
