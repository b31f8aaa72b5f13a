"""
Self-service password reset with e-mailed one-time codes.

A user is identified by e-mail or employee number.  At most
``PASSWORD_RESET_DAILY_LIMIT`` codes may be requested per local calendar day
(``APP_TIMEZONE``); each code is stored hashed and expires after
``PASSWORD_RESET_OTP_MINUTES``.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ForbiddenError, NotFoundError, RateLimited, ValidationFailed
from app.core.security import generate_otp, get_password_hash, hash_otp, verify_otp
from app.models.employee import Employee
from app.models.password_reset import PasswordResetRequest
from app.models.user import User
from app.services.notifications import send_otp_email

logger = logging.getLogger(__name__)


def _ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_day_start(now: datetime | None = None) -> datetime:
    """Start of the current ``APP_TIMEZONE`` day, expressed in UTC."""
    tz = ZoneInfo(settings.APP_TIMEZONE)
    local_now = (now or datetime.now(timezone.utc)).astimezone(tz)
    return datetime.combine(local_now.date(), time.min, tzinfo=tz).astimezone(timezone.utc)


async def find_user(db: AsyncSession, email: str | None, emp_no: str | None) -> User:
    if email:
        query = select(User).where(func.lower(User.email) == email.strip().lower())
    elif emp_no:
        query = (
            select(User)
            .join(Employee, Employee.id == User.employee_id)
            .where(Employee.emp_no == emp_no.strip())
        )
    else:
        raise ValidationFailed("email or emp_no required")

    user = (await db.execute(query)).scalars().first()
    if user is None:
        raise NotFoundError("Invalid email/emp no")
    if not user.is_active:
        raise ForbiddenError("Account not active")
    return user


async def count_requests_today(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(PasswordResetRequest)
        .where(
            PasswordResetRequest.user_id == user_id,
            PasswordResetRequest.created_at >= local_day_start(),
        )
    )
    return int(result.scalar_one())


async def request_reset(
    db: AsyncSession,
    email: str | None = None,
    emp_no: str | None = None,
    requested_ip: str | None = None,
) -> PasswordResetRequest:
    user = await find_user(db, email, emp_no)
    if not user.email:
        raise ValidationFailed("No email found for this account")

    if await count_requests_today(db, user.id) >= settings.PASSWORD_RESET_DAILY_LIMIT:
        raise RateLimited("Password reset blocked for today")

    otp = generate_otp()
    minutes = settings.PASSWORD_RESET_OTP_MINUTES
    reset = PasswordResetRequest(
        user_id=user.id,
        otp_hash=hash_otp(otp),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
        requested_ip=requested_ip,
    )
    db.add(reset)
    await db.flush()

    # Raises DependencyFailure; the caller never commits, so the row goes too
    await send_otp_email(user.email, otp, minutes, to_name=user.full_name)
    logger.info("Password reset OTP issued for user %d", user.id)
    return reset


async def confirm_reset(
    db: AsyncSession,
    otp: str,
    new_password: str,
    email: str | None = None,
    emp_no: str | None = None,
) -> User:
    user = await find_user(db, email, emp_no)

    result = await db.execute(
        select(PasswordResetRequest)
        .where(
            PasswordResetRequest.user_id == user.id,
            PasswordResetRequest.consumed_at.is_(None),
        )
        .order_by(PasswordResetRequest.created_at.desc(), PasswordResetRequest.id.desc())
        .limit(1)
    )
    reset = result.scalar_one_or_none()
    if reset is None:
        raise ValidationFailed("No active OTP. Please request again.")

    now = datetime.now(timezone.utc)
    if now > _ensure_utc(reset.expires_at):
        raise ValidationFailed("OTP expired. Please request again.")
    if not verify_otp(otp, reset.otp_hash):
        raise ValidationFailed("Invalid OTP")

    user.previous_password_hash = user.hashed_password
    user.hashed_password = get_password_hash(new_password)
    reset.consumed_at = now
    await db.flush()
    logger.info("Password reset completed for user %d", user.id)
    return user
