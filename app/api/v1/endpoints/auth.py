"""
Auth endpoints: login (OAuth2 password flow), token refresh, registration
and OTP password reset.
"""

from __future__ import annotations

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, require_admin
from app.core.config import settings
from app.core.limiter import limiter
from app.core.security import (create_access_token, create_refresh_token,
                               decode_refresh_token, verify_password)
from app.models.enums import Role, UserStatus
from app.models.user import User
from app.schemas.token import MessageResponse, RefreshRequest, Token
from app.schemas.user import (PasswordResetConfirm, PasswordResetRequestIn,
                              RegisterHodRequest, RegisterRequest,
                              RegistrationResponse, UserCreate, UserRead)
from app.services import accounts, password_reset

router = APIRouter(prefix="/auth", tags=["auth"])

_INACTIVE_DETAIL = {
    UserStatus.PENDING_HOD: "Account not active: waiting for HOD approval",
    UserStatus.PENDING_ADMIN: "Account not active: waiting for admin approval",
    UserStatus.DISABLED: "Account not active",
}


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,  # Set to True in HTTPS production
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _issue_tokens(response: Response, user: User) -> Token:
    access_token = create_access_token(user.id, role=user.role.value)
    refresh_token = create_refresh_token(user.id)
    _set_auth_cookies(response, access_token, refresh_token)
    return Token(access_token=access_token, refresh_token=refresh_token, role=user.role.value)


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Authenticate with email/password. Returns tokens and sets HttpOnly cookies."""
    result = await db.execute(
        select(User).where(func.lower(User.email) == form_data.username.lower().strip())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=_INACTIVE_DETAIL.get(user.status, "Account not active"),
        )

    return _issue_tokens(response, user)


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token_endpoint(
    response: Response,
    request: Request,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> Token:
    # Priority: Body > Cookie
    token_str = None
    if body and body.refresh_token:
        token_str = body.refresh_token
    elif refresh_token_cookie:
        token_str = refresh_token_cookie

    if not token_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing",
        )

    payload = decode_refresh_token(token_str)
    if payload is None or not str(payload.get("sub", "")).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    result = await db.execute(select(User).where(User.id == int(payload["sub"])))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return _issue_tokens(response, user)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserRead)
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Return profile of the currently authenticated user."""
    return current_user


# ── Self-registration ──────────────────────────────────────────────
@router.post("/register", response_model=RegistrationResponse, status_code=201)
@limiter.limit("10/hour")
async def register_employee(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """EMP self-registration; waits for the department HOD."""
    user = await accounts.register(
        db,
        Role.EMP,
        full_name=body.emp_name,
        emp_no=body.emp_no,
        email=body.email,
        department_id=body.department_id,
        password=body.password,
    )
    await db.commit()
    return RegistrationResponse(status=user.status, user_id=user.id)


@router.post("/register-hod", response_model=RegistrationResponse, status_code=201)
@limiter.limit("10/hour")
async def register_hod(
    request: Request,
    body: RegisterHodRequest,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """HOD self-registration; waits for an admin."""
    user = await accounts.register(
        db,
        Role.HOD,
        full_name=body.hod_name,
        emp_no=body.emp_no,
        email=body.email,
        department_id=body.department_id,
        password=body.password,
    )
    await db.commit()
    return RegistrationResponse(status=user.status, user_id=user.id)


# ── User management (admin-only) ───────────────────────────────────
@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    """Create an active account for any role (admin only)."""
    user = await accounts.create_user(
        db,
        email=body.email,
        password=body.password,
        role=body.role,
        full_name=body.full_name,
        department_id=body.department_id,
    )
    await db.commit()
    await db.refresh(user)
    return user


# ── Password reset ─────────────────────────────────────────────────
@router.post("/password-reset/request", response_model=MessageResponse)
@limiter.limit("5/minute")
async def request_password_reset(
    request: Request,
    body: PasswordResetRequestIn,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await password_reset.request_reset(
        db,
        email=body.email,
        emp_no=body.emp_no,
        requested_ip=request.client.host if request.client else None,
    )
    await db.commit()
    return MessageResponse(message="OTP sent")


@router.post("/password-reset/confirm", response_model=MessageResponse)
@limiter.limit("10/minute")
async def confirm_password_reset(
    request: Request,
    body: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await password_reset.confirm_reset(
        db,
        otp=body.otp,
        new_password=body.new_password,
        email=body.email,
        emp_no=body.emp_no,
    )
    await db.commit()
    return MessageResponse(message="Password updated")
