"""Pydantic schemas for users, registration and password reset."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.enums import Role, UserStatus

# Roles an admin may create directly
_CREATABLE_ROLES = {Role.ADMIN, Role.HOD, Role.HR, Role.TA, Role.EMP}

MIN_PASSWORD_LENGTH = 6


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    return v


def _optional_text(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    full_name: str | None = None
    role: Role
    department_id: int | None = None

    @field_validator("role")
    @classmethod
    def _validate_role(cls, v: Role) -> Role:
        if v not in _CREATABLE_ROLES:
            raise ValueError(f"Role must be one of: {sorted(r.value for r in _CREATABLE_ROLES)}")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)


class UserRead(BaseModel):
    id: int
    email: str | None
    full_name: str | None
    role: Role
    status: UserStatus
    department_id: int | None
    employee_id: int | None
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}


class RegisterRequest(BaseModel):
    """EMP self-registration."""

    emp_name: str = Field(min_length=2)
    emp_no: str = Field(min_length=1)
    email: str
    department_id: int = Field(gt=0)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("emp_no", "emp_name")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class RegisterHodRequest(BaseModel):
    hod_name: str = Field(min_length=2)
    emp_no: str = Field(min_length=1)
    email: str
    department_id: int = Field(gt=0)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("emp_no", "hod_name")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class RegistrationResponse(BaseModel):
    ok: bool = True
    status: UserStatus
    user_id: int


class PendingRegistration(BaseModel):
    id: int
    email: str | None
    full_name: str | None
    status: UserStatus
    department_id: int | None
    employee_id: int | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class _Identifier(BaseModel):
    """Either an e-mail address or an employee number."""

    email: str | None = None
    emp_no: str | None = None

    @field_validator("email", "emp_no", mode="before")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return _optional_text(v)

    @model_validator(mode="after")
    def _one_required(self):
        if not (self.email or self.emp_no):
            raise ValueError("email or emp_no required")
        if self.email:
            self.email = _normalise_email(self.email)
        return self


class PasswordResetRequestIn(_Identifier):
    pass


class PasswordResetConfirm(_Identifier):
    otp: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)
