"""
Accounts: self-registration, approval of pending users, and user creation.

EMP self-registrations wait for their HOD (``PENDING_HOD``); HOD
self-registrations wait for an admin (``PENDING_ADMIN``).  Both create an
inactive employee record that is activated together with the user.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationFailed
from app.core.security import get_password_hash
from app.models.department import Department
from app.models.employee import Employee
from app.models.enums import Role, UserStatus
from app.models.user import User
from app.services.routes import ensure_route_pair
from app.services.state_machine import Actor

logger = logging.getLogger(__name__)

# Who approves a pending self-registration
_PENDING = {
    Role.EMP: (UserStatus.PENDING_HOD, Role.HOD),
    Role.HOD: (UserStatus.PENDING_ADMIN, Role.ADMIN),
}


async def ensure_email_free(db: AsyncSession, email: str) -> None:
    result = await db.execute(select(User.id).where(func.lower(User.email) == email.lower()))
    if result.first() is not None:
        raise ConflictError("Email already exists")


async def ensure_emp_no_free(db: AsyncSession, emp_no: str) -> None:
    result = await db.execute(select(Employee.id).where(Employee.emp_no == emp_no))
    if result.first() is not None:
        raise ConflictError("emp_no already exists")


async def get_department(db: AsyncSession, department_id: int) -> Department:
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department not found")
    return department


async def register(
    db: AsyncSession,
    role: Role,
    full_name: str,
    emp_no: str,
    email: str,
    department_id: int,
    password: str,
) -> User:
    """Self-registration for EMP or HOD; the account starts pending."""
    if role not in _PENDING:
        raise ValidationFailed(f"Self-registration is not available for {role.value}")
    await get_department(db, department_id)
    await ensure_email_free(db, email)
    await ensure_emp_no_free(db, emp_no)

    employee = Employee(
        emp_no=emp_no,
        full_name=full_name,
        department_id=department_id,
        is_active=False,
    )
    db.add(employee)
    await db.flush()

    status, _approver = _PENDING[role]
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        role=role,
        status=status,
        department_id=department_id,
        employee_id=employee.id,
    )
    db.add(user)
    await db.flush()
    logger.info("Registration %d (%s) pending approval", user.id, role.value)
    return user


async def list_pending(db: AsyncSession, role: Role, department_id: int | None = None) -> list[User]:
    status, _approver = _PENDING[role]
    query = select(User).where(User.role == role, User.status == status)
    if department_id is not None:
        query = query.where(User.department_id == department_id)
    result = await db.execute(query.order_by(User.created_at, User.id))
    return list(result.scalars().all())


async def decide_registration(
    db: AsyncSession, user_id: int, role: Role, actor: Actor, approve: bool
) -> User:
    """Approve (activate user and employee) or reject (disable user)."""
    status, approver = _PENDING[role]
    query = select(User).where(User.id == user_id, User.role == role, User.status == status)
    if approver == Role.HOD:
        # HODs only see their own department's registrations
        query = query.where(User.department_id == actor.department_id)
    user = (await db.execute(query)).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"Pending {role.value} registration not found")

    if approve:
        user.status = UserStatus.ACTIVE
        if user.employee_id is not None:
            employee = await db.get(Employee, user.employee_id)
            if employee is not None:
                employee.is_active = True
    else:
        user.status = UserStatus.DISABLED
    await db.flush()
    logger.info(
        "Registration %d %s by user %d",
        user.id,
        "approved" if approve else "rejected",
        actor.user_id,
    )
    return user


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    role: Role,
    full_name: str | None = None,
    department_id: int | None = None,
) -> User:
    """Admin-created account, active immediately."""
    if role == Role.HOD and department_id is None:
        raise ValidationFailed("A HOD account needs a department_id")
    if department_id is not None:
        await get_department(db, department_id)
    await ensure_email_free(db, email)

    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        role=role,
        status=UserStatus.ACTIVE,
        department_id=department_id,
    )
    db.add(user)
    await db.flush()
    logger.info("User %d created with role %s", user.id, role.value)
    return user


async def create_employee(
    db: AsyncSession,
    actor: Actor,
    full_name: str,
    emp_no: str,
    default_route_id: int | None = None,
    default_sub_route_id: int | None = None,
    email: str | None = None,
    password: str | None = None,
) -> tuple[Employee, User | None]:
    """HOD adds an employee to their department, optionally with a login."""
    if actor.department_id is None:
        raise ValidationFailed("HOD has no department")
    await ensure_emp_no_free(db, emp_no)
    await ensure_route_pair(db, default_route_id, default_sub_route_id)

    employee = Employee(
        emp_no=emp_no,
        full_name=full_name,
        department_id=actor.department_id,
        default_route_id=default_route_id,
        default_sub_route_id=default_sub_route_id,
        is_active=True,
    )
    db.add(employee)
    await db.flush()

    user = None
    if email and password:
        await ensure_email_free(db, email)
        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=full_name,
            role=Role.EMP,
            status=UserStatus.ACTIVE,
            department_id=actor.department_id,
            employee_id=employee.id,
        )
        db.add(user)
        await db.flush()
    logger.info("Employee %d added to department %d", employee.id, actor.department_id)
    return employee, user


async def get_department_employee(db: AsyncSession, employee_id: int, department_id: int) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.department_id == department_id)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee
