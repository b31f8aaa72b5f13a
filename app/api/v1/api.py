"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import admin, auth, emp, hod, hr, lookup, reports, ta

api_router = APIRouter()

# Auth (login, refresh, registration, password reset)
api_router.include_router(auth.router)

# Public departments, routes tree, health
api_router.include_router(lookup.router)

# Role workspaces
api_router.include_router(admin.router)
api_router.include_router(hod.router)
api_router.include_router(ta.router)
api_router.include_router(hr.router)
api_router.include_router(emp.router)

# Route-wise, vehicle and department reports
api_router.include_router(reports.router)
