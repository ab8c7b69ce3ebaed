"""
Router registration utilities for FastAPI application.

This module provides a centralized way to register all API routers
across the application, used by both the main app and test fixtures.
"""

from fastapi import FastAPI

from hms_rbac.api.v1.health import router as health_router
from hms_rbac.api.v1.permissions import router as permissions_router
from hms_rbac.api.v1.roles import router as roles_router


def include_routers(app: FastAPI):
    """
    Include all API routers in the FastAPI application.

    This function centralizes router registration to ensure consistency
    between the main application and test fixtures.
    """
    app.include_router(health_router, prefix="/api/v1", tags=["health"])
    app.include_router(permissions_router, prefix="/api/v1/admin/permissions", tags=["permissions"])
    app.include_router(roles_router, prefix="/api/v1/admin/roles", tags=["roles"])
