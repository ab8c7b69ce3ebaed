"""
Administrative API endpoints for the role hierarchy and role-permission mappings.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from hms_rbac.core.catalog import PermissionCatalog
from hms_rbac.core.database import get_db
from hms_rbac.core.rbac import require_permission
from hms_rbac.core.roles import RoleManager
from hms_rbac.models.user import User
from hms_rbac.schemas.permissions import (
    PermissionResponse,
    RoleAssignmentResponse,
    RoleParentRequest,
    RolePermissionSyncRequest,
    RoleResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

ROLE_PERMISSION = "manage-roles"


@router.get("/hierarchy")
async def get_role_hierarchy(
    current_user: User = Depends(require_permission("view-roles")),
    db: Session = Depends(get_db)
):
    """Role tree, siblings ordered by priority."""
    return RoleManager.hierarchy_tree(db)


@router.put("/{role_id}/parent", response_model=RoleResponse)
async def set_role_parent(
    role_id: int,
    parent_data: RoleParentRequest,
    current_user: User = Depends(require_permission(ROLE_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Move a role under a new parent, or to the top level with ``null``."""
    role = RoleManager.set_parent(db, role_id, parent_data.parent_role_id)
    return RoleResponse.model_validate(role)


@router.put("/{role_id}/permissions", response_model=RoleResponse)
async def sync_role_permissions(
    role_id: int,
    sync_data: RolePermissionSyncRequest,
    current_user: User = Depends(require_permission(ROLE_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Replace the permission set of a role."""
    role = await RoleManager.sync_role_permissions(db, role_id, sync_data.permission_ids)
    logger.info(f"User {current_user.id} synced permissions for role {role_id}")
    return RoleResponse.model_validate(role)


@router.post("/{role_id}/users/{user_id}", response_model=RoleAssignmentResponse)
async def assign_role_to_user(
    role_id: int,
    user_id: int,
    current_user: User = Depends(require_permission(ROLE_PERMISSION)),
    db: Session = Depends(get_db)
):
    """
    Assign a role to a user.

    Non super admins may only assign roles below their own in the hierarchy.
    """
    if not RoleManager.can_assign_role(db, current_user, role_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot assign a role at or above your own"
        )

    user = await RoleManager.assign_role(db, user_id, role_id)
    return RoleAssignmentResponse(message="Role assigned successfully", user_id=user.id, role_id=user.role_id)


@router.get("/unused-permissions", response_model=List[PermissionResponse])
async def list_unused_permissions(
    current_user: User = Depends(require_permission(ROLE_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Catalog permissions that no role or user override refers to."""
    return [PermissionResponse.model_validate(permission) for permission in PermissionCatalog.unused_permissions(db)]
