"""
Administrative API endpoints for permission checks, temporary grants and
change requests.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from hms_rbac.core.change_requests import ChangeRequestWorkflow
from hms_rbac.core.database import get_db
from hms_rbac.core.dependencies import get_current_user_or_401
from hms_rbac.core.errors import EngineError
from hms_rbac.core.rbac import PermissionResolver, require_permission
from hms_rbac.core.temporary_permissions import TemporaryPermissionService
from hms_rbac.models.user import User
from hms_rbac.schemas.permissions import (
    CacheInvalidationResponse,
    ChangeRequestCreateRequest,
    ChangeRequestResponse,
    EffectivePermissionsResponse,
    ExpiredRequestsResponse,
    PermissionCheckResponse,
    TemporaryPermissionGrantRequest,
    TemporaryPermissionResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

ADMIN_PERMISSION = "manage-permissions"


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise EngineError.user_not_found()
    return user


# ==================== CHECKS ====================

@router.get("/check", response_model=PermissionCheckResponse)
async def check_own_permission(
    permission: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user_or_401),
    db: Session = Depends(get_db)
):
    """Check a permission for the calling user."""
    allowed = await PermissionResolver.has_permission(current_user, permission, db)
    return PermissionCheckResponse(user_id=current_user.id, permission=permission, allowed=allowed)


@router.get("/users/{user_id}/check", response_model=PermissionCheckResponse)
async def check_user_permission(
    user_id: int,
    permission: str = Query(..., min_length=1),
    explain: bool = False,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """
    Check a permission for any user.

    With ``explain=true`` the response includes the per-source breakdown.
    """
    user = _get_user_or_404(db, user_id)
    allowed = await PermissionResolver.has_permission(user, permission, db)
    breakdown = PermissionResolver.explain_permission(user, permission, db) if explain else None
    return PermissionCheckResponse(user_id=user.id, permission=permission, allowed=allowed, breakdown=breakdown)


@router.get("/users/{user_id}/effective", response_model=EffectivePermissionsResponse)
async def get_effective_permissions(
    user_id: int,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """List every permission a user currently holds."""
    user = _get_user_or_404(db, user_id)
    permissions = PermissionResolver.get_effective_permissions(user, db)
    return EffectivePermissionsResponse(user_id=user.id, permissions=sorted(permissions))


# ==================== TEMPORARY PERMISSIONS ====================

@router.post("/temporary", response_model=TemporaryPermissionResponse, status_code=status.HTTP_201_CREATED)
async def grant_temporary_permission(
    grant_data: TemporaryPermissionGrantRequest,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Grant a permission until a fixed expiry."""
    grant = TemporaryPermissionService.grant_temporary(
        db,
        user_id=grant_data.user_id,
        permission=grant_data.permission,
        expires_at=grant_data.expires_at,
        reason=grant_data.reason,
        granted_by=current_user.id
    )
    return TemporaryPermissionResponse.model_validate(grant)


@router.get("/temporary", response_model=List[TemporaryPermissionResponse])
async def list_temporary_permissions(
    user_id: Optional[int] = None,
    active_only: bool = False,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """List temporary grants, optionally for one user or only active ones."""
    grants = TemporaryPermissionService.list_temporary(db, user_id=user_id, active_only=active_only)
    return [TemporaryPermissionResponse.model_validate(grant) for grant in grants]


@router.delete("/temporary/{grant_id}", response_model=TemporaryPermissionResponse)
async def revoke_temporary_permission(
    grant_id: int,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Revoke a temporary grant. Only its granter or a super admin may do this."""
    grant = TemporaryPermissionService.revoke_temporary(db, grant_id, current_user)
    return TemporaryPermissionResponse.model_validate(grant)


# ==================== CHANGE REQUESTS ====================

@router.post("/change-requests", response_model=ChangeRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_change_request(
    request_data: ChangeRequestCreateRequest,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Open a change request. It takes effect only once approved."""
    request = ChangeRequestWorkflow.create(
        db,
        target_user_id=request_data.user_id,
        to_add=request_data.permissions_to_add,
        to_remove=request_data.permissions_to_remove,
        reason=request_data.reason,
        requested_by=current_user,
        expires_at=request_data.expires_at
    )
    return ChangeRequestResponse.model_validate(request)


@router.get("/change-requests", response_model=List[ChangeRequestResponse])
async def list_change_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = None,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """List change requests, filtered by effective status and target user."""
    requests = ChangeRequestWorkflow.list(db, status=status_filter, user_id=user_id)
    return [ChangeRequestResponse.model_validate(request) for request in requests]


@router.get("/change-requests/{request_id}", response_model=ChangeRequestResponse)
async def get_change_request(
    request_id: int,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Show one change request."""
    return ChangeRequestResponse.model_validate(ChangeRequestWorkflow.get(db, request_id))


@router.post("/change-requests/{request_id}/approve", response_model=ChangeRequestResponse)
async def approve_change_request(
    request_id: int,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Approve a pending request and apply its overrides."""
    request = await ChangeRequestWorkflow.approve(db, request_id, current_user)
    return ChangeRequestResponse.model_validate(request)


@router.post("/change-requests/{request_id}/reject", response_model=ChangeRequestResponse)
async def reject_change_request(
    request_id: int,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Reject a pending request."""
    request = ChangeRequestWorkflow.reject(db, request_id, current_user)
    return ChangeRequestResponse.model_validate(request)


@router.delete("/change-requests/{request_id}", response_model=ChangeRequestResponse)
async def cancel_change_request(
    request_id: int,
    current_user: User = Depends(get_current_user_or_401),
    db: Session = Depends(get_db)
):
    """Cancel a pending request. Only its requester or a super admin may do this."""
    request = ChangeRequestWorkflow.cancel(db, request_id, current_user)
    return ChangeRequestResponse.model_validate(request)


@router.post("/change-requests/expire", response_model=ExpiredRequestsResponse)
async def expire_change_requests(
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
    db: Session = Depends(get_db)
):
    """Mark every pending request past its expiry as expired."""
    return ExpiredRequestsResponse(expired=ChangeRequestWorkflow.expire_stale_requests(db))


# ==================== CACHE ====================

@router.post("/cache/users/{user_id}/invalidate", response_model=CacheInvalidationResponse)
async def invalidate_user_cache(
    user_id: int,
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
):
    """Drop cached role-derived results for one user."""
    deleted = await PermissionResolver.invalidate_cache(user_id)
    logger.info(f"User {current_user.id} invalidated permission cache for user {user_id}")
    return CacheInvalidationResponse(deleted=deleted)


@router.post("/cache/flush", response_model=CacheInvalidationResponse)
async def flush_permission_cache(
    current_user: User = Depends(require_permission(ADMIN_PERMISSION)),
):
    """Drop every cached role-derived result."""
    deleted = await PermissionResolver.flush_cache()
    logger.warning(f"User {current_user.id} flushed the permission cache")
    return CacheInvalidationResponse(deleted=deleted)
