"""
Pydantic schemas for the permission administration API.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from hms_rbac.schemas.base import BaseSchema, MessageSchema, TimestampSchema


PermissionReference = Union[int, str]


class PermissionCheckResponse(BaseModel):
    """Result of a single permission check."""
    user_id: int
    permission: str
    allowed: bool
    breakdown: Optional[Dict[str, object]] = None


class EffectivePermissionsResponse(BaseModel):
    """Every permission a user currently holds."""
    user_id: int
    permissions: List[str]


class TemporaryPermissionGrantRequest(BaseModel):
    """Request model for granting a temporary permission."""
    user_id: int
    permission: PermissionReference = Field(..., description="Permission id or name")
    expires_at: datetime
    reason: str = Field(..., min_length=1, max_length=1000)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "permission": "view-billing",
                "expires_at": "2026-01-15T18:00:00Z",
                "reason": "Covering for the billing desk during audit week"
            }
        }


class TemporaryPermissionResponse(TimestampSchema):
    """Response model for a temporary grant."""
    id: int
    user_id: int
    permission_id: int
    granted_by: Optional[int] = None
    granted_at: datetime
    expires_at: datetime
    reason: str
    is_active: bool
    is_expired: bool
    revoked_by: Optional[int] = None
    revoked_at: Optional[datetime] = None


class ChangeRequestCreateRequest(BaseModel):
    """Request model for opening a permission change request."""
    user_id: int
    permissions_to_add: List[PermissionReference] = Field(default_factory=list)
    permissions_to_remove: List[PermissionReference] = Field(default_factory=list)
    reason: Optional[str] = Field(None, max_length=1000)
    expires_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "permissions_to_add": ["view-users", "edit-users"],
                "permissions_to_remove": [],
                "reason": "Promoted to ward administrator"
            }
        }


class ChangeRequestResponse(TimestampSchema):
    """Response model for a permission change request."""
    id: int
    user_id: int
    requested_by: Optional[int] = None
    permissions_to_add: List[int]
    permissions_to_remove: List[int]
    reason: Optional[str] = None
    status: str
    effective_status: str
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class CacheInvalidationResponse(BaseModel):
    """Number of cache entries removed."""
    deleted: int


class ExpiredRequestsResponse(BaseModel):
    """Number of change requests moved to expired."""
    expired: int


class RoleParentRequest(BaseModel):
    """Request model for moving a role in the hierarchy."""
    parent_role_id: Optional[int] = None


class RolePermissionSyncRequest(BaseModel):
    """Request model for replacing a role's permission set."""
    permission_ids: List[int] = Field(default_factory=list)


class RoleAssignmentResponse(MessageSchema):
    """Acknowledgement of a role assignment."""
    user_id: int
    role_id: int


class RoleResponse(TimestampSchema):
    """Response model for a role."""
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    priority: int
    is_system: bool
    parent_role_id: Optional[int] = None


class PermissionResponse(BaseSchema):
    """Response model for a catalog permission."""
    id: int
    name: str
    description: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None
    category: Optional[str] = None
    module: Optional[str] = None
    risk_level: str
    requires_approval: bool
    is_critical: bool
