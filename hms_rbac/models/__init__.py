"""
SQLAlchemy database models.
"""

from hms_rbac.models.base import Base
from hms_rbac.models.permission import Permission, PermissionDependency, RiskLevel
from hms_rbac.models.role import Role
from hms_rbac.models.role_permission import RolePermission, RolePermissionMapping
from hms_rbac.models.user import User
from hms_rbac.models.user_permission import UserPermission
from hms_rbac.models.temporary_permission import TemporaryPermission
from hms_rbac.models.permission_change_request import ChangeRequestStatus, PermissionChangeRequest
from hms_rbac.models.audit_log import AuditLog

__all__ = [
    "Base", "Permission", "PermissionDependency", "RiskLevel", "Role",
    "RolePermission", "RolePermissionMapping", "User", "UserPermission",
    "TemporaryPermission", "ChangeRequestStatus", "PermissionChangeRequest", "AuditLog"
]
