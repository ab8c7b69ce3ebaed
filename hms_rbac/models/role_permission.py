"""
Role-to-permission mapping tables.

Two tables are kept side by side: the normalized ``role_permission_mappings``
keyed by role id, and the legacy ``role_permissions`` keyed by the free-text
role name stored on users. They are not kept in sync and may disagree.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, UniqueConstraint

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin


class RolePermissionMapping(BaseModel, TimestampMixin):
    """Normalized junction table for role-permission many-to-many relationships."""

    __tablename__ = "role_permission_mappings"

    __table_args__ = (
        UniqueConstraint('role_id', 'permission_id', name='unique_role_permission_mapping'),
        # Composite index for permission-based role lookups
        Index('idx_role_permission_mapping_perm_role', 'permission_id', 'role_id'),
    )

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<RolePermissionMapping(role_id={self.role_id}, permission_id={self.permission_id})>"


class RolePermission(BaseModel, TimestampMixin):
    """Legacy role-name to permission table."""

    __tablename__ = "role_permissions"

    __table_args__ = (
        UniqueConstraint('role', 'permission_id', name='unique_legacy_role_permission'),
    )

    role = Column(String(100), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self):
        return f"<RolePermission(role='{self.role}', permission_id={self.permission_id})>"
