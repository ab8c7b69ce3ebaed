"""
Per-user permission overrides.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin


class UserPermission(BaseModel, TimestampMixin):
    """
    Explicit allow/deny for one user and one permission.

    The presence of a row decides the check for that permission regardless of
    what the user's roles grant.
    """

    __tablename__ = "user_permissions"

    __table_args__ = (
        UniqueConstraint('user_id', 'permission_id', name='unique_user_permission'),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)
    allowed = Column(Boolean, default=True, nullable=False)
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    permission = relationship("Permission")

    def __repr__(self):
        return f"<UserPermission(user_id={self.user_id}, permission_id={self.permission_id}, allowed={self.allowed})>"
