"""
Role model for RBAC (Role-Based Access Control).
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin


class Role(BaseModel, TimestampMixin):
    """
    Role model for RBAC.

    ``priority`` and ``parent_role_id`` are organisational metadata used for
    display and role assignment; they never grant permissions.
    """

    __tablename__ = "roles"

    name = Column(String(100), unique=True, index=True, nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Integer, default=0, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    parent_role_id = Column(Integer, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True)

    parent_role = relationship("Role", remote_side="Role.id", backref="subordinate_roles")
    permissions = relationship("Permission", secondary="role_permission_mappings", lazy="selectin")

    def __repr__(self):
        return f"<Role(id={self.id}, slug='{self.slug}')>"
