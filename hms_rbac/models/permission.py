"""
Permission catalog model and its dependency edges.
"""

import enum

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin


class RiskLevel(str, enum.Enum):
    """How damaging misuse of a permission would be."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Permission(BaseModel, TimestampMixin):
    """A named permission in the catalog."""

    __tablename__ = "permissions"

    __table_args__ = (
        # Composite index for resource:action lookups
        Index('idx_permission_resource_action', 'resource', 'action'),
    )

    name = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    resource = Column(String(100), index=True, nullable=True)
    action = Column(String(50), nullable=True)
    category = Column(String(100), index=True, nullable=True)
    module = Column(String(100), index=True, nullable=True)
    risk_level = Column(String(10), default=RiskLevel.LOW.value, nullable=False)
    requires_approval = Column(Boolean, default=False, nullable=False)
    is_critical = Column(Boolean, default=False, nullable=False)

    dependencies = relationship(
        "Permission",
        secondary="permission_dependencies",
        primaryjoin="Permission.id == PermissionDependency.permission_id",
        secondaryjoin="Permission.id == PermissionDependency.depends_on_permission_id",
        viewonly=True,
    )

    def __repr__(self):
        return f"<Permission(id={self.id}, name='{self.name}')>"


class PermissionDependency(BaseModel):
    """Directed edge: ``permission_id`` requires ``depends_on_permission_id``."""

    __tablename__ = "permission_dependencies"

    __table_args__ = (
        UniqueConstraint('permission_id', 'depends_on_permission_id', name='unique_permission_dependency'),
    )

    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)
    depends_on_permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)

    permission = relationship("Permission", foreign_keys=[permission_id])
    depends_on_permission = relationship("Permission", foreign_keys=[depends_on_permission_id])

    def __repr__(self):
        return f"<PermissionDependency(permission_id={self.permission_id}, depends_on={self.depends_on_permission_id})>"
