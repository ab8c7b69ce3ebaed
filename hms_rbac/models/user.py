"""
User model as seen by the permission engine.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin


class User(BaseModel, TimestampMixin):
    """
    Hospital staff user.

    ``role`` is the legacy free-text role name and ``role_id`` points at the
    normalized role; either, both or neither may be set.
    """

    __tablename__ = "users"

    __table_args__ = (
        Index('idx_user_is_active', 'is_active'),
    )

    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    role = Column(String(100), nullable=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role_model = relationship("Role", backref="users")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"
