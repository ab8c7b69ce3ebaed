"""
Time-bounded permission grants.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship, Session

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin, as_utc
from hms_rbac.models.permission import Permission


class TemporaryPermission(BaseModel, TimestampMixin):
    """
    A grant that lapses at ``expires_at`` or when revoked.

    Expiry is evaluated whenever the grant is read; nothing sweeps expired rows.
    """

    __tablename__ = "temporary_permissions"

    __table_args__ = (
        Index('idx_temporary_permission_user_perm_active', 'user_id', 'permission_id', 'is_active'),
        Index('idx_temporary_permission_expires', 'expires_at'),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)
    granted_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    revoked_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    permission = relationship("Permission")
    user = relationship("User", foreign_keys=[user_id])
    granted_by_user = relationship("User", foreign_keys=[granted_by])

    @property
    def is_expired(self) -> bool:
        """Check if the grant has passed its expiry time."""
        return datetime.now(timezone.utc) >= as_utc(self.expires_at)

    @property
    def is_valid(self) -> bool:
        """Check if the grant is active and not expired."""
        return bool(self.is_active) and not self.is_expired

    def revoke(self, revoked_by: Optional[int] = None):
        """Deactivate the grant."""
        self.is_active = False
        self.revoked_by = revoked_by
        self.revoked_at = datetime.now(timezone.utc)

    @classmethod
    def find_active(cls, db_session: Session, user_id: int, permission_id: int) -> Optional["TemporaryPermission"]:
        """Return the user's active, non-expired grant for a permission, if any."""
        candidates = db_session.query(cls).filter(
            cls.user_id == user_id,
            cls.permission_id == permission_id,
            cls.is_active == True,  # noqa: E712
        ).all()
        for grant in candidates:
            if not grant.is_expired:
                return grant
        return None

    @classmethod
    def find_active_by_name(cls, db_session: Session, user_id: int, permission_name: str) -> Optional["TemporaryPermission"]:
        """Same as ``find_active`` but keyed by permission name."""
        candidates = db_session.query(cls).join(
            Permission, Permission.id == cls.permission_id
        ).filter(
            cls.user_id == user_id,
            Permission.name == permission_name,
            cls.is_active == True,  # noqa: E712
        ).all()
        for grant in candidates:
            if not grant.is_expired:
                return grant
        return None

    def __repr__(self):
        return f"<TemporaryPermission(user_id={self.user_id}, permission_id={self.permission_id}, active={self.is_active})>"
