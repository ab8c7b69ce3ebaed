"""
Approval-gated batch changes to a user's permission overrides.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin, as_utc


class ChangeRequestStatus(str, enum.Enum):
    """Lifecycle states of a change request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class PermissionChangeRequest(BaseModel, TimestampMixin):
    """
    A request to add and/or remove override permissions for a user.

    Only ``pending`` requests can move; ``approved``, ``rejected`` and
    ``expired`` are terminal. Cancellation by the requester lands in
    ``rejected`` as well.
    """

    __tablename__ = "permission_change_requests"

    __table_args__ = (
        Index('idx_change_request_status_created', 'status', 'created_at'),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    permissions_to_add = Column(JSON, default=list, nullable=False)
    permissions_to_remove = Column(JSON, default=list, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), default=ChangeRequestStatus.PENDING.value, nullable=False, index=True)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", foreign_keys=[user_id])
    requester = relationship("User", foreign_keys=[requested_by])
    approver = relationship("User", foreign_keys=[approved_by])

    @property
    def is_expired(self) -> bool:
        """Check if the request has passed its expiry time."""
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= as_utc(self.expires_at)

    @property
    def is_pending(self) -> bool:
        return self.status == ChangeRequestStatus.PENDING.value

    @property
    def is_actionable(self) -> bool:
        """Pending and not expired: the only state that accepts transitions."""
        return self.is_pending and not self.is_expired

    @property
    def effective_status(self) -> str:
        """Status with lazy expiry applied to pending requests."""
        if self.is_pending and self.is_expired:
            return ChangeRequestStatus.EXPIRED.value
        return self.status

    def __repr__(self):
        return f"<PermissionChangeRequest(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
