"""
Audit Log model for recording permission grant, revoke and approval events.
"""

import json

from sqlalchemy import Column, Index, Integer, String, Text

from hms_rbac.models.base import BaseModel
from hms_rbac.models.mixins import TimestampMixin


class AuditLog(BaseModel, TimestampMixin):
    """Audit Log model for permission event tracking."""

    __tablename__ = "audit_logs"

    user_id = Column(Integer, nullable=True, index=True)  # Actor; nullable for system events
    action = Column(String(100), nullable=False, index=True)
    resource = Column(String(255), nullable=True, index=True)
    resource_id = Column(String(255), nullable=True)
    details = Column(Text, nullable=True)  # JSON details

    __table_args__ = (
        Index('idx_audit_log_user_created', 'user_id', 'created_at'),
        Index('idx_audit_log_action_created', 'action', 'created_at'),
    )

    def __repr__(self):
        return f"<AuditLog(user_id={self.user_id}, action='{self.action}', resource='{self.resource}')>"

    @classmethod
    def log_event(cls, db_session, user_id=None, action=None, resource=None, resource_id=None,
                  details=None):
        """Create an audit log entry and add it to the session."""
        audit_log = cls(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id
        )

        if details:
            if isinstance(details, dict):
                audit_log.details = json.dumps(details, default=str)
            else:
                audit_log.details = str(details)

        db_session.add(audit_log)
        return audit_log

    def get_details(self):
        """Get audit log details as a dictionary."""
        if not self.details:
            return {}
        try:
            return json.loads(self.details)
        except (json.JSONDecodeError, TypeError):
            return {"raw_details": self.details}
