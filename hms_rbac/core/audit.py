"""
Audit trail for permission grants, revocations and approvals.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from hms_rbac.core.config import settings
from hms_rbac.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class PermissionAudit:
    """Permission event recording."""

    @staticmethod
    def record(
        db: Session,
        action: str,
        actor_id: Optional[int] = None,
        resource: str = None,
        resource_id=None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditLog]:
        """
        Add an audit entry to the session.

        The entry is committed together with the caller's transaction. A
        failure here is logged and never interrupts the operation being
        audited.
        """
        if not settings.audit_logging_enabled:
            return None
        try:
            return AuditLog.log_event(
                db,
                user_id=actor_id,
                action=action,
                resource=resource,
                resource_id=str(resource_id) if resource_id is not None else None,
                details=details
            )
        except Exception as e:
            logger.error(f"Failed to record audit event {action}: {e}")
            return None
