"""
Time-bounded permission grants.

Grants are read live by the resolver on every check, so granting and revoking
take effect immediately without touching the permission cache.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from hms_rbac.core.audit import PermissionAudit
from hms_rbac.core.catalog import PermissionCatalog
from hms_rbac.core.errors import EngineError
from hms_rbac.core.rbac import PermissionResolver
from hms_rbac.models.mixins import as_utc
from hms_rbac.models.temporary_permission import TemporaryPermission
from hms_rbac.models.user import User

logger = logging.getLogger(__name__)


class TemporaryPermissionService:
    """Grant, revoke and list temporary permissions."""

    @staticmethod
    def grant_temporary(
        db: Session,
        user_id: int,
        permission: Union[int, str],
        expires_at: datetime,
        reason: str,
        granted_by: Optional[int] = None
    ) -> TemporaryPermission:
        """
        Grant ``permission`` to a user until ``expires_at``.

        Args:
            db: Database session
            user_id: Recipient of the grant
            permission: Permission id or name
            expires_at: Expiry instant; naive values are taken as UTC
            reason: Justification recorded with the grant
            granted_by: Id of the granting user

        Raises:
            NotFoundError: Unknown user or permission
            ValidationError: Expiry not in the future, blank reason, or an
                active grant for the same permission already exists
        """
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise EngineError.user_not_found()

        target = PermissionCatalog.resolve(db, permission)

        if as_utc(expires_at) <= datetime.now(timezone.utc):
            raise EngineError.expiration_in_past()

        if not reason or not reason.strip():
            raise EngineError.reason_required()

        if TemporaryPermission.find_active(db, user_id, target.id) is not None:
            raise EngineError.duplicate_temporary_grant()

        grant = TemporaryPermission(
            user_id=user_id,
            permission_id=target.id,
            granted_by=granted_by,
            expires_at=as_utc(expires_at),
            reason=reason.strip(),
            is_active=True
        )
        db.add(grant)
        db.flush()

        PermissionAudit.record(
            db,
            "temporary_permission_granted",
            actor_id=granted_by,
            resource="temporary_permission",
            resource_id=grant.id,
            details={
                "user_id": user_id,
                "permission": target.name,
                "expires_at": grant.expires_at,
                "reason": grant.reason,
            }
        )
        db.commit()
        db.refresh(grant)

        logger.info(
            f"Granted temporary permission {target.name} to user {user_id} until {grant.expires_at} "
            f"(granted_by={granted_by})"
        )
        return grant

    @staticmethod
    def revoke_temporary(db: Session, grant_id: int, requested_by: User) -> TemporaryPermission:
        """
        Revoke a temporary grant.

        Only the user who issued the grant or a super admin may revoke it.

        Raises:
            NotFoundError: Unknown grant
            AuthorizationError: Requester is neither granter nor super admin
            StateError: Grant already revoked
        """
        grant = db.query(TemporaryPermission).filter(TemporaryPermission.id == grant_id).first()
        if grant is None:
            raise EngineError.temporary_permission_not_found()

        is_granter = grant.granted_by is not None and grant.granted_by == requested_by.id
        if not is_granter and not PermissionResolver.is_super_admin(requested_by):
            logger.warning(f"User {requested_by.id} attempted to revoke temporary permission {grant_id}")
            raise EngineError.unauthorized_revoke()

        if not grant.is_active:
            raise EngineError.already_revoked()

        grant.revoke(revoked_by=requested_by.id)

        PermissionAudit.record(
            db,
            "temporary_permission_revoked",
            actor_id=requested_by.id,
            resource="temporary_permission",
            resource_id=grant.id,
            details={"user_id": grant.user_id, "permission_id": grant.permission_id}
        )
        db.commit()
        db.refresh(grant)

        logger.info(f"Revoked temporary permission {grant_id} (revoked_by={requested_by.id})")
        return grant

    @staticmethod
    def list_temporary(db: Session, user_id: Optional[int] = None, active_only: bool = False) -> List[TemporaryPermission]:
        """List grants, newest first. ``active_only`` drops revoked and expired grants."""
        query = db.query(TemporaryPermission)
        if user_id is not None:
            query = query.filter(TemporaryPermission.user_id == user_id)
        if active_only:
            query = query.filter(TemporaryPermission.is_active == True)  # noqa: E712

        grants = query.order_by(TemporaryPermission.id.desc()).all()
        if active_only:
            grants = [grant for grant in grants if not grant.is_expired]
        return grants

    @staticmethod
    def get_active_grant(db: Session, user_id: int, permission_name: str) -> Optional[TemporaryPermission]:
        return TemporaryPermission.find_active_by_name(db, user_id, permission_name)
