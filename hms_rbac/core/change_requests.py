"""
Approval workflow for batch changes to a user's permission overrides.

A request moves ``pending -> approved | rejected | expired`` and never leaves a
terminal state. Approval writes the override rows and the status change in one
transaction; a failure anywhere leaves the database untouched.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set, Union

from sqlalchemy.orm import Session

from hms_rbac.core.audit import PermissionAudit
from hms_rbac.core.catalog import PermissionCatalog
from hms_rbac.core.config import settings
from hms_rbac.core.database import transaction
from hms_rbac.core.dependency_validator import DependencyValidator
from hms_rbac.core.errors import EngineError
from hms_rbac.core.providers import ROLE_PROVIDERS, temporary_grant_provider
from hms_rbac.core.rbac import PermissionResolver
from hms_rbac.models.mixins import as_utc
from hms_rbac.models.permission import Permission
from hms_rbac.models.permission_change_request import ChangeRequestStatus, PermissionChangeRequest
from hms_rbac.models.user import User
from hms_rbac.models.user_permission import UserPermission

logger = logging.getLogger(__name__)


class ChangeRequestWorkflow:
    """Create, approve, reject and cancel permission change requests."""

    @staticmethod
    def _resolve_ids(db: Session, references: Iterable[Union[int, str]]) -> List[int]:
        ids = []
        for reference in references:
            permission_id = PermissionCatalog.resolve(db, reference).id
            if permission_id not in ids:
                ids.append(permission_id)
        return ids

    @staticmethod
    def _current_permission_ids(db: Session, user: User) -> List[int]:
        names = PermissionResolver.get_effective_permissions(user, db)
        if not names:
            return []
        return [row[0] for row in db.query(Permission.id).filter(Permission.name.in_(names)).all()]

    @staticmethod
    def _permission_ids_after_removal(db: Session, user: User, to_remove: List[int]) -> Set[int]:
        """
        Permissions the user would hold once the override rows in ``to_remove``
        are deleted.

        A removed permission stays held when a role or an active temporary
        grant still provides it.
        """
        held = set(ChangeRequestWorkflow._current_permission_ids(db, user))
        if not to_remove or PermissionResolver.is_super_admin(user):
            return held

        removed = db.query(UserPermission.permission_id, Permission.name).join(
            Permission, Permission.id == UserPermission.permission_id
        ).filter(
            UserPermission.user_id == user.id,
            UserPermission.permission_id.in_(to_remove)
        ).all()

        for permission_id, name in removed:
            if any(provider.grants(db, user, name) for provider in (*ROLE_PROVIDERS, temporary_grant_provider)):
                held.add(permission_id)
            else:
                held.discard(permission_id)
        return held

    @staticmethod
    def _check_dependencies(db: Session, user: User, to_add: List[int], to_remove: List[int]) -> None:
        errors = DependencyValidator.validate(
            db, to_add, ChangeRequestWorkflow._permission_ids_after_removal(db, user, to_remove)
        )
        if errors:
            raise EngineError.dependencies_unsatisfied(errors)

    @staticmethod
    def get(db: Session, request_id: int) -> PermissionChangeRequest:
        """
        Raises:
            NotFoundError: Unknown request id
        """
        request = db.query(PermissionChangeRequest).filter(PermissionChangeRequest.id == request_id).first()
        if request is None:
            raise EngineError.request_not_found()
        return request

    @staticmethod
    def _get_for_update(db: Session, request_id: int) -> PermissionChangeRequest:
        """Load a request and lock its row until the surrounding transaction ends."""
        request = db.query(PermissionChangeRequest).filter(
            PermissionChangeRequest.id == request_id
        ).populate_existing().with_for_update().first()
        if request is None:
            raise EngineError.request_not_found()
        return request

    @staticmethod
    def list(db: Session, status: Optional[str] = None, user_id: Optional[int] = None) -> List[PermissionChangeRequest]:
        """
        List requests, newest first.

        ``status`` is matched against the effective status, so pending
        requests past their expiry are listed as expired.
        """
        query = db.query(PermissionChangeRequest)
        if user_id is not None:
            query = query.filter(PermissionChangeRequest.user_id == user_id)

        requests = query.order_by(PermissionChangeRequest.id.desc()).all()
        if status is not None:
            requests = [request for request in requests if request.effective_status == status]
        return requests

    @staticmethod
    def create(
        db: Session,
        target_user_id: int,
        to_add: Iterable[Union[int, str]],
        to_remove: Iterable[Union[int, str]],
        reason: Optional[str],
        requested_by: User,
        expires_at: Optional[datetime] = None
    ) -> PermissionChangeRequest:
        """
        Open a pending change request for a user.

        Args:
            db: Database session
            target_user_id: User whose overrides would change
            to_add: Permission ids or names to grant
            to_remove: Permission ids or names whose overrides are removed
            reason: Free-text justification
            requested_by: User opening the request
            expires_at: Optional expiry; defaults from settings when configured

        Raises:
            ValidationError: Empty request, unmet dependencies or past expiry
            NotFoundError: Unknown user or permission
        """
        to_add = list(to_add or [])
        to_remove = list(to_remove or [])
        if not to_add and not to_remove:
            raise EngineError.no_permissions()

        user = db.query(User).filter(User.id == target_user_id).first()
        if user is None:
            raise EngineError.user_not_found()

        add_ids = ChangeRequestWorkflow._resolve_ids(db, to_add)
        remove_ids = ChangeRequestWorkflow._resolve_ids(db, to_remove)

        ChangeRequestWorkflow._check_dependencies(db, user, add_ids, remove_ids)

        now = datetime.now(timezone.utc)
        if expires_at is not None:
            expires_at = as_utc(expires_at)
            if expires_at <= now:
                raise EngineError.expiration_in_past()
        elif settings.change_request_default_expiry_days > 0:
            expires_at = now + timedelta(days=settings.change_request_default_expiry_days)

        request = PermissionChangeRequest(
            user_id=user.id,
            requested_by=requested_by.id,
            permissions_to_add=add_ids,
            permissions_to_remove=remove_ids,
            reason=reason,
            status=ChangeRequestStatus.PENDING.value,
            expires_at=expires_at
        )
        db.add(request)
        db.flush()

        PermissionAudit.record(
            db,
            "change_request_created",
            actor_id=requested_by.id,
            resource="permission_change_request",
            resource_id=request.id,
            details={"user_id": user.id, "add": add_ids, "remove": remove_ids, "reason": reason}
        )
        db.commit()
        db.refresh(request)

        logger.info(f"Change request {request.id} created for user {user.id} by user {requested_by.id}")
        return request

    @staticmethod
    async def approve(db: Session, request_id: int, approver: User) -> PermissionChangeRequest:
        """
        Apply a pending request.

        Each added permission becomes an ``allowed`` override and each removed
        permission loses its override row. The target's cached results are
        dropped after the commit.

        The request row stays locked from the state check until the commit, so
        concurrent approve, reject or cancel calls see the outcome of this one.

        Raises:
            NotFoundError: Unknown request id
            StateError: Request is not pending or has expired
            ValidationError: Dependencies no longer satisfied
        """
        with transaction(db):
            request = ChangeRequestWorkflow._get_for_update(db, request_id)
            if not request.is_actionable:
                raise EngineError.request_not_valid()

            user = db.query(User).filter(User.id == request.user_id).first()
            if user is None:
                raise EngineError.user_not_found()

            add_ids = list(request.permissions_to_add or [])
            remove_ids = list(request.permissions_to_remove or [])

            ChangeRequestWorkflow._check_dependencies(db, user, add_ids, remove_ids)

            for permission_id in add_ids:
                override = db.query(UserPermission).filter(
                    UserPermission.user_id == user.id,
                    UserPermission.permission_id == permission_id
                ).first()
                if override is None:
                    db.add(UserPermission(
                        user_id=user.id,
                        permission_id=permission_id,
                        allowed=True,
                        granted_by=approver.id
                    ))
                else:
                    override.allowed = True
                    override.granted_by = approver.id

            if remove_ids:
                db.query(UserPermission).filter(
                    UserPermission.user_id == user.id,
                    UserPermission.permission_id.in_(remove_ids)
                ).delete(synchronize_session=False)

            request.status = ChangeRequestStatus.APPROVED.value
            request.approved_by = approver.id
            request.approved_at = datetime.now(timezone.utc)

            PermissionAudit.record(
                db,
                "change_request_approved",
                actor_id=approver.id,
                resource="permission_change_request",
                resource_id=request.id,
                details={"user_id": user.id, "add": add_ids, "remove": remove_ids}
            )

        await PermissionResolver.invalidate_cache(user.id)
        db.refresh(request)

        logger.info(f"Change request {request.id} approved by user {approver.id}")
        return request

    @staticmethod
    def reject(db: Session, request_id: int, approver: User) -> PermissionChangeRequest:
        """
        Reject a pending request without touching any permissions.

        Raises:
            NotFoundError: Unknown request id
            StateError: Request is not pending or has expired
        """
        with transaction(db):
            request = ChangeRequestWorkflow._get_for_update(db, request_id)
            if not request.is_actionable:
                raise EngineError.request_not_valid()

            request.status = ChangeRequestStatus.REJECTED.value
            request.approved_by = approver.id
            request.approved_at = datetime.now(timezone.utc)

            PermissionAudit.record(
                db,
                "change_request_rejected",
                actor_id=approver.id,
                resource="permission_change_request",
                resource_id=request.id,
                details={"user_id": request.user_id}
            )

        db.refresh(request)

        logger.info(f"Change request {request.id} rejected by user {approver.id}")
        return request

    @staticmethod
    def cancel(db: Session, request_id: int, requester: User) -> PermissionChangeRequest:
        """
        Withdraw a pending request.

        Only the original requester or a super admin may cancel. A cancelled
        request is stored as ``rejected``; the audit trail records the
        cancellation.

        Raises:
            NotFoundError: Unknown request id
            AuthorizationError: Caller is neither requester nor super admin
            StateError: Request is not pending or has expired
        """
        with transaction(db):
            request = ChangeRequestWorkflow._get_for_update(db, request_id)

            is_requester = request.requested_by is not None and request.requested_by == requester.id
            if not is_requester and not PermissionResolver.is_super_admin(requester):
                logger.warning(f"User {requester.id} attempted to cancel change request {request_id}")
                raise EngineError.unauthorized_cancel()

            if not request.is_actionable:
                raise EngineError.request_not_cancellable()

            request.status = ChangeRequestStatus.REJECTED.value

            PermissionAudit.record(
                db,
                "change_request_cancelled",
                actor_id=requester.id,
                resource="permission_change_request",
                resource_id=request.id,
                details={"user_id": request.user_id}
            )

        db.refresh(request)

        logger.info(f"Change request {request.id} cancelled by user {requester.id}")
        return request

    @staticmethod
    def expire_stale_requests(db: Session) -> int:
        """Move pending requests past their expiry to ``expired``. Returns the count."""
        expired = 0
        with transaction(db):
            candidates = db.query(PermissionChangeRequest).filter(
                PermissionChangeRequest.status == ChangeRequestStatus.PENDING.value,
                PermissionChangeRequest.expires_at.isnot(None)
            ).populate_existing().with_for_update().all()

            for request in candidates:
                if request.is_expired:
                    request.status = ChangeRequestStatus.EXPIRED.value
                    expired += 1

            if expired:
                PermissionAudit.record(
                    db,
                    "change_requests_expired",
                    resource="permission_change_request",
                    details={"count": expired}
                )

        if expired:
            logger.info(f"Expired {expired} stale change requests")

        return expired
