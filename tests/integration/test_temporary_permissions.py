"""
Integration tests for temporary permission grants.
"""

import pytest
from datetime import datetime, timedelta, timezone

from hms_rbac.core.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from hms_rbac.core.rbac import PermissionResolver
from hms_rbac.core.temporary_permissions import TemporaryPermissionService
from hms_rbac.models.audit_log import AuditLog


@pytest.mark.integration
@pytest.mark.database
class TestGrantTemporary:

    async def test_grant_by_name(self, db_session, test_user, admin_user, view_billing, in_one_hour):
        grant = TemporaryPermissionService.grant_temporary(
            db_session, test_user.id, "view-billing", in_one_hour, "Covering billing desk", granted_by=admin_user.id
        )

        assert grant.id is not None
        assert grant.permission_id == view_billing.id
        assert grant.granted_by == admin_user.id
        assert grant.is_active is True
        assert await PermissionResolver.has_permission(test_user, "view-billing", db_session) is True

    def test_grant_by_id(self, db_session, test_user, view_billing, in_one_hour):
        grant = TemporaryPermissionService.grant_temporary(
            db_session, test_user.id, view_billing.id, in_one_hour, "Audit week"
        )
        assert grant.permission_id == view_billing.id

    def test_naive_expiry_treated_as_utc(self, db_session, test_user, view_billing):
        naive = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=2)
        grant = TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", naive, "Audit")
        assert grant.is_valid is True

    def test_expiry_in_past(self, db_session, test_user, view_billing, one_hour_ago):
        with pytest.raises(ValidationError):
            TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", one_hour_ago, "Audit")

    def test_blank_reason(self, db_session, test_user, view_billing, in_one_hour):
        with pytest.raises(ValidationError):
            TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "   ")

    def test_unknown_user(self, db_session, view_billing, in_one_hour):
        with pytest.raises(NotFoundError):
            TemporaryPermissionService.grant_temporary(db_session, 9999, "view-billing", in_one_hour, "Audit")

    def test_unknown_permission(self, db_session, test_user, in_one_hour):
        with pytest.raises(NotFoundError):
            TemporaryPermissionService.grant_temporary(db_session, test_user.id, "launch-rockets", in_one_hour, "Audit")

    def test_duplicate_active_grant(self, db_session, test_user, view_billing, in_one_hour):
        TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "Audit")

        with pytest.raises(ValidationError) as exc_info:
            TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "Again")

        assert exc_info.value.message == "User already has an active temporary permission for this action."

    def test_regrant_after_revocation(self, db_session, test_user, super_admin, view_billing, in_one_hour):
        first = TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "Audit")
        TemporaryPermissionService.revoke_temporary(db_session, first.id, super_admin)

        second = TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "Again")
        assert second.id != first.id

    def test_audit_entry(self, db_session, test_user, admin_user, view_billing, in_one_hour):
        grant = TemporaryPermissionService.grant_temporary(
            db_session, test_user.id, "view-billing", in_one_hour, "Audit", granted_by=admin_user.id
        )

        entry = db_session.query(AuditLog).filter(AuditLog.action == "temporary_permission_granted").one()
        assert entry.user_id == admin_user.id
        assert entry.resource_id == str(grant.id)
        assert entry.get_details()["permission"] == "view-billing"


@pytest.mark.integration
@pytest.mark.database
class TestRevokeTemporary:

    @pytest.fixture
    def grant(self, db_session, test_user, admin_user, view_billing, in_one_hour):
        return TemporaryPermissionService.grant_temporary(
            db_session, test_user.id, "view-billing", in_one_hour, "Audit", granted_by=admin_user.id
        )

    async def test_revoke_by_granter(self, db_session, grant, test_user, admin_user):
        """Revocation takes effect without touching the cache."""
        assert await PermissionResolver.has_permission(test_user, "view-billing", db_session) is True

        revoked = TemporaryPermissionService.revoke_temporary(db_session, grant.id, admin_user)

        assert revoked.is_active is False
        assert revoked.revoked_by == admin_user.id
        assert revoked.revoked_at is not None
        assert await PermissionResolver.has_permission(test_user, "view-billing", db_session) is False

    def test_revoke_by_super_admin(self, db_session, grant, super_admin):
        revoked = TemporaryPermissionService.revoke_temporary(db_session, grant.id, super_admin)
        assert revoked.revoked_by == super_admin.id

    def test_revoke_by_stranger(self, db_session, grant, make_user):
        stranger = make_user("stranger")

        with pytest.raises(AuthorizationError) as exc_info:
            TemporaryPermissionService.revoke_temporary(db_session, grant.id, stranger)

        assert exc_info.value.message == "Unauthorized to revoke this permission."
        db_session.refresh(grant)
        assert grant.is_active is True

    def test_revoke_twice(self, db_session, grant, admin_user):
        TemporaryPermissionService.revoke_temporary(db_session, grant.id, admin_user)

        with pytest.raises(StateError):
            TemporaryPermissionService.revoke_temporary(db_session, grant.id, admin_user)

    def test_revoke_unknown(self, db_session, super_admin):
        with pytest.raises(NotFoundError):
            TemporaryPermissionService.revoke_temporary(db_session, 9999, super_admin)


@pytest.mark.integration
@pytest.mark.database
class TestListTemporary:

    def test_list_and_filter(self, db_session, test_user, make_user, super_admin, make_permission, in_one_hour):
        make_permission("view-billing")
        make_permission("view-pharmacy")
        other = make_user("other")

        active = TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "A")
        revoked = TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-pharmacy", in_one_hour, "B")
        TemporaryPermissionService.revoke_temporary(db_session, revoked.id, super_admin)
        TemporaryPermissionService.grant_temporary(db_session, other.id, "view-billing", in_one_hour, "C")

        assert len(TemporaryPermissionService.list_temporary(db_session)) == 3
        assert [g.id for g in TemporaryPermissionService.list_temporary(db_session, user_id=test_user.id)] == [revoked.id, active.id]
        assert [g.id for g in TemporaryPermissionService.list_temporary(db_session, user_id=test_user.id, active_only=True)] == [active.id]

    def test_get_active_grant(self, db_session, test_user, view_billing, in_one_hour):
        assert TemporaryPermissionService.get_active_grant(db_session, test_user.id, "view-billing") is None

        grant = TemporaryPermissionService.grant_temporary(db_session, test_user.id, "view-billing", in_one_hour, "A")

        assert TemporaryPermissionService.get_active_grant(db_session, test_user.id, "view-billing").id == grant.id
