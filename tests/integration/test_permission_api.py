"""
Integration tests for the permission administration API.

Tests complete end-to-end flows including:
- Authentication and permission gating
- Permission checks with explanations
- Temporary grant and revoke
- Change request lifecycle
- Cache maintenance
- Role hierarchy endpoints
- Health checks
"""

import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from hms_rbac.models.permission_change_request import PermissionChangeRequest
from hms_rbac.models.user_permission import UserPermission


BASE = "/api/v1/admin/permissions"


def iso(value: datetime) -> str:
    return value.isoformat()


# ==================== ACCESS CONTROL ====================

@pytest.mark.integration
class TestAccessControl:
    """Endpoints require an authenticated user holding the admin permission."""

    def test_unauthenticated(self, client: TestClient, test_user):
        response = client.get(f"{BASE}/users/{test_user.id}/effective")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_missing_admin_permission(self, client: TestClient, login_as, test_user, manage_permissions):
        login_as(test_user)

        response = client.get(f"{BASE}/users/{test_user.id}/effective")

        assert response.status_code == 403
        assert response.json()["detail"] == "Permission denied: manage-permissions required"

    def test_own_check_needs_only_authentication(self, client: TestClient, login_as, test_user, view_billing):
        login_as(test_user)

        response = client.get(f"{BASE}/check", params={"permission": "view-billing"})

        assert response.status_code == 200
        assert response.json() == {
            "user_id": test_user.id,
            "permission": "view-billing",
            "allowed": False,
            "breakdown": None,
        }


# ==================== CHECKS ====================

@pytest.mark.integration
class TestPermissionChecks:

    def test_check_with_explanation(self, client: TestClient, login_as, admin_user, make_user, make_role, view_billing):
        login_as(admin_user)
        cashier = make_user(role_model=make_role("Cashier", permissions=[view_billing]))

        response = client.get(
            f"{BASE}/users/{cashier.id}/check",
            params={"permission": "view-billing", "explain": True}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is True
        assert data["breakdown"]["normalized_role_permission"] is True
        assert data["breakdown"]["user_override"] == "NOT_SET"
        assert data["breakdown"]["role_slug"] == "cashier"

    def test_check_unknown_user(self, client: TestClient, login_as, admin_user):
        login_as(admin_user)

        response = client.get(f"{BASE}/users/9999/check", params={"permission": "view-billing"})

        assert response.status_code == 404
        assert response.json() == {"error": "User not found.", "error_code": "NF_001"}

    def test_effective_permissions(self, client: TestClient, login_as, admin_user, db_session, test_user,
                                   user_permissions, view_billing):
        login_as(admin_user)
        db_session.add_all([
            UserPermission(user_id=test_user.id, permission_id=view_billing.id, allowed=True),
            UserPermission(user_id=test_user.id, permission_id=user_permissions["view-users"].id, allowed=True),
        ])
        db_session.commit()

        response = client.get(f"{BASE}/users/{test_user.id}/effective")

        assert response.status_code == 200
        assert response.json()["permissions"] == ["view-billing", "view-users"]


# ==================== TEMPORARY PERMISSIONS ====================

@pytest.mark.integration
class TestTemporaryPermissionEndpoints:

    def test_grant_list_and_revoke(self, client: TestClient, login_as, admin_user, test_user, view_billing):
        login_as(admin_user)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=4)

        response = client.post(f"{BASE}/temporary", json={
            "user_id": test_user.id,
            "permission": "view-billing",
            "expires_at": iso(expires_at),
            "reason": "Covering the billing desk"
        })

        assert response.status_code == 201
        grant = response.json()
        assert grant["permission_id"] == view_billing.id
        assert grant["granted_by"] == admin_user.id
        assert grant["is_active"] is True
        assert grant["is_expired"] is False

        check = client.get(f"{BASE}/users/{test_user.id}/check", params={"permission": "view-billing"})
        assert check.json()["allowed"] is True

        listed = client.get(f"{BASE}/temporary", params={"user_id": test_user.id, "active_only": True})
        assert [item["id"] for item in listed.json()] == [grant["id"]]

        revoked = client.delete(f"{BASE}/temporary/{grant['id']}")
        assert revoked.status_code == 200
        assert revoked.json()["is_active"] is False

        check = client.get(f"{BASE}/users/{test_user.id}/check", params={"permission": "view-billing"})
        assert check.json()["allowed"] is False

    def test_grant_in_past(self, client: TestClient, login_as, admin_user, test_user, view_billing):
        login_as(admin_user)

        response = client.post(f"{BASE}/temporary", json={
            "user_id": test_user.id,
            "permission": view_billing.id,
            "expires_at": iso(datetime.now(timezone.utc) - timedelta(minutes=1)),
            "reason": "Too late"
        })

        assert response.status_code == 400
        assert response.json()["error_code"] == "VAL_003"

    def test_revoke_by_other_admin(self, client: TestClient, login_as, admin_user, make_user, make_role,
                                   manage_permissions, test_user, view_billing):
        login_as(admin_user)
        grant = client.post(f"{BASE}/temporary", json={
            "user_id": test_user.id,
            "permission": "view-billing",
            "expires_at": iso(datetime.now(timezone.utc) + timedelta(hours=1)),
            "reason": "Audit"
        }).json()

        login_as(make_user("otheradmin", role_model=make_role("Other Admin", permissions=[manage_permissions])))
        response = client.delete(f"{BASE}/temporary/{grant['id']}")

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized to revoke this permission.", "error_code": "AUTHZ_001"}


# ==================== CHANGE REQUESTS ====================

@pytest.mark.integration
class TestChangeRequestEndpoints:

    def test_create_and_approve(self, client: TestClient, login_as, admin_user, make_user, test_user, user_permissions):
        payload = {
            "user_id": test_user.id,
            "permissions_to_add": ["view-users", "edit-users"],
            "reason": "Promoted to ward administrator"
        }

        login_as(make_user("wardlead"))
        assert client.post(f"{BASE}/change-requests", json=payload).status_code == 403
        assert client.get(f"{BASE}/change-requests").status_code == 403

        login_as(admin_user)
        created = client.post(f"{BASE}/change-requests", json=payload)

        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["requested_by"] == admin_user.id
        assert created.json()["status"] == "pending"
        assert created.json()["effective_status"] == "pending"

        approved = client.post(f"{BASE}/change-requests/{request_id}/approve")

        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["approved_by"] == admin_user.id

        check = client.get(f"{BASE}/users/{test_user.id}/check", params={"permission": "edit-users"})
        assert check.json()["allowed"] is True

        again = client.post(f"{BASE}/change-requests/{request_id}/approve")
        assert again.status_code == 400
        assert again.json() == {"error": "Request is no longer valid.", "error_code": "STATE_001"}

    def test_dependency_failure(self, client: TestClient, login_as, admin_user, test_user, user_permissions):
        login_as(admin_user)

        response = client.post(f"{BASE}/change-requests", json={
            "user_id": test_user.id,
            "permissions_to_add": ["edit-users"],
        })

        assert response.status_code == 400
        assert response.json() == {
            "error": "Permission dependencies not satisfied: edit-users requires view-users",
            "error_code": "VAL_002",
            "details": ["edit-users requires view-users"],
        }

    def test_empty_request(self, client: TestClient, login_as, admin_user, test_user):
        login_as(admin_user)

        response = client.post(f"{BASE}/change-requests", json={"user_id": test_user.id})

        assert response.status_code == 400
        assert response.json()["error"] == "At least one permission must be added or removed."

    def test_cancel(self, client: TestClient, login_as, make_user, make_role, manage_permissions, admin_user,
                    test_user, view_billing):
        login_as(admin_user)
        request_id = client.post(f"{BASE}/change-requests", json={
            "user_id": test_user.id,
            "permissions_to_add": ["view-billing"],
        }).json()["id"]

        # Holding the admin permission is not enough to withdraw someone else's request
        login_as(make_user("otheradmin", role_model=make_role("Other Admin", permissions=[manage_permissions])))
        denied = client.delete(f"{BASE}/change-requests/{request_id}")
        assert denied.status_code == 403
        assert denied.json()["error"] == "Unauthorized to cancel this request."

        login_as(admin_user)
        cancelled = client.delete(f"{BASE}/change-requests/{request_id}")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "rejected"

    def test_reject_and_list(self, client: TestClient, login_as, admin_user, test_user, view_billing):
        login_as(admin_user)
        first = client.post(f"{BASE}/change-requests", json={
            "user_id": test_user.id, "permissions_to_add": ["view-billing"]
        }).json()
        second = client.post(f"{BASE}/change-requests", json={
            "user_id": test_user.id, "permissions_to_remove": ["view-billing"]
        }).json()

        rejected = client.post(f"{BASE}/change-requests/{first['id']}/reject")
        assert rejected.json()["status"] == "rejected"

        pending = client.get(f"{BASE}/change-requests", params={"status": "pending"})
        assert [item["id"] for item in pending.json()] == [second["id"]]

        single = client.get(f"{BASE}/change-requests/{first['id']}")
        assert single.json()["status"] == "rejected"

        assert client.get(f"{BASE}/change-requests/9999").status_code == 404

    def test_expire(self, client: TestClient, login_as, admin_user, db_session, test_user, view_billing):
        login_as(admin_user)
        request_id = client.post(f"{BASE}/change-requests", json={
            "user_id": test_user.id,
            "permissions_to_add": ["view-billing"],
            "expires_at": iso(datetime.now(timezone.utc) + timedelta(hours=1)),
        }).json()["id"]

        request = db_session.get(PermissionChangeRequest, request_id)
        request.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        assert client.get(f"{BASE}/change-requests/{request_id}").json()["effective_status"] == "expired"
        assert client.post(f"{BASE}/change-requests/{request_id}/approve").status_code == 400

        response = client.post(f"{BASE}/change-requests/expire")
        assert response.status_code == 200
        assert response.json() == {"expired": 1}
        assert client.get(f"{BASE}/change-requests/{request_id}").json()["status"] == "expired"


# ==================== CACHE ====================

@pytest.mark.integration
@pytest.mark.redis
class TestCacheEndpoints:

    def test_invalidate_user(self, client: TestClient, login_as, admin_user, make_user, make_role, view_billing):
        login_as(admin_user)
        cashier = make_user(role_model=make_role("Cashier", permissions=[view_billing]))
        client.get(f"{BASE}/users/{cashier.id}/check", params={"permission": "view-billing"})
        client.get(f"{BASE}/users/{cashier.id}/check", params={"permission": "view-users"})

        response = client.post(f"{BASE}/cache/users/{cashier.id}/invalidate")

        assert response.status_code == 200
        assert response.json() == {"deleted": 2}

    def test_flush(self, client: TestClient, login_as, admin_user, test_user, view_billing):
        login_as(admin_user)
        client.get(f"{BASE}/users/{test_user.id}/check", params={"permission": "view-billing"})

        response = client.post(f"{BASE}/cache/flush")

        assert response.status_code == 200
        # The admin's own manage-permissions check is cached as well
        assert response.json()["deleted"] >= 1
        assert client.post(f"{BASE}/cache/flush").json()["deleted"] >= 0


# ==================== ROLES ====================

@pytest.mark.integration
class TestRoleEndpoints:

    def test_hierarchy(self, client: TestClient, login_as, super_admin, make_role):
        login_as(super_admin)
        top = make_role("Administrator", priority=90)
        make_role("Cashier", priority=40, parent=top)

        response = client.get("/api/v1/admin/roles/hierarchy")

        assert response.status_code == 200
        tree = response.json()
        assert tree[0]["slug"] == "administrator"
        assert tree[0]["children"][0]["slug"] == "cashier"

    def test_set_parent_cycle(self, client: TestClient, login_as, super_admin, make_role):
        login_as(super_admin)
        top = make_role("Administrator")
        child = make_role("Cashier", parent=top)

        response = client.put(f"/api/v1/admin/roles/{top.id}/parent", json={"parent_role_id": child.id})

        assert response.status_code == 400
        assert response.json()["error_code"] == "VAL_006"

    def test_sync_permissions(self, client: TestClient, login_as, super_admin, make_role, view_billing):
        login_as(super_admin)
        role = make_role("Cashier")

        response = client.put(
            f"/api/v1/admin/roles/{role.id}/permissions",
            json={"permission_ids": [view_billing.id]}
        )

        assert response.status_code == 200
        assert response.json()["slug"] == "cashier"

    def test_assign_role_below_own(self, client: TestClient, login_as, make_user, make_role, make_permission, test_user):
        manage_roles = make_permission("manage-roles")
        top = make_role("Administrator", permissions=[manage_roles], priority=90)
        cashier = make_role("Cashier", parent=top)
        login_as(make_user("manager", role_model=top))

        assigned = client.post(f"/api/v1/admin/roles/{cashier.id}/users/{test_user.id}")
        assert assigned.status_code == 200
        assert assigned.json()["role_id"] == cashier.id

        refused = client.post(f"/api/v1/admin/roles/{top.id}/users/{test_user.id}")
        assert refused.status_code == 403

    def test_unused_permissions(self, client: TestClient, login_as, super_admin, make_permission):
        login_as(super_admin)
        make_permission("view-pharmacy")

        response = client.get("/api/v1/admin/roles/unused-permissions")

        assert response.status_code == 200
        assert [item["name"] for item in response.json()] == ["view-pharmacy"]


# ==================== HEALTH ====================

@pytest.mark.integration
class TestHealthEndpoints:

    def test_basic_health_check(self, client: TestClient):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health_check(self, client: TestClient):
        response = client.get("/api/v1/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["checks"]["database"] == "healthy"
        assert data["checks"]["redis"] == "healthy"
        assert data["status"] == "healthy"
