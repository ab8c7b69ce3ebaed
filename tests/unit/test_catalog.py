"""
Unit tests for the permission catalog.
"""

import pytest

from hms_rbac.core.cache import PermissionCache
from hms_rbac.core.catalog import PERMISSION_CATALOG, PermissionCatalog
from hms_rbac.core.errors import NotFoundError
from hms_rbac.models.permission import Permission, PermissionDependency
from hms_rbac.models.role_permission import RolePermission
from hms_rbac.models.user_permission import UserPermission


@pytest.mark.unit
class TestCatalogDefinition:

    def test_names_unique(self):
        names = [entry["name"] for entry in PERMISSION_CATALOG]
        assert len(names) == len(set(names))

    def test_dependencies_reference_catalog(self):
        names = {entry["name"] for entry in PERMISSION_CATALOG}
        for entry in PERMISSION_CATALOG:
            assert set(entry["depends_on"]) <= names, entry["name"]

    def test_edit_users_requires_view_users(self):
        entry = next(entry for entry in PERMISSION_CATALOG if entry["name"] == "edit-users")
        assert entry["depends_on"] == ["view-users"]
        assert entry["action"] == "edit"
        assert entry["resource"] == "users"


@pytest.mark.unit
@pytest.mark.database
class TestPermissionCatalog:

    async def test_seed(self, db_session):
        permissions = await PermissionCatalog.seed(db_session)

        assert len(permissions) == len(PERMISSION_CATALOG)
        assert db_session.query(Permission).count() == len(PERMISSION_CATALOG)

        edit_users = PermissionCatalog.get_by_name(db_session, "edit-users")
        assert {dep.name for dep in edit_users.dependencies} == {"view-users"}

    async def test_seed_is_idempotent(self, db_session):
        await PermissionCatalog.seed(db_session)
        edges = db_session.query(PermissionDependency).count()

        await PermissionCatalog.seed(db_session)

        assert db_session.query(Permission).count() == len(PERMISSION_CATALOG)
        assert db_session.query(PermissionDependency).count() == edges

    async def test_seed_flushes_cache(self, db_session):
        await PermissionCache.set_permission_check(1, "view-billing", False)

        await PermissionCatalog.seed(db_session)

        assert await PermissionCache.get_permission_check(1, "view-billing") is None

    def test_resolve_by_id_and_name(self, db_session, view_billing):
        assert PermissionCatalog.resolve(db_session, view_billing.id).id == view_billing.id
        assert PermissionCatalog.resolve(db_session, "view-billing").id == view_billing.id

    def test_resolve_unknown(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            PermissionCatalog.resolve(db_session, "launch-rockets")

        assert "launch-rockets" in exc_info.value.message

    def test_unused_permissions(self, db_session, make_user, make_role, grant_legacy, make_permission, user_permissions):
        view_billing = make_permission("view-billing")
        view_pharmacy = make_permission("view-pharmacy")
        make_role("Cashier", permissions=[view_billing])
        grant_legacy("Clerk", user_permissions["view-users"])
        user = make_user()
        db_session.add(UserPermission(user_id=user.id, permission_id=user_permissions["edit-users"].id, allowed=True))
        db_session.commit()

        unused = {permission.name for permission in PermissionCatalog.unused_permissions(db_session)}

        assert unused == {"create-users", view_pharmacy.name}
        assert db_session.query(RolePermission).count() == 1
