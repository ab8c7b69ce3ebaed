"""
Authority sources consulted by the permission resolver.

Each provider answers one question for a (user, permission name) pair and can
be tested on its own. ``None`` means "no opinion": the resolver moves on to the
next source. Only the override provider ever answers ``False``.
"""

from typing import Optional, Set

from sqlalchemy.orm import Session

from hms_rbac.models.permission import Permission
from hms_rbac.models.role_permission import RolePermission, RolePermissionMapping
from hms_rbac.models.temporary_permission import TemporaryPermission
from hms_rbac.models.user import User
from hms_rbac.models.user_permission import UserPermission


class AuthorityProvider:
    """Interface shared by every authority source."""

    name = "provider"

    def grants(self, db: Session, user: User, permission_name: str) -> Optional[bool]:
        raise NotImplementedError

    def granted_names(self, db: Session, user: User) -> Set[str]:
        raise NotImplementedError


class RoleMappingProvider(AuthorityProvider):
    """Resolves through ``user.role_id -> Role -> role_permission_mappings``."""

    name = "normalized_role"

    def grants(self, db: Session, user: User, permission_name: str) -> Optional[bool]:
        if user.role_id is None:
            return None

        exists = db.query(RolePermissionMapping.id).join(
            Permission, Permission.id == RolePermissionMapping.permission_id
        ).filter(
            RolePermissionMapping.role_id == user.role_id,
            Permission.name == permission_name
        ).first() is not None

        return True if exists else None

    def granted_names(self, db: Session, user: User) -> Set[str]:
        if user.role_id is None:
            return set()

        rows = db.query(Permission.name).join(
            RolePermissionMapping, Permission.id == RolePermissionMapping.permission_id
        ).filter(
            RolePermissionMapping.role_id == user.role_id
        ).all()
        return {row[0] for row in rows}


class LegacyRoleMappingProvider(AuthorityProvider):
    """Resolves through the free-text ``user.role`` and the legacy ``role_permissions`` table."""

    name = "legacy_role"

    def grants(self, db: Session, user: User, permission_name: str) -> Optional[bool]:
        if not user.role:
            return None

        exists = db.query(RolePermission.id).join(
            Permission, Permission.id == RolePermission.permission_id
        ).filter(
            RolePermission.role == user.role,
            Permission.name == permission_name
        ).first() is not None

        return True if exists else None

    def granted_names(self, db: Session, user: User) -> Set[str]:
        if not user.role:
            return set()

        rows = db.query(Permission.name).join(
            RolePermission, Permission.id == RolePermission.permission_id
        ).filter(
            RolePermission.role == user.role
        ).all()
        return {row[0] for row in rows}


class UserOverrideProvider(AuthorityProvider):
    """Per-user allow/deny rows. A row's ``allowed`` value is final."""

    name = "user_override"

    def get_override(self, db: Session, user: User, permission_name: str) -> Optional[UserPermission]:
        return db.query(UserPermission).join(
            Permission, Permission.id == UserPermission.permission_id
        ).filter(
            UserPermission.user_id == user.id,
            Permission.name == permission_name
        ).first()

    def grants(self, db: Session, user: User, permission_name: str) -> Optional[bool]:
        override = self.get_override(db, user, permission_name)
        if override is None:
            return None
        return bool(override.allowed)

    def _names(self, db: Session, user: User, allowed: bool) -> Set[str]:
        rows = db.query(Permission.name).join(
            UserPermission, Permission.id == UserPermission.permission_id
        ).filter(
            UserPermission.user_id == user.id,
            UserPermission.allowed == allowed
        ).all()
        return {row[0] for row in rows}

    def granted_names(self, db: Session, user: User) -> Set[str]:
        return self._names(db, user, True)

    def denied_names(self, db: Session, user: User) -> Set[str]:
        return self._names(db, user, False)


class TemporaryGrantProvider(AuthorityProvider):
    """Active, non-expired temporary grants."""

    name = "temporary"

    def grants(self, db: Session, user: User, permission_name: str) -> Optional[bool]:
        grant = TemporaryPermission.find_active_by_name(db, user.id, permission_name)
        return True if grant is not None else None

    def granted_names(self, db: Session, user: User) -> Set[str]:
        grants = db.query(TemporaryPermission).filter(
            TemporaryPermission.user_id == user.id,
            TemporaryPermission.is_active == True,  # noqa: E712
        ).all()
        return {grant.permission.name for grant in grants if not grant.is_expired}


# Shared, stateless provider instances
role_mapping_provider = RoleMappingProvider()
legacy_role_mapping_provider = LegacyRoleMappingProvider()
user_override_provider = UserOverrideProvider()
temporary_grant_provider = TemporaryGrantProvider()

ROLE_PROVIDERS = (role_mapping_provider, legacy_role_mapping_provider)
