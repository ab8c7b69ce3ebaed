"""
Permission resolution with Redis caching.

This module decides whether a user holds a named permission. Sources are
consulted in a fixed order and the first one with an answer wins:

1. super-admin bypass
2. per-user override (read live)
3. active temporary grant (read live)
4. cached role-derived result
5. normalized role mapping OR legacy role mapping (result cached)

Checks never raise for unknown permissions or users without a role; they
resolve to False.
"""

from typing import Dict, Iterable, Set
from sqlalchemy.orm import Session
from fastapi import Depends, HTTPException, status
import logging

from hms_rbac.core.cache import PermissionCache
from hms_rbac.core.config import settings
from hms_rbac.core.database import get_db
from hms_rbac.core.dependencies import get_current_user_or_401
from hms_rbac.core.providers import (
    ROLE_PROVIDERS,
    legacy_role_mapping_provider,
    role_mapping_provider,
    temporary_grant_provider,
    user_override_provider,
)
from hms_rbac.models.permission import Permission
from hms_rbac.models.user import User

logger = logging.getLogger(__name__)


class CachedRoleLookup:
    """
    Role-derived lookup wrapped in the permission cache.

    This is the only path that reads or writes cached results. Overrides and
    temporary grants never pass through here.
    """

    @staticmethod
    def compute(user: User, permission_name: str, db: Session) -> bool:
        """Query both role mapping tables; a grant from either one is enough."""
        for provider in ROLE_PROVIDERS:
            if provider.grants(db, user, permission_name):
                logger.debug(f"User {user.id} granted {permission_name} by {provider.name}")
                return True
        return False

    @staticmethod
    async def resolve(user: User, permission_name: str, db: Session, use_cache: bool = True) -> bool:
        if use_cache:
            cached_result = await PermissionCache.get_permission_check(user.id, permission_name)
            if cached_result is not None:
                return cached_result

        result = CachedRoleLookup.compute(user, permission_name, db)

        if use_cache:
            await PermissionCache.set_permission_check(user.id, permission_name, result)

        return result


class PermissionResolver:
    """
    Decision engine for permission checks.

    Stateless: every method takes the user and a database session, so one
    resolver can serve concurrent requests.
    """

    @staticmethod
    def is_super_admin(user: User) -> bool:
        """Check the explicit flag, the legacy role name and the normalized role slug."""
        if user.is_super_admin:
            return True
        if user.role and user.role in settings.super_admin_roles:
            return True
        role_model = user.role_model
        return role_model is not None and role_model.slug in settings.super_admin_role_slugs

    @staticmethod
    async def has_permission(user: User, permission_name: str, db: Session, use_cache: bool = True) -> bool:
        """
        Check if a user has a specific permission.

        Args:
            user: The user to check
            permission_name: Permission name (e.g. "view-billing")
            db: Database session
            use_cache: Whether the role-derived result may come from Redis

        Returns:
            True if the user has the permission, False otherwise
        """
        if PermissionResolver.is_super_admin(user):
            logger.debug(f"User {user.id} is super admin; {permission_name} granted")
            return True

        override = user_override_provider.grants(db, user, permission_name)
        if override is not None:
            logger.debug(f"User {user.id} override for {permission_name}: {override}")
            return override

        if temporary_grant_provider.grants(db, user, permission_name):
            logger.debug(f"User {user.id} has temporary grant for {permission_name}")
            return True

        result = await CachedRoleLookup.resolve(user, permission_name, db, use_cache=use_cache)

        if result:
            logger.debug(f"User {user.id} has permission {permission_name}")
        else:
            logger.debug(f"User {user.id} does NOT have permission {permission_name}")

        return result

    @staticmethod
    async def has_any_permission(user: User, permission_names: Iterable[str], db: Session, use_cache: bool = True) -> bool:
        """
        Check if a user has any of the specified permissions.

        Each name is resolved individually, so overrides and temporary
        grants apply per name.
        """
        for permission_name in permission_names:
            if await PermissionResolver.has_permission(user, permission_name, db, use_cache=use_cache):
                return True

        logger.debug(f"User {user.id} does not have any of the required permissions")
        return False

    @staticmethod
    async def has_all_permissions(user: User, permission_names: Iterable[str], db: Session, use_cache: bool = True) -> bool:
        """Check if a user has all of the specified permissions."""
        for permission_name in permission_names:
            if not await PermissionResolver.has_permission(user, permission_name, db, use_cache=use_cache):
                return False

        logger.debug(f"User {user.id} has all required permissions")
        return True

    @staticmethod
    def get_effective_permissions(user: User, db: Session) -> Set[str]:
        """
        Get every permission name the user currently holds.

        Always computed from the database. Deny overrides remove names that
        other sources would grant, matching ``has_permission``.
        """
        if PermissionResolver.is_super_admin(user):
            return {row[0] for row in db.query(Permission.name).all()}

        granted = set()
        for provider in (*ROLE_PROVIDERS, temporary_grant_provider, user_override_provider):
            granted |= provider.granted_names(db, user)

        return granted - user_override_provider.denied_names(db, user)

    @staticmethod
    def explain_permission(user: User, permission_name: str, db: Session) -> Dict[str, object]:
        """
        Break a permission decision down by source.

        Used for diagnostics when a check is denied. Reads everything live and
        never touches the cache.
        """
        override = user_override_provider.grants(db, user, permission_name)
        if override is None:
            override_label = "NOT_SET"
        else:
            override_label = "ALLOWED" if override else "DENIED"

        super_admin = PermissionResolver.is_super_admin(user)
        normalized = bool(role_mapping_provider.grants(db, user, permission_name))
        legacy = bool(legacy_role_mapping_provider.grants(db, user, permission_name))
        temporary = bool(temporary_grant_provider.grants(db, user, permission_name))

        if super_admin:
            decision = True
        elif override is not None:
            decision = override
        else:
            decision = temporary or normalized or legacy

        role_model = user.role_model
        return {
            "user_id": user.id,
            "username": user.username,
            "permission": permission_name,
            "role_string": user.role,
            "role_id": user.role_id,
            "role_slug": role_model.slug if role_model else None,
            "super_admin": super_admin,
            "user_override": override_label,
            "temporary_permission": temporary,
            "normalized_role_permission": normalized,
            "legacy_role_permission": legacy,
            "decision": decision,
        }

    @staticmethod
    async def invalidate_cache(user_id: int) -> int:
        """Drop every cached role-derived result for a user."""
        return await PermissionCache.invalidate_user(user_id)

    @staticmethod
    async def flush_cache() -> int:
        """Drop every cached role-derived result."""
        return await PermissionCache.flush()


# ==================== FASTAPI DEPENDENCIES ====================

def _log_denial(user: User, permission_name: str, db: Session) -> None:
    breakdown = PermissionResolver.explain_permission(user, permission_name, db)
    logger.warning(f"Permission denied - detailed breakdown: {breakdown}")


def require_permission(permission_name: str):
    """
    FastAPI dependency factory for requiring a specific permission.

    Usage:
        @router.post("/bills", dependencies=[Depends(require_permission("create-bills"))])
        async def create_bill(...):
            ...
    """
    async def permission_dependency(
        current_user: User = Depends(get_current_user_or_401),
        db: Session = Depends(get_db)
    ):
        if not await PermissionResolver.has_permission(current_user, permission_name, db):
            _log_denial(current_user, permission_name, db)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {permission_name} required"
            )
        return current_user

    return permission_dependency


def require_any_permission(*permission_names: str):
    """FastAPI dependency factory for requiring any of the specified permissions."""
    async def permission_dependency(
        current_user: User = Depends(get_current_user_or_401),
        db: Session = Depends(get_db)
    ):
        if not await PermissionResolver.has_any_permission(current_user, permission_names, db):
            logger.warning(
                f"Permission denied: User {current_user.id} lacks any of {list(permission_names)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied: insufficient permissions"
            )
        return current_user

    return permission_dependency


def require_all_permissions(*permission_names: str):
    """FastAPI dependency factory for requiring all of the specified permissions."""
    async def permission_dependency(
        current_user: User = Depends(get_current_user_or_401),
        db: Session = Depends(get_db)
    ):
        if not await PermissionResolver.has_all_permissions(current_user, permission_names, db):
            logger.warning(
                f"Permission denied: User {current_user.id} lacks all of {list(permission_names)}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied: all specified permissions required"
            )
        return current_user

    return permission_dependency


# ==================== UTILITY FUNCTIONS ====================

async def enforce_permission(user: User, permission_name: str, db: Session) -> None:
    """
    Enforce that a user has a specific permission, raising an exception if not.

    Raises:
        HTTPException: If user lacks the required permission
    """
    if not await PermissionResolver.has_permission(user, permission_name, db):
        _log_denial(user, permission_name, db)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: {permission_name} required"
        )
