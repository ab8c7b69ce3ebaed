"""
Redis caching for role-derived permission checks.

Only the role-mapping path of the resolver stores results here. User overrides
and temporary grants are always read from the database, so nothing in this
module is ever the only record of whether a user holds a permission.
"""

import logging
from typing import Optional

from hms_rbac.core.config import settings
from hms_rbac.core.redis import clear_cache_pattern, get_redis

logger = logging.getLogger(__name__)


class CacheConfig:
    """Cache configuration resolved from settings."""

    @staticmethod
    def ttl() -> int:
        return settings.permission_cache_ttl

    @staticmethod
    def prefix() -> str:
        return settings.permission_cache_prefix

    @staticmethod
    def enabled() -> bool:
        return settings.permission_cache_enabled


class PermissionCache:
    """Per-(user, permission) boolean cache with TTL and explicit invalidation."""

    @staticmethod
    def _make_key(*args) -> str:
        """Create a cache key from the configured prefix and arguments."""
        key_parts = [str(arg) for arg in args]
        return f"{CacheConfig.prefix()}:{':'.join(key_parts)}"

    @staticmethod
    async def get_permission_check(user_id: int, permission_name: str) -> Optional[bool]:
        """
        Get a cached permission check result.

        Args:
            user_id: User ID
            permission_name: Permission name

        Returns:
            True/False if cached, None if not cached or the cache is unavailable
        """
        if not CacheConfig.enabled():
            return None
        try:
            redis_client = await get_redis()
            key = PermissionCache._make_key(user_id, permission_name)
            cached = await redis_client.get(key)

            if cached is not None:
                logger.debug(f"Cache HIT: permission_check user_id={user_id}, {permission_name}")
                return cached == "1"

            logger.debug(f"Cache MISS: permission_check user_id={user_id}, {permission_name}")
            return None

        except Exception as e:
            logger.error(f"Error getting cached permission check: {e}")
            return None

    @staticmethod
    async def set_permission_check(
        user_id: int,
        permission_name: str,
        has_permission: bool,
        ttl: int = None
    ) -> bool:
        """
        Cache a permission check result.

        Args:
            user_id: User ID
            permission_name: Permission name
            has_permission: Whether the user's roles grant the permission
            ttl: Time to live in seconds (default: settings.permission_cache_ttl)

        Returns:
            True if cached successfully
        """
        if not CacheConfig.enabled():
            return False
        try:
            redis_client = await get_redis()
            key = PermissionCache._make_key(user_id, permission_name)
            ttl = ttl or CacheConfig.ttl()

            value = "1" if has_permission else "0"
            await redis_client.setex(key, ttl, value)

            logger.debug(f"Cached permission_check user_id={user_id}, {permission_name}={has_permission}, ttl={ttl}s")
            return True

        except Exception as e:
            logger.error(f"Error caching permission check: {e}")
            return False

    @staticmethod
    async def invalidate_user(user_id: int) -> int:
        """
        Invalidate all cached permission checks for a user.

        Args:
            user_id: User ID

        Returns:
            Number of cache entries deleted
        """
        try:
            deleted = await clear_cache_pattern(PermissionCache._make_key(user_id, "*"))

            logger.info(f"Invalidated {deleted} permission cache entries for user_id={user_id}")
            return deleted

        except Exception as e:
            logger.error(f"Error invalidating user permission cache: {e}")
            return 0

    @staticmethod
    async def flush() -> int:
        """
        Invalidate every cached permission check.

        Use after catalog-wide changes such as seeding.

        Returns:
            Number of cache entries deleted
        """
        try:
            deleted = await clear_cache_pattern(f"{CacheConfig.prefix()}:*")

            logger.warning(f"Flushed ALL permission caches: {deleted} entries deleted")
            return deleted

        except Exception as e:
            logger.error(f"Error flushing permission cache: {e}")
            return 0
