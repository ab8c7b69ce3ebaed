"""
Role hierarchy and role-permission mapping maintenance.

The parent/child hierarchy and role priority are organisational metadata used
for display and for deciding who may assign which role. They never grant
permissions; only the mapping tables do.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from hms_rbac.core.cache import PermissionCache
from hms_rbac.core.catalog import PermissionCatalog
from hms_rbac.core.config import settings
from hms_rbac.core.errors import EngineError
from hms_rbac.core.rbac import PermissionResolver
from hms_rbac.models.role import Role
from hms_rbac.models.role_permission import RolePermission, RolePermissionMapping
from hms_rbac.models.user import User

logger = logging.getLogger(__name__)


class RoleManager:
    """Hierarchy queries and mapping updates for roles."""

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if role is None:
            raise EngineError.role_not_found()
        return role

    @staticmethod
    def set_parent(db: Session, role_id: int, parent_role_id: Optional[int]) -> Role:
        """
        Attach a role under a parent, or detach it with ``None``.

        The ancestor chain of the new parent is walked before writing, so a
        cycle can never be stored.

        Raises:
            NotFoundError: Unknown role or parent
            ValidationError: The change would create a cycle or exceed the
                configured maximum depth
        """
        role = RoleManager.get_role(db, role_id)

        if parent_role_id is not None:
            parent = RoleManager.get_role(db, parent_role_id)
            max_depth = settings.role_hierarchy_max_depth

            depth = 1
            ancestor = parent
            while ancestor is not None:
                if ancestor.id == role.id:
                    raise EngineError.role_hierarchy_cycle()
                depth += 1
                if depth > max_depth:
                    raise EngineError.role_hierarchy_too_deep(max_depth)
                ancestor = ancestor.parent_role

        role.parent_role_id = parent_role_id
        db.commit()
        db.refresh(role)

        logger.info(f"Role {role.slug} parent set to {parent_role_id}")
        return role

    @staticmethod
    def hierarchy_level(db: Session, role: Role) -> int:
        """Number of ancestors above ``role``; top-level roles are level 0."""
        level = 0
        ancestor = role.parent_role
        while ancestor is not None and level < settings.role_hierarchy_max_depth:
            level += 1
            ancestor = ancestor.parent_role
        return level

    @staticmethod
    def subordinates(db: Session, role: Role) -> List[Role]:
        """All descendants of ``role``, breadth first."""
        found = []
        seen = {role.id}
        queue = [role]
        while queue:
            current = queue.pop(0)
            children = db.query(Role).filter(Role.parent_role_id == current.id).order_by(Role.priority.desc()).all()
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                found.append(child)
                queue.append(child)
        return found

    @staticmethod
    def hierarchy_tree(db: Session) -> List[Dict]:
        """Nested role tree, siblings ordered by priority (highest first)."""
        roles = db.query(Role).order_by(Role.priority.desc(), Role.name).all()

        children = {}
        for role in roles:
            children.setdefault(role.parent_role_id, []).append(role)

        def build(role: Role, depth: int) -> Dict:
            return {
                "id": role.id,
                "name": role.name,
                "slug": role.slug,
                "priority": role.priority,
                "level": depth,
                "children": [build(child, depth + 1) for child in children.get(role.id, [])],
            }

        return [build(role, 0) for role in children.get(None, [])]

    @staticmethod
    def can_assign_role(db: Session, current_user: User, new_role_id: int) -> bool:
        """Super admins may assign any role; others only roles below their own."""
        if PermissionResolver.is_super_admin(current_user):
            return True
        if current_user.role_model is None:
            return False
        return any(role.id == new_role_id for role in RoleManager.subordinates(db, current_user.role_model))

    @staticmethod
    async def assign_role(db: Session, user_id: int, role_id: int) -> User:
        """Point a user at a normalized role and keep the legacy role name in step."""
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise EngineError.user_not_found()
        role = RoleManager.get_role(db, role_id)

        user.role_id = role.id
        user.role = role.name
        db.commit()
        db.refresh(user)

        await PermissionCache.invalidate_user(user.id)
        logger.info(f"Assigned role {role.slug} to user {user.id}")
        return user

    @staticmethod
    async def sync_role_permissions(db: Session, role_id: int, permission_ids: Iterable[int]) -> Role:
        """
        Replace the normalized permission set of a role.

        Cached results of every user holding the role are invalidated.
        """
        role = RoleManager.get_role(db, role_id)
        wanted = {PermissionCatalog.resolve(db, permission_id).id for permission_id in permission_ids}

        current = {
            mapping.permission_id: mapping
            for mapping in db.query(RolePermissionMapping).filter(RolePermissionMapping.role_id == role.id).all()
        }
        for permission_id, mapping in current.items():
            if permission_id not in wanted:
                db.delete(mapping)
        for permission_id in wanted - set(current):
            db.add(RolePermissionMapping(role_id=role.id, permission_id=permission_id))

        db.commit()
        db.refresh(role)

        user_ids = [row[0] for row in db.query(User.id).filter(User.role_id == role.id).all()]
        for user_id in user_ids:
            await PermissionCache.invalidate_user(user_id)

        logger.info(f"Synced {len(wanted)} permissions for role {role.slug}; invalidated {len(user_ids)} users")
        return role

    @staticmethod
    async def sync_legacy_role_permissions(db: Session, role_name: str, permission_ids: Iterable[int]) -> List[int]:
        """Replace the legacy permission rows of a role name. Returns the stored ids."""
        wanted = {PermissionCatalog.resolve(db, permission_id).id for permission_id in permission_ids}

        current = {
            row.permission_id: row
            for row in db.query(RolePermission).filter(RolePermission.role == role_name).all()
        }
        for permission_id, row in current.items():
            if permission_id not in wanted:
                db.delete(row)
        for permission_id in wanted - set(current):
            db.add(RolePermission(role=role_name, permission_id=permission_id))

        db.commit()

        user_ids = [row[0] for row in db.query(User.id).filter(User.role == role_name).all()]
        for user_id in user_ids:
            await PermissionCache.invalidate_user(user_id)

        logger.info(f"Synced {len(wanted)} legacy permissions for role '{role_name}'; invalidated {len(user_ids)} users")
        return sorted(wanted)
