#!/usr/bin/env python3
"""
Database seeder script to create the permission catalog, roles and demo users.

This script creates:
- Every permission in the catalog, with its dependency edges
- Normalized roles with their permission mappings and hierarchy
- Legacy role-name rows for the roles still referenced by name
- One demo user per role

Usage:
    python scripts/seed_db.py
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy.orm import Session

from hms_rbac.core.catalog import PermissionCatalog
from hms_rbac.core.database import SessionLocal, init_db
from hms_rbac.core.roles import RoleManager
from hms_rbac.models.permission import Permission
from hms_rbac.models.role import Role
from hms_rbac.models.user import User


ROLES_DATA = [
    {
        "name": "Super Admin", "slug": "super-admin", "priority": 100, "is_system": True,
        "description": "Unrestricted access", "parent": None, "permissions": [],
    },
    {
        "name": "Administrator", "slug": "administrator", "priority": 90, "is_system": True,
        "description": "Hospital administration", "parent": "super-admin",
        "permissions": [
            "view-users", "create-users", "edit-users", "view-roles", "view-permission-matrix",
            "manage-permissions", "view-audit-logs",
        ],
    },
    {
        "name": "Reception Admin", "slug": "reception-admin", "priority": 50, "is_system": False,
        "description": "Front desk supervisor", "parent": "administrator",
        "permissions": ["view-patients", "create-patients", "view-appointments", "create-appointments", "view-billing"],
    },
    {
        "name": "Receptionist", "slug": "receptionist", "priority": 40, "is_system": False,
        "description": "Front desk", "parent": "reception-admin",
        "permissions": ["view-patients", "view-appointments", "create-appointments"],
    },
    {
        "name": "Cashier", "slug": "cashier", "priority": 40, "is_system": False,
        "description": "Billing desk", "parent": "administrator",
        "permissions": ["view-billing", "create-bills", "view-payments"],
    },
    {
        "name": "Pharmacist", "slug": "pharmacist", "priority": 40, "is_system": False,
        "description": "Pharmacy staff", "parent": "administrator",
        "permissions": ["view-pharmacy", "edit-medicines"],
    },
    {
        "name": "Lab Technician", "slug": "lab-technician", "priority": 40, "is_system": False,
        "description": "Laboratory staff", "parent": "administrator",
        "permissions": ["view-laboratory", "create-lab-test-results"],
    },
]

# Roles that older screens still resolve by name
LEGACY_ROLES_DATA = {
    "Receptionist": ["view-patients", "view-appointments"],
    "Cashier": ["view-billing", "view-billing-reports"],
}


def _permission_ids(db: Session, names):
    rows = db.query(Permission.id).filter(Permission.name.in_(names)).all()
    return [row[0] for row in rows]


async def create_roles(db: Session):
    """Create roles, their hierarchy and their permission mappings."""
    roles = {}
    for role_data in ROLES_DATA:
        existing_role = db.query(Role).filter(Role.slug == role_data["slug"]).first()
        if existing_role:
            print(f"⚠️  Role '{role_data['name']}' already exists, skipping")
            roles[role_data["slug"]] = existing_role
            continue

        role = Role(
            name=role_data["name"],
            slug=role_data["slug"],
            description=role_data["description"],
            priority=role_data["priority"],
            is_system=role_data["is_system"],
        )
        db.add(role)
        db.commit()
        roles[role_data["slug"]] = role
        print(f"✅ Created role '{role_data['name']}'")

    for role_data in ROLES_DATA:
        role = roles[role_data["slug"]]
        if role_data["parent"]:
            RoleManager.set_parent(db, role.id, roles[role_data["parent"]].id)
        await RoleManager.sync_role_permissions(db, role.id, _permission_ids(db, role_data["permissions"]))
        print(f"✅ Mapped {len(role_data['permissions'])} permissions to '{role.name}'")

    for role_name, names in LEGACY_ROLES_DATA.items():
        await RoleManager.sync_legacy_role_permissions(db, role_name, _permission_ids(db, names))
        print(f"✅ Stored {len(names)} legacy permissions for '{role_name}'")

    return roles


async def create_users(db: Session, roles):
    """Create one demo user per role."""
    for role_data in ROLES_DATA:
        username = role_data["slug"].replace("-", "_")
        existing_user = db.query(User).filter(User.username == username).first()
        if existing_user:
            print(f"⚠️  User '{username}' already exists, skipping")
            continue

        user = User(
            username=username,
            email=f"{username}@hospital.example",
            is_super_admin=role_data["slug"] == "super-admin",
            is_active=True,
        )
        db.add(user)
        db.commit()

        await RoleManager.assign_role(db, user.id, roles[role_data["slug"]].id)
        print(f"✅ Created user '{username}' with role '{role_data['name']}'")


async def seed():
    init_db()
    db = SessionLocal()
    try:
        permissions = await PermissionCatalog.seed(db)
        print(f"✅ Seeded {len(permissions)} permissions")

        roles = await create_roles(db)
        await create_users(db, roles)

        print("\n🎉 Database seeding completed successfully!")
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    asyncio.run(seed())
