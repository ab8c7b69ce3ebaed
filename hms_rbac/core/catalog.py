"""
Static permission catalog and lookups.

Permission names are kebab-case ``<action>-<resource>`` strings. The catalog is
the source for seeding; ``depends_on`` lists the names a permission requires.
"""

import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from hms_rbac.core.cache import PermissionCache
from hms_rbac.core.errors import EngineError
from hms_rbac.models.permission import Permission, PermissionDependency, RiskLevel
from hms_rbac.models.role_permission import RolePermission, RolePermissionMapping
from hms_rbac.models.user_permission import UserPermission

logger = logging.getLogger(__name__)


def _entry(name, description, category, module, risk_level=RiskLevel.LOW,
           requires_approval=False, is_critical=False, depends_on=()):
    action, _, resource = name.partition("-")
    return {
        "name": name,
        "description": description,
        "resource": resource,
        "action": action,
        "category": category,
        "module": module,
        "risk_level": risk_level.value,
        "requires_approval": requires_approval,
        "is_critical": is_critical,
        "depends_on": list(depends_on),
    }


PERMISSION_CATALOG: List[dict] = [
    # User management
    _entry("view-users", "View staff accounts", "users", "administration"),
    _entry("create-users", "Create staff accounts", "users", "administration",
           RiskLevel.MEDIUM, depends_on=["view-users"]),
    _entry("edit-users", "Edit staff accounts", "users", "administration",
           RiskLevel.MEDIUM, depends_on=["view-users"]),
    _entry("delete-users", "Delete staff accounts", "users", "administration",
           RiskLevel.HIGH, requires_approval=True, is_critical=True, depends_on=["view-users", "edit-users"]),
    _entry("manage-users", "Full control over staff accounts", "users", "administration",
           RiskLevel.HIGH, requires_approval=True, depends_on=["view-users", "create-users", "edit-users"]),

    # Roles and permissions
    _entry("view-roles", "View roles", "roles", "administration"),
    _entry("manage-roles", "Create, edit and delete roles", "roles", "administration",
           RiskLevel.HIGH, requires_approval=True, is_critical=True, depends_on=["view-roles"]),
    _entry("view-permission-matrix", "View the role/permission matrix", "permissions", "administration",
           depends_on=["view-roles"]),
    _entry("edit-role-permissions", "Change the permissions attached to a role", "permissions", "administration",
           RiskLevel.HIGH, requires_approval=True, is_critical=True, depends_on=["view-permission-matrix"]),
    _entry("manage-permissions", "Grant, revoke and approve user permissions", "permissions", "administration",
           RiskLevel.HIGH, requires_approval=True, is_critical=True, depends_on=["view-users"]),
    _entry("view-audit-logs", "View the audit trail", "audit", "administration", RiskLevel.MEDIUM),

    # Patients
    _entry("view-patients", "View patient records", "patients", "patients"),
    _entry("create-patients", "Register patients", "patients", "patients", depends_on=["view-patients"]),
    _entry("edit-patients", "Edit patient records", "patients", "patients",
           RiskLevel.MEDIUM, depends_on=["view-patients"]),
    _entry("delete-patients", "Delete patient records", "patients", "patients",
           RiskLevel.HIGH, requires_approval=True, is_critical=True, depends_on=["view-patients"]),

    # Appointments
    _entry("view-appointments", "View appointments", "appointments", "appointments"),
    _entry("create-appointments", "Book appointments", "appointments", "appointments",
           depends_on=["view-appointments", "view-patients"]),
    _entry("edit-appointments", "Reschedule and update appointments", "appointments", "appointments",
           depends_on=["view-appointments"]),

    # Billing
    _entry("view-billing", "View bills and invoices", "billing", "billing"),
    _entry("create-bills", "Create bills", "billing", "billing", RiskLevel.MEDIUM, depends_on=["view-billing"]),
    _entry("edit-bills", "Edit unpaid bills", "billing", "billing", RiskLevel.MEDIUM, depends_on=["view-billing"]),
    _entry("view-payments", "View payments", "billing", "billing", depends_on=["view-billing"]),
    _entry("process-refunds", "Issue refunds", "billing", "billing",
           RiskLevel.HIGH, requires_approval=True, is_critical=True, depends_on=["view-billing", "view-payments"]),
    _entry("view-billing-reports", "View billing reports", "billing", "billing", depends_on=["view-billing"]),
    _entry("view-insurance-claims", "View insurance claims", "insurance", "billing", depends_on=["view-billing"]),
    _entry("process-insurance-claims", "Submit and settle insurance claims", "insurance", "billing",
           RiskLevel.MEDIUM, depends_on=["view-insurance-claims"]),

    # Pharmacy
    _entry("view-pharmacy", "View pharmacy inventory", "pharmacy", "pharmacy"),
    _entry("edit-medicines", "Edit medicine records and stock", "pharmacy", "pharmacy",
           RiskLevel.MEDIUM, depends_on=["view-pharmacy"]),
    _entry("delete-medicines", "Delete medicine records", "pharmacy", "pharmacy",
           RiskLevel.HIGH, requires_approval=True, depends_on=["view-pharmacy", "edit-medicines"]),

    # Laboratory
    _entry("view-laboratory", "View lab tests and results", "laboratory", "laboratory"),
    _entry("create-lab-test-results", "Record lab results", "laboratory", "laboratory",
           RiskLevel.MEDIUM, depends_on=["view-laboratory"]),
    _entry("edit-lab-test-results", "Amend lab results", "laboratory", "laboratory",
           RiskLevel.HIGH, requires_approval=True, depends_on=["view-laboratory"]),
]


class PermissionCatalog:
    """Seeding and lookup helpers for the permission catalog."""

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[Permission]:
        return db.query(Permission).filter(Permission.name == name).first()

    @staticmethod
    def resolve(db: Session, reference: Union[int, str]) -> Permission:
        """
        Look up a permission by id or by name.

        Raises:
            NotFoundError: If no permission matches
        """
        if isinstance(reference, int):
            permission = db.query(Permission).filter(Permission.id == reference).first()
        else:
            permission = PermissionCatalog.get_by_name(db, reference)

        if permission is None:
            raise EngineError.permission_not_found(reference)
        return permission

    @staticmethod
    async def seed(db: Session, catalog: List[dict] = None) -> List[Permission]:
        """
        Insert or update catalog permissions and their dependency edges.

        Safe to run repeatedly. Flushes the whole permission cache afterwards
        because names may have been added.
        """
        catalog = catalog if catalog is not None else PERMISSION_CATALOG

        permissions = {}
        for entry in catalog:
            fields = {key: value for key, value in entry.items() if key != "depends_on"}
            permission = PermissionCatalog.get_by_name(db, entry["name"])
            if permission is None:
                permission = Permission(**fields)
                db.add(permission)
                logger.info(f"Created permission '{entry['name']}'")
            else:
                for key, value in fields.items():
                    setattr(permission, key, value)
            permissions[entry["name"]] = permission

        db.flush()

        for entry in catalog:
            permission = permissions[entry["name"]]
            for dependency_name in entry["depends_on"]:
                dependency = permissions.get(dependency_name) or PermissionCatalog.get_by_name(db, dependency_name)
                if dependency is None:
                    logger.warning(f"Unknown dependency '{dependency_name}' for '{entry['name']}', skipping")
                    continue

                exists = db.query(PermissionDependency).filter(
                    PermissionDependency.permission_id == permission.id,
                    PermissionDependency.depends_on_permission_id == dependency.id
                ).first()
                if exists is None:
                    db.add(PermissionDependency(
                        permission_id=permission.id,
                        depends_on_permission_id=dependency.id
                    ))

        db.commit()
        await PermissionCache.flush()

        logger.info(f"Seeded {len(permissions)} permissions")
        return list(permissions.values())

    @staticmethod
    def unused_permissions(db: Session) -> List[Permission]:
        """Permissions no role, legacy role or user override refers to."""
        used_ids = set()
        for model in (RolePermissionMapping, RolePermission, UserPermission):
            used_ids |= {row[0] for row in db.query(model.permission_id).distinct().all()}

        return [
            permission
            for permission in db.query(Permission).order_by(Permission.name).all()
            if permission.id not in used_ids
        ]
