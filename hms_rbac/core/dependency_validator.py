"""
Permission dependency validation.

Some permissions are only meaningful alongside others: ``edit-users`` requires
``view-users``. Before a batch of permissions is granted, every dependency of
every added permission must already be held or be part of the same batch.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Mapping, Set

from sqlalchemy.orm import Session

from hms_rbac.models.permission import Permission, PermissionDependency

logger = logging.getLogger(__name__)


def validate_dependencies(
    to_add: Iterable[int],
    existing: Iterable[int],
    graph: Mapping[int, Iterable[int]],
    names: Mapping[int, str]
) -> List[str]:
    """
    Check that every dependency of the permissions being added is satisfied.

    Args:
        to_add: Ids of permissions being granted
        existing: Ids of permissions the user already holds
        graph: ``permission_id -> ids it depends on``
        names: ``permission_id -> permission name`` used in messages

    Returns:
        Messages of the form ``"<added> requires <missing>"``; empty when valid
    """
    to_add = list(dict.fromkeys(to_add))
    available = set(existing) | set(to_add)

    errors = []
    for permission_id in to_add:
        added_name = names.get(permission_id, str(permission_id))
        visited = {permission_id}
        pending = deque(graph.get(permission_id, ()))

        while pending:
            dependency_id = pending.popleft()
            if dependency_id in visited:
                continue
            visited.add(dependency_id)

            if dependency_id not in available:
                message = f"{added_name} requires {names.get(dependency_id, str(dependency_id))}"
                if message not in errors:
                    errors.append(message)
                continue

            # Satisfied dependencies may carry requirements of their own
            pending.extend(graph.get(dependency_id, ()))

    return errors


class DependencyValidator:
    """Loads the dependency graph from the database and validates against it."""

    @staticmethod
    def load_graph(db: Session) -> Dict[int, Set[int]]:
        graph = {}
        for edge in db.query(PermissionDependency).all():
            graph.setdefault(edge.permission_id, set()).add(edge.depends_on_permission_id)
        return graph

    @staticmethod
    def load_names(db: Session) -> Dict[int, str]:
        return {permission_id: name for permission_id, name in db.query(Permission.id, Permission.name).all()}

    @staticmethod
    def validate(db: Session, to_add: Iterable[int], existing: Iterable[int]) -> List[str]:
        """Validate ``to_add`` against the stored graph. Never writes."""
        errors = validate_dependencies(
            to_add,
            existing,
            DependencyValidator.load_graph(db),
            DependencyValidator.load_names(db),
        )
        if errors:
            logger.info(f"Dependency validation failed: {errors}")
        return errors
