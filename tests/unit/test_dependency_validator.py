"""
Unit tests for permission dependency validation.
"""

import pytest

from hms_rbac.core.dependency_validator import DependencyValidator, validate_dependencies


NAMES = {
    1: "view-users",
    2: "create-users",
    3: "edit-users",
    4: "delete-users",
    5: "view-roles",
}

# edit-users -> view-users, delete-users -> edit-users, create-users -> view-users
GRAPH = {
    2: {1},
    3: {1},
    4: {3},
}


@pytest.mark.unit
class TestValidateDependencies:
    """Pure validation over an in-memory graph."""

    def test_missing_dependency(self):
        errors = validate_dependencies([3], [], GRAPH, NAMES)
        assert errors == ["edit-users requires view-users"]

    def test_dependency_already_held(self):
        assert validate_dependencies([3], [1], GRAPH, NAMES) == []

    def test_dependency_in_same_batch(self):
        assert validate_dependencies([1, 3], [], GRAPH, NAMES) == []

    def test_batch_order_does_not_matter(self):
        assert validate_dependencies([3, 1], [], GRAPH, NAMES) == []

    def test_no_dependencies(self):
        assert validate_dependencies([5], [], GRAPH, NAMES) == []

    def test_empty_batch(self):
        assert validate_dependencies([], [], GRAPH, NAMES) == []

    def test_transitive_chain(self):
        """The first unmet link along the chain is reported."""
        assert validate_dependencies([4], [], GRAPH, NAMES) == ["delete-users requires edit-users"]
        assert validate_dependencies([4], [3], GRAPH, NAMES) == ["delete-users requires view-users"]
        assert validate_dependencies([4], [1, 3], GRAPH, NAMES) == []

    def test_one_message_per_added_permission(self):
        errors = validate_dependencies([2, 3], [], GRAPH, NAMES)
        assert errors == ["create-users requires view-users", "edit-users requires view-users"]

    def test_duplicates_removed(self):
        assert validate_dependencies([3, 3], [], GRAPH, NAMES) == ["edit-users requires view-users"]

    def test_cycle_terminates(self):
        graph = {1: {2}, 2: {1}}
        assert validate_dependencies([1], [2], graph, NAMES) == []
        assert validate_dependencies([1], [], graph, NAMES) == ["view-users requires create-users"]

    def test_unknown_names_fall_back_to_ids(self):
        assert validate_dependencies([10], [], {10: {11}}, {}) == ["10 requires 11"]


@pytest.mark.unit
@pytest.mark.database
class TestDependencyValidator:
    """Validation against the stored graph."""

    def test_validate_from_database(self, db_session, user_permissions):
        view_users = user_permissions["view-users"]
        edit_users = user_permissions["edit-users"]

        assert DependencyValidator.validate(db_session, [edit_users.id], []) == ["edit-users requires view-users"]
        assert DependencyValidator.validate(db_session, [edit_users.id], [view_users.id]) == []
        assert DependencyValidator.validate(db_session, [view_users.id, edit_users.id], []) == []

    def test_load_graph(self, db_session, user_permissions):
        graph = DependencyValidator.load_graph(db_session)
        view_users = user_permissions["view-users"]

        assert graph[user_permissions["edit-users"].id] == {view_users.id}
        assert graph[user_permissions["create-users"].id] == {view_users.id}
        assert view_users.id not in graph
