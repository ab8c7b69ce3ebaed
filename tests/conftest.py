"""
Pytest configuration and fixtures for testing.

This module provides common fixtures for:
- Database session management (in-memory SQLite)
- Permission cache backed by fakeredis
- Catalog, role and user fixtures
- Test client for API testing
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator

import fakeredis
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import hms_rbac.models  # noqa: F401  (registers models on Base)
from hms_rbac.core.database import Base, get_db
from hms_rbac.core.dependencies import get_current_user_or_401
from hms_rbac.core.errors import register_exception_handlers
from hms_rbac.models.permission import Permission, PermissionDependency
from hms_rbac.models.role import Role
from hms_rbac.models.role_permission import RolePermission, RolePermissionMapping
from hms_rbac.models.user import User


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="session")
def test_db_engine():
    """Create an in-memory SQLite engine shared by the whole run."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_db_engine):
    """Create a fresh database session for each test."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine,
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # Clear all tables for next test
        Base.metadata.drop_all(bind=test_db_engine)
        Base.metadata.create_all(bind=test_db_engine)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """Override the get_db dependency to use test database."""
    def _override_get_db() -> Generator:
        yield db_session
    return _override_get_db


# ==================== REDIS FIXTURES ====================

@pytest.fixture(scope="function", autouse=True)
def fake_redis():
    """Point the permission cache at an empty in-process Redis for each test."""
    import hms_rbac.core.redis as redis_module

    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    previous_client = redis_module.redis_client
    redis_module.redis_client = client

    yield client

    redis_module.redis_client = previous_client


# ==================== CATALOG FIXTURES ====================

@pytest.fixture(scope="function")
def make_permission(db_session):
    """Factory fixture creating catalog permissions by name."""
    def _make_permission(name: str, depends_on=()):
        permission = db_session.query(Permission).filter(Permission.name == name).first()
        if permission is None:
            action, _, resource = name.partition("-")
            permission = Permission(name=name, action=action, resource=resource)
            db_session.add(permission)
            db_session.commit()

        for dependency in depends_on:
            db_session.add(PermissionDependency(
                permission_id=permission.id,
                depends_on_permission_id=dependency.id
            ))
        if depends_on:
            db_session.commit()
        return permission

    return _make_permission


@pytest.fixture(scope="function")
def user_permissions(make_permission):
    """``view-users``, ``create-users`` and ``edit-users`` (edit requires view)."""
    view_users = make_permission("view-users")
    create_users = make_permission("create-users", depends_on=[view_users])
    edit_users = make_permission("edit-users", depends_on=[view_users])
    return {"view-users": view_users, "create-users": create_users, "edit-users": edit_users}


@pytest.fixture(scope="function")
def view_billing(make_permission):
    return make_permission("view-billing")


@pytest.fixture(scope="function")
def manage_permissions(make_permission):
    return make_permission("manage-permissions")


# ==================== ROLE FIXTURES ====================

@pytest.fixture(scope="function")
def make_role(db_session):
    """Factory fixture creating normalized roles with mapped permissions."""
    def _make_role(name: str, permissions=(), priority: int = 0, parent=None):
        role = Role(
            name=name,
            slug=name.lower().replace(" ", "-"),
            priority=priority,
            parent_role_id=parent.id if parent else None,
        )
        db_session.add(role)
        db_session.commit()

        for permission in permissions:
            db_session.add(RolePermissionMapping(role_id=role.id, permission_id=permission.id))
        db_session.commit()
        db_session.refresh(role)
        return role

    return _make_role


@pytest.fixture(scope="function")
def grant_legacy(db_session):
    """Factory fixture adding rows to the legacy role-name table."""
    def _grant_legacy(role_name: str, *permissions):
        for permission in permissions:
            db_session.add(RolePermission(role=role_name, permission_id=permission.id))
        db_session.commit()

    return _grant_legacy


# ==================== USER FIXTURES ====================

@pytest.fixture(scope="function")
def make_user(db_session):
    """Factory fixture creating users."""
    counter = {"value": 0}

    def _make_user(username: str = None, role: str = None, role_model: Role = None, is_super_admin: bool = False):
        counter["value"] += 1
        username = username or f"user{counter['value']}"
        user = User(
            username=username,
            email=f"{username}@hospital.example",
            role=role,
            role_id=role_model.id if role_model else None,
            is_super_admin=is_super_admin,
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture(scope="function")
def test_user(make_user):
    """A user with no role and no overrides."""
    return make_user("testuser")


@pytest.fixture(scope="function")
def admin_user(make_user, make_role, manage_permissions):
    """A non super admin holding ``manage-permissions`` through a normalized role."""
    role = make_role("Permission Admin", permissions=[manage_permissions], priority=80)
    return make_user("permadmin", role_model=role)


@pytest.fixture(scope="function")
def super_admin(make_user):
    """A user with the explicit super admin flag."""
    return make_user("superadmin", is_super_admin=True)


# ==================== TIME HELPERS ====================

@pytest.fixture
def in_one_hour():
    return datetime.now(timezone.utc) + timedelta(hours=1)


@pytest.fixture
def one_hour_ago():
    return datetime.now(timezone.utc) - timedelta(hours=1)


# ==================== API CLIENT FIXTURES ====================

@pytest.fixture(scope="function")
def test_app(override_get_db):
    """Create an application with the permission routers and test overrides."""
    from hms_rbac.core.config import settings
    from hms_rbac.routers import include_routers

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    register_exception_handlers(app)
    include_routers(app)

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture(scope="function")
def client(test_app):
    """Create a test client with no authenticated user."""
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def login_as(test_app):
    """
    Authenticate subsequent requests as ``user``.

    Stands in for the host application's authentication layer, which would
    put the user on ``request.state.user``.
    """
    def _login_as(user: User):
        test_app.dependency_overrides[get_current_user_or_401] = lambda: user
        return user

    yield _login_as

    test_app.dependency_overrides.pop(get_current_user_or_401, None)
