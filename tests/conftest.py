"""
Pytest configuration and shared fixtures.

- In-memory SQLite shared through StaticPool runs the real service logic
- get_db is overridden so the app never reaches MySQL
- Bearer tokens are minted directly for seeded users
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from estate_admin.core.roles import SystemRole
from estate_admin.core.security import create_access_token, hash_password
from estate_admin.db.base import Base
from estate_admin.db.seeds.seed_roles import seed_roles
from estate_admin.db.session import get_db, init_db
from estate_admin.main import create_app
from estate_admin.models.user import User
from estate_admin.services.audit_service import AuditContext

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


def _make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite: let SQLAlchemy emit BEGIN itself so SAVEPOINT behaves.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="function")
def engine():
    engine = _make_engine()
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    """A session on a fresh schema with the system roles seeded."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    seed_roles(session)
    yield session
    session.close()


@pytest.fixture
def ctx():
    return AuditContext(actor_id=1, ip_address="127.0.0.1", user_agent="pytest")


def make_user(db, username, role, is_active=True, project_ids=None):
    user = User(
        username=username,
        email=f"{username}@estate.test",
        hashed_password=PASSWORD_HASH,
        full_name=username.title(),
        role=role,
        is_active=is_active,
        project_ids=project_ids,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def users(db):
    """One user per interesting principal shape."""
    return {
        "super": make_user(db, "root", SystemRole.SUPER_ADMIN.value, project_ids="*"),
        "admin": make_user(db, "alice", SystemRole.ADMIN.value),
        "sales": make_user(db, "sam", SystemRole.SALES_PERSON.value, project_ids="1,2"),
        "disabled_super": make_user(db, "ghost", SystemRole.SUPER_ADMIN.value, is_active=False),
    }


def auth_headers(user) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(db):
    """Create a test FastAPI application bound to the test session."""
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def super_headers(users):
    return auth_headers(users["super"])


@pytest.fixture
def sales_headers(users):
    return auth_headers(users["sales"])
