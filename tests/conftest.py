import os
import tempfile
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# importing inventory_api.main builds the module level app; keep it off disk
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="inventory-uploads-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from inventory_api import crud, schemas  # noqa: E402
from inventory_api.auth import create_access_token  # noqa: E402
from inventory_api.config import Settings  # noqa: E402
from inventory_api.db import create_db_engine, create_session_factory, init_db  # noqa: E402
from inventory_api.dependencies import get_db  # noqa: E402
from inventory_api.main import create_app  # noqa: E402

JWT_SECRET = "test-secret"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_db_engine("sqlite://")
    init_db(engine)
    TestingSessionLocal = create_session_factory(engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        database_url="sqlite://",
        jwt_secret=JWT_SECRET,
        log_level="WARNING",
        login_rate_limit="3/minute",
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def make_client(db_session, settings):
    """Build a TestClient for an app with some settings overridden, e.g. ``environment="production"``."""

    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def _make(**overrides) -> TestClient:
        app = create_app(settings.model_copy(update=overrides))
        app.dependency_overrides[get_db] = override_get_db
        return TestClient(app)

    return _make


@pytest.fixture(scope="function")
def client(make_client):
    with make_client() as c:
        yield c


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user, JWT_SECRET)}"}


@pytest.fixture
def admin_user(db_session):
    return crud.create_user(
        db_session,
        schemas.UserCreate(name="Root", email="root@example.com", phone="9000000001", password="rootpass", role="admin"),
    )


@pytest.fixture
def member_user(db_session):
    return crud.create_user(
        db_session,
        schemas.UserCreate(name="Meera", email="meera@example.com", phone="9000000002", password="meerapass"),
    )


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture
def member_headers(member_user):
    return bearer(member_user)
