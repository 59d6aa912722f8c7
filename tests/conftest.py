"""Pytest configuration and fixtures."""
import os

# Settings are read at import time, so configure the environment first
os.environ["ACTIVITY_AUTO_LOG"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.db.mongo import get_database, get_optional_database
from app.main import app
from tests.fakes import FakeDatabase, make_user


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def regular_user():
    return make_user("user@example.com")


@pytest.fixture
def admin_user():
    return make_user("admin@example.com", role="admin")


@pytest.fixture
def operator_user():
    return make_user("ops@example.com", permissions=["activity:cleanup", "users:read"])


@pytest.fixture
def seeded_db(fake_db, regular_user, admin_user, operator_user):
    fake_db.seed_users(regular_user, admin_user, operator_user)
    return fake_db


@pytest_asyncio.fixture
async def client(seeded_db):
    app.dependency_overrides[get_database] = lambda: seeded_db
    app.dependency_overrides[get_optional_database] = lambda: seeded_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
