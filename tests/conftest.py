"""Pytest configuration and fixtures."""
import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret")

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from habimori.config import settings
from habimori.main import app

COLLECTION_METHODS = (
    "find_one",
    "insert_one",
    "update_one",
    "update_many",
    "delete_one",
    "delete_many",
    "count_documents",
    "find_one_and_update",
    "bulk_write",
)


def make_cursor(docs=()):
    """Cursor mock supporting ``find(...).sort(...).to_list(...)``."""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs))
    return cursor


def make_collection():
    """Collection mock with awaitable methods and an empty ``find``."""
    collection = MagicMock()
    for name in COLLECTION_METHODS:
        setattr(collection, name, AsyncMock())
    collection.find_one.return_value = None
    collection.insert_one.return_value = MagicMock(inserted_id=ObjectId())
    collection.delete_one.return_value = MagicMock(deleted_count=1)
    collection.delete_many.return_value = MagicMock(deleted_count=0)
    collection.find.return_value = make_cursor()
    return collection


@pytest.fixture
def cursor():
    """Factory for cursor mocks."""
    return make_cursor


@pytest.fixture
def mock_db():
    """
    Database mock handing out one collection mock per name.

    ``mock_db["goals"]`` returns the same mock on every access, so tests can
    configure a collection before the service under test touches it.
    """
    collections = {}
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections.setdefault(name, make_collection())
    return db


@pytest_asyncio.fixture
async def app_client():
    """
    Create a test client with a clean test database.

    This fixture:
    - Creates a test database connection (skips if MongoDB is unreachable)
    - Installs a mutation hub with short debounce windows
    - Yields an async HTTP client for testing
    - Cleans up the test database after each test
    """
    from habimori.database import database, ensure_indexes
    from habimori.services.mutations import MutationHub

    # Create test database client
    test_client = AsyncIOMotorClient(
        settings.mongodb_url,
        tz_aware=True,
        tzinfo=settings.tzinfo,
        serverSelectionTimeoutMS=2000,
    )
    try:
        await test_client.admin.command("ping")
    except PyMongoError:
        test_client.close()
        pytest.skip("MongoDB is not available")

    test_db_name = f"{settings.mongodb_db_name}_test"
    test_db = test_client[test_db_name]
    await ensure_indexes(test_db)

    # Override the database dependency
    original_db = database.db
    database.db = test_db
    app.state.mutations = MutationHub(test_db, counter_delay=0.05, recalc_delay=0.05)

    # Create HTTP client
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    await app.state.mutations.shutdown()

    # Cleanup: drop test database
    await test_client.drop_database(test_db_name)

    # Restore original database
    database.db = original_db
    test_client.close()


@pytest_asyncio.fixture
async def auth_headers(app_client):
    """Register and log in a user, returning bearer headers."""
    register_data = {
        "email": "test@example.com",
        "password": "password123",
        "name": "Test User",
    }
    await app_client.post("/auth/register", json=register_data)

    login_data = {"email": "test@example.com", "password": "password123"}
    login_response = await app_client.post("/auth/login", json=login_data)
    token = login_response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
