"""
Snipply Backend — Test Configuration (conftest.py)
====================================================

Fixture Hierarchy (all function-scoped):
    ├── mock_storage:  AsyncMock standing in for a Storage backend
    ├── storage:       parametrized over MemoryStorage and DatabaseStorage
    │                  (SQLite in memory via aiosqlite); drives the contract suite
    ├── memory_store:  fresh MemoryStorage for HTTP tests
    ├── app:           create_app() with get_storage pointed at memory_store
    └── make_client:   factory for httpx AsyncClients, one cookie jar per user
"""

import os

# Settings are read once at import; set the environment before any snipply import
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from snipply import models  # noqa: F401
from snipply.database import Base
from snipply.dependencies import get_storage
from snipply.main import create_app
from snipply.models.user import RANK_ADMIN
from snipply.security import hash_password
from snipply.storage import DatabaseStorage, MemoryStorage, Storage


# ══════════════════════════════════════════════════════════════════════════
# Storage Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_storage():
    """AsyncMock with the Storage interface; configure return values per test."""
    return AsyncMock(spec=Storage)


@pytest_asyncio.fixture(params=["memory", "database"])
async def storage(request):
    """Each contract test runs once per backend."""
    if request.param == "memory":
        yield MemoryStorage()
        return

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield DatabaseStorage(session)
    await engine.dispose()


async def backdate(storage: Storage, snippet, days: int) -> None:
    """Move a snippet's created_at into the past."""
    snippet.created_at = datetime.now(timezone.utc) - timedelta(days=days)
    if isinstance(storage, DatabaseStorage):
        await storage.session.flush()


async def make_user(storage: Storage, username: str, **extra):
    fields = {
        "username": username,
        "email": f"{username}@snipply.dev",
        "password_hash": await hash_password("password123"),
    }
    fields.update(extra)
    return await storage.create_user(fields)


async def make_snippet(storage: Storage, author, title: str = "Snippet", **extra):
    fields = {"title": title, "html": "<p>hi</p>", "css": "", "javascript": "", "is_public": True}
    fields.update(extra)
    return await storage.create_snippet(author.id, fields)


# ══════════════════════════════════════════════════════════════════════════
# HTTP Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def memory_store():
    return MemoryStorage()


@pytest.fixture
def app(memory_store):
    application = create_app()
    application.dependency_overrides[get_storage] = lambda: memory_store
    return application


@pytest_asyncio.fixture
async def make_client(app):
    """
    Build AsyncClients against the app; each keeps its own session cookie.

    Usage:
        alice = await make_client()
        await register(alice, "alice")
    """
    clients = []

    async def _make(**kwargs) -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test", **kwargs)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


async def register(client: AsyncClient, username: str, password: str = "password123", **extra) -> dict:
    body = {"username": username, "password": password, "email": f"{username}@snipply.dev"}
    body.update(extra)
    response = await client.post("/api/auth/register", json=body)
    assert response.status_code == 200, response.text
    return response.json()["user"]


async def promote(memory_store: MemoryStorage, user_id: str) -> None:
    await memory_store.update_user(user_id, {"rank": RANK_ADMIN})


async def create_snippet(client: AsyncClient, title: str = "Hello", is_public: bool = True, **extra) -> dict:
    body = {"title": title, "html": "<h1>Hello</h1>", "css": "h1{color:red}", "javascript": "", "isPublic": is_public}
    body.update(extra)
    response = await client.post("/api/snippets", json=body)
    assert response.status_code == 201, response.text
    return response.json()
