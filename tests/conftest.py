import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

# In-memory Motor backend has no sessions
os.environ.setdefault("MONGODB_DB_NAME", "codeshelf_test")
os.environ.setdefault("MONGODB_TRANSACTIONS", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-key-min-32-characters-long")


@pytest_asyncio.fixture
async def db():
    from app.db.init import DOCUMENT_MODELS
    client = AsyncMongoMockClient()
    database = client[os.environ["MONGODB_DB_NAME"]]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest_asyncio.fixture
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    from app.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def auth_headers():
    def _headers(user_id: int, role: str = "student") -> dict[str, str]:
        from app.core.security import create_access_token
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
    return _headers


class FakeSession:
    """Records the transaction lifecycle calls made on a Motor client session."""

    def __init__(self, events):
        self.events = events

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.events.append("end")

    def start_transaction(self):
        self.events.append("start")

    async def commit_transaction(self):
        self.events.append("commit")

    async def abort_transaction(self):
        self.events.append("abort")


class FakeClient:
    def __init__(self):
        self.events = []
        self.sessions = []

    async def start_session(self):
        session = FakeSession(self.events)
        self.sessions.append(session)
        return session


@pytest.fixture
def transactions_on(monkeypatch):
    from app.core.config import get_settings
    monkeypatch.setattr(get_settings(), "mongodb_transactions", True)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def tx_client(transactions_on, fake_client, monkeypatch) -> FakeClient:
    """Transactions enabled, with sessions handed out by a recording fake client."""
    import app.db.transactions
    client = fake_client
    monkeypatch.setattr(app.db.transactions, "_client", lambda: client)
    return client
