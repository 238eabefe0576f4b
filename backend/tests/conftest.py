"""
SmartBrief Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test that needs persistence gets its own file-backed SQLite
       database (aiosqlite) under pytest's tmp_path, with the schema created
       from the ORM metadata. AI providers are replaced by FakeProvider, an
       in-process SummaryProvider whose reply, delay and failure are set per test.

Fixture Hierarchy:
    engine → session_factory → db_session
                             → make_user
    fake_gemini / fake_openai → gateway → orchestrator → api_app → test_client
"""

import asyncio
import os
import tempfile
from typing import AsyncGenerator, List, Optional

# Environment first: smartbrief.config and smartbrief.database read it at import
_TEST_DIR = tempfile.mkdtemp(prefix="smartbrief_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/default.db"
os.environ["JWT_SECRET"] = "test-secret-key-with-at-least-32-bytes!!"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from smartbrief.config import Settings  # noqa: E402
from smartbrief.database import Base, get_db_session  # noqa: E402
from smartbrief.models import AIProvider, Role, User  # noqa: E402
from smartbrief.services.ai_gateway import AiProviderGateway  # noqa: E402
from smartbrief.services.auth_service import Principal  # noqa: E402
from smartbrief.services.credit_service import CreditLedger  # noqa: E402
from smartbrief.services.file_service import FileIngestor  # noqa: E402
from smartbrief.services.llm_base import ProviderReply, SummaryProvider, TokenUsage  # noqa: E402
from smartbrief.services.orchestrator import RequestOrchestrator  # noqa: E402
from smartbrief.services.summary_service import SummaryStore  # noqa: E402

FIFTEEN_WORDS = " ".join(f"word{i}" for i in range(1, 16))

SAMPLE_TEXT = (
    "Distributed systems coordinate work across many machines that communicate "
    "over unreliable networks. Engineers design them to tolerate partial failures, "
    "keep data consistent, and stay available when individual nodes crash or slow down."
)


# ══════════════════════════════════════════════════════════════════════════
# Fake AI provider
# ══════════════════════════════════════════════════════════════════════════


class FakeProvider(SummaryProvider):
    """
    SummaryProvider double.

    Attributes set by tests:
        reply:  text returned by summarize()
        delay:  seconds to sleep before answering
        error:  exception to raise instead of answering
        usage:  TokenUsage to report
    """

    def __init__(self, name: str, api_key: str = "fake-key", reply: str = "  A short summary of the text.  "):
        super().__init__(api_key=api_key, base_url=f"https://{name}.invalid")
        self.name = name
        self.reply = reply
        self.delay = 0.0
        self.error: Optional[BaseException] = None
        self.usage = TokenUsage(prompt_tokens=40, completion_tokens=8, total_tokens=48)
        self.calls: List[dict] = []

    async def summarize(self, prompt, text, model, timeout) -> ProviderReply:
        self.calls.append({"prompt": prompt, "text": text, "model": model, "timeout": timeout})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderReply(text=self.reply, usage=self.usage)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test, schema created from the ORM models."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'smartbrief.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """
    Factory inserting a committed user.

    Usage:
        user = await make_user(credits=5, role=Role.EDITOR)
    """
    counter = {"n": 0}

    async def _make(credits: int = 5, role: Role = Role.USER, name: str = "Test User") -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            name=name,
            role=Role(role).value,
            credits=credits,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def balance_of(session_factory):
    """Reads a user's balance through a new session (what another request would see)."""

    async def _balance(user_id) -> int:
        async with session_factory() as session:
            return await CreditLedger().get_balance(session, user_id)

    return _balance


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, role=Role(user.role))


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def fake_gemini():
    return FakeProvider("gemini")


@pytest.fixture
def fake_openai():
    return FakeProvider("openai", reply="An OpenAI summary.")


@pytest.fixture
def gateway(fake_gemini, fake_openai):
    return AiProviderGateway(
        providers={AIProvider.GEMINI: fake_gemini, AIProvider.OPENAI: fake_openai},
        default_provider=AIProvider.GEMINI,
        timeout_seconds=2.0,
        failure_threshold=3,
        recovery_timeout=60,
    )


@pytest.fixture
def ledger():
    return CreditLedger()


@pytest.fixture
def store():
    return SummaryStore()


@pytest.fixture
def ingestor():
    return FileIngestor()


@pytest.fixture
def orchestrator(gateway, ledger, store, ingestor):
    return RequestOrchestrator(gateway=gateway, ledger=ledger, store=store, ingestor=ingestor)


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def test_settings():
    return Settings(
        jwt_secret="test-secret-key-with-at-least-32-bytes!!",
        gemini_api_key="test-gemini-key",
        openai_api_key="test-openai-key",
        log_level="WARNING",
    )


@pytest.fixture
def api_app(test_settings, gateway, session_factory):
    """
    The real application wired to the test database and the fake providers.

    ASGITransport does not run the lifespan; create_app builds every
    component eagerly, so nothing is missing.
    """
    from smartbrief.main import create_app

    app = create_app(test_settings, gateway=gateway)

    async def _session() -> AsyncGenerator:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session
    return app


@pytest_asyncio.fixture
async def test_client(api_app):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_header(api_app):
    """Builds an Authorization header for a user, signed with the app's secret."""

    def _header(user: User) -> dict:
        token = api_app.state.auth_gate.create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _header
