# tests/conftest.py
import os

# Must be set before omnibox modules build the engine and settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from unittest.mock import MagicMock
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from omnibox.main import app
from omnibox.core.config import Settings
from omnibox.db.database import get_db
from omnibox.integrations.factory import SenderFactory, get_sender_factory
from omnibox.models.models import Base


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings():
    """Settings with fake provider credentials and no .env lookup."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL=TEST_DATABASE_URL,
        TWILIO_ACCOUNT_SID="ACtest",
        TWILIO_AUTH_TOKEN="test_token",
        TWILIO_PHONE_NUMBER="+15550000000",
        TWILIO_WHATSAPP_NUMBER="whatsapp:+14155238886",
        TWILIO_STATUS_CALLBACK_URL=None,
        WEBHOOK_SIGNATURE_VALIDATION=None,
        SENDGRID_API_KEY="SG.test",
        SENDGRID_FROM_EMAIL="inbox@example.com",
    )


@pytest.fixture
def unconfigured_settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL=TEST_DATABASE_URL,
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
        TWILIO_PHONE_NUMBER=None,
        SENDGRID_API_KEY=None,
    )


@pytest.fixture
def twilio_message():
    """A message resource as returned by messages.create()."""
    message = MagicMock()
    message.sid = "SM123"
    message.status = "queued"
    message.account_sid = "ACtest"
    message.price = None
    message.price_unit = "USD"
    message.num_media = "0"
    return message


@pytest.fixture
def mock_twilio_client(twilio_message):
    """Create a mock Twilio client."""
    client = MagicMock()
    client.messages = MagicMock()
    client.messages.create.return_value = twilio_message
    return client


@pytest.fixture
def mock_sendgrid_client():
    """Create a mock SendGrid client that accepts every message."""
    client = MagicMock()
    response = MagicMock()
    response.status_code = 202
    response.headers = {"X-Message-Id": "sg-msg-1"}
    client.send.return_value = response
    return client


@pytest.fixture
def sender_factory(test_settings, mock_twilio_client, mock_sendgrid_client):
    return SenderFactory(
        test_settings,
        twilio_client=mock_twilio_client,
        sendgrid_client=mock_sendgrid_client
    )


@pytest_asyncio.fixture
async def client(db_session, sender_factory):
    """HTTP client bound to the app with the test database and mocked providers."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sender_factory] = lambda: sender_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
