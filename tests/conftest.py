import pytest
import pytest_asyncio
import os
import sys
from datetime import datetime, timezone
from unittest.mock import Mock, AsyncMock
from fastapi.testclient import TestClient
from typing import Generator

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# The module-level engine is built from this on import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from main import app
from core.cache import CacheManager, MemoryCacheBackend
from core.config import Settings
from core.database import create_db_and_tables, create_engine_for, create_session_factory
from core.models import Location
from providers.email_provider import EmailSender
from providers.sms_provider import SMSSender
from providers.translation_provider import TranslationProvider
from services.comment_repository import CommentRepository
from services.region_classifier import RegionClassifier


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def memory_backend():
    """Fresh in-memory key-value backend."""
    return MemoryCacheBackend(max_size=100)


@pytest.fixture
def cache_manager(memory_backend):
    return CacheManager(memory_backend)


@pytest.fixture
def test_settings():
    """Settings with fallback delivery, as in development."""
    return Settings(environment="test", otp_delivery_fallback=True, delivery_timeout_seconds=1.0)


@pytest.fixture
def strict_settings():
    """Settings with delivery fallback disabled, as in production."""
    return Settings(environment="production", otp_delivery_fallback=False, delivery_timeout_seconds=1.0)


@pytest.fixture
def classifier():
    return RegionClassifier()


@pytest.fixture
def mock_email_sender():
    sender = Mock(spec=EmailSender)
    sender.send = AsyncMock(return_value=True)
    sender.is_configured = True
    return sender


@pytest.fixture
def mock_sms_sender():
    sender = Mock(spec=SMSSender)
    sender.send = AsyncMock(return_value=True)
    sender.is_configured = True
    return sender


@pytest.fixture
def mock_translation_provider():
    provider = Mock(spec=TranslationProvider)
    provider.detect = AsyncMock(return_value="en")
    provider.translate = AsyncMock(return_value="translated text")
    provider.list_languages = AsyncMock(return_value=[{"code": "en", "name": "English"}])
    provider.is_configured = True
    return provider


@pytest_asyncio.fixture
async def comment_repository():
    """Repository on a private in-memory SQLite database."""
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    await create_db_and_tables(engine)
    yield CommentRepository(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def chennai():
    return Location(country="IN", region="Tamil Nadu", city="Chennai")


@pytest.fixture
def delhi():
    return Location(country="IN", region="Delhi", city="New Delhi")


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("CACHE_BACKEND", "memory")
