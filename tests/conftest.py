"""Pytest configuration and fixtures for test suite."""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

# Set test environment BEFORE any other imports
os.environ.setdefault("PIPELINE_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from config.database import DatabaseSettings
from config.settings import PipelineSettings
from notifications.email_provider import DeliveryResult, DeliveryStatus, NullEmailProvider
from prospect_pipeline.errors import Result
from prospect_pipeline.runtime import FixedClock, SequentialIdGenerator

from tests.helpers.prospects import NOW


def _reset_db_modules():
    """Reset database module globals to ensure clean state."""
    try:
        import database.async_engine as module
        module._async_engine = None
        module._async_session_factory = None
    except ImportError:
        pass


@pytest.fixture(autouse=True)
def reset_database_globals():
    """Reset database module globals before and after each test."""
    _reset_db_modules()
    yield
    _reset_db_modules()


# =============================================================================
# RUNTIME
# =============================================================================

@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Clock frozen at 2025-01-15 12:00 UTC until advanced."""
    return FixedClock(NOW)


@pytest.fixture
def ids():
    return SequentialIdGenerator("p")


@pytest.fixture
def settings():
    return PipelineSettings(frontend_url="https://app.example.com/")


# =============================================================================
# EMAIL
# =============================================================================

@pytest.fixture
def email_service():
    """Email service mock that accepts every message."""
    service = AsyncMock()
    service.send.return_value = Result.ok(DeliveryResult(
        success=True,
        status=DeliveryStatus.SENT,
        message_id="msg-1",
        provider="mock",
    ))
    return service


@pytest.fixture
def null_provider():
    return NullEmailProvider()


# =============================================================================
# STORES AND SERVICE
# =============================================================================

@pytest.fixture
def memory_store():
    from prospect_pipeline.memory_store import InMemoryProspectStore
    return InMemoryProspectStore()


@pytest.fixture
def db_settings(tmp_path):
    return DatabaseSettings(sqlite_path=tmp_path / "prospects.db")


@pytest_asyncio.fixture
async def sql_store(db_settings):
    """SQLite-backed prospect repository on a fresh schema."""
    from database.async_engine import create_engine, get_session_factory
    from database.repositories.prospect_repository import ProspectRepository

    engine = create_engine(db_settings)
    repository = ProspectRepository(get_session_factory(engine))
    await repository.create_schema()
    yield repository
    await engine.dispose()


def build_pipeline(store, email_service, clock, ids, settings):
    from prospect_pipeline.service import FundProfile, ProspectPipelineService
    return ProspectPipelineService(
        store,
        email_service,
        clock=clock,
        ids=ids,
        settings=settings,
        funds={"fund-1": FundProfile(
            name="Growth Fund I",
            manager_name="Grace Hopper",
            manager_email="grace@fund.example.com",
            calendly_url="https://calendly.com/grace",
        )},
    )


@pytest.fixture
def pipeline(memory_store, email_service, clock, ids, settings):
    """Pipeline service over the in-memory store."""
    return build_pipeline(memory_store, email_service, clock, ids, settings)


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def any_pipeline(request, email_service, clock, ids, settings, db_settings):
    """Pipeline service over each store implementation."""
    if request.param == "memory":
        from prospect_pipeline.memory_store import InMemoryProspectStore
        yield build_pipeline(InMemoryProspectStore(), email_service, clock, ids, settings)
        return

    from database.async_engine import create_engine, get_session_factory
    from database.repositories.prospect_repository import ProspectRepository

    engine = create_engine(db_settings)
    repository = ProspectRepository(get_session_factory(engine))
    await repository.create_schema()
    yield build_pipeline(repository, email_service, clock, ids, settings)
    await engine.dispose()
