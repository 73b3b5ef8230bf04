"""Common test fixtures for the popup authorization flow."""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from founderhub.cloud.schemas import ApplicationOAuthConfig
from founderhub.database import Base
from tests.fakes import APP_ORIGIN, InMemoryCredentialStore, make_oauth_config

# Test secret (Fernet key is derived from it)
TEST_SECRET_KEY = "test-secret-key-for-founderhub"


@pytest.fixture(autouse=True)
def isolated_settings():
    """Run every test against default settings and a fresh Fernet key."""
    from founderhub.auth.simple_auth import reset_session_manager
    from founderhub.config import get_settings
    from founderhub.crypto import clear_fernet_cache

    with patch.dict(
        os.environ,
        {"SECRET_KEY": TEST_SECRET_KEY, "APP_ORIGIN": APP_ORIGIN},
        clear=False,
    ):
        get_settings.cache_clear()
        clear_fernet_cache()
        reset_session_manager()
        yield
    get_settings.cache_clear()
    clear_fernet_cache()
    reset_session_manager()


@pytest.fixture
def clear_settings_cache():
    """Clear the settings cache before and after test."""
    from founderhub.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a test database engine backed by a temporary SQLite file."""
    # Import models to register them with Base
    from founderhub import models  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session context factory committing on success, like get_db_context."""
    maker = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    @asynccontextmanager
    async def factory() -> AsyncGenerator[AsyncSession, None]:
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Empty in-memory credential store."""
    return InMemoryCredentialStore()


@pytest.fixture
def oauth_config() -> ApplicationOAuthConfig:
    """Configured Google OAuth client."""
    return make_oauth_config()
