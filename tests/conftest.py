"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before importing stock_bot modules
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "test_token")
os.environ.setdefault("LEADER_PASSWORD", "alfonsa")


@pytest.fixture
def sample_dump():
    """Four lines as pasted from Husky."""
    return (
        "265             AMARULA 375CC CHICOOO\n"
        "8194            AMARULA CREAM ETHIOPIAN COFFE 750\n"
        "25              ANIS 8 HERMANOS LITRO                       60\n"
        "275             BEZIER CREMA DE CASSIS                      12"
    )


@pytest.fixture
def mock_settings(monkeypatch, tmp_path):
    """Mock settings for tests."""
    from stock_bot.config import Settings

    settings = Settings(
        telegram_bot_token="test_token",
        leader_password="secreto",
        counter1_name="Ana",
        counter2_name="Beto",
        db_path=tmp_path / "stock_control.db",
        sentry_dsn="",
    )

    monkeypatch.setattr("stock_bot.config.get_settings", lambda: settings)
    monkeypatch.setattr("stock_bot.security.get_settings", lambda: settings)
    monkeypatch.setattr("stock_bot.monitoring.get_settings", lambda: settings)
    return settings


@pytest.fixture
def db_path(tmp_path):
    """Unique database file per test."""
    return str(tmp_path / "test_isolated.sqlite3")


@pytest_asyncio.fixture
async def local_store(db_path):
    from stock_bot.storage import LocalStore

    store = LocalStore(db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def local_facade(local_store, mock_settings):
    """Facade in local-only mode."""
    from stock_bot.storage import ConnectionState, StorageFacade

    facade = StorageFacade(ConnectionState(), local_store)
    await facade.initialize()
    yield facade
    await facade.close()


@pytest_asyncio.fixture
async def control_service(local_facade):
    """ControlService over local storage with a fast autosave timer."""
    from stock_bot.autosave import CoalescingWriter
    from stock_bot.services import ControlService

    service = ControlService(local_facade, CoalescingWriter(0.01))
    yield service
    await service.writer.flush()
