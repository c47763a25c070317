"""
Pytest configuration and shared fixtures.
"""

import os
import pytest
from fastapi.testclient import TestClient

from engine.conftest import FakeGateway, FixedSeedSource


CALLBACK_TOKEN = "callback-secret"


@pytest.fixture(autouse=True, scope="function")
def reset_auth_module():
    """
    Reset auth module state before each test.

    This ensures tests run with API_AUTH_ENABLED=false by default,
    unless the test explicitly sets it otherwise.
    """
    original_auth_enabled = os.environ.get("API_AUTH_ENABLED")
    original_api_key = os.environ.get("API_KEY")

    os.environ["API_AUTH_ENABLED"] = "false"

    yield

    if original_auth_enabled is not None:
        os.environ["API_AUTH_ENABLED"] = original_auth_enabled
    elif "API_AUTH_ENABLED" in os.environ:
        del os.environ["API_AUTH_ENABLED"]

    if original_api_key is not None:
        os.environ["API_KEY"] = original_api_key
    elif "API_KEY" in os.environ:
        del os.environ["API_KEY"]

    # Reload auth module to reset state
    try:
        import importlib
        import src.api.dependencies.auth as auth_module
        importlib.reload(auth_module)
    except ImportError:
        pass


@pytest.fixture
def api_env(tmp_path, monkeypatch):
    """Point the engine at a temporary store and log directory."""
    monkeypatch.setenv("ENGINE_DB_PATH", str(tmp_path / "api_jobs.db"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("TRUSTED_SCHEDULER_ID", "scheduler")
    monkeypatch.setenv("SCHEDULER_CALLBACK_TOKEN", CALLBACK_TOKEN)
    monkeypatch.setenv("ENGINE_CALLBACK_URL", "http://testserver/jobs")
    monkeypatch.delenv("TRIGGER_WEBHOOK_URL", raising=False)
    return tmp_path


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def init_engine(api_env, fake_gateway):
    """
    Pre-initialize the engine singleton with the fake gateway.

    The app lifespan then reuses it instead of building an HTTP gateway.
    """
    from src.api._engine_state import init_engine_service, shutdown_engine_service
    from src.infra.config import load_settings

    service = init_engine_service(
        load_settings(),
        gateway=fake_gateway,
        seed_source=FixedSeedSource(),
    )

    yield service

    shutdown_engine_service()


@pytest.fixture
def client(init_engine):
    """Test client for the API with the engine wired to the fake gateway."""
    from src.api.main import app

    with TestClient(app) as test_client:
        yield test_client
