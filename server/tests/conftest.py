# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import os

# Set env BEFORE importing app modules
os.environ["SERVER_ID"] = "111111111111111111"
os.environ["CHANNEL_ID"] = "222222222222222222"
os.environ["SALAI_TOKEN"] = "test-token"
os.environ["SKIP_CLIENT_INIT"] = "true"
os.environ["LOG_JSON"] = "false"

from collections.abc import Iterator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from imagine_relay.clients.base import ClientMessage  # noqa: E402
from imagine_relay.clients.discord import DiscordImageClient  # noqa: E402
from imagine_relay.config import get_settings  # noqa: E402
from imagine_relay.main import create_app  # noqa: E402
from imagine_relay.services.relay import ImageRelayService  # noqa: E402


def _make_message(**overrides) -> ClientMessage:
    fields = {
        "id": "1234567890",
        "flags": 0,
        "hash": "0f8e5a3c-1b2d-4e6f-8a9b-0c1d2e3f4a5b",
        "uri": "https://cdn.example.test/attachments/grid_0f8e5a3c.png",
        "content": "**a red fox** - <@42> (fast)",
    }
    fields.update(overrides)
    return ClientMessage(**fields)


@pytest.fixture
def make_message():
    """Factory for a complete client message; override fields to break it."""
    return _make_message


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Drop the cached Settings so env changes in a test take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_client() -> MagicMock:
    """ImageClient with every job mocked to return nothing."""
    client = MagicMock(spec=DiscordImageClient)
    client.is_ready = True
    client.init = AsyncMock()
    client.close = AsyncMock()
    client.imagine = AsyncMock(return_value=None)
    client.variation = AsyncMock(return_value=None)
    client.upscale = AsyncMock(return_value=None)
    client.zoom_out = AsyncMock(return_value=None)
    return client


@pytest.fixture
def client(fake_client: MagicMock) -> TestClient:
    """FastAPI TestClient with the fake image client injected."""
    app = create_app()
    # Lifespan does not run without the context manager; wire state by hand
    app.state.image_client = fake_client
    app.state.relay_service = ImageRelayService(fake_client)
    return TestClient(app)
