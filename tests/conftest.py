from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from event_transport.server.main import create_app
from event_transport.shared.config import Settings

BASE_URL = "http://testserver"


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "QUEUE_DIR": str(tmp_path),
        "DEMO_TOKEN_DELAY_S": 0.0,
        "LONG_POLL_SLEEP_S": 0.01,
        "LONG_POLL_TIMEOUT_S": 2.0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings_factory(tmp_path):
    def _factory(**overrides) -> Settings:
        return make_settings(tmp_path, **overrides)

    return _factory


@pytest.fixture
def app_factory(settings_factory):
    def _factory(http_client_factory=None, **overrides):
        return create_app(settings_factory(**overrides), http_client_factory=http_client_factory)

    return _factory


@pytest_asyncio.fixture
async def short_app_client(app_factory):
    app = app_factory(DEFAULT_MODE="short")
    async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL) as client:
        yield app, client
