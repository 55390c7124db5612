# Centralized pytest configuration file (fixtures, hooks, plugins, etc.)
import pytest
from asgi_lifespan import LifespanManager
from httpx import AsyncClient, ASGITransport

from nlu_gateway.config import ROUTES, settings
from nlu_gateway.main import application as gateway_app
from nlu_gateway.testing.fake_upstream import FakeUpstream

START_URL = "http://upstream/api"
START_APP_ID = "start-app"
START_APP_KEY = "start-key"


#----Startup values for tests----
@pytest.fixture(scope='session', autouse=True)
def set_startup_values():
    settings.base_url = START_URL
    settings.app_id = START_APP_ID
    settings.app_key = START_APP_KEY
    settings.routes = ROUTES


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def gateway_client(fake_upstream: FakeUpstream):
    """Gateway test client with the upstream mocked via httpx.MockTransport"""
    upstream_client = fake_upstream.client()

    # Lifespan builds a fresh ConfigStore from settings for every test
    async with LifespanManager(gateway_app):
        await gateway_app.state.http_client.aclose()
        gateway_app.state.http_client = upstream_client

        # client with transport to gateway app
        gateway_transport = ASGITransport(app=gateway_app)
        async with AsyncClient(
                transport=gateway_transport,
                base_url="http://gateway") as client:
            yield client

    await upstream_client.aclose()
