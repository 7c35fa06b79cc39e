"""
Shared fixtures for the Graph Proxy tests.

The upstream is faked with httpx.MockTransport so requests go through the
real GraphClient and ForwardingHandler; only token acquisition is mocked.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from graph_proxy.config import Settings
from graph_proxy.main import create_app
from graph_proxy.proxy.forwarder import ForwardingHandler
from graph_proxy.proxy.upstream import GraphClient


TEST_TENANT_ID = "11111111-2222-3333-4444-555555555555"
TEST_CLIENT_ID = "66666666-7777-8888-9999-000000000000"
TEST_SCOPES = "User.Read Calendars.ReadWrite"
USER_ASSERTION = "user-assertion-token"
GRAPH_TOKEN = "graph-access-token"


@pytest.fixture
def mock_settings():
    """Create settings for testing"""
    return Settings(
        AZURE_TENANT_ID=TEST_TENANT_ID,
        AZURE_CLIENT_ID=TEST_CLIENT_ID,
        AZURE_CLIENT_SECRET="test-client-secret",
        GRAPH_BASE_URL="https://graph.microsoft.com/v1.0",
        GRAPH_SCOPES=TEST_SCOPES,
        ALLOWED_ORIGINS="http://localhost:3000",
    )


@pytest.fixture
def token_provider():
    """Token provider that always hands out GRAPH_TOKEN"""
    provider = AsyncMock()
    provider.get_access_token_for_user = AsyncMock(return_value=GRAPH_TOKEN)
    return provider


@pytest.fixture
def upstream():
    """
    Fake Graph.

    `requests` records every request the proxy sent; `respond` builds the
    response and can be replaced per test.
    """
    return SimpleNamespace(
        requests=[],
        respond=lambda request: httpx.Response(
            200,
            content=b'{"id":1}',
            headers={"Content-Type": "application/json"},
        ),
    )


@pytest.fixture
def graph_client(mock_settings, upstream):
    """GraphClient wired to the fake Graph"""
    def handler(request: httpx.Request) -> httpx.Response:
        upstream.requests.append(request)
        return upstream.respond(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GraphClient(mock_settings.graph_base_url_str, http_client)


@pytest.fixture
def app(mock_settings, token_provider, graph_client):
    """Create test FastAPI application"""
    app = create_app(mock_settings)
    app.state.app_state.graph_client = graph_client
    app.state.app_state.forwarding_handler = ForwardingHandler(
        token_provider=token_provider,
        upstream=graph_client,
        scopes=mock_settings.graph_scopes_list,
    )
    return app


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Standard authorization headers for authenticated requests"""
    return {"Authorization": f"Bearer {USER_ASSERTION}"}
