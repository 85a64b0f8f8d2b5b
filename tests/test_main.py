"""
Tests for the application factory
"""

import httpx
import pytest
from httpx import AsyncClient

from api_gateway.health import HealthAggregator
from api_gateway.main import create_app
from api_gateway.proxy import ReverseProxy


def test_app_state_is_wired(settings):
    app = create_app(settings)

    assert app.state.registry.names == ["users", "products"]
    assert isinstance(app.state.proxy, ReverseProxy)
    assert isinstance(app.state.health, HealthAggregator)
    assert app.state.proxy.registry is app.state.registry
    assert app.state.health.timeout == settings.health_check_timeout
    assert app.state.http_client.timeout.read == settings.proxy_timeout


@pytest.mark.asyncio
async def test_lifespan_closes_http_client(settings):
    upstream = httpx.AsyncClient()
    app = create_app(settings, client=upstream)

    async with app.router.lifespan_context(app):
        assert not upstream.is_closed

    assert upstream.is_closed


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
async def test_health_is_get_only(client: AsyncClient, method):
    response = await client.request(method, "/health")

    assert response.status_code == 404
    assert response.text == "Invalid path"


@pytest.mark.asyncio
async def test_openapi_not_exposed(client: AsyncClient):
    response = await client.get("/openapi.json")

    assert response.status_code == 404
