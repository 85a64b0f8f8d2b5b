"""
Pytest fixtures for API gateway tests
"""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from api_gateway.config import Settings
from api_gateway.main import create_app
from api_gateway.registry import BackendRegistry

USERS_URL = "http://u:8081"
PRODUCTS_URL = "http://p:8082"


@pytest.fixture
def settings() -> Settings:
    """Settings with fixed backends, isolated from any local .env file"""
    return Settings(
        _env_file=None,
        user_service_url=USERS_URL,
        product_service_url=PRODUCTS_URL,
        extra_services={},
        proxy_timeout=2.0,
        health_check_timeout=2.0,
        log_format="console",
    )


@pytest.fixture
def registry(settings: Settings) -> BackendRegistry:
    return BackendRegistry.from_settings(settings)


@pytest.fixture
async def upstream_client():
    """HTTP client the gateway uses to reach backends (mocked by respx)"""
    async with httpx.AsyncClient(timeout=2.0) as client:
        yield client


@pytest.fixture
def make_client(upstream_client: httpx.AsyncClient):
    """Factory for in-process gateway clients built from custom settings"""

    def _make(settings: Settings) -> AsyncClient:
        app = create_app(settings, client=upstream_client)
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://gateway")

    return _make


@pytest.fixture
async def client(make_client, settings: Settings):
    async with make_client(settings) as ac:
        yield ac
