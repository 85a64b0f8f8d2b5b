"""
Tests for the backend registry
"""

import pytest

from api_gateway.errors import ConfigurationError, ServiceNotFoundError
from api_gateway.registry import BackendRegistry


def test_resolve_known_service(registry):
    entry = registry.resolve("users")
    assert entry.name == "users"
    assert entry.url.host == "u"
    assert entry.url.port == 8081
    assert entry.display_url == "http://u:8081"



def test_display_url_hides_credentials():
    registry = BackendRegistry([("users", "http://admin:s3cret@u:8081/")])
    entry = registry.resolve("users")

    assert entry.display_url == "http://u:8081"
    assert entry.base_url == "http://admin:s3cret@u:8081"

def test_resolve_unknown_service(registry):
    with pytest.raises(ServiceNotFoundError) as exc_info:
        registry.resolve("orders")
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Service not found"


def test_resolve_is_exact_match(registry):
    with pytest.raises(ServiceNotFoundError):
        registry.resolve("Users")
    with pytest.raises(ServiceNotFoundError):
        registry.resolve("user")


def test_iteration_keeps_registration_order(registry):
    assert registry.names == ["users", "products"]
    assert [entry.name for entry in registry] == ["users", "products"]
    assert len(registry) == 2
    assert "products" in registry
    assert "orders" not in registry


def test_registry_is_read_only(registry):
    with pytest.raises(TypeError):
        registry._backends["orders"] = registry.resolve("users")


@pytest.mark.parametrize("url", ["", "   ", "not a url", "ftp://files:21", "http://", "u:8081"])
def test_invalid_backend_url_fails_fast(url):
    with pytest.raises(ConfigurationError):
        BackendRegistry([("users", url)])


@pytest.mark.parametrize("name", ["", "a/b"])
def test_invalid_service_name(name):
    with pytest.raises(ConfigurationError):
        BackendRegistry([(name, "http://u:8081")])


def test_duplicate_service_name():
    with pytest.raises(ConfigurationError, match="more than once"):
        BackendRegistry([("users", "http://u:8081"), ("users", "http://u2:8081")])


def test_empty_registry():
    with pytest.raises(ConfigurationError):
        BackendRegistry([])
