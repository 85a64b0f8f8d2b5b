from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App config
    app_name: str = "API Gateway"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Listener
    gateway_host: str = "0.0.0.0"
    gateway_port: int = 8080

    # Routing
    route_prefix: str = "api"
    strip_service_segment: bool = True

    # Backend URLs, no defaults: the gateway refuses to start without them
    user_service_url: str
    product_service_url: str
    extra_services: dict[str, str] = {}

    # Timeouts (seconds)
    proxy_timeout: float = 10.0
    health_check_timeout: float = 2.0

    # CORS
    cors_allow_origin: str = "*"
    cors_allow_methods: str = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
    cors_allow_headers: str = "Content-Type, Authorization"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("route_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        prefix = value.strip().strip("/")
        if not prefix or "/" in prefix:
            raise ValueError("route_prefix must be a single non-empty path segment")
        return prefix

    @field_validator("proxy_timeout", "health_check_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    def service_urls(self) -> list[tuple[str, str]]:
        """Backend (name, url) pairs in registration order."""
        return [
            ("users", self.user_service_url),
            ("products", self.product_service_url),
            *self.extra_services.items(),
        ]
