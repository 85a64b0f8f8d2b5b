"""
Aggregate health of the registered backends.

Every backend's ``/health`` endpoint is checked concurrently, each check
bounded by the same timeout, so a full check takes at most one timeout no
matter how many backends are registered.
"""

import asyncio
from typing import Literal

import httpx
import structlog
from pydantic import BaseModel

from .registry import BackendEntry, BackendRegistry

logger = structlog.get_logger(__name__)


class ServiceHealth(BaseModel):
    name: str
    status: Literal["healthy", "unhealthy"]
    url: str


class AggregateHealth(BaseModel):
    gateway: Literal["healthy", "degraded"]
    services: list[ServiceHealth]

    @property
    def is_healthy(self) -> bool:
        return self.gateway == "healthy"

    @property
    def status_code(self) -> int:
        return 200 if self.is_healthy else 503


class HealthAggregator:
    def __init__(self, registry: BackendRegistry, client: httpx.AsyncClient, timeout: float = 2.0):
        self.registry = registry
        self.client = client
        self.timeout = timeout

    async def check_all(self) -> AggregateHealth:
        """Check every backend and combine the results."""
        services = await asyncio.gather(*(self.check(entry) for entry in self.registry))
        all_healthy = all(service.status == "healthy" for service in services)
        return AggregateHealth(
            gateway="healthy" if all_healthy else "degraded",
            services=list(services),
        )

    async def check(self, entry: BackendEntry) -> ServiceHealth:
        """Check one backend; any error or non-200 answer counts as unhealthy."""
        health_url = entry.base_url + "/health"
        status = "healthy"
        try:
            # httpx timeouts are per phase; wait_for bounds the whole call
            response = await asyncio.wait_for(
                self.client.get(health_url, timeout=self.timeout), self.timeout
            )
            if response.status_code != 200:
                status = "unhealthy"
                logger.warning(
                    "Backend health check failed",
                    service=entry.name,
                    url=entry.display_url + "/health",
                    status_code=response.status_code,
                )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            status = "unhealthy"
            logger.warning(
                "Backend health check failed",
                service=entry.name,
                url=entry.display_url + "/health",
                error=repr(e),
            )

        return ServiceHealth(name=entry.name, status=status, url=entry.display_url)
