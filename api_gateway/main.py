"""
API Gateway - Main Application
Routes /api/<service>/... to the users and products services and reports
their combined health.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import request_response
from starlette.types import Receive, Scope, Send

from . import __version__
from .config import Settings
from .cors import CORSBoundary
from .errors import GatewayError, ServiceUnavailableError
from .health import HealthAggregator
from .logging_config import configure_logging
from .proxy import ReverseProxy
from .registry import BackendRegistry

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, client: httpx.AsyncClient | None = None) -> FastAPI:
    """
    Build the gateway application.

    Settings are read from the environment when not given. The backend
    registry is validated here, so a missing or malformed backend URL stops
    the process before it starts serving.
    """
    if settings is None:
        settings = Settings()
    configure_logging(settings.log_level, settings.log_format)

    registry = BackendRegistry.from_settings(settings)
    if client is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(settings.proxy_timeout))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "Starting API Gateway",
            port=settings.gateway_port,
            prefix=settings.route_prefix,
            services={entry.name: entry.display_url for entry in registry},
        )
        yield
        await client.aclose()
        logger.info("API Gateway shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="Routes requests to the users and products services",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.http_client = client
    app.state.proxy = ReverseProxy(
        registry,
        client,
        prefix=settings.route_prefix,
        strip_service_segment=settings.strip_service_segment,
    )
    app.state.health = HealthAggregator(registry, client, timeout=settings.health_check_timeout)

    app.add_middleware(
        CORSBoundary,
        allow_origin=settings.cors_allow_origin,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        log = logger.warning if isinstance(exc, ServiceUnavailableError) else logger.info
        log(
            "Request rejected",
            method=request.method,
            path=request.url.path,
            status_code=exc.status_code,
            reason=exc.message,
            detail=exc.detail,
        )
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    # Last resort only: responses from here bypass CORSBoundary
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        return internal_error_response(request, exc)

    @app.get("/health")
    async def health(request: Request):
        """Combined health of every registered backend."""
        try:
            report = await request.app.state.health.check_all()
        except Exception as e:
            return internal_error_response(request, e)
        return JSONResponse(status_code=report.status_code, content=report.model_dump())

    # OPTIONS never gets this far: CORSBoundary answers it
    app.add_route("/{path:path}", ProxyEndpoint(app.state.proxy), include_in_schema=False)

    return app


class ProxyEndpoint:
    """Catch-all ASGI endpoint for the reverse proxy, routed for every HTTP method."""

    def __init__(self, proxy: ReverseProxy):
        self.proxy = proxy
        self.app = request_response(self.handle)

    async def handle(self, request: Request) -> Response:
        try:
            return await self.proxy.forward(request)
        except GatewayError:
            raise
        except Exception as e:
            return internal_error_response(request, e)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)


def internal_error_response(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        error=str(exc),
        method=request.method,
        url=str(request.url),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def run() -> None:
    settings = Settings()
    uvicorn.run(
        "api_gateway.main:create_app",
        factory=True,
        host=settings.gateway_host,
        port=settings.gateway_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
