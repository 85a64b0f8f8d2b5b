"""
Reverse proxy for /<prefix>/<service>/... requests.

The inbound path is matched, the service token resolved against the backend
registry, and the request forwarded to the backend with the prefix (and by
default the service segment) stripped. The backend response is relayed as
raw bytes: status, headers and body reach the caller unchanged apart from
hop-by-hop headers.
"""

import asyncio
import time
from dataclasses import dataclass

import httpx
import structlog
from fastapi import Request
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from .errors import ClientDisconnectedError, InvalidPathError, ServiceUnavailableError
from .registry import BackendEntry, BackendRegistry, redact_url
from .routing import match_path

logger = structlog.get_logger(__name__)

# RFC 7230 section 6.1
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

# Rewritten by the gateway rather than passed through
FORWARDED_HEADERS = frozenset({"x-forwarded-for", "x-forwarded-host", "x-forwarded-proto"})


@dataclass(frozen=True)
class ProxyTarget:
    original_path: str
    service: str
    path: str
    backend: BackendEntry
    url: httpx.URL


def _connection_tokens(value: str | None) -> set[str]:
    if not value:
        return set()
    return {token.strip().lower() for token in value.split(",") if token.strip()}


class ReverseProxy:
    def __init__(
        self,
        registry: BackendRegistry,
        client: httpx.AsyncClient,
        prefix: str = "api",
        strip_service_segment: bool = True,
        disconnect_poll_interval: float = 0.1,
    ):
        self.registry = registry
        self.client = client
        self.prefix = prefix
        self.strip_service_segment = strip_service_segment
        self.disconnect_poll_interval = disconnect_poll_interval

    def resolve(self, path: str, query: bytes = b"") -> ProxyTarget:
        """Map an inbound path (and raw query string) to its upstream URL."""
        match = match_path(path, self.prefix, self.strip_service_segment)
        if not match.matched:
            raise InvalidPathError(f"{path!r} does not match /{self.prefix}/<service>/...")

        backend = self.registry.resolve(match.service)
        upstream_path = backend.url.path.rstrip("/") + match.remainder
        url = backend.url.copy_with(path=upstream_path, query=query or None)
        return ProxyTarget(
            original_path=path,
            service=match.service,
            path=match.remainder,
            backend=backend,
            url=url,
        )

    async def forward(self, request: Request) -> StreamingResponse:
        """Forward ``request`` to its backend and stream the answer back."""
        # Some ASGI transports leave the query string on raw_path
        raw_path = (request.scope.get("raw_path") or request.url.path.encode()).split(b"?", 1)[0]
        target = self.resolve(raw_path.decode("latin-1"), request.scope.get("query_string", b""))

        body = await request.body()
        upstream_request = self.client.build_request(
            method=request.method,
            url=target.url,
            headers=self._upstream_headers(request),
            content=body,
        )

        started = time.perf_counter()
        try:
            upstream = await self.send_upstream(request, upstream_request)
        except httpx.TransportError as e:
            logger.warning(
                "Upstream request failed",
                service=target.service,
                method=request.method,
                url=redact_url(target.url),
                path=target.original_path,
                error=repr(e),
            )
            raise ServiceUnavailableError(f"{target.service} unreachable: {e!r}") from e

        logger.info(
            "Request proxied",
            service=target.service,
            method=request.method,
            url=redact_url(target.url),
            status_code=upstream.status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )

        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = self._downstream_headers(upstream)
        return response

    async def send_upstream(
        self, request: Request, upstream_request: httpx.Request
    ) -> httpx.Response:
        """
        Send ``upstream_request`` unless the caller goes away first.

        The response is opened in streaming mode; the caller owns closing it.
        If the inbound client disconnects before the backend answers, the
        outbound call is cancelled and ``ClientDisconnectedError`` raised.
        """
        send_task = asyncio.ensure_future(self.client.send(upstream_request, stream=True))
        watch_task = asyncio.ensure_future(self._wait_for_disconnect(request))
        try:
            done, _ = await asyncio.wait(
                {send_task, watch_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            pending = [task for task in (send_task, watch_task) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if send_task in done:
            return send_task.result()

        logger.info(
            "Client disconnected, upstream call cancelled",
            method=upstream_request.method,
            url=redact_url(upstream_request.url),
        )
        raise ClientDisconnectedError()

    async def _wait_for_disconnect(self, request: Request) -> None:
        while not await request.is_disconnected():
            await asyncio.sleep(self.disconnect_poll_interval)

    def _upstream_headers(self, request: Request) -> list[tuple[str, str]]:
        dropped = (
            HOP_BY_HOP_HEADERS
            | FORWARDED_HEADERS
            | {"host"}
            | _connection_tokens(request.headers.get("connection"))
        )
        headers = [(k, v) for k, v in request.headers.items() if k.lower() not in dropped]

        client_host = request.client.host if request.client else None
        forwarded_for = request.headers.get("x-forwarded-for")
        if client_host:
            forwarded_for = f"{forwarded_for}, {client_host}" if forwarded_for else client_host
        if forwarded_for:
            headers.append(("x-forwarded-for", forwarded_for))
        if "host" in request.headers:
            headers.append(("x-forwarded-host", request.headers["host"]))
        headers.append(("x-forwarded-proto", request.url.scheme))
        return headers

    @staticmethod
    def _downstream_headers(upstream: httpx.Response) -> list[tuple[bytes, bytes]]:
        dropped = HOP_BY_HOP_HEADERS | _connection_tokens(upstream.headers.get("connection"))
        return [
            (key.lower(), value)
            for key, value in upstream.headers.raw
            if key.decode("latin-1").lower() not in dropped
        ]
