"""
CORS boundary around the whole gateway.

Sets the allow-* headers on every HTTP response and answers any OPTIONS
request itself with an empty 200, without calling the wrapped app.
"""

from starlette.datastructures import MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class CORSBoundary:
    def __init__(
        self,
        app: ASGIApp,
        allow_origin: str = "*",
        allow_methods: str = "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        allow_headers: str = "Content-Type, Authorization",
    ) -> None:
        self.app = app
        self.cors_headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": allow_methods,
            "Access-Control-Allow-Headers": allow_headers,
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=self.cors_headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in self.cors_headers.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)
