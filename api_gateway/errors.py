"""Gateway error taxonomy.

Request-time failures derive from ``GatewayError`` and carry the HTTP status
and plain-text body the caller sees. ``ConfigurationError`` is only raised
while the app is being built, so a broken backend entry stops the process
instead of surfacing as a 404 later.
"""


class ConfigurationError(Exception):
    """Invalid gateway configuration detected at startup."""


class GatewayError(Exception):
    status_code = 500
    message = "Gateway error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.message)
        self.detail = detail


class InvalidPathError(GatewayError):
    status_code = 404
    message = "Invalid path"


class ServiceNotFoundError(GatewayError):
    status_code = 404
    message = "Service not found"


class ServiceUnavailableError(GatewayError):
    status_code = 503
    message = "Service unavailable"


class ClientDisconnectedError(GatewayError):
    # nginx convention for "client closed request"
    status_code = 499
    message = "Client closed request"
