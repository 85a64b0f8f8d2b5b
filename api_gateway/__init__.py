"""API Gateway: routes /api/<service>/... requests to the registered backends."""

__version__ = "1.0.0"
