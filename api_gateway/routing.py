"""Path-segment matcher for /<prefix>/<service>/<rest> requests."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RouteMatch:
    prefix_ok: bool
    service: str | None = None
    remainder: str = "/"

    @property
    def matched(self) -> bool:
        return self.prefix_ok and bool(self.service)


def match_path(path: str, prefix: str = "api", strip_service_segment: bool = True) -> RouteMatch:
    """
    Split an inbound path into service token and forwarded remainder.

    ``/api/users/42`` gives service ``users`` and remainder ``/42``; with
    ``strip_service_segment=False`` the remainder keeps the service segment
    (``/users/42``). A trailing slash on the remainder is preserved.
    """
    head = f"/{prefix}/"
    if not path.startswith(head):
        return RouteMatch(prefix_ok=False)

    rest = path[len(head):]
    service, sep, tail = rest.partition("/")
    if not service:
        return RouteMatch(prefix_ok=True)

    if strip_service_segment:
        remainder = "/" + tail
    else:
        remainder = "/" + service + sep + tail
    return RouteMatch(prefix_ok=True, service=service, remainder=remainder)
