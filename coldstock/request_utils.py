"""Request classification used by the rate limiter and the access log."""

from typing import Final

from fastapi import Request

API_PREFIX: Final = "/api/"
AUTH_SEGMENT: Final = "/auth/"
WRITE_METHODS: Final = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def get_client_ip(request: Request) -> str:
    """Client address, honouring ``X-Forwarded-For`` and ``X-Real-IP``.

    The first ``X-Forwarded-For`` entry is the original client when the
    service runs behind a proxy. Returns "unknown" when nothing is available.
    """
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    client_ip = forwarded_for.split(",")[0].strip()
    if client_ip:
        return client_ip

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return str(request.client.host)
    return "unknown"


def is_api_request(request: Request) -> bool:
    return request.url.path.startswith(API_PREFIX)


def is_auth_request(request: Request) -> bool:
    """Login, refresh and password change calls."""
    return AUTH_SEGMENT in request.url.path and request.method == "POST"


def is_write_request(request: Request) -> bool:
    return request.method in WRITE_METHODS
