import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response

from .logging_utils import log_api_request
from .metrics import record_http_request

REQUEST_ID_HEADER = "X-Request-ID"


async def log_requests_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Access log, request metrics and a request id for every call.

    The request id is taken from the incoming header when present and bound
    to the structlog context, so every service log line of the request
    carries it.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    start_time = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start_time

    log_api_request(request, response.status_code, elapsed * 1000)
    record_http_request(request.method, request.url.path, response.status_code, elapsed)

    response.headers[REQUEST_ID_HEADER] = request_id
    return response
