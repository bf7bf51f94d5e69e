"""X-Request-ID middleware for request correlation and access logging.

- Accepts a well-formed incoming X-Request-ID, otherwise generates a UUID4
- Stores the id on request.state and in the logging context
- Echoes the id on every response, including auth failures
- Emits one "request_completed" log line per request

Must be registered last so it runs first (outermost); see create_app().
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from precious.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# UUIDs or short tokens of alphanumerics, dots, hyphens, underscores
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = get_logger(__name__)


def resolve_request_id(incoming: str | None) -> str:
    """Return the normalized incoming id, or a fresh one if absent or malformed."""
    if not incoming or len(incoming) > MAX_REQUEST_ID_LENGTH:
        return str(uuid.uuid4())
    if not VALID_REQUEST_ID_PATTERN.match(incoming):
        return str(uuid.uuid4())

    try:
        return str(uuid.UUID(incoming))
    except ValueError:
        return incoming


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Request id propagation plus access logging.

    Args:
        app: The ASGI application.
        log_requests: If True, log one access entry per request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed")
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id

            if self.log_requests:
                viewer = getattr(request.state, "viewer", None)
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    user_id=str(viewer.user_id) if viewer else None,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                )
            return response
        finally:
            clear_request_context()
