import logging
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

_current_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

logger = logging.getLogger(__name__)


def assign_request_id(request: Request) -> str:
    request_id = request.headers.get(REQUEST_ID_HEADER) or request.headers.get(CORRELATION_ID_HEADER)
    if not request_id:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id


def current_request_id() -> Optional[str]:
    """Id of the request being handled in this context, if any."""
    return _current_request_id.get()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and echo it on the response."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = assign_request_id(request)
        token = _current_request_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _current_request_id.reset(token)
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        logger.debug("%s %s -> %s [%s]", request.method, request.url.path, response.status_code, request_id)
        return response
