"""
Request ID middleware: tags every request, and every log line emitted while
handling it, with one id.
"""

import uuid
import logging
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_base_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _base_factory(*args, **kwargs)
    record.request_id = _request_id.get()
    return record


# Installed once; the context variable keeps concurrent requests apart
logging.setLogRecordFactory(_record_factory)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Reuses the client's X-Request-ID when given, otherwise generates a UUID.
    The id is stored on ``request.state`` and echoed in the response header.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = _request_id.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_id.reset(token)


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "no-request-id")
