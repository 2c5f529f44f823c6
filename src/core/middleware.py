"""Request correlation for logs, traces and error envelopes."""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from core.error_handler import set_correlation_id


CORRELATION_HEADER = "X-Correlation-ID"
MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind one correlation id to each request and echo it on the response.

    A caller-supplied ``X-Correlation-ID`` is reused when it is short enough;
    otherwise a fresh UUID is issued. The header is set before streaming
    bodies start, so SSE responses carry it too.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get(CORRELATION_HEADER, "").strip()
        if incoming and len(incoming) <= MAX_CORRELATION_ID_LENGTH:
            correlation_id = incoming
        else:
            correlation_id = str(uuid.uuid4())

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
