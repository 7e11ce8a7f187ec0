"""HTTP middleware for request ID propagation and correlation.

Every HTTP exchange, including the long-lived SSE stream and each posted
protocol message, gets a correlation id that is stored in contextvars for the
duration of the call and echoed back in the response headers.

This is a plain ASGI middleware rather than ``app.middleware("http")``: the SSE
transport keeps writing to ``send`` after its stream ends, which the
response-wrapping ``BaseHTTPMiddleware`` rejects.

Usage:
    app.add_middleware(RequestIdMiddleware)
"""

from __future__ import annotations

import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from flowchart_server.core.config import settings
from flowchart_server.core.logging import clear_request_id, set_request_id


class RequestIdMiddleware:
    """Attach a request id to the log context and the response.

    The client-provided header (``LOG_REQUEST_ID_HEADER``, default
    ``X-Request-ID``) is reused when present; otherwise a UUID4 is generated.
    Responses also carry ``X-Request-Duration-ms``, the time until the
    response started.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        header_name = settings.log.request_id_header
        request_id = Headers(scope=scope).get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                duration_ms = (time.perf_counter() - start) * 1000
                headers = MutableHeaders(scope=message)
                headers[header_name] = request_id
                headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
            await send(message)

        # Not cleared when the app raises, so the 500 handler can still report it.
        await self.app(scope, receive, send_with_request_id)
        clear_request_id()
