"""Global exception handler for the HTTP layer.

Domain errors never reach HTTP handling: the tool surface turns every
``AppError`` into a protocol tool error inside the MCP stream. What is left is
the safety net for anything unexpected that escapes a transport endpoint,
answered with a generic 500 that carries the request_id and no upstream
details.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flowchart_server.core.logging import get_request_id

logger = logging.getLogger(__name__)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors; no implementation details leak."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the exception handlers with the FastAPI app."""
    app.exception_handler(Exception)(general_exception_handler)
