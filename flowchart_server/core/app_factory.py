"""Application factory for the FastAPI app.

The HTTP surface is the MCP SSE transport and nothing else: the stream lives at
``/sse`` and clients post protocol messages to the path the stream announces.
Any other path is a 404. FastAPI's own docs and schema routes are disabled.
"""

from __future__ import annotations

from fastapi import FastAPI

from flowchart_server.api import mcp
from flowchart_server.core.config import settings
from flowchart_server.core.exception_handlers import setup_exception_handlers
from flowchart_server.core.logging import configure_logging
from flowchart_server.core.middleware import RequestIdMiddleware

VERSION = "1.0.0"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Code to Flowchart Converter",
        description="MCP server converting code to interactive Mermaid flowcharts.",
        version=VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_middleware(RequestIdMiddleware)
    setup_exception_handlers(app)

    app.mount("/", mcp.sse_app())

    return app
