"""MCP server exposing the code_to_flowchart tool."""

from __future__ import annotations

import logging
from typing import Annotated

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import AfterValidator, Field
from pydantic.networks import validate_email

from flowchart_server.adapters.llm.factory import create_llm_client
from flowchart_server.adapters.quota.factory import create_quota_store
from flowchart_server.core.config import settings
from flowchart_server.core.errors import AppError
from flowchart_server.schemas.flowchart import FlowchartResult
from flowchart_server.services.flowchart_service import FlowchartService
from flowchart_server.services.generation_service import GenerationConfig, GenerationService
from flowchart_server.services.quota_service import QuotaGate

logger = logging.getLogger(__name__)

SERVER_NAME = "Code to Flowchart Converter"
TOOL_NAME = "code_to_flowchart"

# Initialize dependencies for the tool
_llm_client = create_llm_client()
_quota_store = create_quota_store()
_flowchart_service = FlowchartService(
    generator=GenerationService(
        llm=_llm_client,
        config=GenerationConfig.from_settings(settings.llm),
    ),
    quota=QuotaGate(
        _quota_store,
        atomic_decrement=settings.quota.decrement_rpc is not None,
    ),
    timeout_seconds=settings.app.external_timeout_seconds,
)

mcp = FastMCP(
    SERVER_NAME,
    instructions="Converts source code into an interactive Mermaid flowchart page.",
    host=settings.app.host,
)


def _email_as_given(value: str) -> str:
    """Reject anything that is not a bare email address, without normalizing it.

    Quota rows are matched on the exact string, so the address is passed on
    as typed.
    """
    if "<" in value or value != value.strip():
        raise ValueError("value is not a valid email address")
    validate_email(value)
    return value


@mcp.tool(
    name=TOOL_NAME,
    description=(
        "Convert a code snippet into a complete HTML page rendering a Mermaid "
        "flowchart with zoom and pan controls. Consumes one prepaid turn."
    ),
)
async def code_to_flowchart(
    code: Annotated[
        str,
        Field(
            min_length=1,
            max_length=settings.app.max_code_chars,
            description="The code to convert to a flowchart",
        ),
    ],
    gmail: Annotated[
        str,
        AfterValidator(_email_as_given),
        Field(
            description="User Gmail for subscription check",
            json_schema_extra={"format": "email"},
        ),
    ],
) -> FlowchartResult:
    """Generate a flowchart page for ``code``, billed to ``gmail``.

    Raises:
        ToolError: With a caller-safe message for every failure category.
    """
    try:
        return await _flowchart_service.convert(code=code, identity=gmail)
    except AppError as exc:
        raise ToolError(exc.message) from exc
    except Exception as exc:
        logger.error(
            "unhandled_exception",
            extra={
                "tool": TOOL_NAME,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        raise ToolError("An unexpected error occurred. Please try again later.") from exc
