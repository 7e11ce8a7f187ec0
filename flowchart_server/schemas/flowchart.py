"""Pydantic schemas for the code_to_flowchart tool."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class FlowchartMetadata(BaseModel):
    """Response metadata attached to every generated document."""

    generated_at: datetime = Field(
        ...,
        description="UTC time at which the document was produced and billed.",
    )
    code_length: int = Field(
        ...,
        ge=0,
        description="Length of the submitted code in characters.",
    )


class FlowchartResult(BaseModel):
    """A generated, self-rendering HTML page with an embedded Mermaid flowchart.

    Only returned once the caller's quota was debited for it.
    """

    html: str = Field(
        ...,
        description="Complete HTML document rendering the flowchart with zoom and pan controls.",
    )
    metadata: FlowchartMetadata
