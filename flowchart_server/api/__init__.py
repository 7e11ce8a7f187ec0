from __future__ import annotations

from flowchart_server.api.mcp_server import mcp

__all__ = ["mcp"]
