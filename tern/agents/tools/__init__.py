"""
Tools that agents expose to their models.

This module provides the tool base classes, function tools, the built-in
Google Search tool, and MCP (Model Context Protocol) toolsets.
"""

from .base_tool import BaseTool, BaseToolset
from .function_tool import FunctionTool
from .transfer_to_agent_tool import transfer_to_agent
from .google_search_tool import GoogleSearchTool, google_search
from .mcp_session_manager import (
    MCPSessionManager,
    MCPConnectionParams,
    StdioConnectionParams,
    StreamableHTTPConnectionParams,
)
from .mcp_toolset import MCPTool, MCPToolset

__all__ = [
    # Base classes
    "BaseTool",
    "BaseToolset",

    # Built-in tools
    "FunctionTool",
    "transfer_to_agent",
    "GoogleSearchTool",
    "google_search",

    # MCP
    "MCPSessionManager",
    "MCPConnectionParams",
    "StdioConnectionParams",
    "StreamableHTTPConnectionParams",
    "MCPTool",
    "MCPToolset",
]
