"""
MCP session manager.

Builds FastMCP clients for Model Context Protocol servers reached over
stdio or streamable HTTP. Clients connect when entered as async context
managers and disconnect when exited.
"""

import logging
from typing import Dict, List, Optional, Union

from fastmcp import Client
from fastmcp.client.transports import StdioTransport, StreamableHttpTransport
from pydantic import BaseModel, Field, ConfigDict

from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class StdioConnectionParams(BaseModel):
    """Launch an MCP server as a subprocess speaking over stdio."""

    model_config = ConfigDict(extra='forbid')

    command: str = Field(..., description="Executable to launch", min_length=1)
    args: List[str] = Field(default_factory=list, description="Command arguments")
    env: Optional[Dict[str, str]] = Field(None, description="Environment for the subprocess")
    cwd: Optional[str] = Field(None, description="Working directory for the subprocess")
    timeout: float = Field(default=5.0, description="Request timeout in seconds", gt=0)


class StreamableHTTPConnectionParams(BaseModel):
    """Reach an MCP server over streamable HTTP."""

    model_config = ConfigDict(extra='forbid')

    url: str = Field(..., description="Server endpoint", min_length=1)
    headers: Optional[Dict[str, str]] = Field(None, description="Extra HTTP headers")
    timeout: float = Field(default=5.0, description="Request timeout in seconds", gt=0)
    sse_read_timeout: float = Field(
        default=300.0, description="Read timeout for streamed responses in seconds", gt=0
    )


MCPConnectionParams = Union[StdioConnectionParams, StreamableHTTPConnectionParams]


class MCPSessionManager:
    """Creates FastMCP clients for one MCP server.

    Usage:
        manager = MCPSessionManager(
            StdioConnectionParams(command="python", args=["./server.py"])
        )
        async with manager.create_client() as client:
            tools = await client.list_tools()
    """

    def __init__(self, connection_params: MCPConnectionParams):
        self.connection_params = connection_params

    def create_client(self) -> Client:
        """Create an unconnected client for the configured server.

        Raises:
            ConfigurationError: If the connection params are of an unknown kind
        """
        params = self.connection_params
        if isinstance(params, StdioConnectionParams):
            transport = StdioTransport(
                command=params.command,
                args=params.args,
                env=params.env,
                cwd=params.cwd
            )
            logger.debug(f"Creating MCP stdio client for command: {params.command}")
        elif isinstance(params, StreamableHTTPConnectionParams):
            transport = StreamableHttpTransport(
                url=params.url,
                headers=params.headers,
                sse_read_timeout=params.sse_read_timeout
            )
            logger.debug(f"Creating MCP streamable HTTP client for url: {params.url}")
        else:
            raise ConfigurationError(
                f"Unsupported MCP connection params: {type(params).__name__}"
            )
        return Client(transport, timeout=params.timeout)
