"""
Tools exposed by an MCP server.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from google.genai import types
from mcp.types import Tool as McpToolSpec

from .base_tool import BaseTool, BaseToolset
from .mcp_session_manager import MCPConnectionParams, MCPSessionManager

if TYPE_CHECKING:
    from ..core.context import ReadonlyContext, ToolContext

logger = logging.getLogger(__name__)

_JSON_TO_SCHEMA_TYPE = {
    "string": types.Type.STRING,
    "integer": types.Type.INTEGER,
    "number": types.Type.NUMBER,
    "boolean": types.Type.BOOLEAN,
    "array": types.Type.ARRAY,
    "object": types.Type.OBJECT,
}


def json_schema_to_gemini_schema(json_schema: Dict[str, Any]) -> types.Schema:
    """Convert a JSON schema to the subset Gemini accepts."""
    schema = types.Schema()

    json_type = json_schema.get("type")
    if isinstance(json_type, list):
        non_null = [t for t in json_type if t != "null"]
        schema.nullable = len(non_null) != len(json_type) or None
        json_type = non_null[0] if non_null else None
    if json_type in _JSON_TO_SCHEMA_TYPE:
        schema.type = _JSON_TO_SCHEMA_TYPE[json_type]

    if "description" in json_schema:
        schema.description = json_schema["description"]
    if "enum" in json_schema:
        schema.enum = [str(value) for value in json_schema["enum"]]
    if "properties" in json_schema:
        schema.properties = {
            name: json_schema_to_gemini_schema(prop)
            for name, prop in json_schema["properties"].items()
        }
    if json_schema.get("required"):
        schema.required = list(json_schema["required"])
    if "items" in json_schema and isinstance(json_schema["items"], dict):
        schema.items = json_schema_to_gemini_schema(json_schema["items"])
    if "anyOf" in json_schema:
        schema.any_of = [json_schema_to_gemini_schema(s) for s in json_schema["anyOf"]]
    return schema


class MCPTool(BaseTool):
    """A tool served by an MCP server, called through a fresh client."""

    def __init__(self, mcp_tool: McpToolSpec, session_manager: MCPSessionManager):
        super().__init__(name=mcp_tool.name, description=mcp_tool.description or "")
        self._mcp_tool = mcp_tool
        self._session_manager = session_manager

    def get_declaration(self) -> Optional[types.FunctionDeclaration]:
        input_schema = self._mcp_tool.inputSchema or {}
        if not input_schema.get("properties"):
            return types.FunctionDeclaration(name=self.name, description=self.description)
        return types.FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters=json_schema_to_gemini_schema(input_schema)
        )

    async def run_async(self, *, args: Dict[str, Any], tool_context: "ToolContext") -> Any:
        async with self._session_manager.create_client() as client:
            result = await client.call_tool_mcp(self.name, args)
        if result.isError:
            logger.warning(f"MCP tool {self.name} reported an error")
        return result.model_dump(mode="json", exclude_none=True)


class MCPToolset(BaseToolset):
    """Discovers tools from an MCP server.

    Usage:
        toolset = MCPToolset(
            StreamableHTTPConnectionParams(url="http://localhost:8000/mcp"),
            tool_filter=["add"]
        )
        agent = LlmAgent(name="math", model="gemini-2.5-flash", tools=[toolset])
    """

    def __init__(
        self,
        connection_params: MCPConnectionParams,
        tool_filter: Optional[Sequence[str]] = None
    ):
        super().__init__(tool_filter)
        self._session_manager = MCPSessionManager(connection_params)

    async def get_tools(
        self,
        readonly_context: Optional["ReadonlyContext"] = None
    ) -> List[BaseTool]:
        async with self._session_manager.create_client() as client:
            mcp_tools = await client.list_tools()
        tools: List[BaseTool] = [
            MCPTool(mcp_tool, self._session_manager)
            for mcp_tool in mcp_tools
            if self._is_tool_selected(mcp_tool)
        ]
        logger.info(f"Discovered {len(tools)} MCP tools")
        return tools
