"""
Base classes for tools and toolsets.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union, TYPE_CHECKING

from google.genai import types

from ..core.models import LlmRequest

if TYPE_CHECKING:
    from ..core.context import ReadonlyContext, ToolContext


class BaseTool(ABC):
    """Base class for all tools.

    A tool contributes to the model request (usually a function declaration)
    and runs when the model calls it.
    """

    def __init__(self, name: str, description: str, is_long_running: bool = False):
        self.name = name
        self.description = description
        self.is_long_running = is_long_running

    def get_declaration(self) -> Optional[types.FunctionDeclaration]:
        """Function declaration sent to the model, None for built-in tools."""
        return None

    async def run_async(self, *, args: Dict[str, Any], tool_context: "ToolContext") -> Any:
        """Run the tool with the arguments chosen by the model."""
        raise NotImplementedError(f"{type(self).__name__} does not implement run_async")

    async def process_llm_request(
        self,
        *,
        tool_context: "ToolContext",
        llm_request: LlmRequest
    ) -> None:
        """Add this tool to the outgoing request."""
        declaration = self.get_declaration()
        if declaration is None:
            return
        llm_request.tools_dict[self.name] = self
        llm_request.append_function_declarations([declaration])

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class BaseToolset(ABC):
    """A dynamic group of tools resolved per request.

    Args:
        tool_filter: Names of the tools to expose; all tools when None
    """

    def __init__(self, tool_filter: Optional[Sequence[str]] = None):
        self.tool_filter = list(tool_filter) if tool_filter is not None else None

    @abstractmethod
    async def get_tools(
        self,
        readonly_context: Optional["ReadonlyContext"] = None
    ) -> List[BaseTool]:
        """Resolve the toolset's tools."""
        pass

    async def close(self) -> None:
        """Release resources held by the toolset."""
        pass

    def _is_tool_selected(self, tool: Union[BaseTool, Any]) -> bool:
        if self.tool_filter is None:
            return True
        return tool.name in self.tool_filter
