"""
Built-in Google Search grounding tool.
"""

from typing import Any, Dict, TYPE_CHECKING

from google.genai import types

from .base_tool import BaseTool
from ..core.exceptions import ConfigurationError, UnsupportedError
from ..core.models import LlmRequest
from ..utils.model_name import is_gemini_1_model, is_gemini_model

if TYPE_CHECKING:
    from ..core.context import ToolContext


class GoogleSearchTool(BaseTool):
    """Enables server-side Google Search for Gemini models.

    The model runs the search itself; the tool only edits the request.
    """

    def __init__(self):
        super().__init__(name="google_search", description="Google Search Tool")

    async def run_async(self, *, args: Dict[str, Any], tool_context: "ToolContext") -> Any:
        return None

    async def process_llm_request(
        self,
        *,
        tool_context: "ToolContext",
        llm_request: LlmRequest
    ) -> None:
        if not llm_request.model:
            return
        if llm_request.config.tools is None:
            llm_request.config.tools = []

        if is_gemini_1_model(llm_request.model):
            if llm_request.config.tools:
                raise ConfigurationError(
                    "Google search tool can not be used with other tools in Gemini 1.x."
                )
            llm_request.config.tools.append(
                types.Tool(google_search_retrieval=types.GoogleSearchRetrieval())
            )
            return

        if is_gemini_model(llm_request.model):
            llm_request.config.tools.append(types.Tool(google_search=types.GoogleSearch()))
            return

        raise UnsupportedError(
            f"Google search tool is not supported for model {llm_request.model}"
        )


google_search = GoogleSearchTool()
