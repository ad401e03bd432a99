"""
Base class for plugins.

A plugin intercepts the engine at a fixed set of extension points. Every
hook defaults to returning None, which means "no interception"; returning
a value replaces the default behavior for that call and skips the plugins
registered after this one.
"""

from abc import ABC
from typing import Any, Dict, Optional, TYPE_CHECKING

from google.genai import types

from ..core.models import Event, LlmRequest, LlmResponse

if TYPE_CHECKING:
    from ..core.context import CallbackContext, InvocationContext, ToolContext
    from ..tools.base_tool import BaseTool
    from ..workflows.base_agent import BaseAgent


class BasePlugin(ABC):
    """Base class for all plugins.

    Subclasses override only the hooks they need:

    - Runner level: ``on_user_message_callback``, ``before_run_callback``,
      ``on_event_callback``, ``after_run_callback``
    - Agent level: ``before_agent_callback``, ``after_agent_callback``
    - Model level: ``before_model_callback``, ``after_model_callback``,
      ``on_model_error_callback``
    - Tool level: ``before_tool_callback``, ``after_tool_callback``,
      ``on_tool_error_callback``
    """

    def __init__(self, name: str):
        self.name = name

    async def on_user_message_callback(
        self,
        *,
        invocation_context: "InvocationContext",
        user_message: types.Content
    ) -> Optional[types.Content]:
        """Inspect or replace the incoming user message."""
        pass

    async def before_run_callback(
        self,
        *,
        invocation_context: "InvocationContext"
    ) -> Optional[types.Content]:
        """Return content to answer the turn without running the agent tree."""
        pass

    async def on_event_callback(
        self,
        *,
        invocation_context: "InvocationContext",
        event: Event
    ) -> Optional[Event]:
        """Return an event to replace the one yielded to the caller."""
        pass

    async def after_run_callback(
        self,
        *,
        invocation_context: "InvocationContext"
    ) -> None:
        """Called once the invocation finishes or fails."""
        pass

    async def before_agent_callback(
        self,
        *,
        agent: "BaseAgent",
        callback_context: "CallbackContext"
    ) -> Optional[types.Content]:
        """Return content to skip the agent's body."""
        pass

    async def after_agent_callback(
        self,
        *,
        agent: "BaseAgent",
        callback_context: "CallbackContext"
    ) -> Optional[types.Content]:
        """Return content to append after the agent's body."""
        pass

    async def before_model_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_request: LlmRequest
    ) -> Optional[LlmResponse]:
        """Return a response to skip the model call."""
        pass

    async def after_model_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_response: LlmResponse
    ) -> Optional[LlmResponse]:
        """Return a response to replace the model's."""
        pass

    async def on_model_error_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_request: LlmRequest,
        error: Exception
    ) -> Optional[LlmResponse]:
        """Return a response to recover from a failed model call."""
        pass

    async def before_tool_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext"
    ) -> Optional[Dict[str, Any]]:
        """Return a result to skip the tool call."""
        pass

    async def after_tool_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext",
        result: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Return a result to replace the tool's."""
        pass

    async def on_tool_error_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext",
        error: Exception
    ) -> Optional[Dict[str, Any]]:
        """Return a result to recover from a failed tool call."""
        pass
