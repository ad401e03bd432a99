"""
Plugin that logs every extension point it passes through.
"""

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

from google.genai import types

from .base_plugin import BasePlugin
from ..core.models import Event, LlmRequest, LlmResponse
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..core.context import CallbackContext, InvocationContext, ToolContext
    from ..tools.base_tool import BaseTool
    from ..workflows.base_agent import BaseAgent


def _summarize(content: Optional[types.Content], limit: int = 200) -> str:
    if not content or not content.parts:
        return "None"
    pieces = []
    for part in content.parts:
        if part.text:
            pieces.append(part.text)
        elif part.function_call:
            pieces.append(f"function_call: {part.function_call.name}")
        elif part.function_response:
            pieces.append(f"function_response: {part.function_response.name}")
    text = " | ".join(pieces)
    if len(text) > limit:
        text = text[:limit] + "..."
    return f"'{text}'"


class LoggingPlugin(BasePlugin):
    """Logs runs, agents, model calls and tool calls. Never intercepts."""

    def __init__(self, name: str = "logging_plugin", logger: Optional[logging.Logger] = None):
        super().__init__(name)
        self._logger = logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger or get_logger()

    async def on_user_message_callback(
        self,
        *,
        invocation_context: "InvocationContext",
        user_message: types.Content
    ) -> Optional[types.Content]:
        self.logger.info(
            f"[{self.name}] user message in invocation {invocation_context.invocation_id}: "
            f"{_summarize(user_message)}"
        )
        return None

    async def before_run_callback(
        self,
        *,
        invocation_context: "InvocationContext"
    ) -> Optional[types.Content]:
        self.logger.info(
            f"[{self.name}] run started: invocation={invocation_context.invocation_id} "
            f"session={invocation_context.session.id} agent={invocation_context.agent.name}"
        )
        return None

    async def on_event_callback(
        self,
        *,
        invocation_context: "InvocationContext",
        event: Event
    ) -> Optional[Event]:
        self.logger.info(
            f"[{self.name}] event {event.id} from {event.author}: {_summarize(event.content)}"
        )
        if event.actions.state_delta:
            self.logger.debug(f"[{self.name}] state delta: {event.actions.state_delta}")
        if event.actions.transfer_to_agent:
            self.logger.info(f"[{self.name}] transfer to {event.actions.transfer_to_agent}")
        return None

    async def after_run_callback(
        self,
        *,
        invocation_context: "InvocationContext"
    ) -> None:
        self.logger.info(f"[{self.name}] run finished: {invocation_context.invocation_id}")

    async def before_agent_callback(
        self,
        *,
        agent: "BaseAgent",
        callback_context: "CallbackContext"
    ) -> Optional[types.Content]:
        self.logger.info(f"[{self.name}] agent {agent.name} starting on branch {callback_context.branch}")
        return None

    async def after_agent_callback(
        self,
        *,
        agent: "BaseAgent",
        callback_context: "CallbackContext"
    ) -> Optional[types.Content]:
        self.logger.info(f"[{self.name}] agent {agent.name} finished")
        return None

    async def before_model_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_request: LlmRequest
    ) -> Optional[LlmResponse]:
        self.logger.info(
            f"[{self.name}] model call by {callback_context.agent_name}: "
            f"model={llm_request.model} contents={len(llm_request.contents)} "
            f"tools={list(llm_request.tools_dict)}"
        )
        return None

    async def after_model_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_response: LlmResponse
    ) -> Optional[LlmResponse]:
        if llm_response.error_code:
            self.logger.warning(
                f"[{self.name}] model error {llm_response.error_code}: {llm_response.error_message}"
            )
        else:
            self.logger.info(f"[{self.name}] model response: {_summarize(llm_response.content)}")
        return None

    async def on_model_error_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_request: LlmRequest,
        error: Exception
    ) -> Optional[LlmResponse]:
        self.logger.error(f"[{self.name}] model call by {callback_context.agent_name} failed: {error}")
        return None

    async def before_tool_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext"
    ) -> Optional[Dict[str, Any]]:
        self.logger.info(f"[{self.name}] tool {tool.name} called with {tool_args}")
        return None

    async def after_tool_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext",
        result: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        self.logger.info(f"[{self.name}] tool {tool.name} returned {result}")
        return None

    async def on_tool_error_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext",
        error: Exception
    ) -> Optional[Dict[str, Any]]:
        self.logger.error(f"[{self.name}] tool {tool.name} failed: {error}")
        return None
