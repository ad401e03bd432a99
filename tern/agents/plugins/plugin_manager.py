"""
Plugin manager.

Runs registered plugins in registration order at each extension point.
The first plugin that returns a non-None value wins and the remaining
plugins are skipped for that call.
"""

import logging
from typing import Any, Dict, List, Literal, Optional, TYPE_CHECKING

from google.genai import types

from .base_plugin import BasePlugin
from ..core.exceptions import ConfigurationError, PluginExecutionError
from ..core.models import Event, LlmRequest, LlmResponse

if TYPE_CHECKING:
    from ..core.context import CallbackContext, InvocationContext, ToolContext
    from ..tools.base_tool import BaseTool
    from ..workflows.base_agent import BaseAgent

logger = logging.getLogger(__name__)

PluginCallbackName = Literal[
    "on_user_message_callback",
    "before_run_callback",
    "on_event_callback",
    "after_run_callback",
    "before_agent_callback",
    "after_agent_callback",
    "before_model_callback",
    "after_model_callback",
    "on_model_error_callback",
    "before_tool_callback",
    "after_tool_callback",
    "on_tool_error_callback",
]


class PluginManager:
    """Registry and dispatcher for plugins."""

    def __init__(self, plugins: Optional[List[BasePlugin]] = None):
        self.plugins: List[BasePlugin] = []
        for plugin in plugins or []:
            self.register_plugin(plugin)

    def register_plugin(self, plugin: BasePlugin) -> None:
        """Register a plugin after the ones already registered.

        Raises:
            ConfigurationError: If a plugin with the same name is registered
        """
        if any(existing.name == plugin.name for existing in self.plugins):
            raise ConfigurationError(f"Plugin with name '{plugin.name}' already registered.")
        self.plugins.append(plugin)
        logger.info(f"Plugin '{plugin.name}' registered.")

    def get_plugin(self, plugin_name: str) -> Optional[BasePlugin]:
        """Get a registered plugin by name."""
        return next((p for p in self.plugins if p.name == plugin_name), None)

    async def run_on_user_message_callback(
        self,
        *,
        user_message: types.Content,
        invocation_context: "InvocationContext"
    ) -> Optional[types.Content]:
        return await self._run_callbacks(
            "on_user_message_callback",
            user_message=user_message,
            invocation_context=invocation_context
        )

    async def run_before_run_callback(
        self,
        *,
        invocation_context: "InvocationContext"
    ) -> Optional[types.Content]:
        return await self._run_callbacks(
            "before_run_callback", invocation_context=invocation_context
        )

    async def run_on_event_callback(
        self,
        *,
        invocation_context: "InvocationContext",
        event: Event
    ) -> Optional[Event]:
        return await self._run_callbacks(
            "on_event_callback", invocation_context=invocation_context, event=event
        )

    async def run_after_run_callback(
        self,
        *,
        invocation_context: "InvocationContext"
    ) -> None:
        await self._run_callbacks(
            "after_run_callback", invocation_context=invocation_context
        )

    async def run_before_agent_callback(
        self,
        *,
        agent: "BaseAgent",
        callback_context: "CallbackContext"
    ) -> Optional[types.Content]:
        return await self._run_callbacks(
            "before_agent_callback", agent=agent, callback_context=callback_context
        )

    async def run_after_agent_callback(
        self,
        *,
        agent: "BaseAgent",
        callback_context: "CallbackContext"
    ) -> Optional[types.Content]:
        return await self._run_callbacks(
            "after_agent_callback", agent=agent, callback_context=callback_context
        )

    async def run_before_model_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_request: LlmRequest
    ) -> Optional[LlmResponse]:
        return await self._run_callbacks(
            "before_model_callback",
            callback_context=callback_context,
            llm_request=llm_request
        )

    async def run_after_model_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_response: LlmResponse
    ) -> Optional[LlmResponse]:
        return await self._run_callbacks(
            "after_model_callback",
            callback_context=callback_context,
            llm_response=llm_response
        )

    async def run_on_model_error_callback(
        self,
        *,
        callback_context: "CallbackContext",
        llm_request: LlmRequest,
        error: Exception
    ) -> Optional[LlmResponse]:
        return await self._run_callbacks(
            "on_model_error_callback",
            callback_context=callback_context,
            llm_request=llm_request,
            error=error
        )

    async def run_before_tool_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext"
    ) -> Optional[Dict[str, Any]]:
        return await self._run_callbacks(
            "before_tool_callback", tool=tool, tool_args=tool_args, tool_context=tool_context
        )

    async def run_after_tool_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext",
        result: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await self._run_callbacks(
            "after_tool_callback",
            tool=tool,
            tool_args=tool_args,
            tool_context=tool_context,
            result=result
        )

    async def run_on_tool_error_callback(
        self,
        *,
        tool: "BaseTool",
        tool_args: Dict[str, Any],
        tool_context: "ToolContext",
        error: Exception
    ) -> Optional[Dict[str, Any]]:
        return await self._run_callbacks(
            "on_tool_error_callback",
            tool=tool,
            tool_args=tool_args,
            tool_context=tool_context,
            error=error
        )

    async def _run_callbacks(self, callback_name: PluginCallbackName, **kwargs: Any) -> Any:
        """Run one hook across plugins until a plugin returns a value.

        Raises:
            PluginExecutionError: If a plugin hook raises
        """
        for plugin in self.plugins:
            callback = getattr(plugin, callback_name)
            try:
                result = await callback(**kwargs)
            except Exception as e:
                message = f"Error in plugin '{plugin.name}' during '{callback_name}' callback: {e}"
                logger.error(message)
                raise PluginExecutionError(message, plugin_name=plugin.name) from e
            if result is not None:
                logger.debug(
                    f"Plugin '{plugin.name}' returned a value for '{callback_name}', "
                    "skipping remaining plugins"
                )
                return result
        return None
