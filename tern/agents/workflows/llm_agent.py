"""
LLM agent implementation.

An LlmAgent drives a model through the request/response/tool loop of
``LlmFlow``. It can hand the conversation to another agent of the tree by
calling the ``transfer_to_agent`` tool.
"""

import inspect
import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Awaitable, Callable, List, Optional, Tuple, Union

from google.genai import types

from .base_agent import BaseAgent
from ..core.context import InvocationContext, ReadonlyContext
from ..core.enums import IncludeContents
from ..core.exceptions import ConfigurationError
from ..core.interfaces import BaseLlm
from ..core.models import Event
from ..llm.flow import LlmFlow
from ..registry.llm_registry import get_llm_registry
from ..tools.base_tool import BaseTool, BaseToolset
from ..tools.function_tool import FunctionTool
from ..tools.transfer_to_agent_tool import transfer_to_agent
from ..utils.callbacks import CallbackOrList

logger = logging.getLogger(__name__)

InstructionProvider = Callable[[ReadonlyContext], Union[str, Awaitable[str]]]
ToolUnion = Union[BaseTool, BaseToolset, Callable[..., Any]]


class LlmAgent(BaseAgent):
    """Agent backed by a model.

    Usage:
        agent = LlmAgent(
            name="weather",
            model="gemini-2.5-flash",
            instruction="Answer questions about the weather in {city?}.",
            tools=[get_forecast],
            output_key="last_forecast"
        )
    """

    def __init__(
        self,
        name: str,
        model: Union[str, BaseLlm] = "",
        instruction: Union[str, InstructionProvider] = "",
        description: str = "",
        sub_agents: Optional[List[BaseAgent]] = None,
        tools: Optional[List[ToolUnion]] = None,
        output_key: Optional[str] = None,
        include_contents: IncludeContents = IncludeContents.DEFAULT,
        disallow_transfer_to_parent: bool = False,
        disallow_transfer_to_peers: bool = False,
        generate_content_config: Optional[types.GenerateContentConfig] = None,
        before_agent_callback: CallbackOrList = None,
        after_agent_callback: CallbackOrList = None,
        before_model_callback: CallbackOrList = None,
        after_model_callback: CallbackOrList = None,
        on_model_error_callback: CallbackOrList = None,
        before_tool_callback: CallbackOrList = None,
        after_tool_callback: CallbackOrList = None,
        on_tool_error_callback: CallbackOrList = None
    ):
        """
        Args:
            model: Model instance or model string; empty to inherit from the
                nearest LlmAgent ancestor
            instruction: Instruction text with ``{key}`` state placeholders,
                or a callable of ReadonlyContext returning the final text
            tools: Tools, toolsets, or plain functions
            output_key: State key receiving the final response text
            include_contents: How much history is sent to the model
            generate_content_config: Extra generation settings; tools and
                system instruction are set through the agent instead

        Raises:
            UnsupportedError: If a model string matches no registered model
            ConfigurationError: If the agent configuration is invalid
        """
        super().__init__(
            name=name,
            description=description,
            sub_agents=sub_agents,
            before_agent_callback=before_agent_callback,
            after_agent_callback=after_agent_callback
        )
        self.model = model
        self.instruction = instruction
        self.tools: List[ToolUnion] = list(tools or [])
        self.output_key = output_key
        self.include_contents = IncludeContents(include_contents)
        self.disallow_transfer_to_parent = disallow_transfer_to_parent
        self.disallow_transfer_to_peers = disallow_transfer_to_peers
        self.generate_content_config = generate_content_config
        self.before_model_callback = before_model_callback
        self.after_model_callback = after_model_callback
        self.on_model_error_callback = on_model_error_callback
        self.before_tool_callback = before_tool_callback
        self.after_tool_callback = after_tool_callback
        self.on_tool_error_callback = on_tool_error_callback
        self._canonical_model: Optional[BaseLlm] = None
        self._llm_flow = LlmFlow()

        self._validate_generate_content_config()
        if isinstance(model, str) and model:
            self._canonical_model = get_llm_registry().new_llm(model)

    def _validate_generate_content_config(self) -> None:
        config = self.generate_content_config
        if config is None:
            return
        if config.tools:
            raise ConfigurationError("All tools must be set via LlmAgent.tools.")
        if config.system_instruction:
            raise ConfigurationError(
                "System instruction must be set via LlmAgent.instruction."
            )

    @property
    def canonical_model(self) -> BaseLlm:
        """The model instance, inherited from an ancestor when unset.

        Raises:
            ConfigurationError: If neither the agent nor an ancestor has a model
        """
        if isinstance(self.model, BaseLlm):
            return self.model
        if self._canonical_model is not None:
            return self._canonical_model

        ancestor = self.parent_agent
        while ancestor is not None:
            if isinstance(ancestor, LlmAgent):
                return ancestor.canonical_model
            ancestor = ancestor.parent_agent
        raise ConfigurationError(f"No model found for agent {self.name}.")

    async def canonical_instruction(self, readonly_context: ReadonlyContext) -> Tuple[str, bool]:
        """Resolve the instruction.

        Returns:
            The instruction text, and whether state placeholders should be
            left as is (true for instruction providers)
        """
        if isinstance(self.instruction, str):
            return self.instruction, False
        instruction = self.instruction(readonly_context)
        if inspect.isawaitable(instruction):
            instruction = await instruction
        return instruction, True

    async def canonical_tools(
        self,
        readonly_context: Optional[ReadonlyContext] = None
    ) -> List[BaseTool]:
        """Resolve tools, toolsets and plain functions to tool instances."""
        resolved: List[BaseTool] = []
        for tool in self.tools:
            if isinstance(tool, BaseTool):
                resolved.append(tool)
            elif isinstance(tool, BaseToolset):
                resolved.extend(await tool.get_tools(readonly_context))
            else:
                resolved.append(FunctionTool(tool))
        if self.transfer_targets():
            resolved.append(FunctionTool(transfer_to_agent))
        return resolved

    def transfer_targets(self) -> List[BaseAgent]:
        """Agents this agent may hand the conversation to."""
        targets: List[BaseAgent] = list(self.sub_agents)
        parent = self.parent_agent
        if parent is None or not isinstance(parent, LlmAgent):
            return targets
        if not self.disallow_transfer_to_parent:
            targets.append(parent)
        if not self.disallow_transfer_to_peers:
            targets.extend(peer for peer in parent.sub_agents if peer is not self)
        return targets

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        async with aclosing(self._llm_flow.run_async(ctx)) as agen:
            async for event in agen:
                yield event

    async def _run_live_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        async with aclosing(self._llm_flow.run_live(ctx)) as agen:
            async for event in agen:
                yield event
