"""
Agent factory for building agent trees from declarative configuration.

This module provides a pydantic ``AgentConfig`` describing an agent and
its sub-agents, and an ``AgentFactory`` that turns such a config (or a
plain dict loaded from JSON or YAML) into agent instances.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from google.genai import types
from pydantic import BaseModel, Field, ConfigDict, model_validator

from ..core.enums import AgentClass, IncludeContents
from ..core.exceptions import ConfigurationError
from ..workflows.base_agent import BaseAgent
from ..workflows.llm_agent import LlmAgent, ToolUnion
from ..workflows.loop_agent import LoopAgent
from ..workflows.parallel_agent import ParallelAgent
from ..workflows.sequential_agent import SequentialAgent

logger = logging.getLogger(__name__)


class AgentConfig(BaseModel):
    """Declarative description of an agent and its sub-agents."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    agent_class: AgentClass = Field(default=AgentClass.LLM, description="Agent variant")
    name: str = Field(..., description="Agent name", min_length=1, max_length=100)
    description: str = Field(default="", description="Agent description", max_length=500)

    # LlmAgent configuration
    model: Optional[str] = Field(None, description="Model string, inherited when omitted")
    instruction: str = Field(default="", description="Instruction with {key} placeholders")
    output_key: Optional[str] = Field(None, description="State key for the final response")
    include_contents: IncludeContents = Field(default=IncludeContents.DEFAULT)
    disallow_transfer_to_parent: bool = Field(default=False)
    disallow_transfer_to_peers: bool = Field(default=False)
    temperature: Optional[float] = Field(None, description="Model temperature", ge=0.0, le=2.0)
    tools: List[str] = Field(default_factory=list, description="Names of registered tools")

    # LoopAgent configuration
    max_iterations: Optional[int] = Field(None, description="Loop iteration limit", ge=0)

    sub_agents: List["AgentConfig"] = Field(default_factory=list, description="Child agents")

    @model_validator(mode="after")
    def _check_variant_fields(self) -> "AgentConfig":
        if self.agent_class != AgentClass.LLM:
            llm_only = [
                name for name in ("model", "output_key", "temperature")
                if getattr(self, name) is not None
            ]
            if self.instruction:
                llm_only.append("instruction")
            if self.tools:
                llm_only.append("tools")
            if llm_only:
                raise ValueError(f"{self.agent_class} does not accept: {', '.join(llm_only)}")
        if self.agent_class != AgentClass.LOOP and self.max_iterations is not None:
            raise ValueError("max_iterations is only valid for LoopAgent")
        return self


class AgentFactory:
    """Builds agent trees from ``AgentConfig``.

    Tools are referenced by name and resolved against the registry passed
    to the factory.

    Usage:
        factory = AgentFactory(tools={"get_weather": get_weather})
        root = factory.create_agent({
            "agent_class": "SequentialAgent",
            "name": "pipeline",
            "sub_agents": [
                {"name": "researcher", "model": "gemini-2.5-flash", "tools": ["get_weather"]},
                {"name": "writer", "model": "gemini-2.5-flash"},
            ],
        })
    """

    def __init__(self, tools: Optional[Dict[str, ToolUnion]] = None):
        self._tools: Dict[str, ToolUnion] = dict(tools or {})

    def register_tool(self, name: str, tool: ToolUnion) -> None:
        if name in self._tools:
            logger.warning(f"Overriding registered tool: {name}")
        self._tools[name] = tool

    def create_agent(self, config: Union[AgentConfig, Dict[str, Any]]) -> BaseAgent:
        """Create an agent, with its sub-agents, from a configuration.

        Args:
            config: An AgentConfig or a dict validated into one

        Returns:
            The root agent of the created tree

        Raises:
            ConfigurationError: If the config is invalid or references an
                unknown tool
        """
        if not isinstance(config, AgentConfig):
            try:
                config = AgentConfig.model_validate(config)
            except ValueError as e:
                raise ConfigurationError(f"Invalid agent configuration: {e}") from e

        sub_agents = [self.create_agent(sub_config) for sub_config in config.sub_agents]
        logger.debug(f"Creating {config.agent_class} '{config.name}' with {len(sub_agents)} sub-agents")

        if config.agent_class == AgentClass.SEQUENTIAL:
            return SequentialAgent(config.name, description=config.description, sub_agents=sub_agents)
        if config.agent_class == AgentClass.PARALLEL:
            return ParallelAgent(config.name, description=config.description, sub_agents=sub_agents)
        if config.agent_class == AgentClass.LOOP:
            return LoopAgent(
                config.name,
                description=config.description,
                sub_agents=sub_agents,
                max_iterations=config.max_iterations
            )

        generate_content_config = None
        if config.temperature is not None:
            generate_content_config = types.GenerateContentConfig(temperature=config.temperature)
        return LlmAgent(
            name=config.name,
            model=config.model or "",
            instruction=config.instruction,
            description=config.description,
            sub_agents=sub_agents,
            tools=self._resolve_tools(config),
            output_key=config.output_key,
            include_contents=config.include_contents,
            disallow_transfer_to_parent=config.disallow_transfer_to_parent,
            disallow_transfer_to_peers=config.disallow_transfer_to_peers,
            generate_content_config=generate_content_config
        )

    def _resolve_tools(self, config: AgentConfig) -> List[ToolUnion]:
        missing = [name for name in config.tools if name not in self._tools]
        if missing:
            raise ConfigurationError(
                f"Agent '{config.name}' references unknown tools: {missing}",
                context={"agent": config.name, "tools": missing}
            )
        return [self._tools[name] for name in config.tools]
