"""
Agent execution and session-state engine.

This package provides agent trees (LLM, sequential, parallel and loop
agents), the Runner that drives them against sessions, scoped session
state, plugins, tools and model integrations.
"""

# Core models and enums
from .core.models import (
    Event, EventActions, Session, GetSessionConfig, ListSessionsResponse,
    RunConfig, LlmRequest, LlmResponse, create_event, create_event_actions
)
from .core.enums import StateScope, StreamingMode, IncludeContents, AgentClass
from .core.state import State
from .core.context import (
    InvocationContext, ReadonlyContext, CallbackContext, ToolContext, LiveRequestQueue
)
from .core.interfaces import BaseSessionService, BaseArtifactService, BaseLlm, BaseLlmConnection

# Exceptions
from .core.exceptions import (
    AgentSystemError, NotFoundError, SessionNotFoundError, ArtifactNotFoundError,
    AgentNotFoundError, AlreadyExistsError, SessionAlreadyExistsError,
    UnsupportedError, InvocationError, ModelInvocationError, ToolInvocationError,
    ConfigurationError, PluginExecutionError
)

# Agents
from .workflows import BaseAgent, SequentialAgent, ParallelAgent, LoopAgent, LlmAgent

# Models
from .llm import Gemini, ApigeeLlm
from .registry import LLMRegistry, get_llm_registry

# Services
from .sessions import InMemorySessionService
from .artifacts import InMemoryArtifactService

# Plugins and tools
from .plugins import BasePlugin, LoggingPlugin
from .tools import BaseTool, BaseToolset, FunctionTool, MCPToolset, google_search

# Runner
from .runner import Runner, InMemoryRunner

# Configuration
from .utils.agent_factory import AgentConfig, AgentFactory

__all__ = [
    # Core models
    "Event",
    "EventActions",
    "Session",
    "GetSessionConfig",
    "ListSessionsResponse",
    "RunConfig",
    "LlmRequest",
    "LlmResponse",
    "create_event",
    "create_event_actions",

    # Enums and state
    "StateScope",
    "StreamingMode",
    "IncludeContents",
    "AgentClass",
    "State",

    # Contexts
    "InvocationContext",
    "ReadonlyContext",
    "CallbackContext",
    "ToolContext",
    "LiveRequestQueue",

    # Interfaces
    "BaseSessionService",
    "BaseArtifactService",
    "BaseLlm",
    "BaseLlmConnection",

    # Exceptions
    "AgentSystemError",
    "NotFoundError",
    "SessionNotFoundError",
    "ArtifactNotFoundError",
    "AgentNotFoundError",
    "AlreadyExistsError",
    "SessionAlreadyExistsError",
    "UnsupportedError",
    "InvocationError",
    "ModelInvocationError",
    "ToolInvocationError",
    "ConfigurationError",
    "PluginExecutionError",

    # Agents
    "BaseAgent",
    "SequentialAgent",
    "ParallelAgent",
    "LoopAgent",
    "LlmAgent",

    # Models
    "Gemini",
    "ApigeeLlm",
    "LLMRegistry",
    "get_llm_registry",

    # Services
    "InMemorySessionService",
    "InMemoryArtifactService",

    # Plugins and tools
    "BasePlugin",
    "LoggingPlugin",
    "BaseTool",
    "BaseToolset",
    "FunctionTool",
    "MCPToolset",
    "google_search",

    # Runner
    "Runner",
    "InMemoryRunner",

    # Configuration
    "AgentConfig",
    "AgentFactory",
]
