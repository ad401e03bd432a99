"""
Core abstractions for the agent execution engine.

This module provides the data models, state handling, service contracts,
execution contexts and exceptions the rest of the engine is built on.
"""

from .enums import (
    StateScope,
    StreamingMode,
    IncludeContents,
    GoogleLLMVariant,
    AgentClass,
)

from .exceptions import (
    AgentSystemError,
    NotFoundError,
    SessionNotFoundError,
    ArtifactNotFoundError,
    AgentNotFoundError,
    ContextVariableNotFoundError,
    AlreadyExistsError,
    SessionAlreadyExistsError,
    UnsupportedError,
    InvocationError,
    ModelInvocationError,
    ToolInvocationError,
    LlmCallsLimitExceededError,
    ConfigurationError,
    PluginExecutionError,
)

from .state import (
    State,
    scope_of,
    merge_state,
    strip_temp,
    extract_scoped,
)

from .models import (
    # Events
    Event,
    EventActions,
    create_event,
    create_event_actions,
    new_invocation_id,

    # Sessions
    Session,
    GetSessionConfig,
    ListSessionsResponse,

    # Runs and models
    RunConfig,
    LlmRequest,
    LlmResponse,
)

from .interfaces import (
    BaseSessionService,
    BaseArtifactService,
    BaseLlm,
    BaseLlmConnection,
)

from .context import (
    InvocationContext,
    ReadonlyContext,
    CallbackContext,
    ToolContext,
    LiveRequest,
    LiveRequestQueue,
)

__all__ = [
    # Enums
    "StateScope",
    "StreamingMode",
    "IncludeContents",
    "GoogleLLMVariant",
    "AgentClass",

    # Exceptions
    "AgentSystemError",
    "NotFoundError",
    "SessionNotFoundError",
    "ArtifactNotFoundError",
    "AgentNotFoundError",
    "ContextVariableNotFoundError",
    "AlreadyExistsError",
    "SessionAlreadyExistsError",
    "UnsupportedError",
    "InvocationError",
    "ModelInvocationError",
    "ToolInvocationError",
    "LlmCallsLimitExceededError",
    "ConfigurationError",
    "PluginExecutionError",

    # State
    "State",
    "scope_of",
    "merge_state",
    "strip_temp",
    "extract_scoped",

    # Models
    "Event",
    "EventActions",
    "create_event",
    "create_event_actions",
    "new_invocation_id",
    "Session",
    "GetSessionConfig",
    "ListSessionsResponse",
    "RunConfig",
    "LlmRequest",
    "LlmResponse",

    # Interfaces
    "BaseSessionService",
    "BaseArtifactService",
    "BaseLlm",
    "BaseLlmConnection",

    # Contexts
    "InvocationContext",
    "ReadonlyContext",
    "CallbackContext",
    "ToolContext",
    "LiveRequest",
    "LiveRequestQueue",
]
