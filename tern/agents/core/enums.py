"""
Enumerations for the agent execution engine.

This module defines the enums used throughout the engine, providing type
safety and clear definitions for scopes, modes and variants.
"""

from enum import Enum


class StateScope(str, Enum):
    """State key scope.

    Defines where a state key lives, derived from its prefix:
    - SESSION: No prefix, private to one session
    - APP: ``app:`` prefix, shared by every session of an app
    - USER: ``user:`` prefix, shared by every session of a user within an app
    - TEMP: ``temp:`` prefix, visible for one invocation, never persisted
    """
    SESSION = "session"
    APP = "app"
    USER = "user"
    TEMP = "temp"

    def __str__(self) -> str:
        return self.value


class StreamingMode(str, Enum):
    """Streaming mode for a run.

    - NONE: One complete model response per step
    - SSE: Partial response chunks are yielded as partial events
    - BIDI: Duplex realtime connection (live mode)
    """
    NONE = "none"
    SSE = "sse"
    BIDI = "bidi"

    def __str__(self) -> str:
        return self.value


class IncludeContents(str, Enum):
    """How much session history an LLM agent sends to its model.

    - DEFAULT: The visible conversation history
    - NONE: Only the current turn
    """
    DEFAULT = "default"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class GoogleLLMVariant(str, Enum):
    """Backend serving Google models."""
    VERTEX_AI = "VERTEX_AI"
    GEMINI_API = "GEMINI_API"

    def __str__(self) -> str:
        return self.value


class AgentClass(str, Enum):
    """Agent variants that can be built declaratively.

    - LLM: Model-driven agent
    - SEQUENTIAL: Runs sub-agents in declared order
    - PARALLEL: Runs sub-agents concurrently on separate branches
    - LOOP: Repeats sub-agents until escalation or the iteration limit
    """
    LLM = "LlmAgent"
    SEQUENTIAL = "SequentialAgent"
    PARALLEL = "ParallelAgent"
    LOOP = "LoopAgent"

    def __str__(self) -> str:
        return self.value
