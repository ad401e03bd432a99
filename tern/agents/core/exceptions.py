"""
Exception classes for the agent execution engine.

This module defines the hierarchy of exceptions raised by the engine,
providing clear error handling and debugging information.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class AgentSystemError(Exception):
    """Base exception for all engine errors.

    This is the root exception class that all other exceptions inherit from.
    It provides common functionality for error tracking and debugging.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


# Lookup failures
class NotFoundError(AgentSystemError):
    """Base exception for missing sessions, artifacts and agents."""
    pass


class SessionNotFoundError(NotFoundError):
    """Exception raised when a session does not exist."""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.session_id = session_id


class ArtifactNotFoundError(NotFoundError):
    """Exception raised when an artifact does not exist."""
    pass


class AgentNotFoundError(NotFoundError):
    """Exception raised when an agent name cannot be resolved in the tree."""

    def __init__(
        self,
        message: str,
        agent_name: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.agent_name = agent_name


class ContextVariableNotFoundError(NotFoundError):
    """Exception raised when an instruction references a missing state key."""
    pass


# Conflicts
class AlreadyExistsError(AgentSystemError):
    """Base exception for create operations that collide."""
    pass


class SessionAlreadyExistsError(AlreadyExistsError):
    """Exception raised when creating a session with an id already in use."""
    pass


class UnsupportedError(AgentSystemError):
    """Exception raised for unsupported modes, model strings or URIs."""
    pass


# Invocation failures
class InvocationError(AgentSystemError):
    """Base exception for model or tool failures not absorbed by a plugin."""
    pass


class ModelInvocationError(InvocationError):
    """Exception raised when a model call fails."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.model = model


class ToolInvocationError(InvocationError):
    """Exception raised when a tool call fails."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.tool_name = tool_name


class LlmCallsLimitExceededError(InvocationError):
    """Exception raised when an invocation exceeds its model call limit."""
    pass


class ConfigurationError(AgentSystemError):
    """Exception raised for invalid construction-time configuration."""
    pass


class PluginExecutionError(AgentSystemError):
    """Exception raised when a plugin hook itself fails."""

    def __init__(
        self,
        message: str,
        plugin_name: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.plugin_name = plugin_name
