"""
Core interfaces for the agent execution engine.

This module defines the contracts the engine consumes: session persistence,
artifact storage, and model invocation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, AsyncGenerator, Dict, List, Optional

from google.genai import types

from .exceptions import UnsupportedError
from .models import (
    Event, Session, GetSessionConfig, ListSessionsResponse,
    LlmRequest, LlmResponse
)
from .state import merge_state, strip_temp
from ..utils.logger import get_logger


class BaseSessionService(ABC):
    """Abstract session service.

    A session service creates, loads, lists and deletes sessions and appends
    events to them. Appending is the only sanctioned path that mutates
    session state: each event's state delta is applied exactly once.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger

    @property
    def logger(self) -> logging.Logger:
        """The injected logger, or the process-wide one."""
        return self._logger or get_logger()

    @abstractmethod
    async def create_session(
        self,
        *,
        app_name: str,
        user_id: str,
        state: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None
    ) -> Session:
        """Create a new session.

        Args:
            app_name: Application name
            user_id: User identifier
            state: Initial state, split across scopes by key prefix
            session_id: Explicit id, generated when omitted

        Returns:
            The created session

        Raises:
            SessionAlreadyExistsError: If session_id is already in use
        """
        pass

    @abstractmethod
    async def get_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        config: Optional[GetSessionConfig] = None
    ) -> Optional[Session]:
        """Get a session, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_sessions(
        self,
        *,
        app_name: str,
        user_id: str
    ) -> ListSessionsResponse:
        """List a user's sessions without their events."""
        pass

    @abstractmethod
    async def delete_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str
    ) -> None:
        """Delete a session; deleting a missing session is a no-op."""
        pass

    async def append_event(self, session: Session, event: Event) -> Event:
        """Append an event to the session object and apply its state delta.

        Partial events are returned untouched and never recorded. Temp-scoped
        keys reach the live session state but not the recorded event.

        Returns:
            The event as recorded in the log
        """
        if event.partial:
            return event

        session.state = merge_state(session.state, event.actions.state_delta)
        recorded = self._trim_temp_delta(event)
        session.events.append(recorded)
        session.last_update_time = event.timestamp
        return recorded

    @staticmethod
    def _trim_temp_delta(event: Event) -> Event:
        state_delta = event.actions.state_delta
        trimmed = strip_temp(state_delta)
        if len(trimmed) == len(state_delta):
            return event
        actions = event.actions.model_copy(update={"state_delta": trimmed})
        return event.model_copy(update={"actions": actions})


class BaseArtifactService(ABC):
    """Abstract artifact service.

    Artifacts are versioned per filename; every save appends a new version
    starting at 0. Filenames prefixed with ``user:`` are shared across the
    user's sessions.
    """

    @abstractmethod
    async def save_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        artifact: types.Part
    ) -> int:
        """Save an artifact and return its new version number."""
        pass

    @abstractmethod
    async def load_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: Optional[int] = None
    ) -> Optional[types.Part]:
        """Load a version of an artifact, the latest when version is None."""
        pass

    @abstractmethod
    async def list_artifact_keys(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str
    ) -> List[str]:
        """List artifact filenames visible to the session."""
        pass

    @abstractmethod
    async def list_versions(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str
    ) -> List[int]:
        """List the versions saved for an artifact."""
        pass

    @abstractmethod
    async def delete_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str
    ) -> None:
        """Delete every version of an artifact."""
        pass


class BaseLlmConnection(ABC):
    """A duplex live connection to a model."""

    @abstractmethod
    async def send_history(self, history: List[types.Content]) -> None:
        """Send the conversation history that precedes the live turn."""
        pass

    @abstractmethod
    async def send_content(self, content: types.Content) -> None:
        """Send user content or function responses."""
        pass

    @abstractmethod
    async def send_realtime(self, blob: types.Blob) -> None:
        """Send a chunk of realtime input such as audio."""
        pass

    @abstractmethod
    def receive(self) -> AsyncGenerator[LlmResponse, None]:
        """Yield model responses as they arrive."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass


class BaseLlm(ABC):
    """Base class for models.

    Concrete models declare the model-name patterns they serve through
    ``supported_models`` so the model registry can resolve strings to them.
    """

    def __init__(self, model: str):
        self.model = model

    @classmethod
    def supported_models(cls) -> List[str]:
        """Regular expressions matching the model names this class serves."""
        return []

    @abstractmethod
    def generate_content_async(
        self,
        llm_request: LlmRequest,
        stream: bool = False
    ) -> AsyncGenerator[LlmResponse, None]:
        """Generate a response.

        Args:
            llm_request: Contents, tool declarations and config
            stream: Yield partial chunks before the final response

        Yields:
            Response chunks; the last one is complete
        """
        pass

    def connect(self, llm_request: LlmRequest) -> AsyncContextManager[BaseLlmConnection]:
        """Open a live connection to the model.

        Raises:
            UnsupportedError: If the model has no live mode
        """
        raise UnsupportedError(f"Live connection is not supported for model {self.model}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
