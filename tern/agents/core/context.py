"""
Execution contexts.

An ``InvocationContext`` is created once per Runner invocation and copied
(shallowly, so the session, services and cancellation signal stay shared)
for every agent it enters. Callbacks and tools receive narrower views of it.
"""

import asyncio
from types import MappingProxyType
from typing import Any, List, Mapping, Optional

from google.genai import types
from pydantic import BaseModel, Field, ConfigDict

from .exceptions import ConfigurationError, LlmCallsLimitExceededError
from .interfaces import BaseArtifactService, BaseSessionService
from .models import EventActions, RunConfig, Session
from .state import State
from ..plugins.plugin_manager import PluginManager


class LiveRequest(BaseModel):
    """One item of realtime input."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: Optional[types.Content] = None
    blob: Optional[types.Blob] = None
    close: bool = False


class LiveRequestQueue:
    """Queue feeding realtime input into a live run."""

    def __init__(self):
        self._queue: "asyncio.Queue[LiveRequest]" = asyncio.Queue()

    def send_content(self, content: types.Content) -> None:
        self._queue.put_nowait(LiveRequest(content=content))

    def send_realtime(self, blob: types.Blob) -> None:
        self._queue.put_nowait(LiveRequest(blob=blob))

    def send(self, request: LiveRequest) -> None:
        self._queue.put_nowait(request)

    def close(self) -> None:
        self._queue.put_nowait(LiveRequest(close=True))

    async def get(self) -> LiveRequest:
        return await self._queue.get()


class LlmCallCounter:
    """Counts model calls across every agent of one invocation."""

    def __init__(self):
        self.count = 0

    def increment(self, run_config: RunConfig) -> None:
        self.count += 1
        limit = run_config.max_llm_calls
        if limit > 0 and self.count > limit:
            raise LlmCallsLimitExceededError(
                f"Max number of llm calls limit of {limit} exceeded",
                context={"max_llm_calls": limit}
            )


class InvocationContext(BaseModel):
    """Context threaded through every step of one invocation."""

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra='forbid'
    )

    invocation_id: str = Field(..., description="Identifier shared by the invocation's events")
    branch: Optional[str] = Field(
        None, description="Dot-separated lineage of parallel agents, None at the root"
    )
    agent: Any = Field(..., description="The agent currently running")
    session: Session = Field(..., description="Session shared by every branch")
    session_service: BaseSessionService = Field(..., description="Session persistence")
    artifact_service: Optional[BaseArtifactService] = Field(None, description="Artifact storage")
    plugin_manager: PluginManager = Field(default_factory=PluginManager)
    user_content: Optional[types.Content] = Field(None, description="Message that started the turn")
    run_config: RunConfig = Field(default_factory=RunConfig)
    live_request_queue: Optional[LiveRequestQueue] = Field(None, description="Live input")
    end_invocation: bool = Field(default=False, description="Stop the current agent early")
    cancellation_event: asyncio.Event = Field(
        default_factory=asyncio.Event,
        description="Set once to stop every sequence sharing this invocation"
    )
    llm_call_counter: LlmCallCounter = Field(default_factory=LlmCallCounter)

    @property
    def app_name(self) -> str:
        return self.session.app_name

    @property
    def user_id(self) -> str:
        return self.session.user_id

    def is_cancelled(self) -> bool:
        return self.cancellation_event.is_set()

    def cancel(self) -> None:
        """Signal every sequence sharing this invocation to stop."""
        self.cancellation_event.set()

    def increment_llm_call_count(self) -> None:
        """Count one model call.

        Raises:
            LlmCallsLimitExceededError: If the run's model call limit is exceeded
        """
        self.llm_call_counter.increment(self.run_config)

    def for_agent(self, agent: Any, branch: Optional[str] = None) -> "InvocationContext":
        """Copy the context for another agent, optionally on a new branch."""
        update = {"agent": agent}
        if branch is not None:
            update["branch"] = branch
        return self.model_copy(update=update)


class ReadonlyContext:
    """Read-only view of an invocation, handed to instruction providers."""

    def __init__(self, invocation_context: InvocationContext):
        self._invocation_context = invocation_context

    @property
    def invocation_id(self) -> str:
        return self._invocation_context.invocation_id

    @property
    def agent_name(self) -> str:
        return self._invocation_context.agent.name

    @property
    def branch(self) -> Optional[str]:
        return self._invocation_context.branch

    @property
    def user_content(self) -> Optional[types.Content]:
        return self._invocation_context.user_content

    @property
    def state(self) -> Mapping[str, Any]:
        return MappingProxyType(self._invocation_context.session.state)


class CallbackContext(ReadonlyContext):
    """Context for agent and model callbacks.

    State written here is recorded in ``actions.state_delta`` and reaches
    the session when the event carrying those actions is appended.
    """

    def __init__(
        self,
        invocation_context: InvocationContext,
        event_actions: Optional[EventActions] = None
    ):
        super().__init__(invocation_context)
        self._event_actions = event_actions or EventActions()

    @property
    def state(self) -> State:
        return State(
            value=self._invocation_context.session.state,
            delta=self._event_actions.state_delta
        )

    @property
    def actions(self) -> EventActions:
        return self._event_actions

    def _require_artifact_service(self) -> BaseArtifactService:
        if self._invocation_context.artifact_service is None:
            raise ConfigurationError("Artifact service is not initialized.")
        return self._invocation_context.artifact_service

    async def load_artifact(
        self,
        filename: str,
        version: Optional[int] = None
    ) -> Optional[types.Part]:
        """Load an artifact of the current session."""
        service = self._require_artifact_service()
        return await service.load_artifact(
            app_name=self._invocation_context.app_name,
            user_id=self._invocation_context.user_id,
            session_id=self._invocation_context.session.id,
            filename=filename,
            version=version
        )

    async def save_artifact(self, filename: str, artifact: types.Part) -> int:
        """Save an artifact and record its version in the artifact delta."""
        service = self._require_artifact_service()
        version = await service.save_artifact(
            app_name=self._invocation_context.app_name,
            user_id=self._invocation_context.user_id,
            session_id=self._invocation_context.session.id,
            filename=filename,
            artifact=artifact
        )
        self._event_actions.artifact_delta[filename] = version
        return version

    async def list_artifacts(self) -> List[str]:
        """List the artifact filenames of the current session."""
        service = self._require_artifact_service()
        return await service.list_artifact_keys(
            app_name=self._invocation_context.app_name,
            user_id=self._invocation_context.user_id,
            session_id=self._invocation_context.session.id
        )


class ToolContext(CallbackContext):
    """Context for one tool call."""

    def __init__(
        self,
        invocation_context: InvocationContext,
        function_call_id: Optional[str] = None,
        event_actions: Optional[EventActions] = None
    ):
        super().__init__(invocation_context, event_actions)
        self.function_call_id = function_call_id

    @property
    def invocation_context(self) -> InvocationContext:
        return self._invocation_context
