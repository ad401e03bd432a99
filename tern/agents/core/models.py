"""
Core data models for the agent execution engine.

This module defines the fundamental data structures used throughout the
engine: events and their actions, sessions, run configuration, and the
request/response pair exchanged with models.
"""

from typing import Dict, Any, List, Optional
import time
import uuid as uuid_lib

from google.genai import types
from pydantic import BaseModel, Field, ConfigDict

from .enums import StreamingMode


def new_invocation_id() -> str:
    """Generate a fresh invocation identifier."""
    return f"e-{uuid_lib.uuid4()}"


class EventActions(BaseModel):
    """Side effects attached to an event."""

    model_config = ConfigDict(
        extra='forbid',
        arbitrary_types_allowed=True
    )

    state_delta: Dict[str, Any] = Field(
        default_factory=dict,
        description="Flat key/value changes applied to session state"
    )
    artifact_delta: Dict[str, int] = Field(
        default_factory=dict,
        description="Artifact filename to the version saved in this step"
    )
    escalate: Optional[bool] = Field(None, description="Ask the enclosing loop to stop")
    transfer_to_agent: Optional[str] = Field(
        None, description="Name of the agent that should take over"
    )
    skip_summarization: Optional[bool] = Field(
        None, description="Treat a function response as the final answer"
    )
    requested_auth_configs: Dict[str, Any] = Field(
        default_factory=dict,
        description="Auth configs requested by tools, keyed by function call id"
    )
    requested_tool_confirmations: Dict[str, Any] = Field(
        default_factory=dict,
        description="Tool confirmations requested, keyed by function call id"
    )

    def is_empty(self) -> bool:
        """Check whether the actions carry no side effect."""
        return not (
            self.state_delta or self.artifact_delta or self.escalate
            or self.transfer_to_agent or self.skip_summarization
            or self.requested_auth_configs or self.requested_tool_confirmations
        )


class Event(BaseModel):
    """One immutable step of interaction within a session."""

    model_config = ConfigDict(
        extra='forbid',
        frozen=True,
        arbitrary_types_allowed=True
    )

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        description="Unique event identifier"
    )
    invocation_id: str = Field(default="", description="Invocation that produced the event")
    author: str = Field(..., description="Agent name, or 'user'")
    branch: Optional[str] = Field(
        None, description="Dot-separated path of the producing agent lineage"
    )
    timestamp: float = Field(
        default_factory=time.time,
        description="Seconds since the epoch, used as the ordering key"
    )
    content: Optional[types.Content] = Field(None, description="Role and parts")
    actions: EventActions = Field(default_factory=EventActions, description="Side effects")

    # Streaming and model metadata
    partial: Optional[bool] = Field(None, description="Incomplete streaming chunk")
    turn_complete: Optional[bool] = Field(None, description="Live turn finished")
    interrupted: Optional[bool] = Field(None, description="Live turn interrupted")
    error_code: Optional[str] = Field(None, description="Model error code")
    error_message: Optional[str] = Field(None, description="Model error message")
    long_running_tool_ids: Optional[List[str]] = Field(
        None, description="Function call ids of long running tools"
    )
    custom_metadata: Optional[Dict[str, Any]] = Field(None, description="Caller metadata")

    @staticmethod
    def new_id() -> str:
        return str(uuid_lib.uuid4())

    def get_function_calls(self) -> List[types.FunctionCall]:
        """Function calls carried in the content."""
        if not self.content or not self.content.parts:
            return []
        return [part.function_call for part in self.content.parts if part.function_call]

    def get_function_responses(self) -> List[types.FunctionResponse]:
        """Function responses carried in the content."""
        if not self.content or not self.content.parts:
            return []
        return [
            part.function_response for part in self.content.parts
            if part.function_response
        ]

    def get_text(self) -> str:
        """Concatenated text parts, excluding thoughts."""
        if not self.content or not self.content.parts:
            return ""
        return "".join(
            part.text for part in self.content.parts
            if part.text and not part.thought
        )

    def is_final_response(self) -> bool:
        """Check whether the event ends its agent's turn."""
        if self.actions.skip_summarization or self.long_running_tool_ids:
            return True
        return (
            not self.get_function_calls()
            and not self.get_function_responses()
            and not self.partial
        )


def create_event_actions(**fields: Any) -> EventActions:
    """Build an action bundle, empty unless fields are given."""
    return EventActions(**fields)


def create_event(**fields: Any) -> Event:
    """Build an event, generating its id and timestamp when absent."""
    if fields.get("actions") is None:
        fields["actions"] = EventActions()
    if not fields.get("id"):
        fields["id"] = Event.new_id()
    if fields.get("timestamp") is None:
        fields["timestamp"] = time.time()
    return Event(**fields)


class Session(BaseModel):
    """An append-only event log with its materialized state."""

    model_config = ConfigDict(
        extra='forbid',
        arbitrary_types_allowed=True
    )

    id: str = Field(..., description="Session identifier")
    app_name: str = Field(..., description="Owning application")
    user_id: str = Field(..., description="Owning user")
    state: Dict[str, Any] = Field(default_factory=dict, description="Materialized state")
    events: List[Event] = Field(default_factory=list, description="Ordered event log")
    last_update_time: float = Field(
        default=0.0, description="Timestamp of the most recently appended event"
    )


class GetSessionConfig(BaseModel):
    """Options narrowing the events returned by get_session."""

    model_config = ConfigDict(extra='forbid')

    num_recent_events: Optional[int] = Field(
        None, description="Keep only the last N events", ge=0
    )
    after_timestamp: Optional[float] = Field(
        None, description="Keep only events strictly newer than this timestamp"
    )


class ListSessionsResponse(BaseModel):
    """Sessions of one user, without their events."""

    sessions: List[Session] = Field(default_factory=list)


class RunConfig(BaseModel):
    """Per-run configuration."""

    model_config = ConfigDict(extra='forbid')

    streaming_mode: StreamingMode = Field(
        default=StreamingMode.NONE, description="How model output is streamed"
    )
    max_llm_calls: int = Field(
        default=500,
        description="Model call limit for one invocation, 0 or less disables the limit"
    )
    response_modalities: Optional[List[str]] = Field(
        None, description="Output modalities requested in live mode"
    )
    custom_metadata: Optional[Dict[str, Any]] = Field(None, description="Caller metadata")


class LlmRequest(BaseModel):
    """A request sent to a model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: Optional[str] = Field(None, description="Model name")
    contents: List[types.Content] = Field(default_factory=list, description="Conversation")
    config: types.GenerateContentConfig = Field(
        default_factory=types.GenerateContentConfig,
        description="Generation config including tools and system instruction"
    )
    live_connect_config: types.LiveConnectConfig = Field(
        default_factory=types.LiveConnectConfig,
        description="Config used when opening a live connection"
    )
    tools_dict: Dict[str, Any] = Field(
        default_factory=dict,
        exclude=True,
        description="Tool name to BaseTool, for dispatching function calls"
    )

    def append_instructions(self, instructions: List[str]) -> None:
        """Append instructions to the system instruction."""
        if not instructions:
            return
        text = "\n\n".join(instructions)
        current = self.config.system_instruction
        if current and isinstance(current, str):
            self.config.system_instruction = f"{current}\n\n{text}"
        else:
            self.config.system_instruction = text

    def append_function_declarations(
        self,
        declarations: List[types.FunctionDeclaration]
    ) -> None:
        """Add declarations to the request's function tool."""
        if not declarations:
            return
        if self.config.tools is None:
            self.config.tools = []
        for tool in self.config.tools:
            if isinstance(tool, types.Tool) and tool.function_declarations:
                tool.function_declarations.extend(declarations)
                return
        self.config.tools.append(types.Tool(function_declarations=list(declarations)))


class LlmResponse(BaseModel):
    """One response chunk returned by a model."""

    model_config = ConfigDict(
        extra='forbid',
        arbitrary_types_allowed=True
    )

    content: Optional[types.Content] = Field(None, description="Response content")
    partial: Optional[bool] = Field(None, description="Incomplete streaming chunk")
    turn_complete: Optional[bool] = Field(None, description="Live turn finished")
    interrupted: Optional[bool] = Field(None, description="Live turn interrupted")
    finish_reason: Optional[str] = Field(None, description="Why generation stopped")
    error_code: Optional[str] = Field(None, description="Error code when no content")
    error_message: Optional[str] = Field(None, description="Error message when no content")
    usage_metadata: Optional[types.GenerateContentResponseUsageMetadata] = Field(
        None, description="Token usage"
    )
    custom_metadata: Optional[Dict[str, Any]] = Field(None, description="Caller metadata")

    @staticmethod
    def create(response: types.GenerateContentResponse) -> "LlmResponse":
        """Convert a google-genai response into an LlmResponse."""
        usage_metadata = response.usage_metadata
        if response.candidates:
            candidate = response.candidates[0]
            finish_reason = candidate.finish_reason.value if candidate.finish_reason else None
            if candidate.content and candidate.content.parts:
                return LlmResponse(
                    content=candidate.content,
                    finish_reason=finish_reason,
                    usage_metadata=usage_metadata
                )
            return LlmResponse(
                error_code=finish_reason,
                error_message=candidate.finish_message,
                finish_reason=finish_reason,
                usage_metadata=usage_metadata
            )
        if response.prompt_feedback and response.prompt_feedback.block_reason:
            return LlmResponse(
                error_code=response.prompt_feedback.block_reason.value,
                error_message=response.prompt_feedback.block_reason_message,
                usage_metadata=usage_metadata
            )
        return LlmResponse(
            error_code="UNKNOWN_ERROR",
            error_message="Unknown error.",
            usage_metadata=usage_metadata
        )
