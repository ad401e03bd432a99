"""
Pytest configuration and shared fixtures.

This module provides a scripted model, simple test agents, and session
fixtures shared by the test suite.
"""

import pytest
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from google.genai import types

from tern.agents.artifacts.in_memory_artifact_service import InMemoryArtifactService
from tern.agents.core.context import InvocationContext
from tern.agents.core.interfaces import BaseLlm
from tern.agents.core.models import (
    Event, EventActions, LlmRequest, LlmResponse, RunConfig, Session, new_invocation_id
)
from tern.agents.plugins.plugin_manager import PluginManager
from tern.agents.runner.runner import InMemoryRunner
from tern.agents.sessions.in_memory_session_service import InMemorySessionService
from tern.agents.utils.logger import reset_logger
from tern.agents.workflows.base_agent import BaseAgent

APP_NAME = "test_app"
USER_ID = "test_user"

ScriptItem = Union[LlmResponse, types.Content, str, Exception]


def user_content(text: str) -> types.Content:
    return types.Content(role="user", parts=[types.Part(text=text)])


def model_text(text: str) -> LlmResponse:
    return LlmResponse(content=types.Content(role="model", parts=[types.Part(text=text)]))


def model_function_call(name: str, args: Optional[Dict[str, Any]] = None) -> LlmResponse:
    return LlmResponse(content=types.Content(
        role="model",
        parts=[types.Part(function_call=types.FunctionCall(name=name, args=args or {}))]
    ))


class MockModel(BaseLlm):
    """Model answering each call with the next scripted item.

    Strings become text responses and exceptions are raised from the call.
    Every request is kept for inspection.
    """

    def __init__(self, responses: Optional[List[ScriptItem]] = None, model: str = "mock-model"):
        super().__init__(model)
        self.responses: List[ScriptItem] = list(responses or [])
        self.requests: List[LlmRequest] = []

    @classmethod
    def supported_models(cls) -> List[str]:
        return [r"mock-.*"]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    async def generate_content_async(
        self,
        llm_request: LlmRequest,
        stream: bool = False
    ) -> AsyncGenerator[LlmResponse, None]:
        self.requests.append(llm_request)
        if not self.responses:
            raise AssertionError("MockModel has no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            item = model_text(item)
        elif isinstance(item, types.Content):
            item = LlmResponse(content=item)
        yield item


class EchoAgent(BaseAgent):
    """Agent yielding one text event per run, optionally escalating."""

    def __init__(
        self,
        name: str,
        text: Optional[str] = None,
        escalate_on_run: Optional[int] = None,
        state_delta: Optional[Dict[str, Any]] = None,
        **kwargs: Any
    ):
        super().__init__(name, **kwargs)
        self.text = text or f"hello from {name}"
        self.escalate_on_run = escalate_on_run
        self.state_delta = state_delta or {}
        self.run_count = 0
        self.seen_branches: List[Optional[str]] = []

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        self.run_count += 1
        self.seen_branches.append(ctx.branch)
        yield Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            branch=ctx.branch,
            content=types.Content(role="model", parts=[types.Part(text=self.text)]),
            actions=EventActions(
                escalate=True if self.run_count == self.escalate_on_run else None,
                state_delta=dict(self.state_delta)
            )
        )

    async def _run_live_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        async for event in self._run_async_impl(ctx):
            yield event


async def collect(agen: AsyncGenerator[Event, None]) -> List[Event]:
    return [event async for event in agen]


@pytest.fixture(autouse=True)
def restore_logger():
    """Restore the process-wide logger after every test."""
    yield
    reset_logger()


@pytest.fixture
def session_service() -> InMemorySessionService:
    return InMemorySessionService()


@pytest.fixture
def artifact_service() -> InMemoryArtifactService:
    return InMemoryArtifactService()


@pytest.fixture
async def session(session_service: InMemorySessionService) -> Session:
    return await session_service.create_session(app_name=APP_NAME, user_id=USER_ID)


@pytest.fixture
def make_context(session_service, artifact_service, session):
    """Build a root invocation context for an agent over the test session."""

    def _make(
        agent: BaseAgent,
        run_config: Optional[RunConfig] = None,
        plugin_manager: Optional[PluginManager] = None,
        user_text: Optional[str] = None
    ) -> InvocationContext:
        return InvocationContext(
            invocation_id=new_invocation_id(),
            agent=agent,
            session=session,
            session_service=session_service,
            artifact_service=artifact_service,
            plugin_manager=plugin_manager or PluginManager(),
            user_content=user_content(user_text) if user_text else None,
            run_config=run_config or RunConfig()
        )

    return _make


@pytest.fixture
def make_runner():
    """Build an in-memory runner for an agent together with a fresh session."""

    async def _make(agent: BaseAgent, state: Optional[Dict[str, Any]] = None, plugins=None):
        runner = InMemoryRunner(agent, app_name=APP_NAME, plugins=plugins)
        session = await runner.session_service.create_session(
            app_name=APP_NAME, user_id=USER_ID, state=state
        )
        return runner, session

    return _make


async def run_turn(runner: InMemoryRunner, session_id: str, text: str, **kwargs: Any) -> List[Event]:
    return await collect(runner.run_async(
        user_id=USER_ID,
        session_id=session_id,
        new_message=user_content(text),
        **kwargs
    ))


async def stored_session(runner: InMemoryRunner, session_id: str) -> Session:
    return await runner.session_service.get_session(
        app_name=APP_NAME, user_id=USER_ID, session_id=session_id
    )
