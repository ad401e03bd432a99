"""
Base agent implementation.

This module provides the base class for every agent variant. An agent is a
node of a rooted tree; running it produces a lazy sequence of events.
"""

import logging
import weakref
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import AsyncGenerator, Callable, Iterator, List, Optional

from google.genai import types

from ..core.context import CallbackContext, InvocationContext
from ..core.exceptions import ConfigurationError, UnsupportedError
from ..core.models import Event
from ..utils.callbacks import CallbackOrList, run_callbacks

logger = logging.getLogger(__name__)

RESERVED_AGENT_NAMES = frozenset({"user"})


class BaseAgent(ABC):
    """Base class for all agents.

    Running an agent wraps its variant-specific body with the before-agent
    and after-agent interception points: plugins first, then the agent's
    own callbacks. A non-None result from a before-agent hook becomes the
    agent's only output and the body is skipped.

    The tree owns its children. A child's parent is fixed when the parent
    is constructed and is held as a weak reference.
    """

    live_supported: bool = True

    def __init__(
        self,
        name: str,
        description: str = "",
        sub_agents: Optional[List["BaseAgent"]] = None,
        before_agent_callback: CallbackOrList = None,
        after_agent_callback: CallbackOrList = None
    ):
        """
        Args:
            name: Identifier-like name, unique within the agent tree
            description: One-line summary used by other agents to pick a
                transfer target
            sub_agents: Children, each without a parent yet
            before_agent_callback: Callable(s) taking ``callback_context``
            after_agent_callback: Callable(s) taking ``callback_context``

        Raises:
            ConfigurationError: If the name is invalid, a child already has a
                parent, or names repeat within the tree
        """
        self._validate_name(name)
        self.name = name
        self.description = description
        self.sub_agents: List[BaseAgent] = list(sub_agents or [])
        self.before_agent_callback = before_agent_callback
        self.after_agent_callback = after_agent_callback
        self._parent_ref: Optional["weakref.ReferenceType[BaseAgent]"] = None
        self._logger = logging.getLogger(f"{__name__}.{name}")
        self._adopt_sub_agents()

    @staticmethod
    def _validate_name(name: str) -> None:
        if not name or not name.isidentifier():
            raise ConfigurationError(
                f"Invalid agent name: {name!r}. Agent names must be valid identifiers."
            )
        if name in RESERVED_AGENT_NAMES:
            raise ConfigurationError(f"Agent name cannot be {name!r}, it is reserved.")

    def _adopt_sub_agents(self) -> None:
        for sub_agent in self.sub_agents:
            parent = sub_agent.parent_agent
            if parent is not None:
                raise ConfigurationError(
                    f"Agent '{sub_agent.name}' already has a parent agent "
                    f"'{parent.name}', cannot add it to '{self.name}'"
                )

        names = [agent.name for agent in self.iter_agents()]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Agent names must be unique within a tree, duplicated: {duplicates}"
            )

        for sub_agent in self.sub_agents:
            sub_agent._parent_ref = weakref.ref(self)

    @property
    def parent_agent(self) -> Optional["BaseAgent"]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def root_agent(self) -> "BaseAgent":
        """The root of the tree, found by walking parent references."""
        agent = self
        while agent.parent_agent is not None:
            agent = agent.parent_agent
        return agent

    def iter_agents(self) -> Iterator["BaseAgent"]:
        """Yield this agent and all of its descendants, depth first."""
        yield self
        for sub_agent in self.sub_agents:
            yield from sub_agent.iter_agents()

    def find_agent(self, name: str) -> Optional["BaseAgent"]:
        """Find an agent by name in the subtree rooted here, including self."""
        return next((agent for agent in self.iter_agents() if agent.name == name), None)

    def find_sub_agent(self, name: str) -> Optional["BaseAgent"]:
        """Find a descendant by name, excluding self."""
        for sub_agent in self.sub_agents:
            found = sub_agent.find_agent(name)
            if found is not None:
                return found
        return None

    async def run_async(
        self,
        parent_context: InvocationContext
    ) -> AsyncGenerator[Event, None]:
        """Run the agent and yield its events.

        Args:
            parent_context: Context of the caller; it is copied for this agent
        """
        ctx = self._create_invocation_context(parent_context)
        async with aclosing(self._run_with_callbacks(ctx, self._run_async_impl)) as agen:
            async for event in agen:
                yield event

    async def run_live(
        self,
        parent_context: InvocationContext
    ) -> AsyncGenerator[Event, None]:
        """Run the agent over a live duplex connection.

        Raises:
            UnsupportedError: If the agent has no live mode
        """
        if not self.live_supported:
            raise UnsupportedError(
                f"{type(self).__name__} '{self.name}' does not support live mode"
            )
        ctx = self._create_invocation_context(parent_context)
        async with aclosing(self._run_with_callbacks(ctx, self._run_live_impl)) as agen:
            async for event in agen:
                yield event

    @abstractmethod
    def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        """Variant-specific body of ``run_async``."""
        pass

    async def _run_live_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        """Variant-specific body of ``run_live``."""
        raise UnsupportedError(
            f"{type(self).__name__} '{self.name}' does not implement live mode"
        )
        yield  # pragma: no cover

    async def _run_with_callbacks(
        self,
        ctx: InvocationContext,
        body: Callable[[InvocationContext], AsyncGenerator[Event, None]]
    ) -> AsyncGenerator[Event, None]:
        self._logger.debug(f"Agent {self.name} starting on branch {ctx.branch}")

        event = await self._handle_before_agent_callback(ctx)
        if event is not None:
            yield event
        if ctx.end_invocation:
            return

        async with aclosing(body(ctx)) as agen:
            async for event in agen:
                if ctx.is_cancelled():
                    self._logger.info(f"Agent {self.name} stopped: invocation cancelled")
                    return
                yield event

        if ctx.end_invocation or ctx.is_cancelled():
            return

        event = await self._handle_after_agent_callback(ctx)
        if event is not None:
            yield event

    def _create_invocation_context(self, parent_context: InvocationContext) -> InvocationContext:
        return parent_context.for_agent(self)

    async def _handle_before_agent_callback(self, ctx: InvocationContext) -> Optional[Event]:
        callback_context = CallbackContext(ctx)
        content = await ctx.plugin_manager.run_before_agent_callback(
            agent=self, callback_context=callback_context
        )
        if content is None and self.before_agent_callback:
            content = await run_callbacks(
                self.before_agent_callback, callback_context=callback_context
            )

        if content is not None:
            self._logger.info(f"Agent {self.name} short-circuited by before-agent callback")
            ctx.end_invocation = True
            return self._callback_event(ctx, callback_context, content)
        if not callback_context.actions.is_empty():
            return self._callback_event(ctx, callback_context)
        return None

    async def _handle_after_agent_callback(self, ctx: InvocationContext) -> Optional[Event]:
        callback_context = CallbackContext(ctx)
        content = await ctx.plugin_manager.run_after_agent_callback(
            agent=self, callback_context=callback_context
        )
        if content is None and self.after_agent_callback:
            content = await run_callbacks(
                self.after_agent_callback, callback_context=callback_context
            )

        if content is not None or not callback_context.actions.is_empty():
            return self._callback_event(ctx, callback_context, content)
        return None

    def _callback_event(
        self,
        ctx: InvocationContext,
        callback_context: CallbackContext,
        content: Optional[types.Content] = None
    ) -> Event:
        return Event(
            invocation_id=ctx.invocation_id,
            author=self.name,
            branch=ctx.branch,
            content=content,
            actions=callback_context.actions
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
