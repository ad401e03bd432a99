"""
Runner: the execution entry point.

A Runner binds an agent tree to a session service. Every call to
``run_async`` is one invocation: the incoming message is recorded as a
user event, the agent tree runs, and each event it yields is appended to
the session before it reaches the caller.
"""

import asyncio
import logging
import queue
import threading
from contextlib import aclosing
from typing import Any, AsyncGenerator, Dict, Generator, List, Optional

from google.genai import types

from ..artifacts.in_memory_artifact_service import InMemoryArtifactService
from ..core.context import InvocationContext, LiveRequestQueue
from ..core.exceptions import SessionNotFoundError
from ..core.interfaces import BaseArtifactService, BaseSessionService
from ..core.models import Event, EventActions, RunConfig, Session, new_invocation_id
from ..plugins.base_plugin import BasePlugin
from ..plugins.plugin_manager import PluginManager
from ..sessions.in_memory_session_service import InMemorySessionService
from ..tools.base_tool import BaseToolset
from ..utils.logger import get_logger
from ..workflows.base_agent import BaseAgent
from ..workflows.llm_agent import LlmAgent

_RUN_FINISHED = object()


class Runner:
    """Runs an agent tree against sessions.

    Usage:
        runner = Runner(
            app_name="weather_app",
            agent=root_agent,
            session_service=InMemorySessionService()
        )
        async for event in runner.run_async(
            user_id="u1",
            session_id="s1",
            new_message=types.Content(role="user", parts=[types.Part(text="Hi")])
        ):
            print(event.get_text())
    """

    def __init__(
        self,
        *,
        app_name: str,
        agent: BaseAgent,
        session_service: BaseSessionService,
        artifact_service: Optional[BaseArtifactService] = None,
        plugins: Optional[List[BasePlugin]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            app_name: Application the sessions belong to
            agent: Root of the agent tree
            session_service: Session persistence
            artifact_service: Artifact storage, optional
            plugins: Plugins run in registration order
            logger: Logger for runner messages, defaults to the process-wide one

        Raises:
            ConfigurationError: If two plugins share a name
        """
        self.app_name = app_name
        self.agent = agent
        self.session_service = session_service
        self.artifact_service = artifact_service
        self.plugin_manager = PluginManager(plugins=plugins)
        self._logger = logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger or get_logger()

    async def run_async(
        self,
        *,
        user_id: str,
        session_id: str,
        new_message: Optional[types.Content] = None,
        state_delta: Optional[Dict[str, Any]] = None,
        run_config: Optional[RunConfig] = None
    ) -> AsyncGenerator[Event, None]:
        """Run one invocation and yield its events.

        Args:
            user_id: User identifier
            session_id: Existing session to run in
            new_message: The user's message
            state_delta: State changes recorded with the user's message
            run_config: Per-run configuration

        Yields:
            Events produced by the agent tree, after they are appended

        Raises:
            SessionNotFoundError: If the session does not exist
            InvocationError: If a model or tool failure is not absorbed by a plugin
        """
        session = await self._get_session(user_id, session_id)
        ctx = self._new_invocation_context(session, new_message, run_config)
        self.logger.info(
            f"Starting invocation {ctx.invocation_id} in session {session.id} "
            f"with agent {ctx.agent.name}"
        )

        if new_message is not None:
            modified = await self.plugin_manager.run_on_user_message_callback(
                user_message=new_message, invocation_context=ctx
            )
            if modified is not None:
                ctx.user_content = modified
        if ctx.user_content is not None or state_delta:
            await self._append_user_event(ctx, state_delta)

        try:
            async with aclosing(self._run_agent(ctx, ctx.agent.run_async)) as agen:
                async for event in agen:
                    yield event
        except GeneratorExit:
            self.logger.info(f"Invocation {ctx.invocation_id} abandoned by the caller")
            ctx.cancel()
            raise
        except Exception as e:
            self.logger.error(f"Invocation {ctx.invocation_id} failed: {e}")
            await self.plugin_manager.run_after_run_callback(invocation_context=ctx)
            raise
        await self.plugin_manager.run_after_run_callback(invocation_context=ctx)
        self.logger.info(f"Invocation {ctx.invocation_id} completed")

    def run(
        self,
        *,
        user_id: str,
        session_id: str,
        new_message: Optional[types.Content] = None,
        state_delta: Optional[Dict[str, Any]] = None,
        run_config: Optional[RunConfig] = None
    ) -> Generator[Event, None, None]:
        """Synchronous wrapper around ``run_async``.

        The invocation runs on its own event loop in a worker thread; events
        and errors are handed back through a queue. Closing the generator
        early cancels the invocation and waits for it to unwind.
        """
        event_queue: "queue.Queue[Any]" = queue.Queue()
        stop = threading.Event()

        async def _drain() -> None:
            try:
                async with aclosing(self.run_async(
                    user_id=user_id,
                    session_id=session_id,
                    new_message=new_message,
                    state_delta=state_delta,
                    run_config=run_config
                )) as agen:
                    async for event in agen:
                        event_queue.put(event)
                        if stop.is_set():
                            break
            except Exception as e:
                event_queue.put(e)
            finally:
                event_queue.put(_RUN_FINISHED)

        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, daemon=True)
        thread.start()
        future = asyncio.run_coroutine_threadsafe(_drain(), loop)

        finished = False
        try:
            while True:
                item = event_queue.get()
                if item is _RUN_FINISHED:
                    finished = True
                    break
                if isinstance(item, Exception):
                    raise item
                yield item
        except GeneratorExit:
            self.logger.info("Synchronous run abandoned by the caller, cancelling")
            stop.set()
            future.cancel()
            raise
        finally:
            while not finished:
                finished = event_queue.get() is _RUN_FINISHED
            loop.call_soon_threadsafe(loop.stop)
            thread.join()
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def run_live(
        self,
        *,
        user_id: str,
        session_id: str,
        live_request_queue: LiveRequestQueue,
        run_config: Optional[RunConfig] = None
    ) -> AsyncGenerator[Event, None]:
        """Run the agent tree over a live connection fed by a request queue.

        Raises:
            SessionNotFoundError: If the session does not exist
            UnsupportedError: If the agent or its model has no live mode
        """
        session = await self._get_session(user_id, session_id)
        ctx = self._new_invocation_context(session, None, run_config)
        ctx.live_request_queue = live_request_queue
        self.logger.info(f"Starting live invocation {ctx.invocation_id} in session {session.id}")

        try:
            async with aclosing(self._run_agent(ctx, ctx.agent.run_live)) as agen:
                async for event in agen:
                    yield event
        except GeneratorExit:
            ctx.cancel()
            raise
        except Exception:
            await self.plugin_manager.run_after_run_callback(invocation_context=ctx)
            raise
        await self.plugin_manager.run_after_run_callback(invocation_context=ctx)

    async def _run_agent(self, ctx: InvocationContext, run: Any) -> AsyncGenerator[Event, None]:
        early_content = await self.plugin_manager.run_before_run_callback(invocation_context=ctx)
        if early_content is not None:
            self.logger.info(f"Invocation {ctx.invocation_id} short-circuited by before-run plugin")
            event = Event(
                invocation_id=ctx.invocation_id,
                author="model",
                content=early_content
            )
            await self.session_service.append_event(ctx.session, event)
            yield event
            return

        async with aclosing(run(ctx)) as agen:
            async for event in agen:
                if not event.partial:
                    await self.session_service.append_event(ctx.session, event)
                modified = await self.plugin_manager.run_on_event_callback(
                    invocation_context=ctx, event=event
                )
                yield modified if modified is not None else event

    async def _get_session(self, user_id: str, session_id: str) -> Session:
        session = await self.session_service.get_session(
            app_name=self.app_name, user_id=user_id, session_id=session_id
        )
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}", session_id=session_id)
        return session

    def _new_invocation_context(
        self,
        session: Session,
        new_message: Optional[types.Content],
        run_config: Optional[RunConfig]
    ) -> InvocationContext:
        return InvocationContext(
            invocation_id=new_invocation_id(),
            agent=self._find_agent_to_run(session),
            session=session,
            session_service=self.session_service,
            artifact_service=self.artifact_service,
            plugin_manager=self.plugin_manager,
            user_content=new_message,
            run_config=run_config or RunConfig()
        )

    async def _append_user_event(
        self,
        ctx: InvocationContext,
        state_delta: Optional[Dict[str, Any]]
    ) -> Event:
        event = Event(
            invocation_id=ctx.invocation_id,
            author="user",
            content=ctx.user_content,
            actions=EventActions(state_delta=dict(state_delta or {}))
        )
        return await self.session_service.append_event(ctx.session, event)

    def _find_agent_to_run(self, session: Session) -> BaseAgent:
        """Pick the agent that answers the next user message.

        The latest agent that spoke keeps the conversation when it and all
        of its ancestors are LlmAgents allowed to transfer to their parent;
        otherwise the root agent answers.
        """
        for event in reversed(session.events):
            if event.author == "user":
                continue
            if event.author == self.agent.name:
                return self.agent
            agent = self.agent.find_sub_agent(event.author)
            if agent is None:
                self.logger.warning(
                    f"Event from an unknown agent: {event.author}, event id: {event.id}"
                )
                continue
            if self._is_transferable_across_agent_tree(agent):
                return agent
        return self.agent

    @staticmethod
    def _is_transferable_across_agent_tree(agent: BaseAgent) -> bool:
        current: Optional[BaseAgent] = agent
        while current is not None:
            if not isinstance(current, LlmAgent) or current.disallow_transfer_to_parent:
                return False
            current = current.parent_agent
        return True

    async def close(self) -> None:
        """Release resources held by toolsets of the agent tree."""
        for agent in self.agent.iter_agents():
            for tool in getattr(agent, "tools", []):
                if isinstance(tool, BaseToolset):
                    await tool.close()


class InMemoryRunner(Runner):
    """Runner wired to the in-memory session and artifact services."""

    def __init__(
        self,
        agent: BaseAgent,
        *,
        app_name: str = "InMemoryRunner",
        plugins: Optional[List[BasePlugin]] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            app_name=app_name,
            agent=agent,
            session_service=InMemorySessionService(logger=logger),
            artifact_service=InMemoryArtifactService(),
            plugins=plugins,
            logger=logger
        )
