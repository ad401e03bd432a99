"""
Sequential agent implementation.

This module implements the sequential (pipeline) composition pattern.
"""

from contextlib import aclosing
from typing import AsyncGenerator

from .base_agent import BaseAgent
from ..core.context import InvocationContext
from ..core.models import Event


class SequentialAgent(BaseAgent):
    """Runs sub-agents one after another.

    Each sub-agent's events are forwarded in full before the next sub-agent
    starts. The branch is left unchanged, so later sub-agents see the
    conversation produced by earlier ones.
    """

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        for index, sub_agent in enumerate(self.sub_agents):
            self._logger.info(
                f"Executing stage {index + 1}/{len(self.sub_agents)} with agent {sub_agent.name}"
            )
            async with aclosing(sub_agent.run_async(ctx)) as agen:
                async for event in agen:
                    yield event

    async def _run_live_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        for sub_agent in self.sub_agents:
            async with aclosing(sub_agent.run_live(ctx)) as agen:
                async for event in agen:
                    yield event
