"""
Parallel agent implementation.

Sub-agents run as concurrent asyncio tasks whose events are multiplexed
into a single queue and yielded in arrival order.
"""

import asyncio
from contextlib import aclosing
from typing import AsyncGenerator, List, Optional, Tuple, Union

from .base_agent import BaseAgent
from ..core.context import InvocationContext
from ..core.models import Event


class _BranchFinished:
    """Queue marker: one sub-agent sequence is exhausted."""


class _BranchFailed:
    """Queue marker: one sub-agent sequence raised."""

    def __init__(self, error: BaseException):
        self.error = error


_QueueItem = Tuple[Union[Event, _BranchFinished, _BranchFailed], Optional[asyncio.Event]]


def _branch_for(ctx: InvocationContext, agent: BaseAgent, sub_agent: BaseAgent) -> str:
    if ctx.branch:
        return f"{ctx.branch}.{sub_agent.name}"
    return f"{agent.name}.{sub_agent.name}"


async def _merge_agent_runs(
    ctx: InvocationContext,
    agent_runs: List[AsyncGenerator[Event, None]]
) -> AsyncGenerator[Event, None]:
    """Fan in several event sequences.

    Each producer waits until its event has been consumed before resuming,
    so state applied by the consumer is visible to the producer's next step.
    Producer failures are re-raised to the consumer; remaining producers are
    cancelled.
    """
    queue: "asyncio.Queue[_QueueItem]" = asyncio.Queue()

    async def drain(agent_run: AsyncGenerator[Event, None]) -> None:
        try:
            async with aclosing(agent_run) as agen:
                async for event in agen:
                    resume = asyncio.Event()
                    queue.put_nowait((event, resume))
                    await resume.wait()
        except Exception as e:
            queue.put_nowait((_BranchFailed(e), None))
        else:
            queue.put_nowait((_BranchFinished(), None))

    tasks = [asyncio.create_task(drain(agent_run)) for agent_run in agent_runs]
    remaining = len(tasks)
    try:
        while remaining:
            item, resume = await queue.get()
            if ctx.is_cancelled():
                return
            if isinstance(item, _BranchFinished):
                remaining -= 1
                continue
            if isinstance(item, _BranchFailed):
                raise item.error
            yield item
            resume.set()
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class ParallelAgent(BaseAgent):
    """Runs sub-agents concurrently.

    Every sub-agent runs under its own branch (``<branch>.<child>``, or
    ``<parent>.<child>`` when there is no current branch), so LLM sub-agents
    do not see each other's conversation. Events are yielded
    first-available-first; the agent completes once every sub-agent is
    exhausted.
    """

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        agent_runs = [
            sub_agent.run_async(ctx.for_agent(self, branch=_branch_for(ctx, self, sub_agent)))
            for sub_agent in self.sub_agents
        ]
        async with aclosing(_merge_agent_runs(ctx, agent_runs)) as agen:
            async for event in agen:
                yield event

    async def _run_live_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        agent_runs = [
            sub_agent.run_live(ctx.for_agent(self, branch=_branch_for(ctx, self, sub_agent)))
            for sub_agent in self.sub_agents
        ]
        async with aclosing(_merge_agent_runs(ctx, agent_runs)) as agen:
            async for event in agen:
                yield event
