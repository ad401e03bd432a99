"""
Unit tests for the sequential, loop and parallel workflow agents.
"""

import asyncio

import pytest

from tern.agents.core.exceptions import ConfigurationError, UnsupportedError
from tern.agents.workflows.loop_agent import LoopAgent
from tern.agents.workflows.parallel_agent import ParallelAgent
from tern.agents.workflows.sequential_agent import SequentialAgent

from conftest import EchoAgent, collect


class FailingAgent(EchoAgent):
    """Agent that raises after being started."""

    async def _run_async_impl(self, ctx):
        raise RuntimeError(f"{self.name} failed")
        yield


class SlowAgent(EchoAgent):
    """Agent that yields after a delay."""

    def __init__(self, name, delay, **kwargs):
        super().__init__(name, **kwargs)
        self.delay = delay

    async def _run_async_impl(self, ctx):
        await asyncio.sleep(self.delay)
        async for event in super()._run_async_impl(ctx):
            yield event


class TestSequentialAgent:
    """Test cases for SequentialAgent."""

    @pytest.mark.asyncio
    async def test_runs_in_order(self, make_context):
        """Test that sub-agents run in declared order on the same branch."""
        a, b, c = EchoAgent("a"), EchoAgent("b"), EchoAgent("c")
        root = SequentialAgent("root", sub_agents=[a, b, c])

        events = await collect(root.run_async(make_context(root)))

        assert [event.author for event in events] == ["a", "b", "c"]
        assert a.seen_branches == [None]

    @pytest.mark.asyncio
    async def test_no_sub_agents(self, make_context):
        """Test that an empty sequence yields nothing."""
        root = SequentialAgent("root")

        assert await collect(root.run_async(make_context(root))) == []

    @pytest.mark.asyncio
    async def test_live_mode(self, make_context):
        """Test that live mode runs sub-agents in order."""
        root = SequentialAgent("root", sub_agents=[EchoAgent("a"), EchoAgent("b")])

        events = await collect(root.run_live(make_context(root)))

        assert [event.author for event in events] == ["a", "b"]


class TestLoopAgent:
    """Test cases for LoopAgent."""

    @pytest.mark.asyncio
    async def test_runs_max_iterations(self, make_context):
        """Test that every sub-agent runs once per iteration."""
        a, b = EchoAgent("a"), EchoAgent("b")
        loop = LoopAgent("loop", sub_agents=[a, b], max_iterations=3)

        events = await collect(loop.run_async(make_context(loop)))

        assert len(events) == 6
        assert [event.author for event in events] == ["a", "b"] * 3
        assert a.run_count == 3
        assert b.run_count == 3

    @pytest.mark.asyncio
    async def test_escalation_stops_loop(self, make_context):
        """Test that escalation ends the loop before the next sub-agent."""
        a = EchoAgent("a", escalate_on_run=2)
        b = EchoAgent("b")
        loop = LoopAgent("loop", sub_agents=[a, b], max_iterations=5)

        events = await collect(loop.run_async(make_context(loop)))

        assert [event.author for event in events] == ["a", "b", "a"]
        assert events[-1].actions.escalate is True
        assert b.run_count == 1

    @pytest.mark.asyncio
    async def test_unbounded_loop_ends_on_escalation(self, make_context):
        """Test that a loop without a limit stops once escalated."""
        a = EchoAgent("a", escalate_on_run=4)
        loop = LoopAgent("loop", sub_agents=[a])

        events = await collect(loop.run_async(make_context(loop)))

        assert len(events) == 4

    @pytest.mark.asyncio
    async def test_zero_iterations(self, make_context):
        """Test that zero iterations run nothing."""
        a = EchoAgent("a")
        loop = LoopAgent("loop", sub_agents=[a], max_iterations=0)

        assert await collect(loop.run_async(make_context(loop))) == []
        assert a.run_count == 0

    def test_negative_iterations_rejected(self):
        """Test that a negative limit is rejected."""
        with pytest.raises(ConfigurationError):
            LoopAgent("loop", max_iterations=-1)

    @pytest.mark.asyncio
    async def test_live_mode_unsupported(self, make_context):
        """Test that live mode raises UnsupportedError."""
        loop = LoopAgent("loop", sub_agents=[EchoAgent("a")], max_iterations=1)

        with pytest.raises(UnsupportedError):
            await collect(loop.run_live(make_context(loop)))


class TestParallelAgent:
    """Test cases for ParallelAgent."""

    @pytest.mark.asyncio
    async def test_branches(self, make_context):
        """Test that every sub-agent runs on its own branch."""
        x, y = EchoAgent("x"), EchoAgent("y")
        parallel = ParallelAgent("par", sub_agents=[x, y])

        events = await collect(parallel.run_async(make_context(parallel)))

        assert len(events) == 2
        assert sorted(event.branch for event in events) == ["par.x", "par.y"]
        assert all(event.branch.endswith(f".{event.author}") for event in events)

    @pytest.mark.asyncio
    async def test_nested_branch(self, make_context):
        """Test that branches extend the enclosing branch."""
        x = EchoAgent("x")
        inner = ParallelAgent("inner", sub_agents=[x])
        outer = ParallelAgent("outer", sub_agents=[inner])

        events = await collect(outer.run_async(make_context(outer)))

        assert [event.branch for event in events] == ["outer.inner.x"]

    @pytest.mark.asyncio
    async def test_arrival_order(self, make_context):
        """Test that events are yielded as they become available."""
        slow = SlowAgent("slow", delay=0.05)
        fast = SlowAgent("fast", delay=0)
        parallel = ParallelAgent("par", sub_agents=[slow, fast])

        events = await collect(parallel.run_async(make_context(parallel)))

        assert [event.author for event in events] == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_failure_propagates(self, make_context):
        """Test that a failing sub-agent fails the parallel run."""
        parallel = ParallelAgent(
            "par", sub_agents=[FailingAgent("bad"), SlowAgent("slow", delay=1)]
        )

        with pytest.raises(RuntimeError, match="bad failed"):
            await collect(parallel.run_async(make_context(parallel)))

    @pytest.mark.asyncio
    async def test_inside_sequence(self, make_context):
        """Test that the sequence continues once every branch finishes."""
        parallel = ParallelAgent("par", sub_agents=[EchoAgent("x"), EchoAgent("y")])
        after = EchoAgent("after")
        root = SequentialAgent("root", sub_agents=[parallel, after])

        events = await collect(root.run_async(make_context(root)))

        assert len(events) == 3
        assert events[-1].author == "after"
        assert events[-1].branch is None
