"""
Loop agent implementation.
"""

from contextlib import aclosing
from typing import AsyncGenerator, List, Optional

from .base_agent import BaseAgent
from ..core.context import InvocationContext
from ..core.exceptions import ConfigurationError
from ..core.models import Event
from ..utils.callbacks import CallbackOrList


class LoopAgent(BaseAgent):
    """Repeats its sub-agents in order.

    The loop ends when a sub-agent's event escalates (after that sub-agent
    finishes, before the next one starts) or when ``max_iterations`` full
    passes have run. Without ``max_iterations`` the loop only ends on
    escalation. Live mode is not supported.
    """

    live_supported = False

    def __init__(
        self,
        name: str,
        description: str = "",
        sub_agents: Optional[List[BaseAgent]] = None,
        max_iterations: Optional[int] = None,
        before_agent_callback: CallbackOrList = None,
        after_agent_callback: CallbackOrList = None
    ):
        if max_iterations is not None and max_iterations < 0:
            raise ConfigurationError(
                f"max_iterations must be non-negative, got {max_iterations}"
            )
        super().__init__(
            name,
            description=description,
            sub_agents=sub_agents,
            before_agent_callback=before_agent_callback,
            after_agent_callback=after_agent_callback
        )
        self.max_iterations = max_iterations

    async def _run_async_impl(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        if not self.sub_agents:
            return

        iteration = 0
        while self.max_iterations is None or iteration < self.max_iterations:
            for sub_agent in self.sub_agents:
                should_exit = False
                async with aclosing(sub_agent.run_async(ctx)) as agen:
                    async for event in agen:
                        yield event
                        if event.actions.escalate:
                            should_exit = True
                if should_exit:
                    self._logger.info(
                        f"Loop {self.name} escalated by {sub_agent.name} "
                        f"in iteration {iteration + 1}"
                    )
                    return
                if ctx.is_cancelled():
                    return
            iteration += 1
