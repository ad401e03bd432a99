"""
Tool that hands the conversation to another agent.
"""

from ..core.context import ToolContext


def transfer_to_agent(agent_name: str, tool_context: ToolContext) -> None:
    """Transfer the question to another agent.

    Use this tool to hand off control to another agent that is more suitable
    to answer the user's question according to the agent's description.

    Args:
        agent_name: the agent name to transfer to.
    """
    tool_context.actions.transfer_to_agent = agent_name
