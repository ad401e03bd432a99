"""
Tern Agents

An agent execution and session-state engine: trees of LLM and workflow
agents run against sessions whose state is changed only by appending
events.

Example usage:
    from tern.agents import InMemoryRunner, LlmAgent
    from google.genai import types

    agent = LlmAgent(name="assistant", model="gemini-2.5-flash",
                     instruction="You are a helpful assistant.")
    runner = InMemoryRunner(agent, app_name="demo")

    session = await runner.session_service.create_session(app_name="demo", user_id="u1")
    message = types.Content(role="user", parts=[types.Part(text="Hello")])
    async for event in runner.run_async(user_id="u1", session_id=session.id,
                                        new_message=message):
        print(event.author, event.get_text())
"""

__version__ = "0.1.0"
__author__ = "Tern Team"

# Re-export main components for convenience
from .agents import (
    # Agents
    BaseAgent,
    LlmAgent,
    SequentialAgent,
    ParallelAgent,
    LoopAgent,

    # Runner and services
    Runner,
    InMemoryRunner,
    InMemorySessionService,
    InMemoryArtifactService,

    # Core models
    Event,
    EventActions,
    Session,
    RunConfig,
)

__all__ = [
    # Agents
    "BaseAgent",
    "LlmAgent",
    "SequentialAgent",
    "ParallelAgent",
    "LoopAgent",

    # Runner and services
    "Runner",
    "InMemoryRunner",
    "InMemorySessionService",
    "InMemoryArtifactService",

    # Core models
    "Event",
    "EventActions",
    "Session",
    "RunConfig",
]
