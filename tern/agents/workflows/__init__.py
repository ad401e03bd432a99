"""
Agent implementations.

This module provides the base agent, the workflow agents composing
sub-agents (sequential, parallel, loop), and the model-driven LlmAgent.
"""

from .base_agent import BaseAgent
from .sequential_agent import SequentialAgent
from .parallel_agent import ParallelAgent
from .loop_agent import LoopAgent
from .llm_agent import LlmAgent

__all__ = [
    "BaseAgent",
    "SequentialAgent",
    "ParallelAgent",
    "LoopAgent",
    "LlmAgent",
]
