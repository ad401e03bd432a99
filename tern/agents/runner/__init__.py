"""
Runners driving agent trees against sessions.
"""

from .runner import Runner, InMemoryRunner

__all__ = [
    "Runner",
    "InMemoryRunner",
]
