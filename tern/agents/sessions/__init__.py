"""
Session services.
"""

from .in_memory_session_service import InMemorySessionService

__all__ = [
    "InMemorySessionService",
]
