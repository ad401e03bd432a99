"""
Service construction from connection URIs.

Only the in-memory services are bundled; every other scheme is rejected.
"""

import logging
from typing import Optional

from ..artifacts.in_memory_artifact_service import InMemoryArtifactService
from ..core.exceptions import UnsupportedError
from ..core.interfaces import BaseArtifactService, BaseSessionService
from ..sessions.in_memory_session_service import InMemorySessionService

logger = logging.getLogger(__name__)

MEMORY_URI = "memory://"


def is_in_memory_connection_string(uri: Optional[str]) -> bool:
    """Check whether a URI selects the in-memory services."""
    return uri == MEMORY_URI


def get_session_service_from_uri(uri: str) -> BaseSessionService:
    """Build a session service for a URI.

    Raises:
        UnsupportedError: For any URI other than ``memory://``
    """
    if is_in_memory_connection_string(uri):
        logger.debug("Using in-memory session service")
        return InMemorySessionService()
    raise UnsupportedError(f"Unsupported session service URI: {uri}", context={"uri": uri})


def get_artifact_service_from_uri(uri: str) -> BaseArtifactService:
    """Build an artifact service for a URI.

    Raises:
        UnsupportedError: For any URI other than ``memory://``
    """
    if is_in_memory_connection_string(uri):
        logger.debug("Using in-memory artifact service")
        return InMemoryArtifactService()
    raise UnsupportedError(f"Unsupported artifact service URI: {uri}", context={"uri": uri})
