"""
Registries resolving model strings and service URIs.
"""

from .llm_registry import LLMRegistry, get_llm_registry
from .service_registry import (
    MEMORY_URI,
    is_in_memory_connection_string,
    get_session_service_from_uri,
    get_artifact_service_from_uri,
)

__all__ = [
    "LLMRegistry",
    "get_llm_registry",
    "MEMORY_URI",
    "is_in_memory_connection_string",
    "get_session_service_from_uri",
    "get_artifact_service_from_uri",
]
