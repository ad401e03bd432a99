"""
Artifact services.
"""

from .in_memory_artifact_service import InMemoryArtifactService

__all__ = [
    "InMemoryArtifactService",
]
