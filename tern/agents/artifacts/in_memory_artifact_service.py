"""
In-memory artifact service implementation.
"""

import logging
from typing import Dict, List, Optional
from threading import Lock

from google.genai import types

from ..core.interfaces import BaseArtifactService

logger = logging.getLogger(__name__)

USER_NAMESPACE_PREFIX = "user:"


class InMemoryArtifactService(BaseArtifactService):
    """Stores every version of every artifact in a dict keyed by path.

    Suitable for development and tests; nothing survives the process.
    """

    def __init__(self):
        self._artifacts: Dict[str, List[types.Part]] = {}
        self._lock = Lock()

    @staticmethod
    def _file_has_user_namespace(filename: str) -> bool:
        return filename.startswith(USER_NAMESPACE_PREFIX)

    def _artifact_path(self, app_name: str, user_id: str, session_id: str, filename: str) -> str:
        if self._file_has_user_namespace(filename):
            return f"{app_name}/{user_id}/user/{filename}"
        return f"{app_name}/{user_id}/{session_id}/{filename}"

    async def save_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        artifact: types.Part
    ) -> int:
        path = self._artifact_path(app_name, user_id, session_id, filename)
        with self._lock:
            versions = self._artifacts.setdefault(path, [])
            versions.append(artifact)
            version = len(versions) - 1
        logger.debug(f"Saved artifact {path} version {version}")
        return version

    async def load_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: Optional[int] = None
    ) -> Optional[types.Part]:
        path = self._artifact_path(app_name, user_id, session_id, filename)
        with self._lock:
            versions = self._artifacts.get(path)
            if not versions:
                return None
            if version is None:
                return versions[-1]
            if version < 0 or version >= len(versions):
                return None
            return versions[version]

    async def list_artifact_keys(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str
    ) -> List[str]:
        session_prefix = f"{app_name}/{user_id}/{session_id}/"
        user_prefix = f"{app_name}/{user_id}/user/"
        keys = []
        with self._lock:
            for path in self._artifacts:
                if path.startswith(session_prefix):
                    keys.append(path[len(session_prefix):])
                elif path.startswith(user_prefix):
                    keys.append(path[len(user_prefix):])
        return sorted(keys)

    async def list_versions(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str
    ) -> List[int]:
        path = self._artifact_path(app_name, user_id, session_id, filename)
        with self._lock:
            return list(range(len(self._artifacts.get(path, []))))

    async def delete_artifact(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str
    ) -> None:
        path = self._artifact_path(app_name, user_id, session_id, filename)
        with self._lock:
            self._artifacts.pop(path, None)
