"""
In-memory session service implementation.

This module provides an in-memory implementation of the session service
contract for development and testing purposes.
"""

import copy
import logging
import time
import uuid as uuid_lib
from typing import Any, Dict, Optional
from threading import Lock

from ..core.enums import StateScope
from ..core.exceptions import SessionAlreadyExistsError
from ..core.interfaces import BaseSessionService
from ..core.models import Event, GetSessionConfig, ListSessionsResponse, Session
from ..core.state import extract_scoped, scope_of


class InMemorySessionService(BaseSessionService):
    """In-memory implementation of BaseSessionService.

    Sessions are stored per app and user. App-scoped and user-scoped state
    live in shared stores and are merged into every session handed out.
    Callers always receive deep copies, so only ``append_event`` changes
    what is stored.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        # app_name -> user_id -> session_id -> Session
        self._sessions: Dict[str, Dict[str, Dict[str, Session]]] = {}
        # app_name -> state
        self._app_state: Dict[str, Dict[str, Any]] = {}
        # app_name -> user_id -> state
        self._user_state: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = Lock()

    async def create_session(
        self,
        *,
        app_name: str,
        user_id: str,
        state: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None
    ) -> Session:
        """Create a new session."""
        session_id = (
            session_id.strip() if session_id and session_id.strip()
            else str(uuid_lib.uuid4())
        )
        state = state or {}

        with self._lock:
            if self._get_stored_session(app_name, user_id, session_id) is not None:
                raise SessionAlreadyExistsError(
                    f"Session with id {session_id} already exists.",
                    context={"app_name": app_name, "user_id": user_id, "session_id": session_id}
                )

            self._app_state.setdefault(app_name, {}).update(
                extract_scoped(state, StateScope.APP)
            )
            self._user_state.setdefault(app_name, {}).setdefault(user_id, {}).update(
                extract_scoped(state, StateScope.USER)
            )

            session = Session(
                id=session_id,
                app_name=app_name,
                user_id=user_id,
                state=extract_scoped(state, StateScope.SESSION),
                last_update_time=time.time()
            )
            self._sessions.setdefault(app_name, {}).setdefault(user_id, {})[session_id] = session
            result = self._merge_state(copy.deepcopy(session))

        self.logger.info(f"Created session: {session_id} for user: {user_id} in app: {app_name}")
        return result

    async def get_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str,
        config: Optional[GetSessionConfig] = None
    ) -> Optional[Session]:
        """Get a session by ID."""
        with self._lock:
            stored = self._get_stored_session(app_name, user_id, session_id)
            if stored is None:
                return None
            session = self._merge_state(copy.deepcopy(stored))

        if config:
            if config.num_recent_events is not None:
                count = config.num_recent_events
                session.events = session.events[-count:] if count > 0 else []
            if config.after_timestamp is not None:
                session.events = [
                    event for event in session.events
                    if event.timestamp > config.after_timestamp
                ]
        return session

    async def list_sessions(
        self,
        *,
        app_name: str,
        user_id: str
    ) -> ListSessionsResponse:
        """List sessions for a user."""
        with self._lock:
            stored_sessions = self._sessions.get(app_name, {}).get(user_id, {})
            sessions = []
            for stored in stored_sessions.values():
                session = stored.model_copy(update={"events": [], "state": dict(stored.state)})
                sessions.append(self._merge_state(session))
        return ListSessionsResponse(sessions=sessions)

    async def delete_session(
        self,
        *,
        app_name: str,
        user_id: str,
        session_id: str
    ) -> None:
        """Delete a session."""
        with self._lock:
            user_sessions = self._sessions.get(app_name, {}).get(user_id, {})
            removed = user_sessions.pop(session_id, None)
        if removed is not None:
            self.logger.debug(f"Removed session: {session_id}")

    async def append_event(self, session: Session, event: Event) -> Event:
        """Append an event to the caller's session copy and to the store.

        An event for a session unknown to the store is logged and returned
        unchanged.
        """
        if event.partial:
            return event

        with self._lock:
            stored = self._get_stored_session(session.app_name, session.user_id, session.id)
        if stored is None:
            self.logger.warning(
                f"Session {session.id} not found for app {session.app_name} "
                f"and user {session.user_id}; event {event.id} was not appended"
            )
            return event

        recorded = await super().append_event(session, event)

        with self._lock:
            for key, value in recorded.actions.state_delta.items():
                scope = scope_of(key)
                if scope == StateScope.APP:
                    self._app_state.setdefault(session.app_name, {})[key] = value
                elif scope == StateScope.USER:
                    self._user_state.setdefault(session.app_name, {}).setdefault(
                        session.user_id, {}
                    )[key] = value
                else:
                    stored.state[key] = value
            stored.events.append(recorded)
            stored.last_update_time = recorded.timestamp
        return recorded

    def _get_stored_session(
        self,
        app_name: str,
        user_id: str,
        session_id: str
    ) -> Optional[Session]:
        """Look up a stored session (assumes lock is held)."""
        return self._sessions.get(app_name, {}).get(user_id, {}).get(session_id)

    def _merge_state(self, session: Session) -> Session:
        """Merge shared app and user state into a session copy (assumes lock is held)."""
        session.state.update(self._app_state.get(session.app_name, {}))
        session.state.update(
            self._user_state.get(session.app_name, {}).get(session.user_id, {})
        )
        return session
