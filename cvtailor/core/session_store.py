"""
Session storage for CV Tailor.

A session tracks one user's tailoring request:
upload CV -> tailor -> download results.

The store is an explicit interface so the orchestrator never touches a
global map. The in-memory implementation is process-local and unlocked:
concurrent updates to the same session id are last-write-wins.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union

from cvtailor.core.schemas import Session
from cvtailor.core.text import generate_session_id

logger = logging.getLogger(__name__)


MaxAge = Union[timedelta, int, float]


class SessionStore(ABC):
    """Keyed storage of sessions by session id."""

    @abstractmethod
    def create(self) -> Session:
        """Create and store a fresh session in the initialized state."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        """Return the session, or None if unknown."""

    @abstractmethod
    def update(self, session_id: str, **fields) -> Optional[Session]:
        """Merge fields into a session. Returns None if unknown."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session. Returns True if one was removed."""

    @abstractmethod
    def sweep(self, max_age: MaxAge) -> int:
        """Remove sessions older than max_age. Returns the count removed."""


class InMemorySessionStore(SessionStore):
    """
    Dict-backed session store.

    Sessions live until deleted, swept, or the process exits.
    sweep() is meant to be called by an external scheduler.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        """
        Args:
            clock: Returns the current time. Injected so tests can age sessions.
        """
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def create(self) -> Session:
        session_id = generate_session_id()
        while session_id in self._sessions:
            session_id = generate_session_id()

        session = Session(
            session_id=session_id,
            created_at=self._clock(),
            collection_name=f"cv_session_{session_id}",
        )
        self._sessions[session_id] = session

        logger.info(f"Session created: {session_id}")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def update(self, session_id: str, **fields) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None:
            logger.error(f"Session not found: {session_id}")
            return None

        unknown = set(fields) - set(Session.model_fields)
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")

        updated = session.model_copy(update=fields)
        self._sessions[session_id] = updated

        logger.info(f"Session updated: {session_id} {sorted(fields)}")
        return updated

    def delete(self, session_id: str) -> bool:
        deleted = self._sessions.pop(session_id, None) is not None
        if deleted:
            logger.info(f"Session deleted: {session_id}")
        return deleted

    def sweep(self, max_age: MaxAge) -> int:
        if not isinstance(max_age, timedelta):
            max_age = timedelta(seconds=max_age)

        now = self._clock()
        expired = [
            session_id for session_id, session in self._sessions.items()
            if now - session.created_at > max_age
        ]
        for session_id in expired:
            del self._sessions[session_id]
            logger.info(f"Session expired: {session_id}")

        if expired:
            logger.info(f"Cleaned up {len(expired)} old sessions")
        return len(expired)

    def active_session_ids(self) -> List[str]:
        """Ids of all stored sessions (debugging)."""
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)
