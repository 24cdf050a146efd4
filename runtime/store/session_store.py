"""In-memory session storage for RizzCoach.

The store exclusively owns every Session and is the only writer. All
mutation goes through the operations below, which keep these invariants:

- the collection is never empty once anyone asks for the current session
  or deletes one (a fresh session is created on demand)
- messages are append-only and timestamps never go backwards
- a profile is replaced wholesale, never merged field by field

Readers get snapshots: a copy of the Session with its own message list,
so the presentation layer cannot mutate stored state.

Mutations are serialized by a re-entrant lock; the API server calls the
store from both the event loop and its thread pool.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from core.analysis.models import ProfileRecord
from ..models.session_models import Message, Session


logger = logging.getLogger(__name__)


class SessionStore:
    """Ordered, in-memory collection of conversation sessions.

    Parameters
    ----------
    create_initial:
        If true (the default), the store starts with one empty session
        selected, the way a freshly opened app does.
    """

    def __init__(self, create_initial: bool = True) -> None:
        self._sessions: Dict[str, Session] = {}
        # Display order, newest first.
        self._order: List[str] = []
        self._current_id: Optional[str] = None
        self._lock = threading.RLock()

        if create_initial:
            self.create_session()

    # ------------------------------------------------------------------
    # Collection management
    # ------------------------------------------------------------------

    def create_session(self) -> str:
        """Insert a new empty session at the front, select it and return its id."""
        with self._lock:
            session = Session()
            self._sessions[session.id] = session
            self._order.insert(0, session.id)
            self._current_id = session.id
            logger.debug("Created session %s", session.id)
            return session.id

    def delete_session(self, session_id: str) -> None:
        """Remove a session; unknown ids are ignored.

        If the deleted session was selected, selection moves to the session
        that now occupies its position (or the one before it). If nothing
        is left, a fresh session is created and selected.
        """
        with self._lock:
            if session_id not in self._sessions:
                return

            index = self._order.index(session_id)
            self._order.pop(index)
            del self._sessions[session_id]
            logger.debug("Deleted session %s", session_id)

            if not self._order:
                self.create_session()
                return

            if self._current_id == session_id:
                self._current_id = self._order[min(index, len(self._order) - 1)]

    def select_session(self, session_id: str) -> bool:
        with self._lock:
            if session_id not in self._sessions:
                return False
            self._current_id = session_id
            return True

    @property
    def current_session_id(self) -> str:
        with self._lock:
            if self._current_id is None or self._current_id not in self._sessions:
                if self._order:
                    self._current_id = self._order[0]
                else:
                    self.create_session()
            return self._current_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return a snapshot of the session, or None if it does not exist."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return _snapshot(session)

    def list_sessions(self) -> List[Session]:
        with self._lock:
            return [_snapshot(self._sessions[sid]) for sid in self._order]

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def rename_session(self, session_id: str, title: str) -> bool:
        """Set a trimmed title. Blank titles are ignored (returns False)."""
        cleaned = (title or "").strip()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not cleaned:
                return False
            session.title = cleaned
            session.last_updated = _now()
            return True

    def append_messages(self, session_id: str, messages: Iterable[Message]) -> bool:
        """Append a batch of messages in order.

        Returns False (and does nothing) if the session no longer exists,
        e.g. it was deleted while a request for it was in flight.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.info("Dropping messages for missing session %s", session_id)
                return False
            self._append(session, messages)
            return True

    def establish_profile(
        self,
        session_id: str,
        profile: ProfileRecord,
        messages: Iterable[Message],
    ) -> bool:
        """Attach a profile and its transcript entries in one step.

        Replaces any existing profile wholesale. On the session's first
        profile, the title becomes the detected name (if there is one).
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.info("Dropping profile for missing session %s", session_id)
                return False

            first_profile = session.active_profile is None
            session.active_profile = profile
            if first_profile and profile.display_name:
                session.title = profile.display_name
            self._append(session, messages)
            return True

    def _append(self, session: Session, messages: Iterable[Message]) -> None:
        last = session.messages[-1].timestamp if session.messages else None
        for message in messages:
            if last is not None and message.timestamp < last:
                message = message.model_copy(update={"timestamp": last})
            session.messages.append(message)
            last = message.timestamp
        session.last_updated = _now()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot(session: Session) -> Session:
    return session.model_copy(update={"messages": list(session.messages)})
