from collections import OrderedDict
from threading import Lock
from typing import List, Optional
import logging
import os
import uuid

from dotenv import load_dotenv

from ..models.errors import SessionLimitError, SessionNotFoundError
from ..models.session import MergeSession

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

POLICY_REJECT = "reject"
POLICY_EVICT_OLDEST = "evict_oldest"
LIMIT_POLICIES = (POLICY_REJECT, POLICY_EVICT_OLDEST)


class SessionRepository:
    """
    In-memory, insertion-ordered registry of MergeSession objects.

    A single registry lock guards the mapping only; it is never held while
    a session's own lock is taken. `max_sessions` of 0 means unlimited.
    When full, `limit_policy` decides: "reject" refuses the new session,
    "evict_oldest" drops the session created first.
    """

    def __init__(self, max_sessions: int = None, limit_policy: str = None):
        if max_sessions is None:
            max_sessions = int(os.getenv("MAX_SESSIONS", "10"))
        if limit_policy is None:
            limit_policy = os.getenv("SESSION_LIMIT_POLICY", POLICY_REJECT)
        if max_sessions < 0:
            raise ValueError(f"max_sessions must not be negative, got {max_sessions}")
        if limit_policy not in LIMIT_POLICIES:
            raise ValueError(f"Unknown session limit policy {limit_policy!r}; expected one of {LIMIT_POLICIES}")

        self.max_sessions = max_sessions
        self.limit_policy = limit_policy
        self._sessions: "OrderedDict[str, MergeSession]" = OrderedDict()
        self._lock = Lock()

    def _make_room(self) -> None:
        # caller holds self._lock
        if not self.max_sessions or len(self._sessions) < self.max_sessions:
            return
        if self.limit_policy == POLICY_REJECT:
            raise SessionLimitError(self.max_sessions)
        evicted_id, _ = self._sessions.popitem(last=False)
        logger.info(f"Session limit {self.max_sessions} reached, evicted oldest session {evicted_id}")

    def create(self, session_id: Optional[str] = None) -> MergeSession:
        """Create and register a session. An existing id is returned as-is."""
        if session_id is None:
            session_id = uuid.uuid4().hex
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is not None:
                return existing
            self._make_room()
            session = MergeSession(session_id)
            self._sessions[session_id] = session
        logger.info(f"Created session {session_id}")
        return session

    def find(self, session_id: str) -> MergeSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_or_create(self, session_id: str) -> MergeSession:
        return self.create(session_id)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions
