"""In-memory session store with TTL.

Controllers hold live references to the shared caches, so they stay in process
memory rather than being serialized to an external store. The store keeps them
in least-recently-used order so a size cap can evict idle sessions first.
"""

import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from routewind.controller import RouteController
from routewind.session_store.base import SessionStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_store/memory")


@dataclass
class _Entry:
    controller: RouteController
    created_at: float
    expires_at: float


class InMemorySessionStore(SessionStore):
    """
    Thread-safe controller store with a sliding TTL.

    `max_age_seconds` caps a session's lifetime regardless of activity and
    `max_sessions` bounds memory by evicting the least recently used session.
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_age_seconds: int | None = None,
        max_sessions: int | None = None,
    ) -> None:
        self.ttl = ttl_seconds
        self.max_age = max_age_seconds
        self.max_sessions = max_sessions
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()

    def _deadline(self, created_at: float, now: float) -> float:
        deadline = now + self.ttl
        if self.max_age is not None:
            deadline = min(deadline, created_at + self.max_age)
        return deadline

    def create_session(self, controller: RouteController) -> str:
        """Store a controller and return its session id."""
        sid = uuid.uuid4().hex
        now = time.monotonic()
        with self._lock:
            self._entries[sid] = _Entry(controller, now, self._deadline(now, now))
            if self.max_sessions is not None:
                while len(self._entries) > self.max_sessions:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.info("Evicted idle session", extra={"session_id": evicted})
        return sid

    def get_session(self, session_id: str) -> Optional[RouteController]:
        """Return the controller and extend its TTL, or None if missing/expired."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[session_id]
                return None
            entry.expires_at = self._deadline(entry.created_at, now)
            self._entries.move_to_end(session_id)
            return entry.controller

    def purge_expired(self) -> int:
        """Drop every expired session; returns how many were removed."""
        now = time.monotonic()
        with self._lock:
            expired = [sid for sid, e in self._entries.items() if e.expires_at <= now]
            for sid in expired:
                del self._entries[sid]
        if expired:
            logger.debug("Purged expired sessions", extra={"count": len(expired)})
        return len(expired)

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
