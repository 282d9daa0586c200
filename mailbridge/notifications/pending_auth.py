"""
In-memory registry of LINE users in the middle of the Gmail OAuth handshake.

While a user is pending, their next free-text message is treated as an
authorization code. Entries live in process memory only: a restart drops
every in-flight handshake and the user has to send the auth command again.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class PendingAuthRegistry:
    """
    Thread-safe set of pending user IDs with optional expiry.

    Adding a user who is already pending only restarts their expiry window.
    """

    def __init__(self, ttl_minutes: Optional[int] = 10, clock: Callable[[], datetime] = datetime.utcnow):
        """
        Args:
            ttl_minutes: Minutes after which a pending entry lapses (None = never)
            clock: Source of the current time (tests pass a fake)
        """
        self._ttl = timedelta(minutes=ttl_minutes) if ttl_minutes else None
        self._clock = clock
        self._started: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def _expired(self, started_at: datetime) -> bool:
        return self._ttl is not None and self._clock() - started_at > self._ttl

    def add(self, user_id: str):
        with self._lock:
            self._started[user_id] = self._clock()

    def discard(self, user_id: str):
        with self._lock:
            self._started.pop(user_id, None)

    def contains(self, user_id: str) -> bool:
        with self._lock:
            started_at = self._started.get(user_id)
            if started_at is None:
                return False
            if self._expired(started_at):
                del self._started[user_id]
                logger.info(f"Pending Gmail auth expired for user {user_id}")
                return False
            return True

    def pending_users(self) -> List[str]:
        """Snapshot of users currently pending (expired entries excluded)."""
        with self._lock:
            return [uid for uid, started_at in self._started.items() if not self._expired(started_at)]

    def __contains__(self, user_id: str) -> bool:
        return self.contains(user_id)

    def __len__(self) -> int:
        return len(self.pending_users())
