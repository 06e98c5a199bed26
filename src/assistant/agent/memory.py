"""
Per-user conversation memory.

One SessionMemory per user id, created lazily and atomically. The manager's
lock only guards the user-id -> session map; each session has its own lock,
so traffic from different users never contends beyond the map lookup.
"""
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Tuple
from assistant.models.conversation import ConversationTurn
from assistant.logging import logger


class SessionMemory:
    """Bounded FIFO window of one user's turns."""

    def __init__(self, user_id: str, max_turns: int, clock: Callable[[], float] = time.monotonic):
        if max_turns <= 0:
            raise ValueError("max_turns must be positive")
        self.user_id = user_id
        self.max_turns = max_turns
        self._turns: Deque[ConversationTurn] = deque(maxlen=max_turns)
        self._lock = threading.Lock()
        self._clock = clock
        self.last_active = clock()

    def append(self, *turns: ConversationTurn) -> None:
        """Append turns atomically; the oldest turns fall off past max_turns."""
        with self._lock:
            self._turns.extend(turns)
            self.last_active = self._clock()

    def snapshot(self) -> Tuple[ConversationTurn, ...]:
        with self._lock:
            return tuple(self._turns)

    def touch(self) -> None:
        with self._lock:
            self.last_active = self._clock()

    def __len__(self) -> int:
        return len(self._turns)


class SessionMemoryManager:
    def __init__(self, max_turns: int = 20, clock: Callable[[], float] = time.monotonic):
        if max_turns <= 0:
            raise ValueError("max_turns must be positive")
        self.max_turns = max_turns
        self._clock = clock
        self._sessions: Dict[str, SessionMemory] = {}
        self._lock = threading.Lock()

    def get_or_create(self, user_id: str) -> SessionMemory:
        """Return the user's session, creating it on first use.

        Check and insert happen under one lock, so concurrent first requests
        for the same user all get the same instance.
        """
        with self._lock:
            memory = self._sessions.get(user_id)
            if memory is None:
                memory = SessionMemory(user_id, self.max_turns, clock=self._clock)
                self._sessions[user_id] = memory
                logger.info(f"Created session memory for user {user_id}")
            return memory

    def append(self, user_id: str, *turns: ConversationTurn) -> None:
        self.get_or_create(user_id).append(*turns)

    def snapshot(self, user_id: str) -> Tuple[ConversationTurn, ...]:
        """Read-only copy of the user's turns; empty for unknown users."""
        with self._lock:
            memory = self._sessions.get(user_id)
        return memory.snapshot() if memory else ()

    def evict(self, user_id: str) -> bool:
        """Drop a user's session. Returns True if one existed."""
        with self._lock:
            removed = self._sessions.pop(user_id, None)
        if removed is not None:
            logger.info(f"Evicted session memory for user {user_id}")
        return removed is not None

    def evict_idle(self, ttl_seconds: float) -> List[str]:
        """Evict every session idle for longer than ttl_seconds."""
        now = self._clock()
        with self._lock:
            stale = [uid for uid, m in self._sessions.items() if now - m.last_active > ttl_seconds]
            for uid in stale:
                del self._sessions[uid]
        if stale:
            logger.info(f"Evicted {len(stale)} idle sessions")
        return stale

    def user_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
