"""Bounded in-memory history of ingested pose entries."""
from __future__ import annotations

import itertools
import threading
from collections import deque
from typing import Any, Deque, List, Optional, Sequence

from .landmarks import isoformat, utc_now
from .schemas import PoseEntry


DEFAULT_CAPACITY = 1000
DEFAULT_SESSION_ID = "default"


class PoseStore:
    """FIFO of the most recent :class:`PoseEntry` objects.

    Id assignment, append and eviction happen under one lock so concurrent
    requests never interleave inside a single append.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("PoseStore capacity must be positive")
        self.capacity = capacity
        self._entries: Deque[PoseEntry] = deque(maxlen=capacity)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(
        self,
        landmarks: Sequence[Any],
        timestamp: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> PoseEntry:
        with self._lock:
            received_at = isoformat(utc_now())
            entry = PoseEntry(
                id=next(self._ids),
                landmarks=list(landmarks),
                timestamp=timestamp or received_at,
                sessionId=session_id or DEFAULT_SESSION_ID,
                receivedAt=received_at,
            )
            self._entries.append(entry)
        return entry

    def recent(self, limit: int) -> List[PoseEntry]:
        """Return up to ``limit`` newest entries, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            start = max(0, len(self._entries) - limit)
            return list(itertools.islice(self._entries, start, None))

    def snapshot(self) -> List[PoseEntry]:
        with self._lock:
            return list(self._entries)


__all__ = ["PoseStore", "DEFAULT_CAPACITY", "DEFAULT_SESSION_ID"]
