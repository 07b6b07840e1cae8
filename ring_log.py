"""Bounded in-memory logs backing the /api/debug endpoints."""

import threading
from collections import deque
from datetime import datetime, timezone

MAX_CAPACITY = 1000


class RingLog:
    """Thread-safe ring buffer of dict entries, oldest dropped first."""

    def __init__(self, capacity):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._entries = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self):
        return self._entries.maxlen

    def append(self, entry):
        entry = dict(entry)
        entry.setdefault("ts", datetime.now(timezone.utc).isoformat())
        with self._lock:
            self._entries.append(entry)
        return entry

    def recent(self, limit=None):
        """Return up to ``limit`` entries, newest first."""
        with self._lock:
            items = list(self._entries)
        items.reverse()
        if limit is not None:
            items = items[:max(limit, 0)]
        return items

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)


def capacity_from_env(raw, default):
    """Parse a buffer size setting, clamped to 1..MAX_CAPACITY."""
    try:
        value = int(str(raw).strip()) if raw not in (None, "") else default
    except ValueError:
        value = default
    return min(max(value, 1), MAX_CAPACITY)
