"""
In-memory FIFO buffer of events awaiting a drain.
"""

import threading
from collections import deque
from collections.abc import Iterable

from .models import BehavioralEvent


class EventQueue:
    """Thread-safe FIFO of pending behavioral events"""

    def __init__(self):
        self._events: deque[BehavioralEvent] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def append(self, event: BehavioralEvent) -> int:
        """Append an event and return the resulting queue length"""
        with self._lock:
            self._events.append(event)
            return len(self._events)

    def pop_batch(self, size: int) -> list[BehavioralEvent]:
        """Remove and return up to `size` events from the head"""
        with self._lock:
            count = min(size, len(self._events))
            return [self._events.popleft() for _ in range(count)]

    def requeue_front(self, events: Iterable[BehavioralEvent]) -> None:
        """Put events back at the head, keeping their relative order"""
        with self._lock:
            self._events.extendleft(reversed(list(events)))

    def snapshot(self) -> list[BehavioralEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
