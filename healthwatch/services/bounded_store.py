"""
Fixed-capacity, thread-safe sequence used for the metric history and alert list.

Every read returns a copy taken under the lock, so a reader never observes a
half-applied append or eviction.
"""

import threading
from collections import deque
from collections.abc import Callable
from typing import Generic, TypeVar

ItemT = TypeVar("ItemT")


class BoundedStore(Generic[ItemT]):
    """deque(maxlen=capacity) guarded by a lock; oldest element evicted first."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: deque[ItemT] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, item: ItemT) -> None:
        """Add at the tail (newest last); evicts from the head when full."""
        with self._lock:
            self._items.append(item)

    def push_front(self, item: ItemT) -> None:
        """Add at the head (newest first); evicts from the tail when full."""
        with self._lock:
            self._items.appendleft(item)

    def snapshot(self) -> list[ItemT]:
        with self._lock:
            return list(self._items)

    def tail(self, count: int) -> list[ItemT]:
        """Last `count` items in stored order."""
        if count <= 0:
            return []
        with self._lock:
            return list(self._items)[-count:]

    def last(self) -> ItemT | None:
        with self._lock:
            return self._items[-1] if self._items else None

    def replace_first(
        self, predicate: Callable[[ItemT], bool], update: Callable[[ItemT], ItemT]
    ) -> ItemT | None:
        """
        Swap the first matching item for `update(item)` in place.

        Returns the new item, or None when nothing matched.
        """
        with self._lock:
            for index, item in enumerate(self._items):
                if predicate(item):
                    replacement = update(item)
                    self._items[index] = replacement
                    return replacement
        return None

    def find(self, predicate: Callable[[ItemT], bool]) -> ItemT | None:
        with self._lock:
            return next((item for item in self._items if predicate(item)), None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
