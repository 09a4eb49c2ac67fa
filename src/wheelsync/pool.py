"""Bounded pool of detached scroll handles kept for reuse."""

from __future__ import annotations

import logging

from wheelsync.handle import ScrollHandle

logger = logging.getLogger(__name__)

DEFAULT_POOL_CAPACITY = 10


def is_reusable(handle: ScrollHandle) -> bool:
    """A handle can be pooled or reused only if it is live and no view holds it."""
    return not handle.disposed and not handle.attached.peek()


class HandlePool:
    """Holds up to `capacity` detached handles, oldest first."""

    def __init__(self, capacity: int = DEFAULT_POOL_CAPACITY) -> None:
        if capacity < 0:
            raise ValueError(f"pool capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        self._handles: list[ScrollHandle] = []

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, handle: ScrollHandle) -> bool:
        return handle in self._handles

    @property
    def has_space(self) -> bool:
        return len(self._handles) < self.capacity

    def acquire(self, initial_item: int) -> ScrollHandle | None:
        """Remove and return a reusable handle created at initial_item, if any."""
        for i, handle in enumerate(self._handles):
            if is_reusable(handle) and handle.initial_item == initial_item:
                del self._handles[i]
                handle.jump_to_item(initial_item)
                return handle
        return None

    def offer(self, handle: ScrollHandle) -> bool:
        """Keep handle for reuse if there is room and it is safe. False means the caller disposes it."""
        if not self.has_space or not is_reusable(handle) or handle in self._handles:
            return False
        self._handles.append(handle)
        return True

    def trim(self, max_size: int | None = None) -> list[ScrollHandle]:
        """Evict oldest handles down to max_size (default half capacity). Returns the evicted."""
        target = self.capacity // 2 if max_size is None else max(0, max_size)
        evicted = []
        while len(self._handles) > target:
            evicted.append(self._handles.pop(0))
        if evicted:
            logger.debug("Trimmed handle pool by %d to %d", len(evicted), len(self._handles))
        return evicted

    def drain(self) -> list[ScrollHandle]:
        """Remove and return every pooled handle."""
        handles, self._handles = self._handles, []
        return handles
