"""Deferred disposal of handles that are still attached to a view.

Disposing a handle mid-interaction would break the view using it, and pooling
it would allow a second view to attach. Instead the queue watches the
handle's `attached` observable and disposes it once it detaches.
"""

from __future__ import annotations

import logging
from typing import Callable

from wheelsync.handle import ScrollHandle
from wheelsync.reaction import Reaction, reaction

logger = logging.getLogger(__name__)


class DisposalQueue:
    """Per-slot queue of "dispose once detached" tasks.

    A new request for a slot supersedes that slot's pending watcher: the old
    watcher is cancelled and a single new one is scheduled covering every
    handle of the slot that is still waiting.
    """

    def __init__(self, dispose_fn: Callable[[ScrollHandle], None]) -> None:
        self._dispose_fn = dispose_fn
        self._pending: dict[int, list[ScrollHandle]] = {}
        self._watchers: dict[int, Reaction] = {}

    def request(self, slot: int, handle: ScrollHandle) -> bool:
        """Dispose handle now if detached, else once it detaches.

        Returns True if the handle was disposed immediately.
        """
        waiting = self._pending.pop(slot, [])
        self._cancel_watcher(slot)
        if handle not in waiting:
            waiting.append(handle)
        remaining = self._dispose_detached(waiting)
        if remaining:
            self._pending[slot] = remaining
            self._watch(slot)
            logger.debug("Deferred disposal of %d handle(s) for slot %d", len(remaining), slot)
        return handle not in remaining

    def flush(self) -> int:
        """Dispose every pending handle that has detached. Returns how many."""
        disposed = 0
        for slot in list(self._pending):
            before = len(self._pending[slot])
            self._drain(slot)
            disposed += before - len(self._pending.get(slot, ()))
        return disposed

    def pending_count(self) -> int:
        return sum(len(handles) for handles in self._pending.values())

    def is_pending(self, handle: ScrollHandle) -> bool:
        return any(handle in handles for handles in self._pending.values())

    def _dispose_detached(self, handles: list[ScrollHandle]) -> list[ScrollHandle]:
        remaining = []
        for handle in handles:
            if handle.disposed:
                continue
            if handle.attached.peek():
                remaining.append(handle)
            else:
                self._dispose_fn(handle)
        return remaining

    def _watch(self, slot: int) -> None:
        def attached_count() -> int:
            return sum(1 for h in self._pending.get(slot, ()) if h.attached.get())

        self._watchers[slot] = reaction(attached_count, lambda _: self._drain(slot))

    def _drain(self, slot: int) -> None:
        remaining = self._dispose_detached(self._pending.get(slot, []))
        if remaining:
            self._pending[slot] = remaining
        else:
            self._pending.pop(slot, None)
            self._cancel_watcher(slot)

    def _cancel_watcher(self, slot: int) -> None:
        watcher = self._watchers.pop(slot, None)
        if watcher is not None:
            watcher.dispose()
