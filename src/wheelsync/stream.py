"""Push-based event stream with operator chaining.

The manager emits a ChangeSet on its `changes` stream after every mutating
operation. map/filter return new downstream streams; dispose() tears down the
whole chain below the stream it is called on.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Disposer = Callable[[], None]


class EventStream(Generic[T]):
    """Push-based event stream with operator chaining."""

    def __init__(self) -> None:
        self._subscribers: list[Callable[[T], None]] = []
        self._children: list[EventStream] = []
        self._disposed = False
        self._parent_disposer: Disposer | None = None

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, value: T) -> None:
        """Push a value to all subscribers."""
        if self._disposed:
            return
        for cb in list(self._subscribers):
            cb(value)

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Register a callback. Returns a function that removes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass  # already removed

        return _unsubscribe

    def map(self, fn: Callable[[T], U]) -> EventStream[U]:
        """Transform events through fn."""
        child: EventStream[U] = EventStream()
        child._parent_disposer = self._track_child(child)
        self.subscribe(lambda v: child.emit(fn(v)))
        return child

    def filter(self, fn: Callable[[T], bool]) -> EventStream[T]:
        """Only pass events where fn returns True."""
        child: EventStream[T] = EventStream()
        child._parent_disposer = self._track_child(child)
        self.subscribe(lambda v: child.emit(v) if fn(v) else None)
        return child

    def dispose(self) -> None:
        """Tear down this stream and all downstream children."""
        self._disposed = True
        self._subscribers.clear()
        for child in list(self._children):
            child.dispose()
        self._children.clear()
        if self._parent_disposer is not None:
            self._parent_disposer()
            self._parent_disposer = None

    def _track_child(self, child: EventStream) -> Disposer:
        self._children.append(child)

        def _remove() -> None:
            try:
                self._children.remove(child)
            except ValueError:
                pass

        return _remove
