"""Observable values: state that knows who read it.

When an Observable is read while a reaction is evaluating, the reaction is
registered as an observer. Setting a different value schedules every observer.
The manager publishes its revision counter and every ScrollHandle publishes
its attachment flag this way.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from wheelsync._tracking import current_reaction, schedule

T = TypeVar("T")


class Observable(Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_value", "_observers")

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: set = set()

    def get(self) -> T:
        """Read the value. Inside a reaction, registers the dependency."""
        reaction = current_reaction.get()
        if reaction is not None:
            self._observers.add(reaction)
            reaction._dependencies.add(self)
        return self._value

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    def set(self, value: T) -> None:
        old = self._value
        if old is not value and old != value:
            self._value = value
            self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def __repr__(self) -> str:
        return f"Observable({self._value!r})"
