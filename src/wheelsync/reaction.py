"""Reactions: side effects driven by observable changes.

- autorun(fn): runs fn immediately and again whenever an observable it read changes.
- reaction(data_fn, effect_fn): tracks data_fn and calls effect_fn with the new
  value only when data_fn's result changes.

Consumers of a WheelManager subscribe to `manager.revision` with these instead
of relying on implicitly reactive lists.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from wheelsync._tracking import current_reaction

T = TypeVar("T")

_UNSET = object()


class Reaction:
    """Tracks the observables read by data_fn and re-runs when they change.

    With effect_fn=None the reaction behaves like autorun: data_fn is the side
    effect. Otherwise effect_fn receives data_fn's value whenever it differs
    from the previous one.
    """

    __slots__ = ("_data_fn", "_effect_fn", "_dependencies", "_disposed", "_last_value")

    def __init__(
        self,
        data_fn: Callable[[], T],
        effect_fn: Callable[[T], None] | None = None,
    ) -> None:
        self._data_fn = data_fn
        self._effect_fn = effect_fn
        self._dependencies: set = set()
        self._disposed = False
        self._last_value = _UNSET

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _track(self):
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_reaction.set(self)
        try:
            return self._data_fn()
        finally:
            current_reaction.reset(token)

    def _run(self) -> None:
        if self._disposed:
            return
        value = self._track()
        if self._effect_fn is None:
            return
        if self._last_value is _UNSET or value != self._last_value:
            self._last_value = value
            self._effect_fn(value)

    def _prime(self) -> None:
        """Establish dependencies and remember the value without firing the effect."""
        self._last_value = self._track()

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self._disposed = True
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._data_fn, "__name__", "fn")
        return f"Reaction({name}, {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn now, then again whenever any observable it reads changes.

    Usage:
        revision = Observable(0)
        seen = []
        r = autorun(lambda: seen.append(revision.get()))
        revision.set(1)     # seen == [0, 1]
        r.dispose()
    """
    r = Reaction(fn)
    r._run()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's observables; call effect_fn when its result changes.

    Usage:
        r = reaction(
            lambda: manager.revision.get(),
            lambda _: redraw(manager.selections),
        )
    """
    r = Reaction(data_fn, effect_fn)
    if fire_immediately:
        r._run()
    else:
        r._prime()
    return r
