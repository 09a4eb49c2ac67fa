"""Scroll-position handles: the per-slot state a rendered wheel attaches to.

A handle remembers the position it was created at, tracks the currently
selected item, and publishes whether a view is attached through an
Observable, so pending disposals can react to detachment.
"""

from __future__ import annotations

from wheelsync.errors import HandleStateError
from wheelsync.observable import Observable

DEFAULT_ANIMATION_DURATION = 0.2  # seconds


class ScrollHandle:
    """Position state for one wheel, attachable to at most one view at a time."""

    def __init__(self, initial_item: int = 0) -> None:
        self._initial_item = initial_item
        self._selected_item = initial_item
        self._view = None
        self._attached: Observable[bool] = Observable(False)
        self._disposed = False
        self.last_animation: tuple[int, float] | None = None

    def _check(self) -> None:
        if self._disposed:
            raise HandleStateError(f"{self!r} used after dispose()")

    @property
    def initial_item(self) -> int:
        self._check()
        return self._initial_item

    @property
    def selected_item(self) -> int:
        self._check()
        return self._selected_item

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def attached(self) -> Observable[bool]:
        return self._attached

    @property
    def is_attached(self) -> bool:
        return self._attached.get()

    @property
    def view(self):
        return self._view

    def attach(self, view) -> None:
        self._check()
        if self._view is not None and self._view is not view:
            raise HandleStateError(f"{self!r} is already attached to {self._view!r}")
        self._view = view
        self._attached.set(True)

    def detach(self, view=None) -> None:
        """Release the attached view. A view other than the current one is ignored."""
        if view is not None and view is not self._view:
            return
        self._view = None
        self._attached.set(False)

    def jump_to_item(self, item: int) -> None:
        self._check()
        self._selected_item = item
        self.last_animation = None

    def animate_to_item(self, item: int, duration: float = DEFAULT_ANIMATION_DURATION) -> None:
        """Record an animated move; the renderer owns the actual animation."""
        self._check()
        self._selected_item = item
        self.last_animation = (item, duration)

    def dispose(self) -> None:
        self._disposed = True
        self._view = None

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else ("attached" if self._attached.peek() else "detached")
        return f"ScrollHandle(initial={self._initial_item}, selected={self._selected_item}, {state})"
