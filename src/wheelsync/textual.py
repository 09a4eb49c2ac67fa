"""Textual integration for wheelsync. Opt-in, requires textual.

Bridges a WheelManager's `changes` stream to a Textual app: effects run only
while the app is running and not paused for widget replacement, NoMatches from
widget queries is swallowed, and calls from a background thread are marshaled
with call_from_thread.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# Keyed by id(app) so several apps can coexist in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend bound effects while wheel widgets are being replaced."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def bind(app, manager, effect):
    """Run effect(change_set) for every manager change the app can safely render.

    Returns a function that removes the binding.
    """
    _main = threading.get_ident()

    def _guarded(change):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, change)
        else:
            _safe(change)

    def _safe(change):
        try:
            effect(change)
        except NoMatches:
            pass

    return manager.changes.subscribe(_guarded)
