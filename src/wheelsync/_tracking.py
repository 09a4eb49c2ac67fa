"""Read tracking and notification batching for the reactive layer.

A reaction evaluating its data function is published in a contextvar; every
Observable.get() made while it is set records the observable as a dependency.

Batching: mutations inside an @action or `with transaction()` collect the
reactions they invalidate and run each of them once when the outermost scope
exits. Manager batch operations rely on this so subscribers never see a
half-applied pass.
"""

from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wheelsync.reaction import Reaction

current_reaction: contextvars.ContextVar[Reaction | None] = contextvars.ContextVar(
    "current_reaction", default=None
)

_batch_depth: int = 0

# Reactions invalidated during a batch, in first-invalidated order.
_pending: dict[Reaction, None] = {}


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. The outermost exit flushes pending reactions."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0:
        _flush_pending()


def schedule(reaction: Reaction) -> None:
    """Run a reaction now, or defer it to the end of the current batch."""
    if _batch_depth > 0:
        _pending[reaction] = None
    else:
        reaction._run()


def _flush_pending() -> None:
    # Reactions may invalidate others while running; keep draining.
    while _pending:
        batch = list(_pending)
        _pending.clear()
        for reaction in batch:
            reaction._run()


def get_pending_count() -> int:
    """Number of reactions waiting for the current batch to close."""
    return len(_pending)
