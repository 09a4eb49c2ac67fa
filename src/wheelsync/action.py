"""Actions and transactions: batched state mutations.

Wrapping mutations in an @action or `with transaction()` defers reaction
re-runs until the outermost scope exits, so observers never see a partially
applied batch of slot recreations.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, ParamSpec, TypeVar

from wheelsync._tracking import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all observable mutations inside fn."""

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        begin_batch()
        try:
            return fn(*args, **kwargs)
        finally:
            end_batch()

    return wrapper


@contextmanager
def transaction():
    """Context manager for batching mutations.

    Usage:
        with transaction():
            first.set(1)
            second.set(2)
            # reactions fire here, after both are set
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()
