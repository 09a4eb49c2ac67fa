"""Dependency declarations between wheel slots."""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence

from wheelsync.strategy import DependencyStrategy, Formatter, FunctionStrategy

logger = logging.getLogger(__name__)


def clamp_selection(current_selection: int, item_count: int) -> int:
    """Keep a selection inside [0, item_count), preferring the last index on overflow."""
    if current_selection < 0:
        return 0
    if current_selection < item_count:
        return current_selection
    return item_count - 1


class WheelDependency:
    """Declares which slots a slot depends on and how to derive its structure.

    `depends_on` is ordered; strategies receive the dependency values in the
    same order. Two declarations are equal when they depend on the same slots,
    since strategies cannot be compared meaningfully.
    """

    __slots__ = ("depends_on", "strategy")

    def __init__(self, depends_on: Sequence[int], strategy: DependencyStrategy) -> None:
        self.depends_on: tuple[int, ...] = tuple(depends_on)
        self.strategy = strategy

    @classmethod
    def of(
        cls,
        depends_on: Sequence[int],
        item_count: Callable[[Sequence[int]], int],
        initial_index: Callable[[Sequence[int], int], int] | None = None,
        formatter: Callable[[Sequence[int]], Formatter] | None = None,
    ) -> WheelDependency:
        """Build a declaration from plain callables."""
        return cls(depends_on, FunctionStrategy(item_count, initial_index, formatter))

    def is_valid(self, total_slots: int | None = None) -> bool:
        if not self.depends_on:
            return False
        if any(not isinstance(i, int) or i < 0 for i in self.depends_on):
            return False
        if len(set(self.depends_on)) != len(self.depends_on):
            return False
        if total_slots is not None and any(i >= total_slots for i in self.depends_on):
            return False
        return True

    def would_create_cycle(
        self, slot_index: int, dependencies: Mapping[int, WheelDependency]
    ) -> bool:
        """True if registering this declaration for slot_index closes a cycle.

        Walks forward edges from slot_index, using this declaration for the
        slot itself and the registered ones for every other slot.
        """
        visited: set[int] = set()
        on_stack: set[int] = set()

        def visit(slot: int) -> bool:
            if slot in on_stack:
                return True
            if slot in visited:
                return False
            visited.add(slot)
            on_stack.add(slot)
            if slot == slot_index:
                edges = self.depends_on
            else:
                existing = dependencies.get(slot)
                edges = existing.depends_on if existing is not None else ()
            for dep in edges:
                if visit(dep):
                    return True
            on_stack.discard(slot)
            return False

        return visit(slot_index)

    def calculate_item_count(self, values: Sequence[int]) -> int | None:
        """Strategy item count, or None if it fails or is not a positive int."""
        if len(values) != len(self.depends_on):
            logger.debug(
                "Dependency value count mismatch: expected %d, got %d",
                len(self.depends_on), len(values),
            )
            return None
        try:
            result = self.strategy.item_count(list(values))
        except Exception as exc:
            logger.warning("Item count calculation failed for %r: %s", self, exc)
            return None
        if isinstance(result, bool) or not isinstance(result, int) or result <= 0:
            logger.warning("Item count calculation returned invalid value %r", result)
            return None
        return result

    def calculate_initial_index(
        self, values: Sequence[int], current_selection: int, new_item_count: int
    ) -> int:
        """Strategy initial index, falling back to the clamp rule. Never raises."""
        fallback = clamp_selection(current_selection, new_item_count)
        if len(values) != len(self.depends_on):
            return fallback
        try:
            result = self.strategy.initial_index(list(values), current_selection)
        except Exception as exc:
            logger.warning("Initial index calculation failed for %r: %s", self, exc)
            return fallback
        if result is None:
            return fallback
        if isinstance(result, bool) or not isinstance(result, int) or not 0 <= result < new_item_count:
            logger.debug("Initial index %r out of bounds for %d items", result, new_item_count)
            return fallback
        return result

    def build_formatter(self, values: Sequence[int]) -> Formatter | None:
        """Strategy formatter for the values. Errors propagate to the caller."""
        return self.strategy.formatter(list(values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WheelDependency):
            return NotImplemented
        return self.depends_on == other.depends_on

    def __hash__(self) -> int:
        return hash(self.depends_on)

    def __repr__(self) -> str:
        return f"WheelDependency(depends_on={list(self.depends_on)}, strategy={self.strategy!r})"
