"""Dependency graph between wheel slots.

Keeps two maps in step:
- forward: slot -> WheelDependency (what the slot depends on)
- reverse: slot -> set of slots that depend on it

The forward relation is kept acyclic at registration time; detect_cycle() and
topological_order() still guard against cycles for graph-wide validation.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from wheelsync.config import WheelConfig
from wheelsync.dependency import WheelDependency
from wheelsync.errors import CircularDependencyError, InvalidConfigurationError

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Directed acyclic graph of slot dependencies."""

    def __init__(self) -> None:
        self._forward: dict[int, WheelDependency] = {}
        self._reverse: dict[int, set[int]] = {}

    def __len__(self) -> int:
        return len(self._forward)

    # --- Registration ---

    def register(
        self,
        slot_index: int,
        dependency: WheelDependency,
        total_slots: int | None = None,
    ) -> None:
        """Declare that slot_index depends on dependency.depends_on.

        Replaces any earlier declaration for the slot. Raises
        InvalidConfigurationError for a malformed declaration and
        CircularDependencyError if the new edges would close a cycle; the
        graph is left untouched in both cases.
        """
        if not dependency.is_valid(total_slots):
            raise InvalidConfigurationError(
                f"Invalid dependency for slot {slot_index}: {list(dependency.depends_on)}"
            )
        if slot_index in dependency.depends_on or dependency.would_create_cycle(
            slot_index, self._forward
        ):
            raise CircularDependencyError(slot_index, dependency.depends_on)

        self.unregister(slot_index)
        self._forward[slot_index] = dependency
        for dep in dependency.depends_on:
            self._reverse.setdefault(dep, set()).add(slot_index)
        logger.debug("Registered slot %d -> %s", slot_index, list(dependency.depends_on))

    def unregister(self, slot_index: int) -> None:
        existing = self._forward.pop(slot_index, None)
        if existing is None:
            return
        for dep in existing.depends_on:
            dependents = self._reverse.get(dep)
            if dependents is None:
                continue
            dependents.discard(slot_index)
            if not dependents:
                del self._reverse[dep]
        logger.debug("Unregistered slot %d", slot_index)

    def clear(self) -> None:
        self._forward.clear()
        self._reverse.clear()

    # --- Queries ---

    def get(self, slot_index: int) -> WheelDependency | None:
        return self._forward.get(slot_index)

    def dependencies(self) -> dict[int, WheelDependency]:
        """Copy of the forward map."""
        return dict(self._forward)

    def dependents_of(self, slot_index: int) -> set[int]:
        return set(self._reverse.get(slot_index, ()))

    def transitive_dependents_of(self, slot_index: int) -> set[int]:
        """Every slot reachable through reverse edges from slot_index."""
        found: set[int] = set()
        frontier = [slot_index]
        while frontier:
            for dependent in self._reverse.get(frontier.pop(), ()):
                if dependent not in found:
                    found.add(dependent)
                    frontier.append(dependent)
        found.discard(slot_index)
        return found

    def has_dependency(self, slot_index: int) -> bool:
        return slot_index in self._forward

    def has_dependents(self, slot_index: int) -> bool:
        return bool(self._reverse.get(slot_index))

    def dependent_slot_count(self) -> int:
        """Number of slots that declare a dependency."""
        return len(self._forward)

    def known_slots(self) -> list[int]:
        """Every slot that has a dependency or dependents, in first-seen order."""
        return list(dict.fromkeys([*self._forward, *self._reverse]))

    # --- Graph-wide checks ---

    def detect_cycle(self) -> bool:
        visited: set[int] = set()
        on_stack: set[int] = set()

        def visit(slot: int) -> bool:
            if slot in on_stack:
                return True
            if slot in visited:
                return False
            visited.add(slot)
            on_stack.add(slot)
            dependency = self._forward.get(slot)
            if dependency is not None:
                for dep in dependency.depends_on:
                    if visit(dep):
                        return True
            on_stack.discard(slot)
            return False

        return any(visit(slot) for slot in list(self._forward) if slot not in visited)

    def topological_order(self) -> list[int]:
        """Slots ordered so every dependency precedes its dependents.

        Empty if the graph somehow contains a cycle.
        """
        if self.detect_cycle():
            logger.warning("Cannot order dependency graph: cycle detected")
            return []

        visited: set[int] = set()
        order: list[int] = []

        def visit(slot: int) -> None:
            if slot in visited:
                return
            visited.add(slot)
            dependency = self._forward.get(slot)
            if dependency is not None:
                for dep in dependency.depends_on:
                    visit(dep)
            order.append(slot)

        for slot in self.known_slots():
            visit(slot)
        return order

    def validate(self, total_slots: int | None = None) -> bool:
        """Check every declaration and the absence of cycles."""
        for slot, dependency in self._forward.items():
            if not dependency.is_valid(total_slots):
                logger.warning("Invalid dependency for slot %d", slot)
                return False
            if slot in dependency.depends_on:
                logger.warning("Slot %d depends on itself", slot)
                return False
        if self.detect_cycle():
            logger.warning("Circular dependency detected in graph")
            return False
        return True

    # --- Replacement computation ---

    def compute_replacement_config(
        self,
        slot_index: int,
        current: WheelConfig,
        selections: Sequence[int],
    ) -> WheelConfig | None:
        """The configuration slot_index should have for these selections.

        None if the slot has no dependency, a dependency index is out of
        range, or the strategy fails. Fields other than item count, initial
        index and (when the strategy supplies one) formatter are copied from
        current.
        """
        dependency = self._forward.get(slot_index)
        if dependency is None:
            return None

        values = []
        for dep in dependency.depends_on:
            if not 0 <= dep < len(selections):
                logger.debug("Dependency index %d out of range for slot %d", dep, slot_index)
                return None
            values.append(selections[dep])

        item_count = dependency.calculate_item_count(values)
        if item_count is None:
            return None

        current_selection = selections[slot_index] if 0 <= slot_index < len(selections) else 0
        initial_index = dependency.calculate_initial_index(values, current_selection, item_count)
        try:
            formatter = dependency.build_formatter(values)
        except Exception as exc:
            logger.warning("Formatter calculation failed for slot %d: %s", slot_index, exc)
            return None

        return current.replace(
            item_count=item_count,
            initial_index=initial_index,
            formatter=formatter if formatter is not None else current.formatter,
        )

    def info(self) -> dict[str, Any]:
        """Summary of the graph for debugging and reports."""
        return {
            "slot_count": len(self._forward),
            "edge_count": sum(len(d.depends_on) for d in self._forward.values()),
            "has_cycle": self.detect_cycle(),
            "topological_order": self.topological_order(),
            "dependencies": {s: list(d.depends_on) for s, d in self._forward.items()},
            "dependents": {s: sorted(d) for s, d in self._reverse.items()},
        }
