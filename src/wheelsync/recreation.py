"""Recreation decisions: does a dependent slot need rebuilding?

Only a change in item count drives a dependency-based recreation. A computed
replacement with the same item count is returned as `proposed` so the caller
can apply its presentation fields without touching the handle.
"""

from __future__ import annotations

import logging
from typing import Sequence

from wheelsync.config import WheelConfig
from wheelsync.decision import (
    CALCULATION_FAILED,
    NO_DEPENDENCY,
    UNCHANGED,
    RecreationDecision,
    RecreationStats,
)
from wheelsync.dependency import WheelDependency, clamp_selection
from wheelsync.graph import DependencyGraph

logger = logging.getLogger(__name__)


class RecreationEngine:
    """Stateless decision logic over a DependencyGraph."""

    def should_recreate(
        self,
        slot_index: int,
        current: WheelConfig,
        selections: Sequence[int],
        graph: DependencyGraph,
    ) -> RecreationDecision:
        """Decide for one slot. Never raises; failures become "calculation failed"."""
        if not graph.has_dependency(slot_index):
            return RecreationDecision.skip(slot_index, NO_DEPENDENCY)
        try:
            proposed = graph.compute_replacement_config(slot_index, current, selections)
        except Exception:
            logger.exception("Replacement computation raised for slot %d", slot_index)
            proposed = None
        if proposed is None:
            return RecreationDecision.skip(slot_index, CALCULATION_FAILED)
        if proposed.item_count == current.item_count:
            return RecreationDecision.skip(slot_index, UNCHANGED, proposed)
        logger.debug(
            "Slot %d needs recreation: item count %d -> %d",
            slot_index, current.item_count, proposed.item_count,
        )
        return RecreationDecision.rebuild(
            slot_index,
            proposed,
            f"item count changed: {current.item_count} -> {proposed.item_count}",
        )

    def decisions_for_change(
        self,
        changed_slot: int,
        configs: Sequence[WheelConfig],
        selections: Sequence[int],
        graph: DependencyGraph,
    ) -> list[RecreationDecision]:
        """Decisions for the dependents of changed_slot, in dependency order."""
        dependents = graph.dependents_of(changed_slot)
        order = [s for s in graph.topological_order() if s in dependents] or sorted(dependents)
        decisions = [
            self.should_recreate(slot, configs[slot], selections, graph)
            for slot in order
            if 0 <= slot < len(configs)
        ]
        logger.debug(
            "Slot %d changed: %d dependents checked, %d need recreation",
            changed_slot, len(decisions), sum(d.needs_recreation for d in decisions),
        )
        return decisions

    def decisions_for_all(
        self,
        configs: Sequence[WheelConfig],
        selections: Sequence[int],
        graph: DependencyGraph,
    ) -> list[RecreationDecision]:
        """One decision per slot, in slot order."""
        return [
            self.should_recreate(slot, config, selections, graph)
            for slot, config in enumerate(configs)
        ]

    def validate_decision(self, decision: RecreationDecision, slot_count: int) -> bool:
        if not 0 <= decision.slot_index < slot_count:
            logger.warning("Decision for out-of-range slot %d", decision.slot_index)
            return False
        if decision.needs_recreation:
            if decision.new_config is None:
                logger.warning("Decision for slot %d lacks a configuration", decision.slot_index)
                return False
            if not decision.new_config.is_valid():
                logger.warning("Decision for slot %d carries an invalid configuration", decision.slot_index)
                return False
        return True

    def optimal_initial_index(
        self,
        current_selection: int,
        new_item_count: int,
        dependency: WheelDependency | None = None,
        values: Sequence[int] | None = None,
    ) -> int:
        if dependency is not None and values is not None:
            return dependency.calculate_initial_index(values, current_selection, new_item_count)
        return clamp_selection(current_selection, max(new_item_count, 1))

    def stats(self, decisions: Sequence[RecreationDecision]) -> RecreationStats:
        if not decisions:
            return RecreationStats()
        count = sum(1 for d in decisions if d.needs_recreation)
        reasons: dict[str, int] = {}
        for d in decisions:
            key = "Recreation needed" if d.needs_recreation else "No recreation"
            reasons[key] = reasons.get(key, 0) + 1
        return RecreationStats(
            total=len(decisions),
            recreation_count=count,
            recreation_rate=count / len(decisions) * 100,
            reasons=reasons,
        )
