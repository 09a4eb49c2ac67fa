"""WheelManager: owner of every slot's configuration, selection and handle.

The manager keeps four parallel lists (configs, selections, wheel ids,
handles) plus the dependency graph, and is the only code allowed to mutate
them. When a driver slot's selection changes, its transitive dependents are
re-evaluated one at a time in topological order, so each one sees the
recreations made upstream in the same pass.

Every public mutating call runs as one operation: its observable writes are
batched in a transaction, `revision` is bumped once, and a ChangeSet is
emitted on `changes` after the state is consistent again. Slot `on_change`
callbacks are deferred to that same point.

Live-interaction failures (bad slot index, failing strategy) are logged and
absorbed. Setup failures (malformed configuration) raise.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Sequence

from wheelsync.action import transaction
from wheelsync.config import PRESENTATION_FIELDS, WheelConfig
from wheelsync.decision import INVALID_INDEX, ChangeSet, RecreationDecision, RecreationRequest
from wheelsync.deferred import DisposalQueue
from wheelsync.dependency import WheelDependency, clamp_selection
from wheelsync.errors import InvalidConfigurationError, WheelSyncError
from wheelsync.graph import DependencyGraph
from wheelsync.handle import DEFAULT_ANIMATION_DURATION, ScrollHandle
from wheelsync.metrics import PerformanceMetrics
from wheelsync.observable import Observable
from wheelsync.pool import DEFAULT_POOL_CAPACITY, HandlePool
from wheelsync.recreation import RecreationEngine
from wheelsync.state import WheelState
from wheelsync.stream import EventStream

logger = logging.getLogger(__name__)

HandleFactory = Callable[[int], ScrollHandle]


class _Pass:
    """Changes accumulated by one public operation."""

    __slots__ = ("operation", "recreated", "updated", "repositioned", "callbacks")

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.recreated: dict[int, None] = {}
        self.updated: dict[int, None] = {}
        self.repositioned: dict[int, None] = {}
        self.callbacks: list[tuple[Callable[[int], None], int, int]] = []

    def change_set(self) -> ChangeSet:
        return ChangeSet(
            self.operation,
            tuple(self.recreated),
            tuple(self.updated),
            tuple(self.repositioned),
        )


def _default_wheel_id(index: int) -> str:
    return f"wheel_{index}"


class WheelManager:
    """Owns slot state and performs selective, dependency-ordered recreation."""

    def __init__(
        self,
        handle_factory: HandleFactory = ScrollHandle,
        pool_capacity: int = DEFAULT_POOL_CAPACITY,
        animation_duration: float = DEFAULT_ANIMATION_DURATION,
    ) -> None:
        self._configs: list[WheelConfig] = []
        self._selections: list[int] = []
        self._wheel_ids: list[str] = []
        self._handles: list[ScrollHandle] = []

        self._graph = DependencyGraph()
        self._engine = RecreationEngine()
        self._pool = HandlePool(pool_capacity)
        self._disposals = DisposalQueue(self._dispose_handle)
        self._handle_factory = handle_factory
        self.animation_duration = animation_duration

        self.metrics = PerformanceMetrics()
        self.revision: Observable[int] = Observable(0)
        self.changes: EventStream[ChangeSet] = EventStream()

        self.handles_created = 0
        self.handles_reused = 0
        self.handles_disposed = 0

        self._pass: _Pass | None = None
        self._disposed = False

    # --- Read-only views ---

    @property
    def configs(self) -> tuple[WheelConfig, ...]:
        return tuple(self._configs)

    @property
    def selections(self) -> tuple[int, ...]:
        return tuple(self._selections)

    @property
    def wheel_ids(self) -> tuple[str, ...]:
        return tuple(self._wheel_ids)

    @property
    def handles(self) -> tuple[ScrollHandle, ...]:
        return tuple(self._handles)

    @property
    def slot_count(self) -> int:
        return len(self._configs)

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def engine(self) -> RecreationEngine:
        return self._engine

    @property
    def pool_size(self) -> int:
        return len(self._pool)

    @property
    def pending_disposals(self) -> int:
        return self._disposals.pending_count()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get_state(self, index: int) -> WheelState | None:
        if not self._in_range(index):
            return None
        return WheelState(
            wheel_id=self._wheel_ids[index],
            selection=self._selections[index],
            handle=self._handles[index],
            config=self._configs[index],
        )

    # --- Operation scope ---

    @contextmanager
    def _operation(self, name: str):
        if self._pass is not None:
            yield self._pass
            return
        current = self._pass = _Pass(name)
        with transaction():
            try:
                yield current
            finally:
                self._pass = None
        # Observers that mutate the manager run as operations of their own.
        change = current.change_set()
        if change:
            self.changes.emit(change)
            self.revision.set(self.revision.peek() + 1)
        for callback, index, value in current.callbacks:
            try:
                callback(value)
            except Exception:
                logger.exception("on_change callback for slot %d failed", index)

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self._configs)

    def _check_index(self, index: int, what: str) -> bool:
        if self._in_range(index):
            return True
        logger.warning("Ignoring %s for out-of-range slot %d (slot count %d)", what, index, len(self._configs))
        return False

    # --- Setup ---

    def initialize(self, slots: Sequence[WheelConfig]) -> None:
        """Replace all state with fresh slots.

        Raises InvalidConfigurationError if any slot has a bad item count,
        initial index or width. Dependencies that cannot be registered are
        logged and leave their slot independent.
        """
        if self._disposed:
            raise WheelSyncError("initialize() called on a disposed WheelManager")
        for i, config in enumerate(slots):
            try:
                config.validate_structure()
            except InvalidConfigurationError as exc:
                raise InvalidConfigurationError(f"slot {i}: {exc}") from exc

        with self._operation("initialize") as op:
            for i, handle in enumerate(self._handles):
                self._retire_handle(i, handle)
            self._configs.clear()
            self._selections.clear()
            self._wheel_ids.clear()
            self._handles.clear()
            self._graph.clear()

            total = len(slots)
            for i, config in enumerate(slots):
                self._configs.append(config)
                self._selections.append(config.initial_index)
                self._wheel_ids.append(config.wheel_id or _default_wheel_id(i))
                self._handles.append(self._acquire_handle(config.initial_index))
                op.recreated[i] = None
                if config.dependency is not None:
                    try:
                        self._graph.register(i, config.dependency, total_slots=total)
                    except InvalidConfigurationError as exc:
                        logger.warning("Slot %d left independent: %s", i, exc)

            if not self._graph.validate(total_slots=total):
                logger.warning("Dependency graph failed validation after initialize")
        logger.debug("Initialized %d slots, %d with dependencies", total, len(self._graph))

    # --- Dependency graph passthrough ---

    def register_dependency(
        self, slot_index: int, dependency: WheelDependency, total_slots: int | None = None
    ) -> None:
        """Register a dependency. Raises on invalid or cyclic declarations."""
        if total_slots is None and self._configs:
            total_slots = len(self._configs)
        self._graph.register(slot_index, dependency, total_slots=total_slots)

    def unregister_dependency(self, slot_index: int) -> None:
        self._graph.unregister(slot_index)

    def dependents_of(self, slot_index: int) -> set[int]:
        return self._graph.dependents_of(slot_index)

    def compute_replacement_config(
        self, slot_index: int, current: WheelConfig, selections: Sequence[int]
    ) -> WheelConfig | None:
        return self._graph.compute_replacement_config(slot_index, current, selections)

    # --- Handle lifecycle ---

    def _acquire_handle(self, initial_item: int) -> ScrollHandle:
        handle = self._pool.acquire(initial_item)
        if handle is not None:
            self.handles_reused += 1
            logger.debug("Reused pooled handle at %d", initial_item)
            return handle
        self.handles_created += 1
        return self._handle_factory(initial_item)

    def _retire_handle(self, index: int, handle: ScrollHandle, pool: bool = True) -> None:
        """Take a handle out of service: defer if attached, else pool or dispose."""
        if handle.disposed:
            return
        if handle.attached.peek():
            self._disposals.request(index, handle)
        elif not (pool and self._pool.offer(handle)):
            self._dispose_handle(handle)

    def _dispose_handle(self, handle: ScrollHandle) -> None:
        if not handle.disposed:
            handle.dispose()
            self.handles_disposed += 1

    def _is_handle_valid(self, index: int) -> bool:
        return 0 <= index < len(self._handles) and not self._handles[index].disposed

    def are_all_handles_valid(self) -> bool:
        return all(not h.disposed for h in self._handles)

    def valid_handle_count(self) -> int:
        return sum(1 for h in self._handles if not h.disposed)

    def flush_disposals(self) -> int:
        """Dispose pending handles that have detached since they were retired."""
        return self._disposals.flush()

    # --- Recreation ---

    def _recreate(self, index: int, new_config: WheelConfig) -> bool:
        """Swap in new_config with a fresh handle. False if nothing was done."""
        current = self._configs[index]
        if not current.needs_recreation(new_config):
            return False
        try:
            new_config.validate_structure()
        except InvalidConfigurationError as exc:
            logger.warning("Skipping recreation of slot %d: %s", index, exc)
            return False

        self._retire_handle(index, self._handles[index])

        if current.dependency is not new_config.dependency:
            self._graph.unregister(index)
            if new_config.dependency is not None:
                try:
                    self._graph.register(index, new_config.dependency, total_slots=len(self._configs))
                except InvalidConfigurationError as exc:
                    logger.warning("Slot %d recreated without its dependency: %s", index, exc)

        self._configs[index] = new_config
        self._wheel_ids[index] = new_config.wheel_id or _default_wheel_id(index)
        self._handles[index] = self._acquire_handle(new_config.initial_index)
        if self._selections[index] != new_config.initial_index:
            self._selections[index] = new_config.initial_index
        if self._pass is not None:
            self._pass.recreated[index] = None
        logger.debug(
            "Recreated slot %d: %d items, initial %d",
            index, new_config.item_count, new_config.initial_index,
        )
        return True

    def _apply_presentation(self, index: int, source: WheelConfig) -> bool:
        current = self._configs[index]
        if all(getattr(current, f) == getattr(source, f) for f in PRESENTATION_FIELDS):
            return False
        self._configs[index] = current.with_presentation_of(source)
        if self._pass is not None:
            self._pass.updated[index] = None
        return True

    def _apply_decision(self, decision: RecreationDecision) -> None:
        index = decision.slot_index
        if decision.needs_recreation and self._engine.validate_decision(decision, len(self._configs)):
            self._recreate(index, decision.new_config)
        elif decision.proposed is not None and self._in_range(index):
            self._apply_presentation(index, decision.proposed)

    def _process(self, order: Iterable[int]) -> None:
        """Evaluate slots one by one against the live selections."""
        for slot in order:
            if not self._in_range(slot):
                continue
            decision = self._engine.should_recreate(
                slot, self._configs[slot], self._selections, self._graph
            )
            self._apply_decision(decision)

    def _cascade(self, drivers: Iterable[int]) -> None:
        """Re-evaluate every transitive dependent of drivers in dependency order."""
        affected: set[int] = set()
        for driver in drivers:
            affected |= self._graph.transitive_dependents_of(driver)
        if not affected:
            return
        order = [s for s in self._graph.topological_order() if s in affected]
        if not order:
            order = sorted(affected)
        self._process(order)

    def recreate(self, index: int, new_config: WheelConfig) -> None:
        """Rebuild slot index with new_config if the general comparison demands it."""
        if not self._check_index(index, "recreate"):
            return
        with self._operation("recreate"), self.metrics.timed():
            old_selection = self._selections[index]
            if self._recreate(index, new_config) and self._selections[index] != old_selection:
                self._cascade([index])

    def recreate_many(
        self,
        indices: Sequence[int] | Sequence[RecreationRequest],
        new_configs: Sequence[WheelConfig] | None = None,
    ) -> None:
        """Recreate several slots in one atomic pass with one notification.

        Accepts parallel `indices`/`new_configs` lists, or a list of
        RecreationRequest objects. Raises ValueError for lists of unequal length.
        """
        if new_configs is None:
            requests = list(indices)
        else:
            if len(indices) != len(new_configs):
                raise ValueError("indices and new_configs must have the same length")
            requests = [
                RecreationRequest(i, c, preserve_selection=False)
                for i, c in zip(indices, new_configs)
            ]

        with self._operation("recreate_many"), self.metrics.timed():
            moved = []
            for request in requests:
                index, config = request.slot_index, request.new_config
                if not self._check_index(index, "recreate_many"):
                    continue
                old_selection = self._selections[index]
                if request.preserve_selection and config.item_count > 0:
                    config = config.replace(
                        initial_index=clamp_selection(old_selection, config.item_count)
                    )
                if self._recreate(index, config):
                    if self._selections[index] != old_selection:
                        moved.append(index)
                else:
                    self._apply_presentation(index, config)
            self._cascade(moved)
        self.metrics.record_batched_recreation()

    def update_config(self, index: int, new_config: WheelConfig) -> None:
        """Recreate on structural change, else apply presentation fields only."""
        if not self._check_index(index, "update_config"):
            return
        current = self._configs[index]
        if current.needs_recreation(new_config):
            self.recreate(index, new_config)
            return
        with self._operation("update_config") as op:
            self._apply_presentation(index, new_config)
            if current.dependency is not new_config.dependency:
                self._graph.unregister(index)
                self._configs[index] = self._configs[index].replace(dependency=new_config.dependency)
                if new_config.dependency is not None:
                    try:
                        self._graph.register(
                            index, new_config.dependency, total_slots=len(self._configs)
                        )
                    except InvalidConfigurationError as exc:
                        logger.warning("Slot %d keeps no dependency: %s", index, exc)
                op.updated[index] = None

    # --- Selection ---

    def _check_value(self, index: int, value: int) -> bool:
        count = self._configs[index].item_count
        if 0 <= value < count:
            return True
        logger.warning("Ignoring selection %d for slot %d with %d items", value, index, count)
        return False

    def update_selection(self, index: int, value: int) -> None:
        """Record a new selection and recreate the dependents it affects."""
        if not self._check_index(index, "update_selection") or not self._check_value(index, value):
            return
        if self._selections[index] == value:
            return
        with self._operation("update_selection") as op, self.metrics.timed():
            self._selections[index] = value
            op.repositioned[index] = None
            on_change = self._configs[index].on_change
            if on_change is not None:
                op.callbacks.append((on_change, index, value))
            self._cascade([index])

    def _reposition(self, index: int, value: int, animate: bool) -> None:
        if not self._is_handle_valid(index):
            logger.warning("Cannot reposition slot %d: handle is disposed", index)
            return
        handle = self._handles[index]
        if animate:
            handle.animate_to_item(value, self.animation_duration)
        else:
            handle.jump_to_item(value)

    def update_position_only(self, index: int, value: int, animate: bool = False) -> None:
        """Fast path for interactive scrolling.

        Slots without dependents only move their handle and selection. Slots
        with dependents fall back to update_selection.
        """
        if not self._check_index(index, "update_position_only") or not self._check_value(index, value):
            return
        self._reposition(index, value, animate)
        if self._graph.has_dependents(index):
            self.update_selection(index, value)
            return
        if self._selections[index] == value:
            return
        with self._operation("update_position_only") as op:
            self._selections[index] = value
            op.repositioned[index] = None

    def update_positions_many(self, updates: dict[int, int], animate: bool = False) -> None:
        """Move several slots at once, then cascade once for all that changed."""
        if not updates:
            return
        with self._operation("update_positions_many") as op, self.metrics.timed():
            changed = []
            for index, value in updates.items():
                if not self._check_index(index, "update_positions_many"):
                    continue
                if not self._check_value(index, value):
                    continue
                self._reposition(index, value, animate)
                if self._selections[index] != value:
                    self._selections[index] = value
                    op.repositioned[index] = None
                    changed.append(index)
            self._cascade(i for i in changed if self._graph.has_dependents(i))

    def can_update_handle_position(self, index: int) -> bool:
        return self._is_handle_valid(index) and self._handles[index].attached.peek()

    def current_handle_position(self, index: int) -> int | None:
        if not self.can_update_handle_position(index):
            return None
        return self._handles[index].selected_item

    # --- Decisions ---

    def recreation_decision(self, index: int) -> RecreationDecision:
        if not self._in_range(index):
            return RecreationDecision.skip(index, INVALID_INDEX)
        return self._engine.should_recreate(
            index, self._configs[index], self._selections, self._graph
        )

    def needs_recreation(self, index: int) -> bool:
        return self.recreation_decision(index).needs_recreation

    def all_recreation_decisions(self) -> list[RecreationDecision]:
        return self._engine.decisions_for_all(self._configs, self._selections, self._graph)

    def recreate_as_needed(self) -> None:
        """Bring every dependent slot in line with the current selections."""
        order = self._graph.topological_order()
        seen = set(order)
        order += [s for s in range(len(self._configs)) if s not in seen]
        with self._operation("recreate_as_needed"), self.metrics.timed():
            self._process(order)

    # --- Consistency ---

    def validate_consistency(self) -> bool:
        n = len(self._configs)
        if not (len(self._handles) == len(self._selections) == len(self._wheel_ids) == n):
            return False
        if not self.are_all_handles_valid():
            return False
        return all(0 <= sel < cfg.item_count for sel, cfg in zip(self._selections, self._configs))

    def repair_inconsistencies(self) -> bool:
        """Best-effort repair. Returns whether the state is consistent afterwards."""
        with self._operation("repair") as op:
            n = min(len(self._configs), len(self._selections), len(self._wheel_ids), len(self._handles))
            for i in range(n, len(self._handles)):
                self._retire_handle(i, self._handles[i])
            del self._handles[n:]
            del self._configs[n:]
            del self._selections[n:]
            del self._wheel_ids[n:]
            for slot in list(self._graph.dependencies()):
                dependency = self._graph.get(slot)
                if slot >= n or any(dep >= n for dep in dependency.depends_on):
                    self._graph.unregister(slot)

            for i in range(n):
                clamped = clamp_selection(self._selections[i], self._configs[i].item_count)
                if clamped != self._selections[i]:
                    self._selections[i] = clamped
                    op.repositioned[i] = None
                if self._handles[i].disposed:
                    self._handles[i] = self._acquire_handle(self._selections[i])
                    op.recreated[i] = None

        ok = self.validate_consistency()
        if not ok:
            logger.warning("State still inconsistent after repair; continuing degraded")
        return ok

    # --- Pool maintenance ---

    def trim_pool(self, max_size: int | None = None) -> None:
        for handle in self._pool.trim(max_size):
            self._dispose_handle(handle)

    def clear_pool(self) -> None:
        for handle in self._pool.drain():
            self._dispose_handle(handle)

    def needs_memory_cleanup(self) -> bool:
        return (
            len(self._pool) > self._pool.capacity * 0.8
            or len(self.metrics.durations) >= self.metrics.window
            or self.metrics.recreation_count > 50
        )

    def perform_memory_cleanup(self) -> None:
        self.trim_pool()
        if len(self.metrics.durations) > 50:
            self.metrics.keep_recent(25)

    def auto_cleanup_memory(self) -> bool:
        if not self.needs_memory_cleanup():
            return False
        self.perform_memory_cleanup()
        return True

    # --- Reports ---

    def _reuse_rate(self) -> float:
        total = self.handles_created + self.handles_reused
        return self.handles_reused / total if total else 0.0

    def performance_report(self) -> dict[str, Any]:
        graph_info = self._graph.info()
        stats = self._engine.stats(self.all_recreation_decisions())
        last = self.metrics.last_recreation_time
        return {
            "recreation_count": self.metrics.recreation_count,
            "batched_recreation_count": self.metrics.batched_recreation_count,
            "average_recreation_ms": self.metrics.average_recreation_ms,
            "total_recreation_ms": self.metrics.total_recreation_time * 1000,
            "last_recreation_time": last.isoformat() if last else None,
            "pool_size": len(self._pool),
            "handles_created": self.handles_created,
            "handles_reused": self.handles_reused,
            "handles_disposed": self.handles_disposed,
            "handle_reuse_rate": self._reuse_rate() * 100,
            "dependency_graph": graph_info,
            "current_recreation_needs": stats,
            "dependent_slot_count": self._graph.dependent_slot_count(),
            "has_cycle": graph_info["has_cycle"],
        }

    def memory_stats(self) -> dict[str, Any]:
        return {
            "active_handles": len(self._handles),
            "pooled_handles": len(self._pool),
            "pending_disposals": self._disposals.pending_count(),
            "slot_count": len(self._configs),
            "efficiency_score": self._efficiency_score(),
        }

    def _efficiency_score(self) -> float:
        """0-100: 40% handle stability, 40% reuse rate, 20% spare pool capacity."""
        capacity = self._pool.capacity
        pool_use = len(self._pool) / capacity if capacity else 0.0
        expected = len(self._configs)
        if expected == 0:
            stability = 1.0
        else:
            delta = abs(len(self._handles) - expected)
            count_match = max(0.0, 1.0 - delta / expected)
            allocated = max(self.handles_created + self.handles_reused, 1)
            disposal_health = max(0.0, 1.0 - self.handles_disposed / allocated)
            stability = count_match * 0.7 + disposal_health * 0.3
        score = stability * 40 + self._reuse_rate() * 40 + (1 - pool_use) * 20
        return min(max(score, 0.0), 100.0)

    # --- Teardown ---

    def dispose(self) -> None:
        """Release every handle and the graph. Safe to call more than once.

        Handles still attached to a view are disposed when they detach.
        """
        if self._disposed:
            return
        self._disposed = True
        for i, handle in enumerate(self._handles):
            self._retire_handle(i, handle, pool=False)
        self.clear_pool()
        self._graph.clear()
        self._configs.clear()
        self._selections.clear()
        self._wheel_ids.clear()
        self._handles.clear()
        self.changes.dispose()
        logger.debug("WheelManager disposed (%d handles pending detach)", self._disposals.pending_count())

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"{len(self._configs)} slots"
        return f"WheelManager({state})"
