"""Tests for WheelManager."""

import logging

import pytest

from wheelsync import (
    CircularDependencyError,
    DaysInMonth,
    InvalidConfigurationError,
    RecreationRequest,
    WheelConfig,
    WheelDependency,
    WheelManager,
    WheelSyncError,
    autorun,
    reaction,
)

DAY, MONTH, YEAR = 0, 1, 2


def _date_slots(zero_pad=False, on_month_change=None):
    return [
        WheelConfig(
            item_count=31,
            initial_index=30,
            wheel_id="day",
            dependency=WheelDependency([MONTH, YEAR], DaysInMonth(zero_pad=zero_pad)),
        ),
        WheelConfig(item_count=12, wheel_id="month", on_change=on_month_change),
        WheelConfig(item_count=50, initial_index=24, wheel_id="year"),
    ]


def _manager(**kwargs):
    m = WheelManager()
    m.initialize(_date_slots(**kwargs))
    return m


def _record(m):
    seen = []
    m.changes.subscribe(seen.append)
    return seen


class TestInitialize:
    def test_state(self):
        m = _manager()
        assert m.slot_count == 3
        assert m.selections == (30, 0, 24)
        assert m.wheel_ids == ("day", "month", "year")
        assert len({id(h) for h in m.handles}) == 3
        assert m.graph.has_dependency(DAY)
        assert m.handles_created == 3
        assert m.validate_consistency()

    def test_emits_one_change(self):
        m = WheelManager()
        seen = _record(m)
        m.initialize(_date_slots())
        assert [c.operation for c in seen] == ["initialize"]
        assert seen[0].recreated == (0, 1, 2)
        assert m.revision.get() == 1

    def test_default_wheel_ids(self):
        m = WheelManager()
        m.initialize([WheelConfig(item_count=3), WheelConfig(item_count=4)])
        assert m.wheel_ids == ("wheel_0", "wheel_1")

    def test_invalid_slot_raises(self):
        m = _manager()
        with pytest.raises(InvalidConfigurationError, match="slot 1"):
            m.initialize([WheelConfig(item_count=3), WheelConfig(item_count=3, initial_index=3)])
        assert m.slot_count == 3

    def test_bad_dependency_leaves_slot_independent(self, caplog):
        m = WheelManager()
        bad = WheelConfig(item_count=5, dependency=WheelDependency.of([7], lambda v: 5))
        with caplog.at_level(logging.WARNING, logger="wheelsync.manager"):
            m.initialize([bad, WheelConfig(item_count=3)])
        assert not m.graph.has_dependency(0)
        assert "Slot 0 left independent" in caplog.text

    def test_reinitialize_reuses_handles(self):
        m = _manager()
        old = set(map(id, m.handles))
        m.initialize(_date_slots())
        assert set(map(id, m.handles)) == old
        assert m.handles_reused == 3

    def test_disposed_manager_rejects_initialize(self):
        m = _manager()
        m.dispose()
        with pytest.raises(WheelSyncError):
            m.initialize(_date_slots())

    def test_get_state(self):
        m = _manager()
        state = m.get_state(YEAR)
        assert state.wheel_id == "year"
        assert state.selection == 24
        assert state.handle is m.handles[YEAR]
        assert m.get_state(9) is None


class TestUpdateSelection:
    def test_cascade_recreates_dependent(self):
        m = _manager()
        seen = _record(m)
        day_handle = m.handles[DAY]
        m.update_selection(MONTH, 1)
        assert m.configs[DAY].item_count == 29
        assert m.selections[DAY] == 28
        assert m.handles[DAY] is not day_handle
        assert m.handles[DAY].initial_item == 28
        assert len(seen) == 1
        assert seen[0].recreated == (DAY,)
        assert seen[0].repositioned == (MONTH,)

    def test_unchanged_value_is_noop(self):
        m = _manager()
        seen = _record(m)
        m.update_selection(MONTH, 0)
        assert seen == []

    def test_same_item_count_keeps_handle(self):
        m = _manager()
        day_handle = m.handles[DAY]
        m.update_selection(MONTH, 2)
        assert m.handles[DAY] is day_handle
        assert m.configs[DAY].item_count == 31
        assert m.selections[DAY] == 30

    def test_strategy_formatter_applied_without_recreation(self):
        m = _manager(zero_pad=True)
        seen = _record(m)
        day_handle = m.handles[DAY]
        m.update_selection(MONTH, 2)
        assert m.handles[DAY] is day_handle
        assert m.configs[DAY].formatter(0) == "01"
        assert seen[0].updated == (DAY,)
        assert seen[0].recreated == ()

    def test_out_of_range_slot_logged(self, caplog):
        m = _manager()
        with caplog.at_level(logging.WARNING, logger="wheelsync.manager"):
            m.update_selection(7, 1)
        assert "out-of-range slot 7" in caplog.text

    def test_out_of_range_value_ignored(self, caplog):
        m = _manager()
        with caplog.at_level(logging.WARNING, logger="wheelsync.manager"):
            m.update_selection(MONTH, 12)
        assert m.selections[MONTH] == 0
        assert "Ignoring selection 12" in caplog.text

    def test_on_change_called_after_pass(self):
        calls = []
        m = WheelManager()
        m.initialize(_date_slots(on_month_change=lambda v: calls.append((v, m.configs[DAY].item_count))))
        m.update_selection(MONTH, 1)
        assert calls == [(1, 29)]

    def test_on_change_error_logged(self, caplog):
        def boom(value):
            raise RuntimeError("callback failed")

        m = _manager(on_month_change=boom)
        with caplog.at_level(logging.ERROR, logger="wheelsync.manager"):
            m.update_selection(MONTH, 1)
        assert m.selections[MONTH] == 1
        assert "on_change callback for slot 1 failed" in caplog.text

    def test_revision_bumps_once_per_operation(self):
        m = _manager()
        seen = []
        r = reaction(lambda: m.revision.get(), seen.append)
        m.update_selection(MONTH, 1)
        assert seen == [2]
        r.dispose()

    def test_reactions_see_finished_pass(self):
        m = _manager()
        counts = []
        r = autorun(lambda: (m.revision.get(), counts.append(m.configs[DAY].item_count)))
        m.update_selection(MONTH, 1)
        assert counts == [31, 29]
        r.dispose()

    def test_mutation_from_revision_observer_is_reported(self):
        m = WheelManager()
        m.initialize([WheelConfig(item_count=10), WheelConfig(item_count=10)])
        seen = _record(m)
        start = m.revision.peek()
        r = reaction(lambda: m.revision.get(), lambda _: m.update_selection(1, m.selections[0]))
        m.update_selection(0, 5)
        assert m.selections == (5, 5)
        assert m.revision.peek() == start + 2
        assert [c.repositioned for c in seen] == [(0,), (1,)]
        r.dispose()


class TestPositionOnly:
    def test_slot_without_dependents(self):
        m = _manager()
        seen = _record(m)
        m.update_position_only(DAY, 5)
        assert m.selections[DAY] == 5
        assert m.handles[DAY].selected_item == 5
        assert [c.operation for c in seen] == ["update_position_only"]

    def test_driver_falls_back_to_update_selection(self):
        m = _manager()
        m.update_position_only(MONTH, 1, animate=True)
        assert m.handles[MONTH].last_animation == (1, m.animation_duration)
        assert m.configs[DAY].item_count == 29

    def test_many(self):
        m = _manager()
        seen = _record(m)
        m.update_positions_many({MONTH: 1, YEAR: 23})
        assert m.configs[DAY].item_count == 28
        assert m.selections[DAY] == 27
        assert len(seen) == 1
        assert seen[0].recreated == (DAY,)
        assert set(seen[0].repositioned) == {MONTH, YEAR}

    def test_handle_position(self):
        m = _manager()
        assert not m.can_update_handle_position(DAY)
        assert m.current_handle_position(DAY) is None
        m.handles[DAY].attach(object())
        assert m.can_update_handle_position(DAY)
        assert m.current_handle_position(DAY) == 30


class TestRecreate:
    def test_recreate(self):
        m = _manager()
        old = m.handles[YEAR]
        m.recreate(YEAR, WheelConfig(item_count=60, initial_index=10, wheel_id="year"))
        assert m.configs[YEAR].item_count == 60
        assert m.selections[YEAR] == 10
        assert m.handles[YEAR] is not old
        assert m.pool_size == 1

    def test_recreate_cascades_when_selection_moves(self):
        m = _manager()
        m.update_selection(MONTH, 1)
        m.recreate(YEAR, WheelConfig(item_count=60, initial_index=23, wheel_id="year"))
        assert m.configs[DAY].item_count == 28

    def test_same_structure_is_noop(self):
        m = _manager()
        seen = _record(m)
        old = m.handles[YEAR]
        m.recreate(YEAR, WheelConfig(item_count=50, initial_index=3, wheel_id="year"))
        assert m.handles[YEAR] is old
        assert seen == []

    def test_invalid_config_skipped(self, caplog):
        m = _manager()
        with caplog.at_level(logging.WARNING, logger="wheelsync.manager"):
            m.recreate(YEAR, WheelConfig(item_count=5, initial_index=9))
        assert m.configs[YEAR].item_count == 50
        assert "Skipping recreation of slot 2" in caplog.text

    def test_recreate_many_lists(self):
        m = _manager()
        m.update_selection(MONTH, 1)
        seen = _record(m)
        m.recreate_many([YEAR], [WheelConfig(item_count=60, initial_index=23, wheel_id="year")])
        assert m.selections[YEAR] == 23
        assert m.configs[DAY].item_count == 28
        assert len(seen) == 1
        assert seen[0].recreated == (YEAR, DAY)
        assert m.metrics.batched_recreation_count == 1

    def test_recreate_many_length_mismatch(self):
        m = _manager()
        with pytest.raises(ValueError):
            m.recreate_many([0, 1], [WheelConfig(item_count=3)])

    def test_recreate_many_requests_preserve_selection(self):
        m = _manager()
        m.recreate_many([RecreationRequest(YEAR, WheelConfig(item_count=10, wheel_id="year"))])
        assert m.configs[YEAR].item_count == 10
        assert m.selections[YEAR] == 9

    def test_recreate_many_presentation_only(self):
        m = _manager()
        old = m.handles[MONTH]
        m.recreate_many([RecreationRequest(MONTH, m.configs[MONTH].replace(width=120.0))])
        assert m.handles[MONTH] is old
        assert m.configs[MONTH].width == 120.0


class TestUpdateConfig:
    def test_presentation_only(self):
        m = _manager()
        seen = _record(m)
        old = m.handles[MONTH]
        m.update_config(MONTH, m.configs[MONTH].replace(width=90.0, leading="<"))
        assert m.handles[MONTH] is old
        assert m.configs[MONTH].width == 90.0
        assert m.configs[MONTH].leading == "<"
        assert seen[0].updated == (MONTH,)

    def test_structural_change_recreates(self):
        m = _manager()
        old = m.handles[YEAR]
        m.update_config(YEAR, m.configs[YEAR].replace(item_count=80))
        assert m.handles[YEAR] is not old

    def test_dependency_removed(self):
        m = _manager()
        m.update_config(DAY, m.configs[DAY].replace(dependency=None))
        assert not m.graph.has_dependency(DAY)
        assert m.configs[DAY].dependency is None
        m.update_selection(MONTH, 1)
        assert m.configs[DAY].item_count == 31


class TestDependencies:
    def test_register_cycle_rejected(self):
        m = _manager()
        with pytest.raises(CircularDependencyError):
            m.register_dependency(MONTH, WheelDependency.of([DAY], lambda v: 12))
        assert not m.graph.has_dependency(MONTH)

    def test_register_out_of_bounds(self):
        m = _manager()
        with pytest.raises(InvalidConfigurationError):
            m.register_dependency(MONTH, WheelDependency.of([5], lambda v: 12))

    def test_dependents_of(self):
        m = _manager()
        assert m.dependents_of(MONTH) == {DAY}
        m.unregister_dependency(DAY)
        assert m.dependents_of(MONTH) == set()

    def test_decisions_and_recreate_as_needed(self):
        m = WheelManager()
        m.initialize([WheelConfig(item_count=12, initial_index=1), WheelConfig(item_count=31)])
        m.register_dependency(1, WheelDependency.of([0], lambda v: 28 if v[0] == 1 else 31))
        assert m.needs_recreation(1)
        assert not m.needs_recreation(0)
        assert m.recreation_decision(5).reason == "invalid slot index"
        assert [d.needs_recreation for d in m.all_recreation_decisions()] == [False, True]
        m.recreate_as_needed()
        assert m.configs[1].item_count == 28
        assert not m.needs_recreation(1)

    def test_compute_replacement_config(self):
        m = _manager()
        new = m.compute_replacement_config(DAY, m.configs[DAY], [0, 1, 23])
        assert new.item_count == 28


class TestHandles:
    def test_attached_handle_disposed_after_detach(self):
        m = _manager()
        old = m.handles[DAY]
        old.attach(object())
        m.update_selection(MONTH, 1)
        assert not old.disposed
        assert m.pending_disposals == 1
        assert m.pool_size == 0
        old.detach()
        assert old.disposed
        assert m.pending_disposals == 0
        assert m.handles_disposed == 1

    def test_detached_handle_pooled(self):
        m = _manager()
        old = m.handles[DAY]
        m.update_selection(MONTH, 1)
        assert m.pool_size == 1
        assert not old.disposed

    def test_repair_replaces_disposed_handle(self):
        m = _manager()
        m.handles[MONTH].dispose()
        assert not m.validate_consistency()
        assert not m.are_all_handles_valid()
        assert m.valid_handle_count() == 2
        assert m.repair_inconsistencies()
        assert not m.handles[MONTH].disposed
        assert m.validate_consistency()

    def test_repair_trims_to_shortest_list(self):
        m = _manager()
        year_handle = m.handles[YEAR]
        del m._configs[YEAR]
        assert not m.validate_consistency()
        assert m.repair_inconsistencies()
        assert m.slot_count == 2
        assert len(m.handles) == len(m.selections) == len(m.wheel_ids) == 2
        assert not year_handle.disposed
        assert m.pool_size == 1
        assert not m.graph.has_dependency(DAY)
        assert m.dependents_of(MONTH) == set()

    def test_repair_clamps_selection(self):
        m = _manager()
        seen = _record(m)
        m._selections[MONTH] = 99
        assert not m.validate_consistency()
        assert m.repair_inconsistencies()
        assert m.selections[MONTH] == 11
        assert seen[0].repositioned == (MONTH,)


class TestMemory:
    def _churn(self):
        m = WheelManager(pool_capacity=2)
        m.initialize([WheelConfig(item_count=5)])
        m.recreate(0, WheelConfig(item_count=6, initial_index=1))
        m.recreate(0, WheelConfig(item_count=7, initial_index=2))
        return m

    def test_auto_cleanup(self):
        m = self._churn()
        assert m.pool_size == 2
        assert m.needs_memory_cleanup()
        assert m.auto_cleanup_memory()
        assert m.pool_size == 1
        assert m.handles_disposed == 1
        assert not m.auto_cleanup_memory()

    def test_clear_pool(self):
        m = self._churn()
        m.clear_pool()
        assert m.pool_size == 0
        assert m.handles_disposed == 2

    def test_reports(self):
        m = _manager()
        m.update_selection(MONTH, 1)
        report = m.performance_report()
        assert report["recreation_count"] == 1
        assert report["handles_created"] == 4
        assert report["dependent_slot_count"] == 1
        assert report["has_cycle"] is False
        assert report["current_recreation_needs"].recreation_count == 0
        stats = m.memory_stats()
        assert stats["active_handles"] == 3
        assert stats["pooled_handles"] == 1
        assert 0.0 <= stats["efficiency_score"] <= 100.0


class TestDispose:
    def test_dispose(self):
        m = _manager()
        attached = m.handles[DAY]
        attached.attach(object())
        others = m.handles[1:]
        m.dispose()
        assert m.disposed
        assert m.slot_count == 0
        assert all(h.disposed for h in others)
        assert not attached.disposed
        assert m.changes.disposed
        attached.detach()
        assert attached.disposed
        m.dispose()
