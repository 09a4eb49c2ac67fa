"""Tests for ScrollHandle."""

import pytest

from wheelsync import HandleStateError, ScrollHandle, autorun


class TestPosition:
    def test_initial(self):
        h = ScrollHandle(4)
        assert h.initial_item == 4
        assert h.selected_item == 4

    def test_jump(self):
        h = ScrollHandle()
        h.jump_to_item(7)
        assert h.selected_item == 7
        assert h.last_animation is None

    def test_animate_records_duration(self):
        h = ScrollHandle()
        h.animate_to_item(3, 0.5)
        assert h.selected_item == 3
        assert h.last_animation == (3, 0.5)


class TestAttachment:
    def test_attach_detach(self):
        h = ScrollHandle()
        view = object()
        h.attach(view)
        assert h.is_attached
        assert h.view is view
        h.detach()
        assert not h.is_attached
        assert h.view is None

    def test_second_view_rejected(self):
        h = ScrollHandle()
        h.attach(object())
        with pytest.raises(HandleStateError):
            h.attach(object())

    def test_same_view_reattach_ok(self):
        h = ScrollHandle()
        view = object()
        h.attach(view)
        h.attach(view)
        assert h.view is view

    def test_detach_other_view_ignored(self):
        h = ScrollHandle()
        view = object()
        h.attach(view)
        h.detach(object())
        assert h.is_attached

    def test_attached_is_observable(self):
        h = ScrollHandle()
        seen = []
        r = autorun(lambda: seen.append(h.attached.get()))
        h.attach(object())
        h.detach()
        assert seen == [False, True, False]
        r.dispose()


class TestDispose:
    def test_use_after_dispose(self):
        h = ScrollHandle()
        h.dispose()
        assert h.disposed
        with pytest.raises(HandleStateError):
            h.selected_item
        with pytest.raises(HandleStateError):
            h.jump_to_item(1)
        with pytest.raises(HandleStateError):
            h.attach(object())

    def test_dispose_idempotent(self):
        h = ScrollHandle()
        h.dispose()
        h.dispose()
        assert "disposed" in repr(h)
