"""Snapshot of one slot as seen by callers of the manager."""

from __future__ import annotations

from dataclasses import dataclass, field

from wheelsync.config import WheelConfig
from wheelsync.handle import ScrollHandle


@dataclass(frozen=True)
class WheelState:
    wheel_id: str
    selection: int
    handle: ScrollHandle = field(compare=False)
    config: WheelConfig
    needs_recreation: bool = False

    @classmethod
    def from_config(
        cls,
        config: WheelConfig,
        wheel_id: str | None = None,
        selection: int | None = None,
        handle: ScrollHandle | None = None,
        slot_index: int = 0,
    ) -> WheelState:
        index = config.initial_index if selection is None else selection
        return cls(
            wheel_id=wheel_id or config.wheel_id or f"wheel_{slot_index}",
            selection=index,
            handle=handle if handle is not None else ScrollHandle(index),
            config=config,
        )

    @classmethod
    def with_new_config(
        cls, state: WheelState, config: WheelConfig, preserve_selection: bool = True
    ) -> WheelState:
        """State after applying config: new handle only when recreation is needed."""
        rebuild = state.config.needs_recreation(config)
        selection = config.initial_index
        if preserve_selection:
            selection = (
                min(max(state.selection, 0), config.item_count - 1) if rebuild else state.selection
            )
        return cls(
            wheel_id=state.wheel_id,
            selection=selection,
            handle=ScrollHandle(selection) if rebuild else state.handle,
            config=config,
            needs_recreation=rebuild,
        )

    def is_valid(self) -> bool:
        return (
            self.config.is_valid()
            and 0 <= self.selection < self.config.item_count
            and bool(self.wheel_id)
            and not self.handle.disposed
        )

    def is_consistent_with(self, other: WheelState) -> bool:
        return (
            self.wheel_id == other.wheel_id
            and self.selection == other.selection
            and self.config.item_count == other.config.item_count
        )
