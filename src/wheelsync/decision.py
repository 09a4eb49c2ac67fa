"""Value objects exchanged between the recreation engine and the manager."""

from __future__ import annotations

from dataclasses import dataclass, field

from wheelsync.config import WheelConfig

NO_DEPENDENCY = "no dependency"
CALCULATION_FAILED = "calculation failed"
UNCHANGED = "unchanged"
INVALID_INDEX = "invalid slot index"


@dataclass(frozen=True)
class RecreationDecision:
    """Whether one slot must be rebuilt and, if so, with what configuration.

    `proposed` carries a computed replacement even when the item count did
    not change, so the caller can still apply its presentation fields.
    """

    slot_index: int
    needs_recreation: bool
    new_config: WheelConfig | None = None
    reason: str = ""
    proposed: WheelConfig | None = field(default=None, compare=False, repr=False)

    @classmethod
    def skip(cls, slot_index: int, reason: str, proposed: WheelConfig | None = None):
        return cls(slot_index, False, None, reason, proposed)

    @classmethod
    def rebuild(cls, slot_index: int, new_config: WheelConfig, reason: str):
        return cls(slot_index, True, new_config, reason, new_config)


@dataclass(frozen=True)
class RecreationRequest:
    slot_index: int
    new_config: WheelConfig
    preserve_selection: bool = True


@dataclass(frozen=True)
class RecreationStats:
    total: int = 0
    recreation_count: int = 0
    recreation_rate: float = 0.0
    reasons: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ChangeSet:
    """What one manager operation changed. Emitted on `manager.changes`."""

    operation: str
    recreated: tuple[int, ...] = ()
    updated: tuple[int, ...] = ()
    repositioned: tuple[int, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.recreated or self.updated or self.repositioned)
