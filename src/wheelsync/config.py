"""Slot configuration: the immutable description of one wheel."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from wheelsync.dependency import WheelDependency
from wheelsync.errors import CircularDependencyError, InvalidConfigurationError

DEFAULT_WIDTH = 70.0

# Fields a renderer reads but that never force a recreation.
PRESENTATION_FIELDS = ("formatter", "width", "on_change", "leading", "trailing")


def _default_formatter(index: int) -> str:
    return str(index)


@dataclass(frozen=True)
class WheelConfig:
    """One wheel: its size, starting position, presentation and dependency.

    Replaced wholesale on recreation. Equality and hashing ignore the
    callables and decorations, which cannot be compared meaningfully.
    """

    item_count: int
    initial_index: int = 0
    formatter: Callable[[int], str] = field(default=_default_formatter, compare=False)
    width: float = DEFAULT_WIDTH
    on_change: Callable[[int], None] | None = field(default=None, compare=False)
    leading: Any = field(default=None, compare=False)
    trailing: Any = field(default=None, compare=False)
    wheel_id: str | None = None
    dependency: WheelDependency | None = None

    def replace(self, **changes) -> WheelConfig:
        return dataclasses.replace(self, **changes)

    def needs_recreation(self, other: WheelConfig) -> bool:
        """General comparison: only item count and identity force a rebuild.

        A different initial_index alone does not; it is a starting position,
        not structure.
        """
        return self.item_count != other.item_count or self.wheel_id != other.wheel_id

    def with_presentation_of(self, other: WheelConfig) -> WheelConfig:
        """This config with the non-structural fields taken from other."""
        return self.replace(**{name: getattr(other, name) for name in PRESENTATION_FIELDS})

    def _structure_problems(self) -> list[str]:
        found = []
        if self.item_count <= 0:
            found.append(f"item_count must be > 0, got {self.item_count}")
        elif not 0 <= self.initial_index < self.item_count:
            found.append(
                f"initial_index {self.initial_index} outside [0, {self.item_count})"
            )
        if self.width <= 0:
            found.append(f"width must be > 0, got {self.width}")
        return found

    def validate_structure(self) -> None:
        """Raise InvalidConfigurationError for a bad item count, initial index or width."""
        found = self._structure_problems()
        if found:
            raise InvalidConfigurationError("Invalid configuration: " + "; ".join(found))

    def problems(
        self,
        slot_index: int | None = None,
        total_slots: int | None = None,
        dependencies: Mapping[int, WheelDependency] | None = None,
    ) -> list[str]:
        """Every reason this configuration is invalid (empty when valid)."""
        found = self._structure_problems()
        dep = self.dependency
        if dep is not None:
            if not dep.is_valid(total_slots):
                found.append(f"invalid dependency {list(dep.depends_on)}")
            if slot_index is not None:
                if slot_index in dep.depends_on:
                    found.append(f"slot {slot_index} depends on itself")
                elif dependencies is not None and dep.would_create_cycle(slot_index, dependencies):
                    found.append(f"dependency of slot {slot_index} would create a cycle")
        return found

    def is_valid(
        self,
        slot_index: int | None = None,
        total_slots: int | None = None,
        dependencies: Mapping[int, WheelDependency] | None = None,
    ) -> bool:
        return not self.problems(slot_index, total_slots, dependencies)

    def validate(
        self,
        slot_index: int | None = None,
        total_slots: int | None = None,
        dependencies: Mapping[int, WheelDependency] | None = None,
    ) -> None:
        """Raise InvalidConfigurationError if the configuration is invalid."""
        dep = self.dependency
        if dep is not None and slot_index is not None:
            if slot_index in dep.depends_on or (
                dependencies is not None and dep.would_create_cycle(slot_index, dependencies)
            ):
                raise CircularDependencyError(slot_index, dep.depends_on)
        found = self.problems(slot_index, total_slots, dependencies)
        if found:
            where = f"slot {slot_index}" if slot_index is not None else "configuration"
            raise InvalidConfigurationError(f"Invalid {where}: " + "; ".join(found))
