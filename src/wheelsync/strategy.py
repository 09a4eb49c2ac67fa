"""Computation strategies for dependent slots.

A strategy derives a slot's item count, initial position and label formatter
from the current selections of the slots it depends on. Implementations must
be pure and cheap: the engine may call them several times per cascade and
compares their results, so they must not mutate shared state.
"""

from __future__ import annotations

import calendar
from abc import ABC, abstractmethod
from typing import Callable, Sequence

Formatter = Callable[[int], str]


class DependencyStrategy(ABC):
    """Derives a slot's structure from the values of the slots it depends on."""

    @abstractmethod
    def item_count(self, values: Sequence[int]) -> int:
        """Number of selectable positions for the given dependency values."""

    def initial_index(self, values: Sequence[int], current_selection: int) -> int | None:
        """Position to select after recreation. None asks for the default clamp."""
        return None

    def formatter(self, values: Sequence[int]) -> Formatter | None:
        """Label function for the new configuration. None keeps the current one."""
        return None


class FunctionStrategy(DependencyStrategy):
    """Strategy assembled from plain callables."""

    __slots__ = ("_item_count", "_initial_index", "_formatter")

    def __init__(
        self,
        item_count: Callable[[Sequence[int]], int],
        initial_index: Callable[[Sequence[int], int], int] | None = None,
        formatter: Callable[[Sequence[int]], Formatter] | None = None,
    ) -> None:
        self._item_count = item_count
        self._initial_index = initial_index
        self._formatter = formatter

    @property
    def has_initial_index(self) -> bool:
        return self._initial_index is not None

    @property
    def has_formatter(self) -> bool:
        return self._formatter is not None

    def item_count(self, values):
        return self._item_count(values)

    def initial_index(self, values, current_selection):
        if self._initial_index is None:
            return None
        return self._initial_index(values, current_selection)

    def formatter(self, values):
        if self._formatter is None:
            return None
        return self._formatter(values)

    def __repr__(self) -> str:
        name = getattr(self._item_count, "__name__", "fn")
        return f"FunctionStrategy({name})"


class DaysInMonth(DependencyStrategy):
    """Day wheel sized by the selected month and year.

    `month_position` and `year_position` are positions inside the dependency
    value list (not slot indices). Month values are zero-based (0 = January);
    the year is `base_year + value`.
    """

    __slots__ = ("month_position", "year_position", "base_year", "zero_pad")

    def __init__(
        self,
        month_position: int = 0,
        year_position: int = 1,
        base_year: int = 2000,
        zero_pad: bool = False,
    ) -> None:
        self.month_position = month_position
        self.year_position = year_position
        self.base_year = base_year
        self.zero_pad = zero_pad

    def _month_year(self, values: Sequence[int]) -> tuple[int, int]:
        month = values[self.month_position] + 1
        year = self.base_year + values[self.year_position]
        if not 1 <= month <= 12:
            raise ValueError(f"month value out of range: {values[self.month_position]}")
        return month, year

    def item_count(self, values):
        month, year = self._month_year(values)
        return calendar.monthrange(year, month)[1]

    def formatter(self, values):
        if not self.zero_pad:
            return None
        return lambda index: f"{index + 1:02d}"

    def __repr__(self) -> str:
        return (
            f"DaysInMonth(month={self.month_position}, year={self.year_position}, "
            f"base_year={self.base_year})"
        )
