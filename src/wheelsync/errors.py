"""Exception types raised by wheelsync.

Configuration problems are raised at setup time. Failures during live
interaction are logged and absorbed by the manager instead.
"""


class WheelSyncError(Exception):
    """Base class for every error raised by this package."""


class InvalidConfigurationError(WheelSyncError, ValueError):
    """A slot configuration or dependency declaration is malformed."""


class CircularDependencyError(InvalidConfigurationError):
    """Registering a dependency would make the graph cyclic."""

    def __init__(self, slot_index: int, depends_on) -> None:
        self.slot_index = slot_index
        self.depends_on = tuple(depends_on)
        super().__init__(
            f"Registering slot {slot_index} -> {list(self.depends_on)} would create a cycle"
        )


class HandleStateError(WheelSyncError, RuntimeError):
    """A scroll handle was used after disposal or attached twice."""
