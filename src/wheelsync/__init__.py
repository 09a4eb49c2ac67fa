"""wheelsync: dependency-aware selective recreation for multi-wheel pickers."""

from importlib.metadata import version as _version

__version__ = _version("wheelsync")

from wheelsync._tracking import get_pending_count
from wheelsync.observable import Observable
from wheelsync.reaction import Reaction, autorun, reaction
from wheelsync.action import action, transaction
from wheelsync.stream import EventStream
from wheelsync.errors import (
    WheelSyncError,
    InvalidConfigurationError,
    CircularDependencyError,
    HandleStateError,
)
from wheelsync.strategy import DependencyStrategy, FunctionStrategy, DaysInMonth
from wheelsync.dependency import WheelDependency
from wheelsync.config import WheelConfig
from wheelsync.handle import ScrollHandle
from wheelsync.decision import ChangeSet, RecreationDecision, RecreationRequest, RecreationStats
from wheelsync.state import WheelState
from wheelsync.metrics import PerformanceMetrics
from wheelsync.graph import DependencyGraph
from wheelsync.recreation import RecreationEngine
from wheelsync.manager import WheelManager
# textual bridge NOT auto-imported; opt-in only

__all__ = [
    "Observable",
    "Reaction",
    "autorun",
    "reaction",
    "action",
    "transaction",
    "get_pending_count",
    "EventStream",
    "WheelSyncError",
    "InvalidConfigurationError",
    "CircularDependencyError",
    "HandleStateError",
    "DependencyStrategy",
    "FunctionStrategy",
    "DaysInMonth",
    "WheelDependency",
    "WheelConfig",
    "ScrollHandle",
    "ChangeSet",
    "RecreationDecision",
    "RecreationRequest",
    "RecreationStats",
    "WheelState",
    "PerformanceMetrics",
    "DependencyGraph",
    "RecreationEngine",
    "WheelManager",
]
