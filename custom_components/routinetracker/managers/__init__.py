"""Manager modules for RoutineTracker integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and handle cross-cutting concerns.
"""

from .base_manager import BaseManager
from .checkin_manager import CheckinManager
from .completion_manager import CompletionManager
from .goal_manager import GoalManager

__all__ = [
    "BaseManager",
    "CheckinManager",
    "CompletionManager",
    "GoalManager",
]
