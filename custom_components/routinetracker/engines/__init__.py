"""Engine modules for RoutineTracker integration.

Contains pure computation engines (no Home Assistant imports):
- schedule_engine: Reset-period window boundaries
- completion_engine: Task status classification and completion legality
- goal_engine: Goal progress aggregation and streaks
- visibility_engine: Restricted-visibility rule and subject access
- errors: Typed failure taxonomy
"""

# Use relative imports within package to avoid mypy module resolution issues
from .completion_engine import TaskCompletionEngine
from .errors import (
    AccessDenied,
    CompletionEngineError,
    CompletionNotFound,
    CounterExhausted,
    EntityNotFound,
    InvalidRecurrencePolicy,
    InvalidValue,
    MissingValue,
    TaskAlreadyDone,
    UnknownTaskType,
    WindowClosed,
)
from .goal_engine import GoalEngine
from .schedule_engine import ResetPeriodEngine
from .visibility_engine import VisibilityEngine

__all__ = [
    "AccessDenied",
    "CompletionEngineError",
    "CompletionNotFound",
    "CounterExhausted",
    "EntityNotFound",
    "GoalEngine",
    "InvalidRecurrencePolicy",
    "InvalidValue",
    "MissingValue",
    "ResetPeriodEngine",
    "TaskAlreadyDone",
    "TaskCompletionEngine",
    "UnknownTaskType",
    "VisibilityEngine",
    "WindowClosed",
]
