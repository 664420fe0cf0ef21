"""Task Completion Engine - pure logic for task status and completion legality.

This engine provides stateless, pure Python functions for:
- Window filtering of completion events
- Status classification per task type (ONE_SHOT, BOUNDED_COUNTER, UNBOUNDED_PROGRESS)
- Legality checks for a new completion (already done, counter bound, values)
- Entry planning (entry_number, running summed_value)
- Undo target selection

The task type is a closed set. Every dispatch below is an exhaustive branch
over that set and rejects anything else with UnknownTaskType.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
State management belongs in CompletionManager.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import dt_to_utc
from ..utils.math_utils import clamp, is_finite_number, round_value
from .errors import (
    CounterExhausted,
    InvalidValue,
    MissingValue,
    TaskAlreadyDone,
    UnknownTaskType,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from ..type_defs import CompletionEvent, EntryPlan, TaskData, TaskStatus


class TaskCompletionEngine:
    """Pure logic engine for task completion classification and legality.

    All methods are static - no instance state.
    """

    # =========================================================================
    # TYPE RESOLUTION
    # =========================================================================

    @staticmethod
    def resolve_task_type(task: TaskData | dict[str, Any]) -> str:
        """Return the task type, rejecting unknown kinds at the boundary."""
        task_type = task.get(const.DATA_TASK_TYPE)
        if task_type not in const.TASK_TYPES:
            raise UnknownTaskType(task.get(const.DATA_INTERNAL_ID, ""), task_type)
        return task_type

    @staticmethod
    def resolve_bound(task: TaskData | dict[str, Any]) -> int:
        """Return the counter bound for a BOUNDED_COUNTER task.

        Missing or non-integer bounds fall back to DEFAULT_COUNTER_BOUND.
        Out-of-range bounds are clamped to MIN/MAX_COUNTER_BOUND.
        """
        bound = task.get(const.DATA_TASK_BOUND)
        if not isinstance(bound, int) or isinstance(bound, bool):
            return const.DEFAULT_COUNTER_BOUND
        return int(clamp(bound, const.MIN_COUNTER_BOUND, const.MAX_COUNTER_BOUND))

    # =========================================================================
    # WINDOW FILTERING
    # =========================================================================

    @staticmethod
    def event_sort_key(event: CompletionEvent | dict[str, Any]) -> tuple[Any, int]:
        """Chronological ordering key (timestamp, then entry number)."""
        return (
            dt_to_utc(event.get(const.DATA_COMPLETION_TIMESTAMP)),
            event.get(const.DATA_COMPLETION_ENTRY_NUMBER, 0),
        )

    @staticmethod
    def filter_in_window(
        events: Iterable[CompletionEvent],
        window_start: datetime,
        window_end: datetime | None = None,
    ) -> list[CompletionEvent]:
        """Return events with ``window_start <= timestamp (< window_end)``, oldest first.

        Events outside the window are historical and never count toward the
        current status, however recently they were written.
        """
        in_window: list[CompletionEvent] = []
        for event in events:
            ts = dt_to_utc(event.get(const.DATA_COMPLETION_TIMESTAMP))
            if ts is None or ts < window_start:
                continue
            if window_end is not None and ts >= window_end:
                continue
            in_window.append(event)
        in_window.sort(key=TaskCompletionEngine.event_sort_key)
        return in_window

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    @staticmethod
    def completion_value(event: CompletionEvent | dict[str, Any], task_type: str) -> float:
        """Return what one event contributes toward totals for its task type."""
        if task_type in (const.TASK_TYPE_ONE_SHOT, const.TASK_TYPE_BOUNDED_COUNTER):
            return 1.0
        if task_type == const.TASK_TYPE_UNBOUNDED_PROGRESS:
            value = event.get(const.DATA_COMPLETION_VALUE)
            return float(value) if is_finite_number(value) else 0.0
        raise UnknownTaskType(event.get(const.DATA_COMPLETION_TASK_ID, ""), task_type)

    @staticmethod
    def classify(
        task: TaskData | dict[str, Any],
        events_in_window: list[CompletionEvent],
    ) -> TaskStatus:
        """Derive status, display value and next legal actions for one cell.

        Args:
            task: Task definition
            events_in_window: Events already filtered to the current window

        Returns:
            TaskStatus with status, display_value, can_complete, can_undo
        """
        task_type = TaskCompletionEngine.resolve_task_type(task)
        count = len(events_in_window)

        if task_type == const.TASK_TYPE_ONE_SHOT:
            done = count > 0
            return {
                "status": const.TASK_STATUS_DONE if done else const.TASK_STATUS_NOT_STARTED,
                "display_value": 1.0 if done else 0.0,
                "can_complete": not done,
                "can_undo": done,
            }

        if task_type == const.TASK_TYPE_BOUNDED_COUNTER:
            bound = TaskCompletionEngine.resolve_bound(task)
            if count >= bound:
                status = const.TASK_STATUS_DONE
            elif count > 0:
                status = const.TASK_STATUS_PARTIAL
            else:
                status = const.TASK_STATUS_NOT_STARTED
            return {
                "status": status,
                "display_value": float(count),
                "can_complete": count < bound,
                "can_undo": count > 0,
            }

        # UNBOUNDED_PROGRESS never auto-closes; achievement is a goal concern
        total = round_value(
            sum(
                TaskCompletionEngine.completion_value(event, task_type)
                for event in events_in_window
            )
        )
        return {
            "status": (
                const.TASK_STATUS_IN_PROGRESS if count > 0 else const.TASK_STATUS_NOT_STARTED
            ),
            "display_value": total,
            "can_complete": True,
            "can_undo": count > 0,
        }

    # =========================================================================
    # LEGALITY
    # =========================================================================

    @staticmethod
    def validate_completion(
        task: TaskData | dict[str, Any],
        events_in_window: list[CompletionEvent],
        value: Any = None,
        subject_id: str = "",
    ) -> None:
        """Raise a typed error if a new completion is not legal right now.

        Raises:
            TaskAlreadyDone: ONE_SHOT with an in-window event
            CounterExhausted: BOUNDED_COUNTER already at its bound
            MissingValue: UNBOUNDED_PROGRESS without a positive value
            InvalidValue: UNBOUNDED_PROGRESS with a non-numeric or oversized value
            UnknownTaskType: task type outside the closed set
        """
        task_type = TaskCompletionEngine.resolve_task_type(task)
        task_id = task.get(const.DATA_INTERNAL_ID, "")
        count = len(events_in_window)

        if task_type == const.TASK_TYPE_ONE_SHOT:
            if count > 0:
                raise TaskAlreadyDone(task_id, subject_id)
            return

        if task_type == const.TASK_TYPE_BOUNDED_COUNTER:
            bound = TaskCompletionEngine.resolve_bound(task)
            if count >= bound:
                raise CounterExhausted(task_id, count, bound)
            return

        if value is None:
            raise MissingValue(task_id, value)
        if not is_finite_number(value):
            raise InvalidValue(task_id, value)
        if value <= 0:
            raise MissingValue(task_id, value)
        if value > const.MAX_PROGRESS_VALUE:
            raise InvalidValue(task_id, value)

    @staticmethod
    def plan_entry(
        task: TaskData | dict[str, Any],
        events_in_window: list[CompletionEvent],
        value: Any = None,
    ) -> EntryPlan:
        """Compute entry_number, stored value and running total for a new event.

        Call only after validate_completion succeeded.
        """
        task_type = TaskCompletionEngine.resolve_task_type(task)

        if task_type == const.TASK_TYPE_ONE_SHOT:
            stored_value: float | None = None
        elif task_type == const.TASK_TYPE_BOUNDED_COUNTER:
            stored_value = 1.0
        else:
            stored_value = float(value)

        previous_total = sum(
            TaskCompletionEngine.completion_value(event, task_type)
            for event in events_in_window
        )
        new_contribution = TaskCompletionEngine.completion_value(
            {const.DATA_COMPLETION_VALUE: stored_value}, task_type
        )
        return {
            "entry_number": len(events_in_window) + 1,
            "summed_value": round_value(previous_total + new_contribution),
            "value": stored_value,
        }

    @staticmethod
    def select_undo_target(
        events_in_window: list[CompletionEvent],
    ) -> CompletionEvent | None:
        """Return the most recent in-window event for a cell, if any."""
        if not events_in_window:
            return None
        return max(events_in_window, key=TaskCompletionEngine.event_sort_key)

    @staticmethod
    def find_by_idempotency_key(
        events_in_window: list[CompletionEvent],
        idempotency_key: str | None,
    ) -> CompletionEvent | None:
        """Return an in-window event recorded with the same idempotency key."""
        if not idempotency_key:
            return None
        for event in events_in_window:
            if event.get(const.DATA_COMPLETION_IDEMPOTENCY_KEY) == idempotency_key:
                return event
        return None
