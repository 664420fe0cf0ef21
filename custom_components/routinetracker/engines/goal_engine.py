"""Goal Engine - pure aggregation of completion events into goal progress.

Progress is resolved over the goal's own period (independent of any task's
recurrence) and one of three scopes:
- INDIVIDUAL: one subject's in-window contributions
- GROUP: a fixed set of subjects summed toward one shared target
- ROLE: every subject administered by the goal's owner role, pooled

Contributions: ONE_SHOT and BOUNDED_COUNTER events count 1 each,
UNBOUNDED_PROGRESS events count their value.

Aggregation never raises. A malformed goal degrades to current = 0,
achieved = False so goal display cannot block task completion.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import dt_to_utc
from ..utils.math_utils import calculate_percentage, is_finite_number, round_value
from .completion_engine import TaskCompletionEngine
from .errors import CompletionEngineError
from .schedule_engine import ResetPeriodEngine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime, tzinfo

    from ..type_defs import CompletionEvent, GoalData, GoalProgress


class GoalEngine:
    """Pure logic engine for goal progress and streaks."""

    # =========================================================================
    # INPUT RESOLUTION
    # =========================================================================

    @staticmethod
    def tracked_task_ids(
        goal: GoalData | Mapping[str, Any],
        tasks_by_id: Mapping[str, Mapping[str, Any]],
    ) -> set[str]:
        """Return ids of the active tasks a goal tracks.

        Explicit task_ids plus every task of each linked routine, active ones
        only on both paths. Tasks missing from ``tasks_by_id`` (deleted or
        filtered out) are ignored.
        """
        explicit = set(goal.get(const.DATA_GOAL_TASK_IDS) or [])
        routine_ids = set(goal.get(const.DATA_GOAL_ROUTINE_IDS) or [])
        return {
            task_id
            for task_id, task in tasks_by_id.items()
            if (task_id in explicit or task.get(const.DATA_TASK_ROUTINE_ID) in routine_ids)
            and task.get(const.DATA_STATUS, const.STATUS_ACTIVE) == const.STATUS_ACTIVE
        }

    @staticmethod
    def resolve_subject_ids(
        goal: GoalData | Mapping[str, Any],
        role_subject_ids: Iterable[str] | None = None,
        subject_id: str | None = None,
    ) -> list[str]:
        """Return the contributing subjects for a goal, or [] if unresolvable.

        Args:
            goal: Goal definition
            role_subject_ids: Subjects administered by the owner role (ROLE scope)
            subject_id: Requested subject (INDIVIDUAL scope)
        """
        scope = goal.get(const.DATA_GOAL_SCOPE)
        configured = list(dict.fromkeys(goal.get(const.DATA_GOAL_SUBJECT_IDS) or []))

        if scope == const.GOAL_SCOPE_INDIVIDUAL:
            if subject_id is not None:
                return [subject_id] if subject_id in configured else []
            # Several subjects and no requested one is ambiguous
            return configured if len(configured) == 1 else []

        if scope == const.GOAL_SCOPE_GROUP:
            return configured

        if scope == const.GOAL_SCOPE_ROLE:
            return list(dict.fromkeys(role_subject_ids or []))

        return []

    @staticmethod
    def is_well_formed(goal: GoalData | Mapping[str, Any]) -> bool:
        """Return True if target, scope and period are all usable."""
        target = goal.get(const.DATA_GOAL_TARGET)
        if not is_finite_number(target) or target < 0:
            return False
        if goal.get(const.DATA_GOAL_SCOPE) not in const.GOAL_SCOPES:
            return False
        try:
            ResetPeriodEngine.validate(goal.get(const.DATA_GOAL_PERIOD))
        except CompletionEngineError:
            return False
        return True

    @staticmethod
    def _contributions(
        events: Iterable[CompletionEvent],
        tasks_by_id: Mapping[str, Mapping[str, Any]],
        tracked: set[str],
        subject_ids: list[str],
    ) -> list[tuple[datetime, float]]:
        """Pre-index matching events as (utc timestamp, contribution) pairs.

        One pass over the event history serves the current window and every
        streak window.
        """
        subjects = set(subject_ids)
        task_types: dict[str, str] = {}
        for task_id in tracked:
            task = tasks_by_id[task_id]
            try:
                task_types[task_id] = TaskCompletionEngine.resolve_task_type(task)
            except CompletionEngineError:
                const.LOGGER.debug(
                    "GoalEngine: Skipping task %s with unknown type %s",
                    task_id,
                    task.get(const.DATA_TASK_TYPE),
                )

        pairs: list[tuple[datetime, float]] = []
        for event in events:
            task_type = task_types.get(event.get(const.DATA_COMPLETION_TASK_ID, ""))
            if task_type is None:
                continue
            if event.get(const.DATA_COMPLETION_SUBJECT_ID) not in subjects:
                continue
            ts = dt_to_utc(event.get(const.DATA_COMPLETION_TIMESTAMP))
            if ts is None:
                continue
            pairs.append(
                (ts, TaskCompletionEngine.completion_value(event, task_type))
            )
        return pairs

    @staticmethod
    def _sum_between(
        pairs: list[tuple[datetime, float]],
        start: datetime,
        end: datetime | None,
    ) -> float:
        return round_value(
            sum(
                value
                for ts, value in pairs
                if ts >= start and (end is None or ts < end)
            )
        )

    # =========================================================================
    # PROGRESS
    # =========================================================================

    @staticmethod
    def compute_progress(
        goal: GoalData | Mapping[str, Any],
        events: Iterable[CompletionEvent],
        tasks_by_id: Mapping[str, Mapping[str, Any]],
        reference: datetime,
        *,
        subject_ids: list[str],
        tz: tzinfo | None = None,
        default_streak_lookback: int = const.DEFAULT_STREAK_LOOKBACK,
    ) -> GoalProgress:
        """Compute current progress toward a goal.

        Args:
            goal: Goal definition
            events: Completion history (any window; filtered here)
            tasks_by_id: Tasks visible to the caller (restricted ones already removed)
            reference: Instant the current period is resolved against
            subject_ids: Contributing subjects (see resolve_subject_ids)
            tz: Local reference timezone
            default_streak_lookback: Lookback when the goal has none configured

        Returns:
            GoalProgress with current, target, percentage, achieved, window_start, streak
        """
        goal_id = goal.get(const.DATA_INTERNAL_ID, "")

        if not GoalEngine.is_well_formed(goal) or not subject_ids:
            const.LOGGER.debug(
                "GoalEngine: Goal %s is malformed or has no contributing subjects",
                goal_id,
            )
            target = goal.get(const.DATA_GOAL_TARGET)
            return {
                "goal_id": goal_id,
                "current": 0.0,
                "target": float(target) if is_finite_number(target) else 0.0,
                "percentage": 0.0,
                "achieved": False,
                "window_start": None,
                "streak": 0,
                "subject_ids": list(subject_ids),
            }

        period = goal[const.DATA_GOAL_PERIOD]
        target = float(goal[const.DATA_GOAL_TARGET])
        start, end = ResetPeriodEngine.window_bounds(period, reference, tz)

        tracked = GoalEngine.tracked_task_ids(goal, tasks_by_id)
        pairs = GoalEngine._contributions(events, tasks_by_id, tracked, subject_ids)
        current = GoalEngine._sum_between(pairs, start, end)

        if target == 0:
            percentage = 100.0
            achieved = True
        else:
            percentage = min(100.0, calculate_percentage(current, target))
            achieved = current >= target

        streak = 0
        if goal.get(const.DATA_GOAL_STREAK_ENABLED, False):
            lookback = goal.get(const.DATA_GOAL_STREAK_LOOKBACK)
            if not isinstance(lookback, int) or isinstance(lookback, bool) or lookback < 1:
                lookback = default_streak_lookback
            streak = GoalEngine.compute_streak(period, pairs, target, start, lookback, tz)

        return {
            "goal_id": goal_id,
            "current": current,
            "target": target,
            "percentage": percentage,
            "achieved": achieved,
            "window_start": start.isoformat(),
            "streak": streak,
            "subject_ids": list(subject_ids),
        }

    @staticmethod
    def compute_streak(
        period: Mapping[str, Any],
        pairs: list[tuple[datetime, float]],
        target: float,
        current_start: datetime,
        lookback: int,
        tz: tzinfo | None = None,
    ) -> int:
        """Count consecutive achieved windows before the current one.

        Scans backward from the window immediately before ``current_start`` and
        stops at the first non-achieved window or after ``lookback`` windows.
        """
        streak = 0
        window_end = current_start
        window_start = ResetPeriodEngine.previous_window_start(period, current_start, tz)
        while window_start is not None and streak < lookback:
            total = GoalEngine._sum_between(pairs, window_start, window_end)
            if target > 0 and total < target:
                break
            streak += 1
            window_end = window_start
            window_start = ResetPeriodEngine.previous_window_start(period, window_start, tz)
        return streak
