"""Goal Manager - dependent goal recomputation and goal read paths.

Listens to completion signals from CompletionManager. For every successful
completion or undo it recomputes each goal whose contributing subjects include
the affected subject and whose tracked tasks include the affected task, then
emits a goals-invalidated signal keyed by the affected subjects.

Recomputed progress is cached per goal and serves later reads for the same
goal window; a signal drops the goal's cached entries before recomputing.

Aggregation itself is delegated to GoalEngine (pure, never raises).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.core import callback

from .. import const
from ..engines import (
    CompletionEngineError,
    EntityNotFound,
    GoalEngine,
    ResetPeriodEngine,
    VisibilityEngine,
)
from ..utils.dt_utils import dt_now_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import RoutineTrackerCoordinator
    from ..type_defs import GoalProgress, RoleContext


__all__ = ["GoalManager"]


class GoalManager(BaseManager):
    """Manager for goal progress.

    Keeps the last computed unfiltered progress per goal (and per subject for
    INDIVIDUAL goals) in ``progress_cache``. Reads whose viewer sees every
    tracked task are served from it.
    """

    def __init__(
        self, hass: HomeAssistant, coordinator: RoutineTrackerCoordinator
    ) -> None:
        """Initialize the GoalManager."""
        super().__init__(hass, coordinator)
        self.progress_cache: dict[str, dict[str | None, GoalProgress]] = {}

    async def async_setup(self) -> None:
        """Subscribe to completion signals."""
        self.listen(const.SIGNAL_SUFFIX_COMPLETION_RECORDED, self._on_completion_changed)
        self.listen(const.SIGNAL_SUFFIX_COMPLETION_UNDONE, self._on_completion_changed)

    # =========================================================================
    # Dependency resolution
    # =========================================================================

    def _active_goals(self) -> dict[str, dict[str, Any]]:
        return {
            goal_id: goal
            for goal_id, goal in self.coordinator.goals_data.items()
            if goal.get(const.DATA_STATUS, const.STATUS_ACTIVE) == const.STATUS_ACTIVE
        }

    def contributing_subject_ids(
        self, goal: dict[str, Any], subject_id: str | None = None
    ) -> list[str]:
        """Resolve the goal's contributing subjects (ROLE scope via owner role)."""
        return GoalEngine.resolve_subject_ids(
            goal,
            role_subject_ids=self.coordinator.role_subject_ids(
                goal.get(const.DATA_OWNER_ROLE_ID)
            ),
            subject_id=subject_id,
        )

    def _candidate_subjects(self, goal: dict[str, Any]) -> list[str]:
        """All subjects that could contribute, regardless of INDIVIDUAL ambiguity."""
        if goal.get(const.DATA_GOAL_SCOPE) == const.GOAL_SCOPE_ROLE:
            return self.coordinator.role_subject_ids(goal.get(const.DATA_OWNER_ROLE_ID))
        return list(goal.get(const.DATA_GOAL_SUBJECT_IDS) or [])

    def dependent_goal_ids(self, subject_id: str, task_id: str) -> list[str]:
        """Return goals affected by a completion change on (subject, task)."""
        tasks = self.coordinator.tasks_data
        return [
            goal_id
            for goal_id, goal in self._active_goals().items()
            if subject_id in self._candidate_subjects(goal)
            and task_id in GoalEngine.tracked_task_ids(goal, tasks)
        ]

    # =========================================================================
    # Signal handling
    # =========================================================================

    @callback
    def _on_completion_changed(self, payload: dict[str, Any]) -> None:
        """Recompute dependent goals after a completion or undo."""
        subject_id = payload.get("subject_id")
        task_id = payload.get("task_id")
        if not subject_id or not task_id:
            return

        goal_ids = self.dependent_goal_ids(subject_id, task_id)
        if not goal_ids:
            return

        affected_subjects: set[str] = {subject_id}
        now = dt_now_utc()
        for goal_id in goal_ids:
            goal = self.coordinator.goals_data[goal_id]
            # Drops every cached entry of the goal, including other subjects
            self.progress_cache.pop(goal_id, None)
            self.refresh_goal(goal_id, subject_id=subject_id, now=now)
            if goal.get(const.DATA_GOAL_SCOPE) != const.GOAL_SCOPE_INDIVIDUAL:
                affected_subjects.update(self._candidate_subjects(goal))

        const.LOGGER.debug(
            "DEBUG: Recomputed %s goals after change on subject %s task %s",
            len(goal_ids),
            subject_id,
            task_id,
        )
        self.emit(
            const.SIGNAL_SUFFIX_GOALS_INVALIDATED,
            subject_ids=sorted(affected_subjects),
            goal_ids=goal_ids,
        )

    # =========================================================================
    # Computation
    # =========================================================================

    def _compute(
        self,
        goal: dict[str, Any],
        tasks: dict[str, Any],
        subject_id: str | None,
        now: datetime,
    ) -> GoalProgress:
        return GoalEngine.compute_progress(
            goal,
            self.coordinator.completions_data.values(),
            tasks,
            now,
            subject_ids=self.contributing_subject_ids(goal, subject_id),
            default_streak_lookback=self.coordinator.streak_lookback,
        )

    @staticmethod
    def _cache_key(goal: dict[str, Any], subject_id: str | None) -> str | None:
        """Pooled goals cache under None, INDIVIDUAL goals under their subject."""
        if goal.get(const.DATA_GOAL_SCOPE) != const.GOAL_SCOPE_INDIVIDUAL:
            return None
        if subject_id is None:
            configured = goal.get(const.DATA_GOAL_SUBJECT_IDS) or []
            if len(configured) == 1:
                return configured[0]
        return subject_id

    def refresh_goal(
        self,
        goal_id: str,
        subject_id: str | None = None,
        now: datetime | None = None,
    ) -> GoalProgress:
        """Recompute and cache a goal's unfiltered progress."""
        goal = self.coordinator.goals_data[goal_id]
        subject_id = self._cache_key(goal, subject_id)
        progress = self._compute(
            goal, self.coordinator.tasks_data, subject_id, now or dt_now_utc()
        )
        self.progress_cache.setdefault(goal_id, {})[subject_id] = progress
        return progress

    def _unfiltered_progress(
        self, goal_id: str, goal: dict[str, Any], subject_id: str | None, now: datetime
    ) -> GoalProgress:
        """Serve from the cache while it belongs to the current goal window."""
        cached = self.progress_cache.get(goal_id, {}).get(self._cache_key(goal, subject_id))
        if cached is not None and cached["window_start"] is not None:
            try:
                current_start = ResetPeriodEngine.window_start(
                    goal.get(const.DATA_GOAL_PERIOD), now
                )
            except CompletionEngineError:
                current_start = None
            if current_start is not None and cached["window_start"] == current_start.isoformat():
                return dict(cached)  # type: ignore[return-value]
        return dict(self.refresh_goal(goal_id, subject_id, now))  # type: ignore[return-value]

    def _progress_for_viewer(
        self,
        goal_id: str,
        goal: dict[str, Any],
        viewer: RoleContext | None,
        subject_id: str | None,
        now: datetime,
    ) -> GoalProgress:
        """Return progress with restricted tasks removed from the inputs.

        When the viewer sees every task the goal tracks the filtered result
        equals the unfiltered one, so the cache is used.
        """
        tasks = self.coordinator.tasks_data
        if viewer is not None:
            visible = VisibilityEngine.build_predicate(viewer, self.coordinator.routines_data)
            visible_tasks = {task_id: task for task_id, task in tasks.items() if visible(task)}
            if GoalEngine.tracked_task_ids(goal, visible_tasks) != GoalEngine.tracked_task_ids(
                goal, tasks
            ):
                return self._compute(goal, visible_tasks, subject_id, now)
        return self._unfiltered_progress(goal_id, goal, subject_id, now)

    def get_goal_progress(
        self,
        goal_id: str,
        viewer: RoleContext | None = None,
        subject_id: str | None = None,
        now: datetime | None = None,
    ) -> GoalProgress:
        """Return progress for one goal as seen by ``viewer``.

        Hidden goals are reported as missing. Restricted tasks are removed from
        the aggregation input unless the viewer is privileged for them.
        """
        goal = self.coordinator.goals_data.get(goal_id)
        if (
            goal is None
            or goal.get(const.DATA_STATUS, const.STATUS_ACTIVE) != const.STATUS_ACTIVE
            or not VisibilityEngine.is_visible_to(goal, viewer)
        ):
            raise EntityNotFound("goal", goal_id)
        return self._progress_for_viewer(
            goal_id, goal, viewer, subject_id, now or dt_now_utc()
        )

    def list_goal_progress(
        self,
        viewer: RoleContext | None,
        subject_id: str | None = None,
        now: datetime | None = None,
    ) -> list[GoalProgress]:
        """Return progress for every goal visible to ``viewer``.

        With ``subject_id`` only goals that subject contributes to are listed.
        """
        now = now or dt_now_utc()
        results: list[GoalProgress] = []
        for goal_id, goal in self._active_goals().items():
            if not VisibilityEngine.is_visible_to(goal, viewer):
                continue
            if subject_id is not None and subject_id not in self._candidate_subjects(goal):
                continue
            results.append(self._progress_for_viewer(goal_id, goal, viewer, subject_id, now))
        return results
