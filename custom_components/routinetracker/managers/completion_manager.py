"""Completion Manager - authoritative completion writes and undo.

This manager records and reverses completion events:
- Validates task/subject existence, visibility and subject access rights
- Resolves the task's current window and re-validates legality against
  stored history inside a per-(subject, task) asyncio.Lock
- Deduplicates repeated submissions that carry the same caller idempotency key
- Persists atomically, then emits completion signals so GoalManager (and any
  UI-layer cache) can recompute

ARCHITECTURE:
- CompletionManager = STATEFUL orchestration (locks, persistence, signals)
- TaskCompletionEngine / ResetPeriodEngine / VisibilityEngine = pure logic
- Typed engine errors propagate to the caller unchanged
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..engines import (
    AccessDenied,
    CompletionNotFound,
    EntityNotFound,
    ResetPeriodEngine,
    TaskCompletionEngine,
    VisibilityEngine,
    WindowClosed,
)
from ..utils.dt_utils import dt_now_utc, dt_to_iso_utc, dt_to_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import RoutineTrackerCoordinator
    from ..type_defs import CompletionEvent, RoleContext


__all__ = ["CompletionManager"]


class CompletionManager(BaseManager):
    """Manager for completion events.

    Responsibilities:
    - complete / undo / undo_latest with per-cell locking
    - get_task_status read path (visibility filtered)
    """

    def __init__(
        self, hass: HomeAssistant, coordinator: RoutineTrackerCoordinator
    ) -> None:
        """Initialize the CompletionManager."""
        super().__init__(hass, coordinator)
        self._cell_locks: dict[str, asyncio.Lock] = {}

    async def async_setup(self) -> None:
        """Nothing to subscribe to; completions originate here."""
        const.LOGGER.debug("DEBUG: CompletionManager set up for %s", self.entry_id)

    # =========================================================================
    # Lookups
    # =========================================================================

    def _get_lock(self, subject_id: str, task_id: str) -> asyncio.Lock:
        """Get or create a lock for one (subject, task) cell."""
        lock_key = f"{subject_id}:{task_id}"
        if lock_key not in self._cell_locks:
            self._cell_locks[lock_key] = asyncio.Lock()
        return self._cell_locks[lock_key]

    def _resolve_task(
        self, task_id: str, actor: RoleContext
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Return (task, routine) if active and visible to ``actor``.

        Hidden tasks are reported exactly like missing ones.
        """
        task = self.coordinator.tasks_data.get(task_id)
        if task is None:
            raise EntityNotFound("task", task_id)
        routine = self.coordinator.routines_data.get(task.get(const.DATA_TASK_ROUTINE_ID))
        if (
            routine is None
            or task.get(const.DATA_STATUS, const.STATUS_ACTIVE) != const.STATUS_ACTIVE
            or routine.get(const.DATA_STATUS, const.STATUS_ACTIVE) != const.STATUS_ACTIVE
            or not VisibilityEngine.is_visible_to(task, actor, routine)
        ):
            raise EntityNotFound("task", task_id)
        return task, routine

    def _validate_subject_access(self, subject_id: str, actor: RoleContext) -> None:
        if subject_id not in self.coordinator.subjects_data:
            raise EntityNotFound("subject", subject_id)
        if not VisibilityEngine.can_act_on_subject(actor, subject_id):
            const.LOGGER.warning(
                "WARNING: Role %s denied completion rights over subject %s",
                actor["role_id"],
                subject_id,
            )
            raise AccessDenied(actor["role_id"], subject_id)

    def _window_events(
        self, routine: dict[str, Any], subject_id: str, task_id: str, now: datetime
    ) -> tuple[datetime, list[CompletionEvent]]:
        window_start = ResetPeriodEngine.window_start(
            routine.get(const.DATA_ROUTINE_RECURRENCE), now
        )
        events = TaskCompletionEngine.filter_in_window(
            self.coordinator.storage_manager.events_for_cell(subject_id, task_id),
            window_start,
        )
        return window_start, events

    # =========================================================================
    # Complete
    # =========================================================================

    async def complete(
        self,
        task_id: str,
        subject_id: str,
        acting_role: RoleContext,
        value: Any = None,
        *,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> CompletionEvent:
        """Record one completion for a (subject, task) cell.

        Args:
            task_id: Task being completed
            subject_id: Person the completion is attributed to
            acting_role: Already-resolved role performing the action
            value: Progress value (UNBOUNDED_PROGRESS only)
            idempotency_key: Optional caller key; a repeat within the window
                returns the recorded event instead of adding another
            now: Reference instant (defaults to the current UTC time)

        Returns:
            The recorded event, or the existing one for a repeated key.

        Raises:
            EntityNotFound, AccessDenied, TaskAlreadyDone, CounterExhausted,
            MissingValue, InvalidValue, InvalidRecurrencePolicy, UnknownTaskType
        """
        # A started write runs to completion and emits its signal even when the
        # caller is cancelled (for example by a check-in timeout)
        return await asyncio.shield(
            self.hass.async_create_task(
                self._async_complete_cell(
                    task_id, subject_id, acting_role, value, idempotency_key, now
                ),
                f"{const.DOMAIN}_complete_{subject_id}_{task_id}",
            )
        )

    async def _async_complete_cell(
        self,
        task_id: str,
        subject_id: str,
        acting_role: RoleContext,
        value: Any,
        idempotency_key: str | None,
        now: datetime | None,
    ) -> CompletionEvent:
        async with self._get_lock(subject_id, task_id):
            return await self._complete_locked(
                task_id, subject_id, acting_role, value, idempotency_key, now
            )

    async def _complete_locked(
        self,
        task_id: str,
        subject_id: str,
        acting_role: RoleContext,
        value: Any,
        idempotency_key: str | None,
        now: datetime | None,
    ) -> CompletionEvent:
        """Internal complete logic executed under the cell lock."""
        now = now or dt_now_utc()
        task, routine = self._resolve_task(task_id, acting_role)
        self._validate_subject_access(subject_id, acting_role)

        _window_start, events = self._window_events(routine, subject_id, task_id, now)

        # Only a caller-supplied key deduplicates; everything else is validated
        existing = TaskCompletionEngine.find_by_idempotency_key(events, idempotency_key)
        if existing is not None:
            const.LOGGER.debug(
                "DEBUG: Duplicate completion for task %s subject %s, returning %s",
                task_id,
                subject_id,
                existing[const.DATA_INTERNAL_ID],
            )
            return existing

        TaskCompletionEngine.validate_completion(task, events, value, subject_id)
        plan = TaskCompletionEngine.plan_entry(task, events, value)

        event: dict[str, Any] = {
            const.DATA_INTERNAL_ID: str(uuid.uuid4()),
            const.DATA_COMPLETION_TASK_ID: task_id,
            const.DATA_COMPLETION_SUBJECT_ID: subject_id,
            const.DATA_COMPLETION_TIMESTAMP: dt_to_iso_utc(now),
            const.DATA_COMPLETION_VALUE: plan["value"],
            const.DATA_COMPLETION_ENTRY_NUMBER: plan["entry_number"],
            const.DATA_COMPLETION_SUMMED_VALUE: plan["summed_value"],
            const.DATA_COMPLETION_IDEMPOTENCY_KEY: idempotency_key,
            const.DATA_COMPLETION_ACTING_ROLE_ID: acting_role["role_id"],
        }

        await self.coordinator.storage_manager.async_persist_completion(event)

        const.LOGGER.debug(
            "DEBUG: Recorded completion %s for task %s subject %s (entry %s, total %s)",
            event[const.DATA_INTERNAL_ID],
            task_id,
            subject_id,
            plan["entry_number"],
            plan["summed_value"],
        )
        self.emit(
            const.SIGNAL_SUFFIX_COMPLETION_RECORDED,
            subject_id=subject_id,
            task_id=task_id,
            routine_id=task.get(const.DATA_TASK_ROUTINE_ID),
            completion_id=event[const.DATA_INTERNAL_ID],
        )
        self.coordinator.async_set_updated_data(self.coordinator.data)
        return event

    # =========================================================================
    # Undo
    # =========================================================================

    async def undo(
        self,
        completion_id: str,
        acting_role: RoleContext,
        now: datetime | None = None,
    ) -> CompletionEvent:
        """Reverse one completion by deleting it.

        Raises:
            CompletionNotFound: Unknown or already undone
            WindowClosed: Recorded before the task's current window (when enforced)
            EntityNotFound, AccessDenied
        """
        event = self.coordinator.completions_data.get(completion_id)
        if event is None:
            raise CompletionNotFound(completion_id)

        subject_id = event[const.DATA_COMPLETION_SUBJECT_ID]
        task_id = event[const.DATA_COMPLETION_TASK_ID]
        return await asyncio.shield(
            self.hass.async_create_task(
                self._async_undo_cell(subject_id, task_id, completion_id, acting_role, now),
                f"{const.DOMAIN}_undo_{completion_id}",
            )
        )

    async def _async_undo_cell(
        self,
        subject_id: str,
        task_id: str,
        completion_id: str,
        acting_role: RoleContext,
        now: datetime | None,
    ) -> CompletionEvent:
        async with self._get_lock(subject_id, task_id):
            return await self._undo_locked(completion_id, acting_role, now)

    async def _undo_locked(
        self,
        completion_id: str,
        acting_role: RoleContext,
        now: datetime | None,
    ) -> CompletionEvent:
        """Internal undo logic executed under the cell lock."""
        now = now or dt_now_utc()
        # Another session may have undone it while we waited for the lock
        event = self.coordinator.completions_data.get(completion_id)
        if event is None:
            raise CompletionNotFound(completion_id)

        subject_id = event[const.DATA_COMPLETION_SUBJECT_ID]
        task_id = event[const.DATA_COMPLETION_TASK_ID]
        task, routine = self._resolve_task(task_id, acting_role)
        self._validate_subject_access(subject_id, acting_role)

        if self.coordinator.enforce_undo_window:
            window_start = ResetPeriodEngine.window_start(
                routine.get(const.DATA_ROUTINE_RECURRENCE), now
            )
            recorded_at = dt_to_utc(event.get(const.DATA_COMPLETION_TIMESTAMP))
            if recorded_at is None or recorded_at < window_start:
                const.LOGGER.warning(
                    "WARNING: Refusing undo of %s recorded before window start %s",
                    completion_id,
                    window_start.isoformat(),
                )
                raise WindowClosed(
                    completion_id,
                    str(event.get(const.DATA_COMPLETION_TIMESTAMP)),
                    window_start.isoformat(),
                )

        removed = await self.coordinator.storage_manager.async_delete_completion(
            completion_id
        )

        const.LOGGER.debug(
            "DEBUG: Undid completion %s for task %s subject %s",
            completion_id,
            task_id,
            subject_id,
        )
        self.emit(
            const.SIGNAL_SUFFIX_COMPLETION_UNDONE,
            subject_id=subject_id,
            task_id=task_id,
            routine_id=task.get(const.DATA_TASK_ROUTINE_ID),
            completion_id=completion_id,
        )
        self.coordinator.async_set_updated_data(self.coordinator.data)
        return removed

    async def undo_latest(
        self,
        task_id: str,
        subject_id: str,
        acting_role: RoleContext,
        now: datetime | None = None,
    ) -> CompletionEvent:
        """Undo the most recent in-window completion of a cell."""
        now = now or dt_now_utc()
        _task, routine = self._resolve_task(task_id, acting_role)
        self._validate_subject_access(subject_id, acting_role)
        _window_start, events = self._window_events(routine, subject_id, task_id, now)
        target = TaskCompletionEngine.select_undo_target(events)
        if target is None:
            raise CompletionNotFound(f"{subject_id}:{task_id}")
        return await self.undo(target[const.DATA_INTERNAL_ID], acting_role, now)

    # =========================================================================
    # Read path
    # =========================================================================

    def get_task_status(
        self,
        task_id: str,
        subject_id: str,
        viewer: RoleContext,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Return the classifier output for one cell, as seen by ``viewer``."""
        now = now or dt_now_utc()
        task, routine = self._resolve_task(task_id, viewer)
        if subject_id not in self.coordinator.subjects_data:
            raise EntityNotFound("subject", subject_id)
        window_start, events = self._window_events(routine, subject_id, task_id, now)
        status = TaskCompletionEngine.classify(task, events)
        return {
            "task_id": task_id,
            "subject_id": subject_id,
            "window_start": window_start.isoformat(),
            **status,
            "completion_ids": [event[const.DATA_INTERNAL_ID] for event in events],
        }
