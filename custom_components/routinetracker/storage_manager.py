# File: storage_manager.py
"""Handles persistent data storage for the RoutineTracker integration.

Uses Home Assistant's Storage helper to save and load subjects, roles, routines,
tasks, goals and the completion history. Completion history is append/delete
only and is the single source of truth for every status and progress value.

Read paths that serve a viewer apply the visibility predicate from
VisibilityEngine; the same predicate serves list and get-by-id.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store

from . import const
from .engines import (
    CompletionEngineError,
    CompletionNotFound,
    EntityNotFound,
    ResetPeriodEngine,
    TaskCompletionEngine,
    VisibilityEngine,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime, tzinfo

    from homeassistant.core import HomeAssistant

    from .type_defs import (
        CompletionEvent,
        RoleContext,
        SubjectWithAssignments,
        TaskAssignment,
    )


class RoutineTrackerStorageManager:
    """Manages loading, saving, and accessing data from Home Assistant's storage.

    Utilizes internal_id as the primary key for all entities.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the storage manager.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = {}  # In-memory data cache for quick access.

    @staticmethod
    def _get_default_structure() -> dict[str, Any]:
        """Return the canonical empty data structure."""
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
            },
            const.DATA_SUBJECTS: {},
            const.DATA_ROLES: {},
            const.DATA_ROUTINES: {},
            const.DATA_TASKS: {},
            const.DATA_GOALS: {},
            const.DATA_COMPLETIONS: {},
        }

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        If no data exists, initializes with an empty structure. Missing buckets
        in existing data are added empty.
        """
        const.LOGGER.debug(
            "DEBUG: RoutineTrackerStorageManager: Loading data from storage"
        )
        existing_data = await self._store.async_load()

        if existing_data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = self._get_default_structure()
            return

        self._data = existing_data
        for key, default in self._get_default_structure().items():
            self._data.setdefault(key, default)
        const.LOGGER.debug(
            "DEBUG: Loaded existing data from storage: %s",
            {
                "subjects": len(self._data[const.DATA_SUBJECTS]),
                "routines": len(self._data[const.DATA_ROUTINES]),
                "tasks": len(self._data[const.DATA_TASKS]),
                "goals": len(self._data[const.DATA_GOALS]),
                "completions": len(self._data[const.DATA_COMPLETIONS]),
            },
        )

    def get_data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    # -------------------------------------------------------------------------------------
    # Raw buckets (unfiltered, internal use only)
    # -------------------------------------------------------------------------------------

    def get_subjects(self) -> dict[str, Any]:
        """Retrieve the subjects data."""
        return self._data.get(const.DATA_SUBJECTS, {})

    def get_routines(self) -> dict[str, Any]:
        """Retrieve the routines data."""
        return self._data.get(const.DATA_ROUTINES, {})

    def get_tasks(self) -> dict[str, Any]:
        """Retrieve the tasks data."""
        return self._data.get(const.DATA_TASKS, {})

    def get_completions(self) -> dict[str, Any]:
        """Retrieve the completion history."""
        return self._data.setdefault(const.DATA_COMPLETIONS, {})

    def events_for_cell(self, subject_id: str, task_id: str) -> list[CompletionEvent]:
        """Return all stored events for one (subject, task) pair."""
        return [
            event
            for event in self.get_completions().values()
            if event.get(const.DATA_COMPLETION_SUBJECT_ID) == subject_id
            and event.get(const.DATA_COMPLETION_TASK_ID) == task_id
        ]

    def index_events(
        self, subject_ids: Iterable[str]
    ) -> dict[tuple[str, str], list[CompletionEvent]]:
        """Group stored events by (subject, task) for the given subjects in one pass."""
        wanted = set(subject_ids)
        index: dict[tuple[str, str], list[CompletionEvent]] = defaultdict(list)
        for event in self.get_completions().values():
            subject_id = event.get(const.DATA_COMPLETION_SUBJECT_ID)
            if subject_id in wanted:
                index[(subject_id, event.get(const.DATA_COMPLETION_TASK_ID))].append(event)
        return index

    # -------------------------------------------------------------------------------------
    # Viewer-scoped reads (visibility filter applied)
    # -------------------------------------------------------------------------------------

    def list_routines(
        self, viewer: RoleContext | None, *, include_archived: bool = False
    ) -> list[dict[str, Any]]:
        """List routines visible to ``viewer``."""
        visible = VisibilityEngine.build_predicate(viewer, self.get_routines())
        return [
            routine
            for routine in self.get_routines().values()
            if visible(routine)
            and (include_archived or _is_active(routine))
        ]

    def get_routine(self, routine_id: str, viewer: RoleContext | None) -> dict[str, Any]:
        """Get one routine; hidden routines are reported as missing."""
        routine = self.get_routines().get(routine_id)
        visible = VisibilityEngine.build_predicate(viewer, self.get_routines())
        if routine is None or not visible(routine):
            raise EntityNotFound("routine", routine_id)
        return routine

    def list_tasks(
        self,
        viewer: RoleContext | None,
        routine_id: str | None = None,
        *,
        include_archived: bool = False,
    ) -> list[dict[str, Any]]:
        """List tasks visible to ``viewer``, ordered by routine order index."""
        routines = self.get_routines()
        visible = VisibilityEngine.build_predicate(viewer, routines)
        tasks = [
            task
            for task in self.get_tasks().values()
            if (routine_id is None or task.get(const.DATA_TASK_ROUTINE_ID) == routine_id)
            and visible(task)
            and (
                include_archived
                or (
                    _is_active(task)
                    and _is_active(routines.get(task.get(const.DATA_TASK_ROUTINE_ID), {}))
                )
            )
        ]
        tasks.sort(key=lambda task: task.get(const.DATA_TASK_ORDER, 0))
        return tasks

    def get_task(self, task_id: str, viewer: RoleContext | None) -> dict[str, Any]:
        """Get one task; hidden tasks are reported as missing."""
        task = self.get_tasks().get(task_id)
        visible = VisibilityEngine.build_predicate(viewer, self.get_routines())
        if task is None or not visible(task):
            raise EntityNotFound("task", task_id)
        return task

    def fetch_subjects_batch(
        self,
        subject_ids: list[str],
        viewer: RoleContext | None,
        now: datetime,
        tz: tzinfo | None = None,
    ) -> list[SubjectWithAssignments]:
        """Batched read: each subject's visible assignments with in-window events.

        One pass over the completion history serves every requested subject, and
        each routine's window is resolved once.
        """
        subjects = self.get_subjects()
        routines = self.get_routines()
        visible = VisibilityEngine.build_predicate(viewer, routines)
        events_index = self.index_events(subject_ids)
        window_cache: dict[str, datetime | None] = {}

        def _window(routine_id: str) -> datetime | None:
            if routine_id not in window_cache:
                try:
                    window_cache[routine_id] = ResetPeriodEngine.window_start(
                        routines[routine_id].get(const.DATA_ROUTINE_RECURRENCE), now, tz
                    )
                except CompletionEngineError as err:
                    const.LOGGER.warning(
                        "WARNING: Skipping routine %s with invalid recurrence: %s",
                        routine_id,
                        err,
                    )
                    window_cache[routine_id] = None
            return window_cache[routine_id]

        tasks_by_routine: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for task in self.get_tasks().values():
            if _is_active(task) and visible(task):
                tasks_by_routine[task.get(const.DATA_TASK_ROUTINE_ID)].append(task)
        for task_list in tasks_by_routine.values():
            task_list.sort(key=lambda task: task.get(const.DATA_TASK_ORDER, 0))

        results: list[SubjectWithAssignments] = []
        for subject_id in subject_ids:
            subject = subjects.get(subject_id)
            if subject is None:
                const.LOGGER.debug("DEBUG: Batch fetch skipping unknown subject %s", subject_id)
                continue

            routine_ids: list[str] = []
            assignments: list[TaskAssignment] = []
            for routine_id, routine in routines.items():
                if not _is_active(routine) or not visible(routine):
                    continue
                if subject_id not in (
                    routine.get(const.DATA_ROUTINE_ASSIGNED_SUBJECT_IDS) or []
                ):
                    continue
                window_start = _window(routine_id)
                if window_start is None:
                    continue
                routine_ids.append(routine_id)
                for task in tasks_by_routine.get(routine_id, []):
                    task_id = task[const.DATA_INTERNAL_ID]
                    assignments.append(
                        {
                            "task": task,
                            "window_start": window_start.isoformat(),
                            "events": TaskCompletionEngine.filter_in_window(
                                events_index.get((subject_id, task_id), []),
                                window_start,
                            ),
                        }
                    )

            results.append(
                {
                    "subject_id": subject_id,
                    "name": subject.get(const.DATA_NAME, ""),
                    "routine_ids": routine_ids,
                    "assignments": assignments,
                }
            )

        const.LOGGER.debug(
            "DEBUG: Batch fetch served %s of %s subjects",
            len(results),
            len(subject_ids),
        )
        return results

    # -------------------------------------------------------------------------------------
    # Atomic writes
    # -------------------------------------------------------------------------------------

    async def _async_save_strict(self) -> None:
        """Save and raise HomeAssistantError on failure (caller reverts memory)."""
        try:
            await self._store.async_save(self._data)
        except (OSError, TypeError, ValueError) as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage %s: %s", self._store.path, err
            )
            raise HomeAssistantError(
                translation_domain=const.DOMAIN,
                translation_key=const.TRANS_KEY_ERROR_STORAGE_WRITE_FAILED,
                translation_placeholders={"error": str(err)},
            ) from err

    async def async_persist_completion(self, event: CompletionEvent) -> CompletionEvent:
        """Record a completion event; either fully recorded or not at all."""
        completions = self.get_completions()
        completion_id = event[const.DATA_INTERNAL_ID]
        completions[completion_id] = event
        try:
            await self._async_save_strict()
        except HomeAssistantError:
            completions.pop(completion_id, None)
            raise
        return event

    async def async_delete_completion(self, completion_id: str) -> CompletionEvent:
        """Delete a completion event; restored in memory if the save fails."""
        completions = self.get_completions()
        event = completions.pop(completion_id, None)
        if event is None:
            raise CompletionNotFound(completion_id)
        try:
            await self._async_save_strict()
        except HomeAssistantError:
            completions[completion_id] = event
            raise
        return event

    async def async_save(self) -> None:
        """Save the current data structure; failures are logged, not raised."""
        try:
            await self._store.async_save(self._data)
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
        except (OSError, TypeError, ValueError) as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage %s: %s", self._store.path, err
            )

    async def async_clear_data(self) -> None:
        """Clear all stored data and reset to default structure."""
        const.LOGGER.warning(
            "WARNING: Clearing all RoutineTracker data and resetting storage"
        )
        self._data = self._get_default_structure()
        await self.async_save()

    async def async_delete_storage(self) -> None:
        """Delete the storage file completely from disk."""
        await self.async_clear_data()
        try:
            await self._store.async_remove()
            const.LOGGER.info(
                "INFO: Storage file removed successfully: %s", self._store.path
            )
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )


def _is_active(entity: dict[str, Any]) -> bool:
    return entity.get(const.DATA_STATUS, const.STATUS_ACTIVE) == const.STATUS_ACTIVE
