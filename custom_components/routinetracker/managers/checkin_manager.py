"""Check-in Manager - optimistic bulk check-in sessions.

A CheckinSession holds the projection for a grid of (subject, task) cells,
keyed by cell, and runs each cell through the state machine

    IDLE -> PENDING -> {CONFIRMED | ROLLED_BACK} -> IDLE

- On an action the cell's pre-action view is snapshotted, a local projection
  (temporary ``temp_`` event added or the latest event removed) is applied and
  the authoritative mutation is issued through the transport.
- On success the subject is refetched in one batch call before the cell
  settles; the refetch never overwrites other cells that are still pending.
- On a typed error or HomeAssistantError the snapshot is restored exactly and
  the error kind is returned to the caller.
- On a timeout the write may still land, so the cell is refetched and shows
  server truth; the snapshot is restored only if that refetch fails too.
- A second action on a pending cell is rejected with ``cell_pending``.

The session is transport-agnostic. LocalCheckinTransport routes mutations
through CompletionManager, whose completion signals drive GoalManager, and
reads through the storage manager's batched fetch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol
import uuid

from homeassistant.exceptions import HomeAssistantError

from .. import const
from ..engines import CompletionEngineError, TaskCompletionEngine, UnknownTaskType
from ..utils.dt_utils import dt_now_utc, dt_to_iso_utc
from ..utils.math_utils import is_finite_number
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from homeassistant.core import HomeAssistant

    from ..coordinator import RoutineTrackerCoordinator
    from ..type_defs import (
        CellKey,
        CompletionEvent,
        RoleContext,
        SubjectWithAssignments,
    )


__all__ = [
    "CellView",
    "CheckinManager",
    "CheckinResult",
    "CheckinSession",
    "CheckinTransport",
    "LocalCheckinTransport",
]

# (completion_id, timestamp, value)
EventTuple = tuple[str, str, "float | None"]


# =============================================================================
# Projection types
# =============================================================================


@dataclass(frozen=True)
class CellView:
    """Immutable projection of one (subject, task) cell.

    Snapshots are CellView instances, so a rollback restores an equal value.
    """

    subject_id: str
    task_id: str
    status: str
    display_value: float
    can_complete: bool
    can_undo: bool
    events: tuple[EventTuple, ...] = ()

    @property
    def has_temp_events(self) -> bool:
        """Return True while the view carries unconfirmed optimistic events."""
        return any(event[0].startswith(const.TEMP_ID_PREFIX) for event in self.events)

    def as_dict(self) -> dict[str, Any]:
        """Serialize for service responses."""
        return {
            "subject_id": self.subject_id,
            "task_id": self.task_id,
            "status": self.status,
            "display_value": self.display_value,
            "can_complete": self.can_complete,
            "can_undo": self.can_undo,
            "completion_ids": [event[0] for event in self.events],
        }


@dataclass(frozen=True)
class CheckinResult:
    """Settled outcome of one cell action."""

    subject_id: str
    task_id: str
    ok: bool
    error_kind: str | None = None
    view: CellView | None = None
    completion: dict[str, Any] | None = field(default=None, compare=False)

    def as_dict(self) -> dict[str, Any]:
        """Serialize for service responses."""
        return {
            "subject_id": self.subject_id,
            "task_id": self.task_id,
            "ok": self.ok,
            "error_kind": self.error_kind,
            "view": self.view.as_dict() if self.view else None,
            "completion_id": (
                self.completion.get(const.DATA_INTERNAL_ID) if self.completion else None
            ),
        }


# =============================================================================
# Transport
# =============================================================================


class CheckinTransport(Protocol):
    """Authoritative side of a check-in session."""

    async def async_complete(
        self, task_id: str, subject_id: str, value: Any = None
    ) -> CompletionEvent:
        """Record a completion."""

    async def async_undo(self, completion_id: str) -> CompletionEvent:
        """Delete a completion."""

    async def async_fetch_subjects_batch(
        self, subject_ids: list[str]
    ) -> list[SubjectWithAssignments]:
        """Batched read of subjects with in-window events attached."""


class LocalCheckinTransport:
    """Transport backed by this integration's managers and storage."""

    def __init__(self, coordinator: RoutineTrackerCoordinator, actor: RoleContext) -> None:
        self.coordinator = coordinator
        self.actor = actor

    async def async_complete(
        self, task_id: str, subject_id: str, value: Any = None
    ) -> CompletionEvent:
        return await self.coordinator.completion_manager.complete(
            task_id, subject_id, self.actor, value
        )

    async def async_undo(self, completion_id: str) -> CompletionEvent:
        return await self.coordinator.completion_manager.undo(completion_id, self.actor)

    async def async_fetch_subjects_batch(
        self, subject_ids: list[str]
    ) -> list[SubjectWithAssignments]:
        return self.coordinator.storage_manager.fetch_subjects_batch(
            subject_ids, self.actor, dt_now_utc()
        )


# =============================================================================
# Session
# =============================================================================


class CheckinSession:
    """Optimistic projection and per-cell state machine for one grid view."""

    def __init__(self, transport: CheckinTransport, timeout: float) -> None:
        """Initialize the session.

        Args:
            transport: Authoritative mutation and batch-read collaborator
            timeout: Seconds before an in-flight mutation is treated as failed
        """
        self._transport = transport
        self._timeout = timeout
        self._tasks: dict[str, dict[str, Any]] = {}
        self._views: dict[CellKey, CellView] = {}
        self._phases: dict[CellKey, str] = {}
        self._snapshots: dict[CellKey, CellView] = {}
        self._listeners: list[Callable[[str, str, str], None]] = []

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def views(self) -> dict[CellKey, CellView]:
        """Return a copy of the current projection."""
        return dict(self._views)

    def get_view(self, subject_id: str, task_id: str) -> CellView | None:
        """Return the projected view of one cell."""
        return self._views.get((subject_id, task_id))

    def phase(self, subject_id: str, task_id: str) -> str:
        """Return the state-machine phase of one cell."""
        return self._phases.get((subject_id, task_id), const.CELL_PHASE_IDLE)

    def is_pending(self, subject_id: str, task_id: str) -> bool:
        """Return True while an action on this cell is in flight."""
        return (subject_id, task_id) in self._snapshots

    @property
    def pending_cells(self) -> set[CellKey]:
        """Return every cell currently in flight."""
        return set(self._snapshots)

    def add_listener(self, listener: Callable[[str, str, str], None]) -> Callable[[], None]:
        """Register ``listener(subject_id, task_id, phase)``; returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def async_load(self, subject_ids: Iterable[str]) -> None:
        """Source the projection from one batched read of all subjects in view."""
        ids = list(dict.fromkeys(subject_ids))
        batch = await self._transport.async_fetch_subjects_batch(ids)
        self._apply_batch(batch, ids)
        const.LOGGER.debug(
            "DEBUG: Check-in session loaded %s cells for %s subjects",
            len(self._views),
            len(ids),
        )

    # -------------------------------------------------------------------------
    # Projection helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _build_view(
        subject_id: str, task: dict[str, Any], events: tuple[EventTuple, ...]
    ) -> CellView:
        event_dicts = [
            {
                const.DATA_INTERNAL_ID: completion_id,
                const.DATA_COMPLETION_TIMESTAMP: timestamp,
                const.DATA_COMPLETION_VALUE: value,
            }
            for completion_id, timestamp, value in events
        ]
        status = TaskCompletionEngine.classify(task, event_dicts)  # type: ignore[arg-type]
        return CellView(
            subject_id=subject_id,
            task_id=task[const.DATA_INTERNAL_ID],
            status=status["status"],
            display_value=status["display_value"],
            can_complete=status["can_complete"],
            can_undo=status["can_undo"],
            events=events,
        )

    @staticmethod
    def _event_tuple(event: CompletionEvent | dict[str, Any]) -> EventTuple:
        return (
            event[const.DATA_INTERNAL_ID],
            event.get(const.DATA_COMPLETION_TIMESTAMP, ""),
            event.get(const.DATA_COMPLETION_VALUE),
        )

    def _apply_batch(
        self,
        batch: list[SubjectWithAssignments],
        subject_ids: list[str],
        settling: CellKey | None = None,
    ) -> None:
        """Merge server truth into the projection, leaving pending cells alone.

        ``settling`` is the pending cell being reconciled; it takes the fresh view.
        """
        pending = set(self._snapshots) - {settling}
        fresh: dict[CellKey, CellView] = {}
        for subject in batch:
            subject_id = subject["subject_id"]
            for assignment in subject["assignments"]:
                task = assignment["task"]
                self._tasks[task[const.DATA_INTERNAL_ID]] = task
                events = tuple(self._event_tuple(event) for event in assignment["events"])
                try:
                    view = self._build_view(subject_id, task, events)
                except UnknownTaskType as err:
                    const.LOGGER.warning("WARNING: Check-in skipping task: %s", err)
                    continue
                fresh[(subject_id, task[const.DATA_INTERNAL_ID])] = view

        refreshed = set(subject_ids)
        for key in [key for key in self._views if key[0] in refreshed]:
            if key not in fresh and key not in pending:
                self._views.pop(key)
                self._phases.pop(key, None)
        for key, view in fresh.items():
            if key in pending:
                continue
            self._views[key] = view
            self._phases.setdefault(key, const.CELL_PHASE_IDLE)

    def _set_phase(self, key: CellKey, phase: str) -> None:
        self._phases[key] = phase
        for listener in list(self._listeners):
            listener(key[0], key[1], phase)

    @staticmethod
    def _projected_value(task: dict[str, Any], value: Any) -> float | None:
        task_type = task.get(const.DATA_TASK_TYPE)
        if task_type == const.TASK_TYPE_ONE_SHOT:
            return None
        if task_type == const.TASK_TYPE_BOUNDED_COUNTER:
            return 1.0
        return float(value) if is_finite_number(value) else 0.0

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def async_complete(
        self, subject_id: str, task_id: str, value: Any = None
    ) -> CheckinResult:
        """Optimistically complete a cell, then confirm or roll back."""
        return await self._async_run(
            (subject_id, task_id), const.CHECKIN_ACTION_COMPLETE, value
        )

    async def async_undo(self, subject_id: str, task_id: str) -> CheckinResult:
        """Optimistically undo the latest completion of a cell."""
        return await self._async_run((subject_id, task_id), const.CHECKIN_ACTION_UNDO)

    async def async_toggle(
        self, subject_id: str, task_id: str, value: Any = None
    ) -> CheckinResult:
        """Flip a cell between done and not done."""
        view = self._views.get((subject_id, task_id))
        if view is not None and view.status == const.TASK_STATUS_DONE:
            return await self.async_undo(subject_id, task_id)
        return await self.async_complete(subject_id, task_id, value)

    async def async_run_actions(
        self, actions: Iterable[dict[str, Any]]
    ) -> list[CheckinResult]:
        """Run many cell actions concurrently; each cell settles independently."""
        handlers = {
            const.CHECKIN_ACTION_COMPLETE: lambda a: self.async_complete(
                a[const.FIELD_SUBJECT_ID], a[const.FIELD_TASK_ID], a.get(const.FIELD_VALUE)
            ),
            const.CHECKIN_ACTION_UNDO: lambda a: self.async_undo(
                a[const.FIELD_SUBJECT_ID], a[const.FIELD_TASK_ID]
            ),
            const.CHECKIN_ACTION_TOGGLE: lambda a: self.async_toggle(
                a[const.FIELD_SUBJECT_ID], a[const.FIELD_TASK_ID], a.get(const.FIELD_VALUE)
            ),
        }
        return list(
            await asyncio.gather(
                *(handlers[action[const.FIELD_ACTION]](action) for action in actions)
            )
        )

    async def _async_run(
        self, key: CellKey, action: str, value: Any = None
    ) -> CheckinResult:
        subject_id, task_id = key
        view = self._views.get(key)

        # Everything up to the transport call runs without yielding, so the
        # pending check and the snapshot are atomic per cell.
        if key in self._snapshots:
            const.LOGGER.debug("DEBUG: Rejecting repeat action on pending cell %s", key)
            return CheckinResult(
                subject_id, task_id, False, const.TRANS_KEY_ERROR_CELL_PENDING, view
            )
        if view is None:
            return CheckinResult(
                subject_id, task_id, False, const.TRANS_KEY_ERROR_ENTITY_NOT_FOUND, None
            )

        task = self._tasks[task_id]
        undo_target: str | None = None
        if action == const.CHECKIN_ACTION_UNDO:
            confirmed = [e for e in view.events if not e[0].startswith(const.TEMP_ID_PREFIX)]
            if not confirmed:
                return CheckinResult(
                    subject_id,
                    task_id,
                    False,
                    const.TRANS_KEY_ERROR_COMPLETION_NOT_FOUND,
                    view,
                )
            undo_target = max(confirmed, key=lambda e: e[1])[0]
            projected_events = tuple(e for e in view.events if e[0] != undo_target)
        else:
            temp_event: EventTuple = (
                f"{const.TEMP_ID_PREFIX}{uuid.uuid4().hex}",
                dt_to_iso_utc(dt_now_utc()),
                self._projected_value(task, value),
            )
            projected_events = (*view.events, temp_event)

        self._snapshots[key] = view
        self._views[key] = self._build_view(subject_id, task, projected_events)
        self._set_phase(key, const.CELL_PHASE_PENDING)

        try:
            async with asyncio.timeout(self._timeout):
                if undo_target is not None:
                    completion = await self._transport.async_undo(undo_target)
                else:
                    completion = await self._transport.async_complete(
                        task_id, subject_id, value
                    )
        except CompletionEngineError as err:
            return self._rollback(key, err.error_kind)
        except TimeoutError:
            # The write may still land, so settle on server truth when possible
            return await self._async_rollback_reconciled(key, const.TRANS_KEY_ERROR_TIMEOUT)
        except HomeAssistantError as err:
            return self._rollback(
                key, err.translation_key or const.TRANS_KEY_ERROR_UNKNOWN
            )
        except (Exception, asyncio.CancelledError):
            self._rollback(key, const.TRANS_KEY_ERROR_UNKNOWN)
            raise

        return await self._async_confirm(key, completion, undo_target is None)

    def _settle(self, key: CellKey, phase: str) -> None:
        """Leave PENDING through ``phase`` and return to IDLE."""
        self._snapshots.pop(key, None)
        self._set_phase(key, phase)
        self._set_phase(key, const.CELL_PHASE_IDLE)

    def _rollback(self, key: CellKey, error_kind: str) -> CheckinResult:
        """Restore the exact pre-action snapshot and settle the cell."""
        snapshot = self._snapshots[key]
        self._views[key] = snapshot
        self._settle(key, const.CELL_PHASE_ROLLED_BACK)
        const.LOGGER.warning(
            "WARNING: Check-in on subject %s task %s rolled back: %s",
            key[0],
            key[1],
            error_kind,
        )
        return CheckinResult(key[0], key[1], False, error_kind, snapshot)

    async def _async_reconcile(self, key: CellKey) -> bool:
        """Refetch the cell's subject while the cell is still pending.

        Returns False when the fetch fails; the projection is left untouched.
        """
        try:
            async with asyncio.timeout(self._timeout):
                batch = await self._transport.async_fetch_subjects_batch([key[0]])
        except (TimeoutError, HomeAssistantError) as err:
            const.LOGGER.warning(
                "WARNING: Reconcile of check-in cell %s failed: %s", key, err
            )
            return False
        self._apply_batch(batch, [key[0]], settling=key)
        return True

    async def _async_rollback_reconciled(
        self, key: CellKey, error_kind: str
    ) -> CheckinResult:
        """Fail the action, showing server truth instead of the snapshot if reachable."""
        try:
            reconciled = await self._async_reconcile(key)
        except asyncio.CancelledError:
            self._rollback(key, error_kind)
            raise
        if not reconciled:
            return self._rollback(key, error_kind)
        self._settle(key, const.CELL_PHASE_ROLLED_BACK)
        const.LOGGER.warning(
            "WARNING: Check-in on subject %s task %s failed (%s), view reconciled",
            key[0],
            key[1],
            error_kind,
        )
        return CheckinResult(key[0], key[1], False, error_kind, self._views.get(key))

    async def _async_confirm(
        self, key: CellKey, completion: CompletionEvent, recorded: bool
    ) -> CheckinResult:
        """Reconcile the subject with server truth, then settle as confirmed.

        The cell stays pending (and rejects repeat actions) until it settles.
        """
        try:
            reconciled = await self._async_reconcile(key)
        except asyncio.CancelledError:
            if recorded:
                self._replace_temp_event(key, completion)
            self._settle(key, const.CELL_PHASE_CONFIRMED)
            raise
        if not reconciled and recorded:
            # The write is confirmed; keep the projection with the real id
            self._replace_temp_event(key, completion)

        self._settle(key, const.CELL_PHASE_CONFIRMED)
        return CheckinResult(
            key[0], key[1], True, None, self._views.get(key), dict(completion)
        )

    def _replace_temp_event(self, key: CellKey, completion: CompletionEvent) -> None:
        view = self._views[key]
        events = tuple(
            self._event_tuple(completion)
            if event[0].startswith(const.TEMP_ID_PREFIX)
            else event
            for event in view.events
        )
        self._views[key] = self._build_view(key[0], self._tasks[key[1]], events)


# =============================================================================
# Manager
# =============================================================================


class CheckinManager(BaseManager):
    """Creates bulk check-in sessions bound to this integration instance."""

    def __init__(
        self, hass: HomeAssistant, coordinator: RoutineTrackerCoordinator
    ) -> None:
        """Initialize the CheckinManager."""
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """No subscriptions; sessions reconcile on their own settle path."""
        const.LOGGER.debug("DEBUG: CheckinManager set up for %s", self.entry_id)

    def create_session(
        self,
        actor: RoleContext,
        transport: CheckinTransport | None = None,
    ) -> CheckinSession:
        """Return a session acting (and viewing) as ``actor``."""
        return CheckinSession(
            transport or LocalCheckinTransport(self.coordinator, actor),
            timeout=self.coordinator.mutation_timeout,
        )
