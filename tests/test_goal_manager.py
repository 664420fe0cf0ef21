"""Tests for GoalManager - dependent recomputation and goal read paths."""

from __future__ import annotations

from datetime import timedelta
from typing import Any
from unittest.mock import patch

from homeassistant.core import HomeAssistant
from homeassistant.helpers.dispatcher import async_dispatcher_connect
import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.routinetracker import const
from custom_components.routinetracker.coordinator import RoutineTrackerCoordinator
from custom_components.routinetracker.engines import EntityNotFound, GoalEngine
from custom_components.routinetracker.helpers.event_helpers import get_event_signal
from custom_components.routinetracker.utils.dt_utils import dt_now_utc
from tests.helpers import (
    GOAL_ANA_WATER,
    GOAL_CLASS_READING,
    GOAL_PRIVATE,
    REFERENCE_NOW,
    ROLE_KIOSK_1,
    ROLE_PRINCIPAL_1,
    ROLE_TEACHER_1,
    SUBJECT_ANA,
    SUBJECT_BEN,
    SUBJECT_CAI,
    TASK_BRUSH_TEETH,
    TASK_PRIVATE_NOTE,
    TASK_READING,
    TASK_WATER,
)


@pytest.fixture
def coordinator(init_integration: MockConfigEntry) -> RoutineTrackerCoordinator:
    """Return the loaded coordinator."""
    return init_integration.runtime_data


@pytest.fixture
def teacher(coordinator: RoutineTrackerCoordinator) -> dict[str, Any]:
    """Return the class teacher's role context."""
    return coordinator.get_role_context(ROLE_TEACHER_1)


@pytest.fixture
def invalidations(hass: HomeAssistant, init_integration: MockConfigEntry) -> list[dict[str, Any]]:
    """Collect goals-invalidated payloads."""
    received: list[dict[str, Any]] = []
    async_dispatcher_connect(
        hass,
        get_event_signal(init_integration.entry_id, const.SIGNAL_SUFFIX_GOALS_INVALIDATED),
        received.append,
    )
    return received


# ============================================================================
# Read path
# ============================================================================


class TestGoalProgress:
    """Progress as seen by a viewer."""

    @pytest.mark.asyncio
    async def test_role_goal_pools_class_minutes(
        self, coordinator: RoutineTrackerCoordinator, teacher: dict[str, Any]
    ) -> None:
        """Class reading target 100 with 20/35/10 minutes: 65%."""
        for offset, (subject_id, minutes) in enumerate(
            [(SUBJECT_ANA, 20), (SUBJECT_BEN, 35), (SUBJECT_CAI, 10)]
        ):
            await coordinator.completion_manager.complete(
                TASK_READING,
                subject_id,
                teacher,
                minutes,
                now=REFERENCE_NOW + timedelta(seconds=offset),
            )

        progress = coordinator.goal_manager.get_goal_progress(
            GOAL_CLASS_READING, teacher, now=REFERENCE_NOW + timedelta(minutes=1)
        )
        assert progress["current"] == 65
        assert progress["target"] == 100
        assert progress["percentage"] == 65
        assert progress["achieved"] is False
        assert sorted(progress["subject_ids"]) == [SUBJECT_ANA, SUBJECT_BEN, SUBJECT_CAI]

    @pytest.mark.asyncio
    async def test_individual_goal_counts_glasses(
        self, coordinator: RoutineTrackerCoordinator, teacher: dict[str, Any]
    ) -> None:
        for second in range(5):
            await coordinator.completion_manager.complete(
                TASK_WATER, SUBJECT_ANA, teacher, now=REFERENCE_NOW + timedelta(seconds=second)
            )
        # Ben's glasses never count toward Ana's goal
        await coordinator.completion_manager.complete(
            TASK_WATER, SUBJECT_BEN, teacher, now=REFERENCE_NOW
        )

        progress = coordinator.goal_manager.get_goal_progress(
            GOAL_ANA_WATER, teacher, now=REFERENCE_NOW + timedelta(minutes=1)
        )
        assert progress["current"] == 5
        assert progress["achieved"] is True
        assert progress["subject_ids"] == [SUBJECT_ANA]

    @pytest.mark.asyncio
    async def test_other_tasks_do_not_contribute(
        self, coordinator: RoutineTrackerCoordinator, teacher: dict[str, Any]
    ) -> None:
        await coordinator.completion_manager.complete(
            TASK_BRUSH_TEETH, SUBJECT_ANA, teacher, now=REFERENCE_NOW
        )
        progress = coordinator.goal_manager.get_goal_progress(
            GOAL_ANA_WATER, teacher, now=REFERENCE_NOW + timedelta(minutes=1)
        )
        assert progress["current"] == 0

    @pytest.mark.parametrize("role_id", [ROLE_PRINCIPAL_1, ROLE_KIOSK_1])
    def test_restricted_goal_hidden(
        self, coordinator: RoutineTrackerCoordinator, role_id: str
    ) -> None:
        viewer = coordinator.get_role_context(role_id)
        with pytest.raises(EntityNotFound):
            coordinator.goal_manager.get_goal_progress(GOAL_PRIVATE, viewer, now=REFERENCE_NOW)

        listed = coordinator.goal_manager.list_goal_progress(viewer, now=REFERENCE_NOW)
        assert {goal["goal_id"] for goal in listed} == {GOAL_CLASS_READING, GOAL_ANA_WATER}

    def test_owner_lists_restricted_goal(
        self, coordinator: RoutineTrackerCoordinator, teacher: dict[str, Any]
    ) -> None:
        listed = coordinator.goal_manager.list_goal_progress(teacher, now=REFERENCE_NOW)
        assert GOAL_PRIVATE in {goal["goal_id"] for goal in listed}

    def test_list_filtered_by_subject(
        self, coordinator: RoutineTrackerCoordinator, teacher: dict[str, Any]
    ) -> None:
        listed = coordinator.goal_manager.list_goal_progress(
            teacher, subject_id=SUBJECT_BEN, now=REFERENCE_NOW
        )
        assert [goal["goal_id"] for goal in listed] == [GOAL_CLASS_READING]

    def test_unknown_goal(
        self, coordinator: RoutineTrackerCoordinator, teacher: dict[str, Any]
    ) -> None:
        with pytest.raises(EntityNotFound):
            coordinator.goal_manager.get_goal_progress("goal-missing", teacher)


# ============================================================================
# Dependent recomputation
# ============================================================================


class TestDependentGoals:
    """Completion signals recompute exactly the dependent goals."""

    def test_dependency_resolution(self, coordinator: RoutineTrackerCoordinator) -> None:
        manager = coordinator.goal_manager
        assert manager.dependent_goal_ids(SUBJECT_ANA, TASK_WATER) == [GOAL_ANA_WATER]
        assert manager.dependent_goal_ids(SUBJECT_BEN, TASK_WATER) == []
        assert manager.dependent_goal_ids(SUBJECT_BEN, TASK_READING) == [GOAL_CLASS_READING]
        # Routine-tracked goals expand to the routine's tasks
        assert manager.dependent_goal_ids(SUBJECT_ANA, TASK_PRIVATE_NOTE) == [GOAL_PRIVATE]
        assert manager.dependent_goal_ids(SUBJECT_ANA, TASK_BRUSH_TEETH) == []

    @pytest.mark.asyncio
    async def test_completion_invalidates_role_goal(
        self,
        hass: HomeAssistant,
        coordinator: RoutineTrackerCoordinator,
        teacher: dict[str, Any],
        invalidations: list[dict[str, Any]],
    ) -> None:
        await coordinator.completion_manager.complete(TASK_READING, SUBJECT_BEN, teacher, 30)
        await hass.async_block_till_done()

        assert len(invalidations) == 1
        assert invalidations[0]["goal_ids"] == [GOAL_CLASS_READING]
        assert invalidations[0]["subject_ids"] == sorted([SUBJECT_ANA, SUBJECT_BEN, SUBJECT_CAI])
        assert None in coordinator.goal_manager.progress_cache[GOAL_CLASS_READING]

    @pytest.mark.asyncio
    async def test_undo_invalidates_individual_goal(
        self,
        hass: HomeAssistant,
        coordinator: RoutineTrackerCoordinator,
        teacher: dict[str, Any],
        invalidations: list[dict[str, Any]],
    ) -> None:
        event = await coordinator.completion_manager.complete(TASK_WATER, SUBJECT_ANA, teacher)
        await coordinator.completion_manager.undo(event[const.DATA_INTERNAL_ID], teacher)
        await hass.async_block_till_done()

        assert [payload["goal_ids"] for payload in invalidations] == [
            [GOAL_ANA_WATER],
            [GOAL_ANA_WATER],
        ]
        assert invalidations[-1]["subject_ids"] == [SUBJECT_ANA]
        cached = coordinator.goal_manager.progress_cache[GOAL_ANA_WATER][SUBJECT_ANA]
        assert cached["current"] == 0

    @pytest.mark.asyncio
    async def test_unrelated_completion_is_silent(
        self,
        hass: HomeAssistant,
        coordinator: RoutineTrackerCoordinator,
        teacher: dict[str, Any],
        invalidations: list[dict[str, Any]],
    ) -> None:
        await coordinator.completion_manager.complete(TASK_BRUSH_TEETH, SUBJECT_CAI, teacher)
        await hass.async_block_till_done()
        assert invalidations == []


# ============================================================================
# Cached progress
# ============================================================================


class TestProgressCache:
    """Recomputed progress serves later reads within the same goal window."""

    @pytest.mark.asyncio
    async def test_read_served_from_recomputed_progress(
        self,
        hass: HomeAssistant,
        coordinator: RoutineTrackerCoordinator,
        teacher: dict[str, Any],
    ) -> None:
        await coordinator.completion_manager.complete(TASK_WATER, SUBJECT_ANA, teacher)
        await hass.async_block_till_done()

        with patch.object(
            GoalEngine, "compute_progress", wraps=GoalEngine.compute_progress
        ) as compute:
            progress = coordinator.goal_manager.get_goal_progress(GOAL_ANA_WATER, teacher)

        assert compute.call_count == 0
        assert progress["current"] == 1
        assert progress == coordinator.goal_manager.progress_cache[GOAL_ANA_WATER][SUBJECT_ANA]

    @pytest.mark.asyncio
    async def test_stale_window_is_recomputed(
        self,
        hass: HomeAssistant,
        coordinator: RoutineTrackerCoordinator,
        teacher: dict[str, Any],
    ) -> None:
        await coordinator.completion_manager.complete(TASK_WATER, SUBJECT_ANA, teacher)
        await hass.async_block_till_done()

        progress = coordinator.goal_manager.get_goal_progress(
            GOAL_ANA_WATER, teacher, now=dt_now_utc() + timedelta(days=2)
        )
        assert progress["current"] == 0

    @pytest.mark.asyncio
    async def test_signal_replaces_cached_entries(
        self,
        hass: HomeAssistant,
        coordinator: RoutineTrackerCoordinator,
        teacher: dict[str, Any],
    ) -> None:
        manager = coordinator.goal_manager
        assert manager.get_goal_progress(GOAL_CLASS_READING, teacher)["current"] == 0

        await coordinator.completion_manager.complete(TASK_READING, SUBJECT_CAI, teacher, 25)
        await hass.async_block_till_done()

        assert manager.get_goal_progress(GOAL_CLASS_READING, teacher)["current"] == 25
