"""Shared fixtures for RoutineTracker tests."""

from typing import Any
from unittest.mock import patch

import pytest
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.routinetracker import const
from tests.helpers import (
    GOAL_ANA_WATER,
    GOAL_CLASS_READING,
    GOAL_PRIVATE,
    ROLE_KIOSK_1,
    ROLE_PARENT_1,
    ROLE_PRINCIPAL_1,
    ROLE_TEACHER_1,
    ROLE_TEACHER_2,
    ROUTINE_MORNING,
    ROUTINE_PRIVATE,
    ROUTINE_READING,
    SUBJECT_ANA,
    SUBJECT_BEN,
    SUBJECT_CAI,
    SUBJECT_DEE,
    TASK_BRUSH_TEETH,
    TASK_PRIVATE_NOTE,
    TASK_READING,
    TASK_WATER,
)
from custom_components.routinetracker.const import (
    CONF_ENFORCE_UNDO_WINDOW,
    CONF_MUTATION_TIMEOUT,
    CONF_STREAK_LOOKBACK,
    DEFAULT_ENFORCE_UNDO_WINDOW,
    DEFAULT_MUTATION_TIMEOUT,
    DEFAULT_STREAK_LOOKBACK,
    DOMAIN,
)

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture
async def mock_hass_users(hass: HomeAssistant) -> dict[str, Any]:
    """Create mock Home Assistant users for testing."""
    admin_user = await hass.auth.async_create_user(
        "Admin User",
        group_ids=["system-admin"],
    )
    teacher_user = await hass.auth.async_create_user(
        "Teacher One",
        group_ids=["system-users"],
    )
    parent_user = await hass.auth.async_create_user(
        "Parent One",
        group_ids=["system-users"],
    )

    return {
        "admin": admin_user,
        "teacher1": teacher_user,
        "parent1": parent_user,
    }


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=DOMAIN,
        title="RoutineTracker",
        data={},
        options={
            CONF_ENFORCE_UNDO_WINDOW: DEFAULT_ENFORCE_UNDO_WINDOW,
            CONF_MUTATION_TIMEOUT: DEFAULT_MUTATION_TIMEOUT,
            CONF_STREAK_LOOKBACK: DEFAULT_STREAK_LOOKBACK,
        },
        entry_id="test_entry_id",
        unique_id="test_unique_id",
    )


def _role(
    role_id: str,
    role_type: str,
    subject_ids: list[str],
    linked_role_ids: list[str] | None = None,
    ha_user_id: str | None = None,
) -> dict[str, Any]:
    return {
        const.DATA_INTERNAL_ID: role_id,
        const.DATA_NAME: role_id,
        const.DATA_ROLE_TYPE: role_type,
        const.DATA_ROLE_HA_USER_ID: ha_user_id,
        const.DATA_ROLE_IS_KIOSK: role_type == const.ROLE_TYPE_KIOSK,
        const.DATA_ROLE_LINKED_ROLE_IDS: linked_role_ids or [],
        const.DATA_ROLE_SUBJECT_IDS: subject_ids,
        const.DATA_ROLE_OWN_SUBJECT_ID: None,
    }


def _task(
    task_id: str,
    routine_id: str,
    task_type: str,
    order: int,
    **extra: Any,
) -> dict[str, Any]:
    return {
        const.DATA_INTERNAL_ID: task_id,
        const.DATA_NAME: task_id,
        const.DATA_TASK_ROUTINE_ID: routine_id,
        const.DATA_TASK_TYPE: task_type,
        const.DATA_TASK_ORDER: order,
        const.DATA_STATUS: const.STATUS_ACTIVE,
        **extra,
    }


@pytest.fixture
def mock_storage_data() -> dict[str, Any]:
    """Return a classroom document: three pupils, two teachers, three routines."""
    class_subjects = [SUBJECT_ANA, SUBJECT_BEN, SUBJECT_CAI]
    return {
        const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT},
        const.DATA_SUBJECTS: {
            subject_id: {
                const.DATA_INTERNAL_ID: subject_id,
                const.DATA_NAME: subject_id.removeprefix("subject-").title(),
            }
            for subject_id in [*class_subjects, SUBJECT_DEE]
        },
        const.DATA_ROLES: {
            ROLE_TEACHER_1: _role(
                ROLE_TEACHER_1,
                const.ROLE_TYPE_TEACHER,
                class_subjects,
                linked_role_ids=[ROLE_TEACHER_2],
            ),
            ROLE_TEACHER_2: _role(ROLE_TEACHER_2, const.ROLE_TYPE_TEACHER, [SUBJECT_DEE]),
            ROLE_PARENT_1: _role(ROLE_PARENT_1, const.ROLE_TYPE_PARENT, [SUBJECT_ANA]),
            ROLE_PRINCIPAL_1: _role(
                ROLE_PRINCIPAL_1,
                const.ROLE_TYPE_PRINCIPAL,
                [*class_subjects, SUBJECT_DEE],
            ),
            ROLE_KIOSK_1: _role(ROLE_KIOSK_1, const.ROLE_TYPE_KIOSK, class_subjects),
        },
        const.DATA_ROUTINES: {
            ROUTINE_MORNING: {
                const.DATA_INTERNAL_ID: ROUTINE_MORNING,
                const.DATA_NAME: "Morning",
                const.DATA_ROUTINE_RECURRENCE: {
                    const.DATA_RECURRENCE_KIND: const.RECURRENCE_DAILY,
                },
                const.DATA_ROUTINE_ASSIGNED_SUBJECT_IDS: class_subjects,
                const.DATA_OWNER_ROLE_ID: ROLE_TEACHER_1,
                const.DATA_RESTRICTED_VISIBILITY: False,
                const.DATA_STATUS: const.STATUS_ACTIVE,
            },
            ROUTINE_READING: {
                const.DATA_INTERNAL_ID: ROUTINE_READING,
                const.DATA_NAME: "Weekly reading",
                const.DATA_ROUTINE_RECURRENCE: {
                    const.DATA_RECURRENCE_KIND: const.RECURRENCE_WEEKLY,
                    const.DATA_RECURRENCE_ANCHOR: 0,
                },
                const.DATA_ROUTINE_ASSIGNED_SUBJECT_IDS: class_subjects,
                const.DATA_OWNER_ROLE_ID: ROLE_TEACHER_1,
                const.DATA_RESTRICTED_VISIBILITY: False,
                const.DATA_STATUS: const.STATUS_ACTIVE,
            },
            ROUTINE_PRIVATE: {
                const.DATA_INTERNAL_ID: ROUTINE_PRIVATE,
                const.DATA_NAME: "Support plan",
                const.DATA_ROUTINE_RECURRENCE: {
                    const.DATA_RECURRENCE_KIND: const.RECURRENCE_DAILY,
                },
                const.DATA_ROUTINE_ASSIGNED_SUBJECT_IDS: [SUBJECT_ANA],
                const.DATA_OWNER_ROLE_ID: ROLE_TEACHER_1,
                const.DATA_RESTRICTED_VISIBILITY: True,
                const.DATA_STATUS: const.STATUS_ACTIVE,
            },
        },
        const.DATA_TASKS: {
            TASK_BRUSH_TEETH: _task(
                TASK_BRUSH_TEETH, ROUTINE_MORNING, const.TASK_TYPE_ONE_SHOT, 1
            ),
            TASK_WATER: _task(
                TASK_WATER,
                ROUTINE_MORNING,
                const.TASK_TYPE_BOUNDED_COUNTER,
                2,
                **{const.DATA_TASK_BOUND: 9, const.DATA_TASK_UNIT: "glasses"},
            ),
            TASK_READING: _task(
                TASK_READING,
                ROUTINE_READING,
                const.TASK_TYPE_UNBOUNDED_PROGRESS,
                1,
                **{const.DATA_TASK_UNIT: "minutes"},
            ),
            TASK_PRIVATE_NOTE: _task(
                TASK_PRIVATE_NOTE, ROUTINE_PRIVATE, const.TASK_TYPE_ONE_SHOT, 1
            ),
        },
        const.DATA_GOALS: {
            GOAL_CLASS_READING: {
                const.DATA_INTERNAL_ID: GOAL_CLASS_READING,
                const.DATA_NAME: "Class reading minutes",
                const.DATA_GOAL_TARGET: 100,
                const.DATA_GOAL_UNIT: "minutes",
                const.DATA_GOAL_PERIOD: {
                    const.DATA_RECURRENCE_KIND: const.RECURRENCE_WEEKLY,
                    const.DATA_RECURRENCE_ANCHOR: 0,
                },
                const.DATA_GOAL_SCOPE: const.GOAL_SCOPE_ROLE,
                const.DATA_GOAL_TASK_IDS: [TASK_READING],
                const.DATA_OWNER_ROLE_ID: ROLE_TEACHER_1,
                const.DATA_RESTRICTED_VISIBILITY: False,
                const.DATA_STATUS: const.STATUS_ACTIVE,
            },
            GOAL_ANA_WATER: {
                const.DATA_INTERNAL_ID: GOAL_ANA_WATER,
                const.DATA_NAME: "Ana drinks water",
                const.DATA_GOAL_TARGET: 5,
                const.DATA_GOAL_PERIOD: {
                    const.DATA_RECURRENCE_KIND: const.RECURRENCE_DAILY,
                },
                const.DATA_GOAL_SCOPE: const.GOAL_SCOPE_INDIVIDUAL,
                const.DATA_GOAL_SUBJECT_IDS: [SUBJECT_ANA],
                const.DATA_GOAL_TASK_IDS: [TASK_WATER],
                const.DATA_OWNER_ROLE_ID: ROLE_TEACHER_1,
                const.DATA_RESTRICTED_VISIBILITY: False,
                const.DATA_STATUS: const.STATUS_ACTIVE,
            },
            GOAL_PRIVATE: {
                const.DATA_INTERNAL_ID: GOAL_PRIVATE,
                const.DATA_NAME: "Support plan notes",
                const.DATA_GOAL_TARGET: 1,
                const.DATA_GOAL_PERIOD: {
                    const.DATA_RECURRENCE_KIND: const.RECURRENCE_DAILY,
                },
                const.DATA_GOAL_SCOPE: const.GOAL_SCOPE_GROUP,
                const.DATA_GOAL_SUBJECT_IDS: [SUBJECT_ANA],
                const.DATA_GOAL_ROUTINE_IDS: [ROUTINE_PRIVATE],
                const.DATA_OWNER_ROLE_ID: ROLE_TEACHER_1,
                const.DATA_RESTRICTED_VISIBILITY: True,
                const.DATA_STATUS: const.STATUS_ACTIVE,
            },
        },
        const.DATA_COMPLETIONS: {},
    }


@pytest.fixture
async def init_integration(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,  # pylint: disable=redefined-outer-name
    mock_storage_data: dict[str, Any],  # pylint: disable=redefined-outer-name
) -> MockConfigEntry:
    """Set up the RoutineTracker integration for testing with mocked storage."""
    mock_config_entry.add_to_hass(hass)

    # Mock the Store's async_load to return our test data
    with patch(
        "homeassistant.helpers.storage.Store.async_load",
        return_value=mock_storage_data,
    ):
        assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
        await hass.async_block_till_done()

    return mock_config_entry
