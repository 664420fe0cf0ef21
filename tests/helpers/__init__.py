"""Test helpers for RoutineTracker integration tests.

This module re-exports the scenario constants for convenient imports:

    from tests.helpers import SUBJECT_ANA, TASK_WATER, REFERENCE_NOW

See individual modules for full documentation:
- constants.py: Scenario ids and the fixed reference instant
"""

from tests.helpers.constants import (
    GOAL_ANA_WATER,
    GOAL_CLASS_READING,
    GOAL_PRIVATE,
    REFERENCE_NOW,
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

__all__ = [
    "GOAL_ANA_WATER",
    "GOAL_CLASS_READING",
    "GOAL_PRIVATE",
    "REFERENCE_NOW",
    "ROLE_KIOSK_1",
    "ROLE_PARENT_1",
    "ROLE_PRINCIPAL_1",
    "ROLE_TEACHER_1",
    "ROLE_TEACHER_2",
    "ROUTINE_MORNING",
    "ROUTINE_PRIVATE",
    "ROUTINE_READING",
    "SUBJECT_ANA",
    "SUBJECT_BEN",
    "SUBJECT_CAI",
    "SUBJECT_DEE",
    "TASK_BRUSH_TEETH",
    "TASK_PRIVATE_NOTE",
    "TASK_READING",
    "TASK_WATER",
]
