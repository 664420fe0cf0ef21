"""Type definitions for RoutineTracker data structures.

Same hybrid strategy throughout:

1. **TypedDict for STATIC structures** (fixed keys known at design time):
   entity definitions (SubjectData, RoutineData, TaskData, GoalData),
   completion events and the engine result shapes.

2. **dict[str, Any] for DYNAMIC structures** (keys determined at runtime):
   the entity buckets keyed by internal_id.

IMPORTANT: This file must NOT import from coordinator.py or any manager to
avoid circular dependencies. TypedDict is static analysis only; runtime
validation stays in the engines and managers.
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

SubjectId = str  # UUID string
RoleId = str  # UUID string
RoutineId = str  # UUID string
TaskId = str  # UUID string
GoalId = str  # UUID string
CompletionId = str  # UUID string (or "temp_..." inside a check-in session)
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"
CellKey = tuple[str, str]  # (subject_id, task_id)


# =============================================================================
# Entity Types
# =============================================================================


class SubjectData(TypedDict):
    """A person completions and goal progress are attributed to."""

    internal_id: SubjectId
    name: str


class RoleData(TypedDict):
    """A stored role (parent, teacher, principal or kiosk).

    subject_ids are the subjects this role administers. linked_role_ids are
    co-owners (co-teachers) sharing the privileged view of this role.
    """

    internal_id: RoleId
    name: str
    role_type: str
    ha_user_id: NotRequired[str | None]
    is_kiosk: NotRequired[bool]
    linked_role_ids: NotRequired[list[RoleId]]
    subject_ids: NotRequired[list[SubjectId]]
    own_subject_id: NotRequired[SubjectId | None]


class RoleContext(TypedDict):
    """An already-resolved acting or viewing role handed to the engines."""

    role_id: RoleId
    role_type: str
    is_kiosk: bool
    linked_role_ids: list[RoleId]
    administered_subject_ids: list[SubjectId]
    own_subject_id: SubjectId | None


class RecurrencePolicy(TypedDict):
    """Recurrence policy shared by routines and goals.

    anchor: weekday 0-6 (Monday = 0) for WEEKLY, day 1-31 for MONTHLY.
    custom_start: explicit window start for CUSTOM.
    """

    kind: str
    anchor: NotRequired[int | None]
    custom_start: NotRequired[ISODatetime | None]


class RoutineData(TypedDict):
    """A named collection of tasks sharing one recurrence policy."""

    internal_id: RoutineId
    name: str
    owner_role_id: RoleId
    recurrence: RecurrencePolicy
    restricted_visibility: bool
    assigned_subject_ids: list[SubjectId]
    status: str


class TaskData(TypedDict):
    """A trackable unit of work owned by a routine."""

    internal_id: TaskId
    routine_id: RoutineId
    name: str
    task_type: str
    unit: NotRequired[str | None]
    bound: NotRequired[int | None]
    order: NotRequired[int]
    status: str
    restricted_visibility: NotRequired[bool]


class GoalData(TypedDict):
    """A target over one or more tasks/routines with an aggregation scope."""

    internal_id: GoalId
    name: str
    target: float
    unit: NotRequired[str | None]
    period: RecurrencePolicy
    scope: str
    owner_role_id: NotRequired[RoleId | None]
    subject_ids: NotRequired[list[SubjectId]]
    task_ids: NotRequired[list[TaskId]]
    routine_ids: NotRequired[list[RoutineId]]
    streak_enabled: NotRequired[bool]
    streak_lookback: NotRequired[int | None]
    restricted_visibility: NotRequired[bool]
    status: NotRequired[str]


class CompletionEvent(TypedDict):
    """Immutable completion record. History is append/delete only."""

    internal_id: CompletionId
    task_id: TaskId
    subject_id: SubjectId
    timestamp: ISODatetime
    value: float | None
    entry_number: NotRequired[int]
    summed_value: NotRequired[float]
    idempotency_key: NotRequired[str | None]
    acting_role_id: NotRequired[RoleId | None]


# =============================================================================
# Engine Results
# =============================================================================


class TaskStatus(TypedDict):
    """Classifier output for one (subject, task) cell."""

    status: str
    display_value: float
    can_complete: bool
    can_undo: bool


class EntryPlan(TypedDict):
    """Values the mutation service stamps onto a new completion event."""

    entry_number: int
    summed_value: float
    value: float | None


class GoalProgress(TypedDict):
    """Aggregated goal progress for the goal's current period."""

    goal_id: GoalId
    current: float
    target: float
    percentage: float
    achieved: bool
    window_start: ISODatetime | None
    streak: int
    subject_ids: list[SubjectId]


class TaskAssignment(TypedDict):
    """One assigned task with its in-window events attached."""

    task: TaskData
    window_start: ISODatetime
    events: list[CompletionEvent]


class SubjectWithAssignments(TypedDict):
    """Batched read result for one subject."""

    subject_id: SubjectId
    name: str
    routine_ids: list[RoutineId]
    assignments: list[TaskAssignment]


# Entity buckets keyed by internal_id
StorageBucket = dict[str, dict[str, Any]]
