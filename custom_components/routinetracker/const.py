# File: const.py
"""Constants for the RoutineTracker integration.

This file centralizes configuration keys, defaults, storage keys, signal suffixes,
service names and translation keys for consistency across the integration.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
# Integration Name
ROUTINETRACKER_TITLE = "RoutineTracker"

# Integration Domain
DOMAIN = "routinetracker"

# Logger
LOGGER = logging.getLogger(__package__)

# Coordinator
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORAGE_KEY = "routinetracker_data"
STORAGE_VERSION = 1
SCHEMA_VERSION_CURRENT = 1

# ------------------------------------------------------------------------------------------------
# Configuration Keys (config entry options)
# ------------------------------------------------------------------------------------------------
CONF_ENFORCE_UNDO_WINDOW = "enforce_undo_window"
CONF_MUTATION_TIMEOUT = "mutation_timeout"
CONF_STREAK_LOOKBACK = "streak_lookback"

DEFAULT_ENFORCE_UNDO_WINDOW = True
DEFAULT_MUTATION_TIMEOUT = 10
DEFAULT_STREAK_LOOKBACK = 30

MIN_MUTATION_TIMEOUT = 1
MAX_MUTATION_TIMEOUT = 120
MIN_STREAK_LOOKBACK = 1
MAX_STREAK_LOOKBACK = 365

# ------------------------------------------------------------------------------------------------
# Task Types
# ------------------------------------------------------------------------------------------------
TASK_TYPE_ONE_SHOT = "one_shot"
TASK_TYPE_BOUNDED_COUNTER = "bounded_counter"
TASK_TYPE_UNBOUNDED_PROGRESS = "unbounded_progress"

TASK_TYPES = frozenset(
    {
        TASK_TYPE_ONE_SHOT,
        TASK_TYPE_BOUNDED_COUNTER,
        TASK_TYPE_UNBOUNDED_PROGRESS,
    }
)

# Bounded counters are small check-in counters
DEFAULT_COUNTER_BOUND = 9
MIN_COUNTER_BOUND = 1
MAX_COUNTER_BOUND = 9

# Progress entries
MAX_PROGRESS_VALUE = 999

# Task status (classifier output)
TASK_STATUS_DONE = "done"
TASK_STATUS_PARTIAL = "partial"
TASK_STATUS_IN_PROGRESS = "in_progress"
TASK_STATUS_NOT_STARTED = "not_started"

# ------------------------------------------------------------------------------------------------
# Recurrence Policies
# ------------------------------------------------------------------------------------------------
RECURRENCE_DAILY = "daily"
RECURRENCE_WEEKLY = "weekly"
RECURRENCE_MONTHLY = "monthly"
RECURRENCE_CUSTOM = "custom"

RECURRENCE_KINDS = frozenset(
    {
        RECURRENCE_DAILY,
        RECURRENCE_WEEKLY,
        RECURRENCE_MONTHLY,
        RECURRENCE_CUSTOM,
    }
)

# Weekday anchors use Python numbering (0 = Monday)
WEEKDAY_MIN = 0
WEEKDAY_MAX = 6
MONTHDAY_MIN = 1
MONTHDAY_MAX = 31

# ------------------------------------------------------------------------------------------------
# Goal Scopes
# ------------------------------------------------------------------------------------------------
GOAL_SCOPE_INDIVIDUAL = "individual"
GOAL_SCOPE_GROUP = "group"
GOAL_SCOPE_ROLE = "role"

GOAL_SCOPES = frozenset(
    {
        GOAL_SCOPE_INDIVIDUAL,
        GOAL_SCOPE_GROUP,
        GOAL_SCOPE_ROLE,
    }
)

# ------------------------------------------------------------------------------------------------
# Roles
# ------------------------------------------------------------------------------------------------
ROLE_TYPE_PARENT = "parent"
ROLE_TYPE_TEACHER = "teacher"
ROLE_TYPE_PRINCIPAL = "principal"
ROLE_TYPE_KIOSK = "kiosk"

# Only this role type can see restricted routines and tasks
PRIVILEGED_ROLE_TYPE = ROLE_TYPE_TEACHER

# ------------------------------------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------------------------------------
STATUS_ACTIVE = "active"
STATUS_ARCHIVED = "archived"

# ------------------------------------------------------------------------------------------------
# Bulk Check-in Cell Phases
# ------------------------------------------------------------------------------------------------
CELL_PHASE_IDLE = "idle"
CELL_PHASE_PENDING = "pending"
CELL_PHASE_CONFIRMED = "confirmed"
CELL_PHASE_ROLLED_BACK = "rolled_back"

CHECKIN_ACTION_COMPLETE = "complete"
CHECKIN_ACTION_UNDO = "undo"
CHECKIN_ACTION_TOGGLE = "toggle"

CHECKIN_ACTIONS = [
    CHECKIN_ACTION_COMPLETE,
    CHECKIN_ACTION_UNDO,
    CHECKIN_ACTION_TOGGLE,
]

# Optimistic (not yet persisted) completion ids
TEMP_ID_PREFIX = "temp_"

# ------------------------------------------------------------------------------------------------
# Storage Data Keys
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"

DATA_SUBJECTS = "subjects"
DATA_ROLES = "roles"
DATA_ROUTINES = "routines"
DATA_TASKS = "tasks"
DATA_GOALS = "goals"
DATA_COMPLETIONS = "completions"

# Shared
DATA_INTERNAL_ID = "internal_id"
DATA_NAME = "name"
DATA_STATUS = "status"
DATA_RESTRICTED_VISIBILITY = "restricted_visibility"
DATA_OWNER_ROLE_ID = "owner_role_id"

# Roles
DATA_ROLE_TYPE = "role_type"
DATA_ROLE_HA_USER_ID = "ha_user_id"
DATA_ROLE_IS_KIOSK = "is_kiosk"
DATA_ROLE_LINKED_ROLE_IDS = "linked_role_ids"
DATA_ROLE_SUBJECT_IDS = "subject_ids"
DATA_ROLE_OWN_SUBJECT_ID = "own_subject_id"

# Routines
DATA_ROUTINE_RECURRENCE = "recurrence"
DATA_ROUTINE_ASSIGNED_SUBJECT_IDS = "assigned_subject_ids"

# Recurrence policy
DATA_RECURRENCE_KIND = "kind"
DATA_RECURRENCE_ANCHOR = "anchor"
DATA_RECURRENCE_CUSTOM_START = "custom_start"

# Tasks
DATA_TASK_ROUTINE_ID = "routine_id"
DATA_TASK_TYPE = "task_type"
DATA_TASK_UNIT = "unit"
DATA_TASK_BOUND = "bound"
DATA_TASK_ORDER = "order"

# Goals
DATA_GOAL_TARGET = "target"
DATA_GOAL_UNIT = "unit"
DATA_GOAL_PERIOD = "period"
DATA_GOAL_SCOPE = "scope"
DATA_GOAL_SUBJECT_IDS = "subject_ids"
DATA_GOAL_TASK_IDS = "task_ids"
DATA_GOAL_ROUTINE_IDS = "routine_ids"
DATA_GOAL_STREAK_ENABLED = "streak_enabled"
DATA_GOAL_STREAK_LOOKBACK = "streak_lookback"

# Completion events
DATA_COMPLETION_TASK_ID = "task_id"
DATA_COMPLETION_SUBJECT_ID = "subject_id"
DATA_COMPLETION_TIMESTAMP = "timestamp"
DATA_COMPLETION_VALUE = "value"
DATA_COMPLETION_ENTRY_NUMBER = "entry_number"
DATA_COMPLETION_SUMMED_VALUE = "summed_value"
DATA_COMPLETION_IDEMPOTENCY_KEY = "idempotency_key"
DATA_COMPLETION_ACTING_ROLE_ID = "acting_role_id"

# ------------------------------------------------------------------------------------------------
# Event Signals (instance scoped, see helpers.event_helpers.get_event_signal)
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_COMPLETION_RECORDED = "completion_recorded"
SIGNAL_SUFFIX_COMPLETION_UNDONE = "completion_undone"
SIGNAL_SUFFIX_GOALS_INVALIDATED = "goals_invalidated"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_COMPLETE_TASK = "complete_task"
SERVICE_UNDO_COMPLETION = "undo_completion"
SERVICE_GET_TASK_STATUS = "get_task_status"
SERVICE_GET_GOAL_PROGRESS = "get_goal_progress"
SERVICE_BULK_CHECK_IN = "bulk_check_in"

FIELD_ROLE_ID = "role_id"
FIELD_TASK_ID = "task_id"
FIELD_SUBJECT_ID = "subject_id"
FIELD_SUBJECT_IDS = "subject_ids"
FIELD_GOAL_ID = "goal_id"
FIELD_COMPLETION_ID = "completion_id"
FIELD_VALUE = "value"
FIELD_IDEMPOTENCY_KEY = "idempotency_key"
FIELD_ACTIONS = "actions"
FIELD_ACTION = "action"

# ------------------------------------------------------------------------------------------------
# Translation Keys (errors)
# ------------------------------------------------------------------------------------------------
TRANS_KEY_ERROR_INVALID_RECURRENCE_POLICY = "invalid_recurrence_policy"
TRANS_KEY_ERROR_INVALID_VALUE = "invalid_value"
TRANS_KEY_ERROR_MISSING_VALUE = "missing_value"
TRANS_KEY_ERROR_TASK_ALREADY_DONE = "task_already_done"
TRANS_KEY_ERROR_COUNTER_EXHAUSTED = "counter_exhausted"
TRANS_KEY_ERROR_ACCESS_DENIED = "access_denied"
TRANS_KEY_ERROR_COMPLETION_NOT_FOUND = "completion_not_found"
TRANS_KEY_ERROR_WINDOW_CLOSED = "window_closed"
TRANS_KEY_ERROR_ENTITY_NOT_FOUND = "entity_not_found"
TRANS_KEY_ERROR_UNKNOWN_TASK_TYPE = "unknown_task_type"
TRANS_KEY_ERROR_CELL_PENDING = "cell_pending"
TRANS_KEY_ERROR_TIMEOUT = "timeout"
TRANS_KEY_ERROR_STORAGE_WRITE_FAILED = "storage_write_failed"
TRANS_KEY_ERROR_NOT_AUTHORIZED = "not_authorized"
TRANS_KEY_ERROR_NO_ENTRY = "no_entry"
TRANS_KEY_ERROR_UNKNOWN = "unknown"

# Config flow abort reasons
TRANS_KEY_ABORT_SINGLE_INSTANCE = "single_instance_allowed"

# ------------------------------------------------------------------------------------------------
# Flow Steps
# ------------------------------------------------------------------------------------------------
CONFIG_FLOW_STEP_USER = "user"
OPTIONS_FLOW_STEP_INIT = "init"
