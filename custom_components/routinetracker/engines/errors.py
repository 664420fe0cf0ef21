"""Typed failures for the completion and progress engines.

Every error carries a stable ``error_kind`` string. The kind is part of the
caller contract: the bulk check-in session surfaces it for a rolled back cell,
and services.py uses it as the Home Assistant translation key.

ARCHITECTURE: Pure Python, NO Home Assistant dependencies. Managers raise and
propagate these; only the service layer converts them to HA exceptions.
"""

from __future__ import annotations

from typing import Any, ClassVar

from .. import const


class CompletionEngineError(Exception):
    """Base class for all typed completion/progress failures."""

    error_kind: ClassVar[str] = const.TRANS_KEY_ERROR_UNKNOWN

    def placeholders(self) -> dict[str, str]:
        """Return translation placeholders describing this failure."""
        return {}


class InvalidRecurrencePolicy(CompletionEngineError):
    """Raised when a recurrence kind or anchor is out of range."""

    error_kind = const.TRANS_KEY_ERROR_INVALID_RECURRENCE_POLICY

    def __init__(self, kind: Any, anchor: Any = None, reason: str = "") -> None:
        self.kind = kind
        self.anchor = anchor
        self.reason = reason
        super().__init__(
            f"Invalid recurrence policy kind={kind!r} anchor={anchor!r}"
            + (f": {reason}" if reason else "")
        )

    def placeholders(self) -> dict[str, str]:
        return {"kind": str(self.kind), "anchor": str(self.anchor)}


class InvalidValue(CompletionEngineError):
    """Raised when a progress value is non-numeric or out of range."""

    error_kind = const.TRANS_KEY_ERROR_INVALID_VALUE

    def __init__(self, task_id: str, value: Any) -> None:
        self.task_id = task_id
        self.value = value
        super().__init__(f"Invalid value {value!r} for task {task_id}")

    def placeholders(self) -> dict[str, str]:
        return {"task_id": self.task_id, "value": str(self.value)}


class MissingValue(InvalidValue):
    """Raised when a progress task is completed without a positive value."""

    error_kind = const.TRANS_KEY_ERROR_MISSING_VALUE


class TaskAlreadyDone(CompletionEngineError):
    """Raised when a one-shot task already has an in-window completion."""

    error_kind = const.TRANS_KEY_ERROR_TASK_ALREADY_DONE

    def __init__(self, task_id: str, subject_id: str) -> None:
        self.task_id = task_id
        self.subject_id = subject_id
        super().__init__(f"Task {task_id} already done for subject {subject_id}")

    def placeholders(self) -> dict[str, str]:
        return {"task_id": self.task_id, "subject_id": self.subject_id}


class CounterExhausted(CompletionEngineError):
    """Raised when a bounded counter is already at its bound.

    Attributes:
        task_id: The counter task
        count: Current in-window count
        bound: Upper limit for the window
    """

    error_kind = const.TRANS_KEY_ERROR_COUNTER_EXHAUSTED

    def __init__(self, task_id: str, count: int, bound: int) -> None:
        self.task_id = task_id
        self.count = count
        self.bound = bound
        super().__init__(
            f"Counter exhausted for task {task_id}: count={count}, bound={bound}"
        )

    def placeholders(self) -> dict[str, str]:
        return {
            "task_id": self.task_id,
            "count": str(self.count),
            "bound": str(self.bound),
        }


class AccessDenied(CompletionEngineError):
    """Raised when the acting role has no completion rights over the subject."""

    error_kind = const.TRANS_KEY_ERROR_ACCESS_DENIED

    def __init__(self, role_id: str, subject_id: str) -> None:
        self.role_id = role_id
        self.subject_id = subject_id
        super().__init__(f"Role {role_id} may not act on subject {subject_id}")

    def placeholders(self) -> dict[str, str]:
        return {"role_id": self.role_id, "subject_id": self.subject_id}


class CompletionNotFound(CompletionEngineError):
    """Raised when a completion does not exist or was already undone."""

    error_kind = const.TRANS_KEY_ERROR_COMPLETION_NOT_FOUND

    def __init__(self, completion_id: str) -> None:
        self.completion_id = completion_id
        super().__init__(f"Completion {completion_id} not found")

    def placeholders(self) -> dict[str, str]:
        return {"completion_id": self.completion_id}


class WindowClosed(CompletionEngineError):
    """Raised when undoing a completion recorded before the current window."""

    error_kind = const.TRANS_KEY_ERROR_WINDOW_CLOSED

    def __init__(self, completion_id: str, timestamp: str, window_start: str) -> None:
        self.completion_id = completion_id
        self.timestamp = timestamp
        self.window_start = window_start
        super().__init__(
            f"Completion {completion_id} at {timestamp} precedes window start "
            f"{window_start}"
        )

    def placeholders(self) -> dict[str, str]:
        return {"completion_id": self.completion_id, "window_start": self.window_start}


class EntityNotFound(CompletionEngineError):
    """Raised when a task, subject, routine, role or goal is missing or hidden."""

    error_kind = const.TRANS_KEY_ERROR_ENTITY_NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")

    def placeholders(self) -> dict[str, str]:
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}


class UnknownTaskType(CompletionEngineError):
    """Raised when a stored task carries a task type outside the closed set."""

    error_kind = const.TRANS_KEY_ERROR_UNKNOWN_TASK_TYPE

    def __init__(self, task_id: str, task_type: Any) -> None:
        self.task_id = task_id
        self.task_type = task_type
        super().__init__(f"Unknown task type {task_type!r} for task {task_id}")

    def placeholders(self) -> dict[str, str]:
        return {"task_id": self.task_id, "task_type": str(self.task_type)}
