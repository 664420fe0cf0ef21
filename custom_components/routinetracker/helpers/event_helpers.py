"""Dispatcher signal helpers for RoutineTracker.

Signals are scoped per config entry so several instances never cross-talk.
"""

from __future__ import annotations

from .. import const


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Format: 'routinetracker_{entry_id}_{suffix}'

    Example:
        >>> get_event_signal("abc123", const.SIGNAL_SUFFIX_COMPLETION_RECORDED)
        'routinetracker_abc123_completion_recorded'
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"
