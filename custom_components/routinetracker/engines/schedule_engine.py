"""Reset-period engine for RoutineTracker.

Resolves the start of the currently active recurrence window for routines and
goals:
- DAILY: local midnight of the reference instant
- WEEKLY: most recent anchor weekday (Monday = 0) at/before the reference
- MONTHLY: most recent anchor day-of-month, clamped to short months
- CUSTOM: caller-supplied explicit start (pass-through)

Uses `dateutil.relativedelta` for weekday stepping and month arithmetic.

ARCHITECTURE: Pure logic engine with NO Home Assistant dependencies. The
reference instant is always an explicit argument; nothing here reads a clock.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from dateutil.relativedelta import relativedelta
from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, weekday

from .. import const
from ..utils.dt_utils import as_local, dt_to_utc, start_of_local_day
from .errors import InvalidRecurrencePolicy

if TYPE_CHECKING:
    from datetime import tzinfo

    from ..type_defs import RecurrencePolicy


class ResetPeriodEngine:
    """Window boundary calculations for recurrence policies.

    All methods are static. Results are timezone-aware datetimes in the local
    reference timezone (``tz`` or the dt_utils default).
    """

    # Python weekday numbering: 0 = Monday ... 6 = Sunday
    WEEKDAYS: ClassVar[tuple[weekday, ...]] = (MO, TU, WE, TH, FR, SA, SU)

    @staticmethod
    def validate(recurrence: RecurrencePolicy | dict[str, Any]) -> None:
        """Raise InvalidRecurrencePolicy if the policy cannot be resolved."""
        if not isinstance(recurrence, dict):
            raise InvalidRecurrencePolicy(None, reason="policy is not a mapping")

        kind = recurrence.get(const.DATA_RECURRENCE_KIND)
        anchor = recurrence.get(const.DATA_RECURRENCE_ANCHOR)

        if kind not in const.RECURRENCE_KINDS:
            raise InvalidRecurrencePolicy(kind, anchor, "unknown kind")

        if kind == const.RECURRENCE_WEEKLY:
            if not _is_int(anchor) or not (
                const.WEEKDAY_MIN <= anchor <= const.WEEKDAY_MAX
            ):
                raise InvalidRecurrencePolicy(kind, anchor, "weekday must be 0-6")

        elif kind == const.RECURRENCE_MONTHLY:
            if not _is_int(anchor) or not (
                const.MONTHDAY_MIN <= anchor <= const.MONTHDAY_MAX
            ):
                raise InvalidRecurrencePolicy(kind, anchor, "day must be 1-31")

        elif kind == const.RECURRENCE_CUSTOM:
            custom_start = recurrence.get(const.DATA_RECURRENCE_CUSTOM_START)
            if dt_to_utc(custom_start) is None:
                raise InvalidRecurrencePolicy(
                    kind, anchor, "custom window requires an explicit start"
                )

    @staticmethod
    def window_start(
        recurrence: RecurrencePolicy | dict[str, Any],
        reference: datetime,
        tz: tzinfo | None = None,
    ) -> datetime:
        """Return the start of the window containing ``reference``.

        Args:
            recurrence: Policy dict with kind, anchor and (for CUSTOM) custom_start
            reference: The instant to resolve against
            tz: Local reference timezone (defaults to dt_utils default)

        Raises:
            InvalidRecurrencePolicy: Unknown kind or anchor out of range.
        """
        ResetPeriodEngine.validate(recurrence)
        kind = recurrence[const.DATA_RECURRENCE_KIND]
        day_start = start_of_local_day(reference, tz)

        if kind == const.RECURRENCE_DAILY:
            result = day_start

        elif kind == const.RECURRENCE_WEEKLY:
            anchor_day = ResetPeriodEngine.WEEKDAYS[recurrence[const.DATA_RECURRENCE_ANCHOR]]
            # weekday(-1) stays put when the reference is already on the anchor day
            result = day_start + relativedelta(weekday=anchor_day(-1))

        elif kind == const.RECURRENCE_MONTHLY:
            anchor = recurrence[const.DATA_RECURRENCE_ANCHOR]
            this_month_day = _clamp_day(day_start.year, day_start.month, anchor)
            if this_month_day <= day_start.day:
                result = day_start.replace(day=this_month_day)
            else:
                prev = day_start.replace(day=1) - relativedelta(months=1)
                result = prev.replace(day=_clamp_day(prev.year, prev.month, anchor))

        else:
            custom_start = dt_to_utc(recurrence[const.DATA_RECURRENCE_CUSTOM_START])
            result = as_local(custom_start, tz)

        const.LOGGER.debug(
            "ResetPeriodEngine: window_start kind=%s reference=%s -> %s",
            kind,
            reference.isoformat(),
            result.isoformat(),
        )
        return result

    @staticmethod
    def window_end(
        recurrence: RecurrencePolicy | dict[str, Any],
        start: datetime,
        tz: tzinfo | None = None,
    ) -> datetime | None:
        """Return the start of the window following the one beginning at ``start``.

        CUSTOM windows are open-ended and return None.
        """
        ResetPeriodEngine.validate(recurrence)
        kind = recurrence[const.DATA_RECURRENCE_KIND]
        local_start = as_local(start, tz)

        if kind == const.RECURRENCE_DAILY:
            return local_start + relativedelta(days=1)
        if kind == const.RECURRENCE_WEEKLY:
            return local_start + relativedelta(weeks=1)
        if kind == const.RECURRENCE_MONTHLY:
            anchor = recurrence[const.DATA_RECURRENCE_ANCHOR]
            nxt = local_start.replace(day=1) + relativedelta(months=1)
            return nxt.replace(day=_clamp_day(nxt.year, nxt.month, anchor))
        return None

    @staticmethod
    def window_bounds(
        recurrence: RecurrencePolicy | dict[str, Any],
        reference: datetime,
        tz: tzinfo | None = None,
    ) -> tuple[datetime, datetime | None]:
        """Return ``(start, end)`` of the window containing ``reference``."""
        start = ResetPeriodEngine.window_start(recurrence, reference, tz)
        return start, ResetPeriodEngine.window_end(recurrence, start, tz)

    @staticmethod
    def previous_window_start(
        recurrence: RecurrencePolicy | dict[str, Any],
        start: datetime,
        tz: tzinfo | None = None,
    ) -> datetime | None:
        """Return the start of the window immediately before ``start``.

        CUSTOM policies have a single explicit window and return None.
        """
        ResetPeriodEngine.validate(recurrence)
        if recurrence[const.DATA_RECURRENCE_KIND] == const.RECURRENCE_CUSTOM:
            return None
        return ResetPeriodEngine.window_start(
            recurrence, start - timedelta(microseconds=1), tz
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _clamp_day(year: int, month: int, anchor: int) -> int:
    """Clamp an anchor day to the last day of the given month."""
    return min(anchor, monthrange(year, month)[1])
