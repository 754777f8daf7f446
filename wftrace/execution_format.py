"""Folding rules and human-friendly durations for execution trees."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from wftrace.activity_state import format_go_duration
from wftrace.history import WorkflowExecutionStatus
from wftrace.workflow_state import WorkflowExecutionState

MIN_FOLDING_DEPTH = 1

_MS = 10**6
_SECOND = 10**9
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR


def should_fold_status(
    fold_status: Iterable[WorkflowExecutionStatus], no_fold: bool
) -> Callable[[WorkflowExecutionState, int], bool]:
    """Predicate telling whether a workflow at a depth is shown folded.

    The root workflow is at depth 0 and is never folded.
    """
    statuses = list(fold_status)

    def should_fold(state: WorkflowExecutionState, current_depth: int) -> bool:
        if no_fold or current_depth < MIN_FOLDING_DEPTH:
            return False
        return state.status in statuses

    return should_fold


def _to_nanos(duration: timedelta) -> int:
    return ((duration.days * 86400 + duration.seconds) * 10**6 + duration.microseconds) * 1000


def _round(nanos: int, multiple: int) -> int:
    # Halves round away from zero.
    negative = nanos < 0
    size = abs(nanos)
    rest = size % multiple
    size = size - rest if rest + rest < multiple else size + multiple - rest
    return -size if negative else size


def _format_rounded(nanos: int, multiple: int) -> str:
    rounded = _round(nanos, multiple)
    return format_go_duration(timedelta(microseconds=rounded // 1000))


def fmt_duration(duration: timedelta) -> str:
    """Format a duration rounded to the most sensible unit."""
    nanos = _to_nanos(duration)
    if nanos < _SECOND:
        return _format_rounded(nanos, _MS)
    if nanos < _HOUR:
        return _format_rounded(nanos, _SECOND)
    if nanos < _DAY:
        return _format_rounded(nanos, _MINUTE)
    hours = nanos / _HOUR
    days = int(hours / 24)
    if nanos < 7 * _DAY:
        return f"{days}d{int(hours) - days * 24}h"
    weeks = int(hours / (7 * 24))
    return f"{weeks}w{days}d"


def _is_zero_time(value: datetime | None) -> bool:
    return value is None or value.replace(tzinfo=None) == datetime.min


def fmt_time_since(start: datetime | None, duration: timedelta) -> str:
    """The duration if set, else how long ago ``start`` was; empty without a start.

    Naive times are taken to be UTC.
    """
    if _is_zero_time(start):
        return ""
    if duration == timedelta(0):
        now = datetime.now(timezone.utc)
        if start.tzinfo is None:
            now = now.replace(tzinfo=None)
        return f"{fmt_duration(now - start)} ago"
    return fmt_duration(duration)