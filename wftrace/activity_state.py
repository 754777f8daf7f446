"""Execution state of activities and timers, built from history events."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import ClassVar

from wftrace.history import (
    ActivityType,
    EventType,
    Failure,
    HistoryEvent,
    RetryState,
)


class ActivityExecutionStatus(enum.IntEnum):
    """Status of an activity execution."""

    UNSPECIFIED = 0
    SCHEDULED = 1
    RUNNING = 2
    COMPLETED = 3
    FAILED = 4
    TIMED_OUT = 5
    CANCEL_REQUESTED = 6
    CANCELED = 7


class TimerExecutionStatus(enum.IntEnum):
    """Status of a timer."""

    WAITING = 0
    FIRED = 1
    CANCELED = 2


def get_duration(started: datetime | None, completed: datetime | None) -> timedelta:
    """Time between start and close; zero if either is missing."""
    if started is None or completed is None:
        return timedelta(0)
    return completed - started


def _with_fraction(value: int, precision: int) -> str:
    unit = 10**precision
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    return f"{whole}.{str(frac).zfill(precision).rstrip('0')}"


def format_go_duration(duration: timedelta) -> str:
    """Format a duration as hours, minutes and seconds, e.g. ``1h0m0s``.

    Durations under a second use ``ms``, ``µs`` or ``ns``.
    """
    nanos = ((duration.days * 86400 + duration.seconds) * 10**6 + duration.microseconds) * 1000
    negative = nanos < 0
    nanos = abs(nanos)
    if nanos < 10**9:
        if nanos == 0:
            return "0s"
        if nanos < 1000:
            text = f"{nanos}ns"
        elif nanos < 10**6:
            text = _with_fraction(nanos, 3) + "µs"
        else:
            text = _with_fraction(nanos, 6) + "ms"
    else:
        minutes, second_nanos = divmod(nanos, 60 * 10**9)
        text = _with_fraction(second_nanos, 9) + "s"
        if minutes:
            hours, minutes = divmod(minutes, 60)
            text = f"{minutes}m{text}"
            if hours:
                text = f"{hours}h{text}"
    return "-" + text if negative else text


@dataclass
class ActivityExecutionState:
    """Snapshot of an activity execution, updated from history events."""

    activity_id: str = ""
    status: ActivityExecutionStatus = ActivityExecutionStatus.UNSPECIFIED
    type: ActivityType | None = None
    # Activity events arrive only when it closes, so this is the last attempt.
    attempt: int = 0
    failure: Failure | None = None
    retry_state: RetryState = RetryState.UNSPECIFIED
    start_time: datetime | None = None
    close_time: datetime | None = None

    @property
    def name(self) -> str:
        """The activity type's name."""
        return self.type.name if self.type is not None else ""

    @property
    def duration(self) -> timedelta:
        """Time from start to close, zero while open."""
        return get_duration(self.start_time, self.close_time)

    def update(self, event: HistoryEvent) -> None:
        """Apply one history event."""
        attrs = event.attributes
        kind = event.event_type
        if kind == EventType.ACTIVITY_TASK_SCHEDULED:
            self.status = ActivityExecutionStatus.SCHEDULED
            self.activity_id = attrs.activity_id
            self.type = attrs.activity_type
        elif kind == EventType.ACTIVITY_TASK_STARTED:
            self.status = ActivityExecutionStatus.RUNNING
            self.attempt = attrs.attempt
            # Best guess for when the activity started.
            self.start_time = event.event_time
            self.failure = None
        elif kind == EventType.ACTIVITY_TASK_FAILED:
            self.status = ActivityExecutionStatus.FAILED
            self.failure = attrs.failure
            self.retry_state = attrs.retry_state
            self.close_time = event.event_time
        elif kind == EventType.ACTIVITY_TASK_COMPLETED:
            self.status = ActivityExecutionStatus.COMPLETED
            self.close_time = event.event_time
        elif kind == EventType.ACTIVITY_TASK_CANCEL_REQUESTED:
            self.status = ActivityExecutionStatus.CANCEL_REQUESTED
        elif kind == EventType.ACTIVITY_TASK_CANCELED:
            self.status = ActivityExecutionStatus.CANCELED
            self.close_time = event.event_time
        elif kind == EventType.ACTIVITY_TASK_TIMED_OUT:
            self.status = ActivityExecutionStatus.TIMED_OUT
            self.failure = attrs.failure
            self.retry_state = attrs.retry_state
            self.close_time = event.event_time


@dataclass
class TimerExecutionState:
    """A timer seen as an execution."""

    # Timers never fail.
    failure: ClassVar[Failure | None] = None

    timer_id: str = ""
    name: str = ""
    start_to_fire_timeout: timedelta | None = None
    status: TimerExecutionStatus = TimerExecutionStatus.WAITING
    start_time: datetime | None = None
    close_time: datetime | None = None

    @property
    def attempt(self) -> int:
        """Timers run exactly once."""
        return 1

    @property
    def retry_state(self) -> RetryState:
        """Timers never retry."""
        return RetryState.UNSPECIFIED

    @property
    def duration(self) -> timedelta:
        """Time from start to close, zero while waiting."""
        return get_duration(self.start_time, self.close_time)

    def update(self, event: HistoryEvent) -> None:
        """Apply one history event."""
        kind = event.event_type
        if kind == EventType.TIMER_STARTED:
            attrs = event.attributes
            self.start_to_fire_timeout = attrs.start_to_fire_timeout
            self.timer_id = attrs.timer_id
            timeout = format_go_duration(self.start_to_fire_timeout or timedelta(0))
            if attrs.timer_id != str(event.event_id):
                # A custom id makes a better name.
                self.name = f"{attrs.timer_id} ({timeout})"
            else:
                self.name = f"Timer ({timeout})"
            self.status = TimerExecutionStatus.WAITING
            self.start_time = event.event_time
        elif kind == EventType.TIMER_FIRED:
            self.status = TimerExecutionStatus.FIRED
            self.close_time = event.event_time
        elif kind == EventType.TIMER_CANCELED:
            self.status = TimerExecutionStatus.CANCELED
            self.close_time = event.event_time