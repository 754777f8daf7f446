"""Coloured status icons for workflows, activities and timers."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Any

from wftrace.activity_state import (
    ActivityExecutionState,
    ActivityExecutionStatus,
    TimerExecutionState,
    TimerExecutionStatus,
)
from wftrace.history import WorkflowExecutionStatus
from wftrace.workflow_state import WorkflowExecutionState


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    stream = sys.stdout
    try:
        return stream is not None and stream.isatty()
    except (AttributeError, ValueError, OSError):
        return False


_COLOR = _color_enabled()
_RED, _GREEN, _YELLOW, _BLUE = 31, 32, 33, 34


def _paint(code: int, text: str) -> str:
    return f"\x1b[{code}m{text}\x1b[0m" if _COLOR else text


STATUS_RUNNING = _paint(_BLUE, "▷")
STATUS_COMPLETED = _paint(_GREEN, "✓")
STATUS_TERMINATED = _paint(_RED, "x")
STATUS_CANCELED = _paint(_YELLOW, "x")
STATUS_FAILED = _paint(_RED, "!")
STATUS_CONTINUE_AS_NEW = _paint(_GREEN, "»")
STATUS_TIMED_OUT = _paint(_RED, "⏱")
STATUS_UNSPECIFIED_SCHEDULED = "•"
STATUS_CANCEL_REQUESTED = _paint(_YELLOW, "▷")
STATUS_TIMER_WAITING = _paint(_BLUE, "⧖")
STATUS_TIMER_FIRED = _paint(_GREEN, "⧖")
STATUS_TIMER_CANCELED = _paint(_YELLOW, "⧖")

_WORKFLOW_ICONS = {
    WorkflowExecutionStatus.UNSPECIFIED: STATUS_UNSPECIFIED_SCHEDULED,
    WorkflowExecutionStatus.RUNNING: STATUS_RUNNING,
    WorkflowExecutionStatus.COMPLETED: STATUS_COMPLETED,
    WorkflowExecutionStatus.TERMINATED: STATUS_TERMINATED,
    WorkflowExecutionStatus.CANCELED: STATUS_CANCELED,
    WorkflowExecutionStatus.FAILED: STATUS_FAILED,
    WorkflowExecutionStatus.CONTINUED_AS_NEW: STATUS_CONTINUE_AS_NEW,
    WorkflowExecutionStatus.TIMED_OUT: STATUS_TIMED_OUT,
}

_ACTIVITY_ICONS = {
    ActivityExecutionStatus.UNSPECIFIED: STATUS_UNSPECIFIED_SCHEDULED,
    ActivityExecutionStatus.SCHEDULED: STATUS_UNSPECIFIED_SCHEDULED,
    ActivityExecutionStatus.RUNNING: STATUS_RUNNING,
    ActivityExecutionStatus.COMPLETED: STATUS_COMPLETED,
    ActivityExecutionStatus.CANCEL_REQUESTED: STATUS_CANCEL_REQUESTED,
    ActivityExecutionStatus.CANCELED: STATUS_CANCELED,
    ActivityExecutionStatus.FAILED: STATUS_FAILED,
    ActivityExecutionStatus.TIMED_OUT: STATUS_TIMED_OUT,
}

_TIMER_ICONS = {
    TimerExecutionStatus.WAITING: STATUS_TIMER_WAITING,
    TimerExecutionStatus.FIRED: STATUS_TIMER_FIRED,
    TimerExecutionStatus.CANCELED: STATUS_TIMER_CANCELED,
}


def execution_status(state: Any) -> str:
    """The (coloured) icon for an execution's status, ``?`` if unknown."""
    if isinstance(state, WorkflowExecutionState):
        icons: dict = _WORKFLOW_ICONS
    elif isinstance(state, ActivityExecutionState):
        icons = _ACTIVITY_ICONS
    elif isinstance(state, TimerExecutionState):
        icons = _TIMER_ICONS
    else:
        return "?"
    return icons.get(state.status, "?")


@dataclass(frozen=True)
class StatusIcon:
    """A status name with its icon, for help messages."""

    name: str
    icon: str


STATUS_ICONS_LEGEND = [
    StatusIcon("Unspecified or Scheduled", STATUS_UNSPECIFIED_SCHEDULED),
    StatusIcon("Running", STATUS_RUNNING),
    StatusIcon("Completed", STATUS_COMPLETED),
    StatusIcon("Continue As New", STATUS_CONTINUE_AS_NEW),
    StatusIcon("Failed", STATUS_FAILED),
    StatusIcon("Timed Out", STATUS_TIMED_OUT),
    StatusIcon("Cancel Requested", STATUS_CANCEL_REQUESTED),
    StatusIcon("Canceled", STATUS_CANCELED),
    StatusIcon("Terminated", STATUS_TERMINATED),
]