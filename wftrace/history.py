"""Workflow history events and the values they carry."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta


class EventType(enum.IntEnum):
    """Kind of a history event."""

    UNSPECIFIED = 0
    WORKFLOW_EXECUTION_STARTED = 1
    WORKFLOW_EXECUTION_COMPLETED = 2
    WORKFLOW_EXECUTION_FAILED = 3
    WORKFLOW_EXECUTION_TIMED_OUT = 4
    WORKFLOW_TASK_SCHEDULED = 5
    WORKFLOW_TASK_STARTED = 6
    WORKFLOW_TASK_COMPLETED = 7
    WORKFLOW_TASK_TIMED_OUT = 8
    WORKFLOW_TASK_FAILED = 9
    ACTIVITY_TASK_SCHEDULED = 10
    ACTIVITY_TASK_STARTED = 11
    ACTIVITY_TASK_COMPLETED = 12
    ACTIVITY_TASK_FAILED = 13
    ACTIVITY_TASK_TIMED_OUT = 14
    ACTIVITY_TASK_CANCEL_REQUESTED = 15
    ACTIVITY_TASK_CANCELED = 16
    TIMER_STARTED = 17
    TIMER_FIRED = 18
    TIMER_CANCELED = 19
    WORKFLOW_EXECUTION_CANCEL_REQUESTED = 20
    WORKFLOW_EXECUTION_CANCELED = 21
    REQUEST_CANCEL_EXTERNAL_WORKFLOW_EXECUTION_INITIATED = 22
    REQUEST_CANCEL_EXTERNAL_WORKFLOW_EXECUTION_FAILED = 23
    EXTERNAL_WORKFLOW_EXECUTION_CANCEL_REQUESTED = 24
    MARKER_RECORDED = 25
    WORKFLOW_EXECUTION_SIGNALED = 26
    WORKFLOW_EXECUTION_TERMINATED = 27
    WORKFLOW_EXECUTION_CONTINUED_AS_NEW = 28
    START_CHILD_WORKFLOW_EXECUTION_INITIATED = 29
    START_CHILD_WORKFLOW_EXECUTION_FAILED = 30
    CHILD_WORKFLOW_EXECUTION_STARTED = 31
    CHILD_WORKFLOW_EXECUTION_COMPLETED = 32
    CHILD_WORKFLOW_EXECUTION_FAILED = 33
    CHILD_WORKFLOW_EXECUTION_CANCELED = 34
    CHILD_WORKFLOW_EXECUTION_TIMED_OUT = 35
    CHILD_WORKFLOW_EXECUTION_TERMINATED = 36


class WorkflowExecutionStatus(enum.IntEnum):
    """Status of a workflow execution."""

    UNSPECIFIED = 0
    RUNNING = 1
    COMPLETED = 2
    FAILED = 3
    CANCELED = 4
    TERMINATED = 5
    CONTINUED_AS_NEW = 6
    TIMED_OUT = 7


class RetryState(enum.IntEnum):
    """Why a task was or was not retried."""

    UNSPECIFIED = 0
    IN_PROGRESS = 1
    NON_RETRYABLE_FAILURE = 2
    TIMEOUT = 3
    MAXIMUM_ATTEMPTS_REACHED = 4
    RETRY_POLICY_NOT_SET = 5
    INTERNAL_SERVER_ERROR = 6
    CANCEL_REQUESTED = 7


@dataclass
class WorkflowExecution:
    """Identifies one run of a workflow."""

    workflow_id: str = ""
    run_id: str = ""


@dataclass
class WorkflowType:
    """Name of a workflow type."""

    name: str = ""


@dataclass
class ActivityType:
    """Name of an activity type."""

    name: str = ""


@dataclass
class Failure:
    """A failure reported by an execution, possibly caused by another."""

    message: str = ""
    source: str = ""
    stack_trace: str = ""
    cause: Failure | None = None


@dataclass
class RetryPolicy:
    """How an execution is retried."""

    initial_interval: timedelta | None = None
    backoff_coefficient: float = 0.0
    maximum_interval: timedelta | None = None
    maximum_attempts: int = 0
    non_retryable_error_types: list[str] = field(default_factory=list)


@dataclass
class EventAttributes:
    """Attributes of a history event; which are set depends on its type."""

    workflow_id: str = ""
    workflow_type: WorkflowType | None = None
    workflow_execution: WorkflowExecution | None = None
    parent_workflow_execution: WorkflowExecution | None = None
    original_execution_run_id: str = ""
    new_execution_run_id: str = ""
    namespace: str = ""
    attempt: int = 0
    workflow_execution_timeout: timedelta | None = None
    retry_policy: RetryPolicy | None = None
    failure: Failure | None = None
    retry_state: RetryState = RetryState.UNSPECIFIED
    activity_id: str = ""
    activity_type: ActivityType | None = None
    scheduled_event_id: int = 0
    started_event_id: int = 0
    initiated_event_id: int = 0
    latest_cancel_requested_event_id: int = 0
    workflow_task_completed_event_id: int = 0
    timer_id: str = ""
    start_to_fire_timeout: timedelta | None = None
    identity: str = ""
    cause: str = ""
    reason: str = ""


@dataclass
class HistoryEvent:
    """One event in a workflow's history."""

    event_id: int = 0
    event_type: EventType = EventType.UNSPECIFIED
    event_time: datetime | None = None
    attributes: EventAttributes = field(default_factory=EventAttributes)