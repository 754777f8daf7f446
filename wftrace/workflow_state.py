"""Execution state of a workflow and its children, built from history events."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Union

from wftrace.activity_state import (
    ActivityExecutionState,
    TimerExecutionState,
    get_duration,
)
from wftrace.history import (
    EventAttributes,
    EventType,
    Failure,
    HistoryEvent,
    RetryState,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowType,
)

_ACTIVITY_EVENTS = frozenset(
    {
        EventType.ACTIVITY_TASK_STARTED,
        EventType.ACTIVITY_TASK_FAILED,
        EventType.ACTIVITY_TASK_COMPLETED,
        EventType.ACTIVITY_TASK_CANCEL_REQUESTED,
        EventType.ACTIVITY_TASK_CANCELED,
        EventType.ACTIVITY_TASK_TIMED_OUT,
    }
)

_CHILD_CLOSE_STATUS = {
    EventType.CHILD_WORKFLOW_EXECUTION_COMPLETED: WorkflowExecutionStatus.COMPLETED,
    EventType.CHILD_WORKFLOW_EXECUTION_FAILED: WorkflowExecutionStatus.FAILED,
    EventType.CHILD_WORKFLOW_EXECUTION_TERMINATED: WorkflowExecutionStatus.TERMINATED,
    EventType.CHILD_WORKFLOW_EXECUTION_CANCELED: WorkflowExecutionStatus.CANCELED,
    EventType.CHILD_WORKFLOW_EXECUTION_TIMED_OUT: WorkflowExecutionStatus.TIMED_OUT,
}

_CLOSE_STATUS = {
    EventType.WORKFLOW_EXECUTION_COMPLETED: WorkflowExecutionStatus.COMPLETED,
    EventType.WORKFLOW_EXECUTION_CANCELED: WorkflowExecutionStatus.CANCELED,
    EventType.WORKFLOW_EXECUTION_CONTINUED_AS_NEW: WorkflowExecutionStatus.CONTINUED_AS_NEW,
}


@dataclass
class WorkflowExecutionState:
    """Snapshot of a workflow execution, updated from history events."""

    execution: WorkflowExecution = field(default_factory=WorkflowExecution)
    type: WorkflowType | None = None
    start_time: datetime | None = None
    # None while the execution is open.
    close_time: datetime | None = None
    status: WorkflowExecutionStatus = WorkflowExecutionStatus.UNSPECIFIED
    is_archived: bool = False
    last_event_id: int = 0
    # Events known to the server; zero for archived workflows.
    history_length: int = 0
    child_states: list[ExecutionState] = field(default_factory=list)
    failure: Failure | None = None
    termination: EventAttributes | None = None
    cancel_request: EventAttributes | None = None
    retry_state: RetryState = RetryState.UNSPECIFIED
    workflow_execution_timeout: timedelta | None = None
    attempt: int = 0
    maximum_attempts: int = 0
    parent_workflow_execution: WorkflowExecution | None = None
    _activities: dict[int, ActivityExecutionState] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _children: dict[int, WorkflowExecutionState] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _timers: dict[int, TimerExecutionState] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    @property
    def name(self) -> str:
        """The workflow type's name."""
        return self.type.name if self.type is not None else ""

    @property
    def duration(self) -> timedelta:
        """Time from start to close, zero while open."""
        return get_duration(self.start_time, self.close_time)

    def is_closed(self) -> bool:
        """True once the execution cannot make further progress.

        Raises ``ValueError`` while the status is unspecified.
        """
        if self.status == WorkflowExecutionStatus.UNSPECIFIED:
            raise ValueError(
                "workflow execution status is in an unspecified state, "
                "cannot determine if it's closed"
            )
        return self.status != WorkflowExecutionStatus.RUNNING

    def child_workflow_by_event_id(
        self, initiated_event_id: int
    ) -> WorkflowExecutionState | None:
        """The child workflow started by the given initiated event, if any."""
        with self._lock:
            return self._children.get(initiated_event_id)

    def number_of_events(self) -> tuple[int, int]:
        """Events processed and events known, summed over child workflows."""
        current, total = self.last_event_id, self.history_length
        for child in self.child_states:
            if isinstance(child, WorkflowExecutionState):
                child_current, child_total = child.number_of_events()
                current += child_current
                total += child_total
        return current, total

    def _new_activity(self, event: HistoryEvent) -> None:
        activity = ActivityExecutionState()
        activity.update(event)
        with self._lock:
            self._activities[event.event_id] = activity
            self.child_states.append(activity)

    def _update_activity(self, scheduled_id: int, event: HistoryEvent) -> None:
        with self._lock:
            activity = self._activities.get(scheduled_id)
            if activity is not None:
                activity.update(event)

    def _new_child_workflow(self, event: HistoryEvent) -> None:
        attrs = event.attributes
        child = WorkflowExecutionState(
            execution=WorkflowExecution(workflow_id=attrs.workflow_id),
            type=attrs.workflow_type,
            # Child events do not carry the parent, so record it here.
            parent_workflow_execution=self.execution,
        )
        with self._lock:
            self._children[event.event_id] = child
            self.child_states.append(child)

    def _new_timer(self, event: HistoryEvent) -> None:
        timer = TimerExecutionState()
        timer.update(event)
        with self._lock:
            self._timers[event.event_id] = timer
            self.child_states.append(timer)

    def _update_timer(self, started_id: int, event: HistoryEvent) -> None:
        with self._lock:
            timer = self._timers.get(started_id)
            if timer is not None:
                timer.update(event)

    def _on_started(self, event: HistoryEvent) -> None:
        attrs = event.attributes
        self.status = WorkflowExecutionStatus.RUNNING
        self.start_time = event.event_time
        self.attempt = attrs.attempt
        self.type = attrs.workflow_type
        if not self.execution.run_id:
            self.execution.run_id = attrs.original_execution_run_id
        self.parent_workflow_execution = attrs.parent_workflow_execution
        self.failure = None
        self.cancel_request = None
        self.termination = None
        self.workflow_execution_timeout = attrs.workflow_execution_timeout
        policy = attrs.retry_policy
        self.maximum_attempts = policy.maximum_attempts if policy is not None else 0

    def _on_child_event(self, event: HistoryEvent) -> None:
        attrs = event.attributes
        child = self.child_workflow_by_event_id(attrs.initiated_event_id)
        if child is None:
            return
        kind = event.event_type
        if kind == EventType.CHILD_WORKFLOW_EXECUTION_STARTED:
            child.status = WorkflowExecutionStatus.RUNNING
            child.execution = attrs.workflow_execution
            if child.start_time is None:
                child.start_time = event.event_time
            return
        child.status = _CHILD_CLOSE_STATUS[kind]
        if kind == EventType.CHILD_WORKFLOW_EXECUTION_FAILED:
            child.failure = attrs.failure
            child.retry_state = attrs.retry_state
        if child.close_time is None:
            child.close_time = event.event_time

    def update(self, event: HistoryEvent | None) -> None:
        """Apply one history event to this state or to one of its children."""
        if event is None:
            return
        self.last_event_id = event.event_id
        attrs = event.attributes
        kind = event.event_type
        if kind == EventType.WORKFLOW_EXECUTION_STARTED:
            self._on_started(event)
        elif kind in _CLOSE_STATUS:
            self.status = _CLOSE_STATUS[kind]
            self.close_time = event.event_time
        elif kind == EventType.WORKFLOW_EXECUTION_FAILED:
            self.status = WorkflowExecutionStatus.FAILED
            self.failure = attrs.failure
            self.retry_state = attrs.retry_state
            self.close_time = event.event_time
        elif kind == EventType.WORKFLOW_EXECUTION_TERMINATED:
            self.status = WorkflowExecutionStatus.TERMINATED
            self.termination = attrs
            self.close_time = event.event_time
        elif kind == EventType.WORKFLOW_EXECUTION_CANCEL_REQUESTED:
            self.cancel_request = attrs
        elif kind == EventType.WORKFLOW_EXECUTION_TIMED_OUT:
            self.status = WorkflowExecutionStatus.TIMED_OUT
            self.close_time = event.event_time
            self.retry_state = attrs.retry_state
        elif kind == EventType.ACTIVITY_TASK_SCHEDULED:
            self._new_activity(event)
        elif kind in _ACTIVITY_EVENTS:
            self._update_activity(attrs.scheduled_event_id, event)
        elif kind == EventType.START_CHILD_WORKFLOW_EXECUTION_INITIATED:
            self._new_child_workflow(event)
        elif kind == EventType.CHILD_WORKFLOW_EXECUTION_STARTED or kind in _CHILD_CLOSE_STATUS:
            self._on_child_event(event)
        elif kind == EventType.TIMER_STARTED:
            self._new_timer(event)
        elif kind in (EventType.TIMER_FIRED, EventType.TIMER_CANCELED):
            self._update_timer(attrs.started_event_id, event)


ExecutionState = Union[WorkflowExecutionState, ActivityExecutionState, TimerExecutionState]