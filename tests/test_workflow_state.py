from datetime import datetime, timedelta

import pytest

from wftrace.activity_state import (
    ActivityExecutionState,
    ActivityExecutionStatus,
    TimerExecutionState,
    TimerExecutionStatus,
)
from wftrace.history import (
    ActivityType,
    EventAttributes,
    EventType,
    Failure,
    HistoryEvent,
    RetryPolicy,
    RetryState,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowType,
)
from wftrace.workflow_state import WorkflowExecutionState


def _event(event_id, event_type, event_time=None, **attrs):
    return HistoryEvent(
        event_id=event_id,
        event_type=event_type,
        event_time=event_time,
        attributes=EventAttributes(**attrs),
    )


def make_events():
    return {
        "started": _event(
            1, EventType.WORKFLOW_EXECUTION_STARTED,
            workflow_type=WorkflowType("foo"), attempt=1,
        ),
        "completed": _event(
            100, EventType.WORKFLOW_EXECUTION_COMPLETED,
            workflow_task_completed_event_id=120, new_execution_run_id="foobar",
        ),
        "failed": _event(
            89, EventType.WORKFLOW_EXECUTION_FAILED,
            failure=Failure(message="Totally expected workflow failure"),
            retry_state=RetryState.NON_RETRYABLE_FAILURE,
            workflow_task_completed_event_id=120, new_execution_run_id="foobar",
        ),
        "cancel requested": _event(
            89, EventType.WORKFLOW_EXECUTION_CANCEL_REQUESTED,
            cause="foobar", identity="unit test",
        ),
        "canceled": _event(90, EventType.WORKFLOW_EXECUTION_CANCELED),
        "activity scheduled": _event(
            10, EventType.ACTIVITY_TASK_SCHEDULED,
            activity_id="abc", activity_type=ActivityType("Mr ActivityFace"),
        ),
        "activity started": _event(
            13, EventType.ACTIVITY_TASK_STARTED,
            scheduled_event_id=10, identity="worker-baz", attempt=1,
        ),
        "activity failed": _event(
            20, EventType.ACTIVITY_TASK_FAILED,
            scheduled_event_id=10, started_event_id=13, identity="worker-baz",
            failure=Failure(message="I was a test"),
        ),
        "activity completed": _event(
            20, EventType.ACTIVITY_TASK_COMPLETED,
            scheduled_event_id=10, started_event_id=13, identity="worker-baz",
        ),
        "activity cancel requested": _event(
            20, EventType.ACTIVITY_TASK_CANCEL_REQUESTED, scheduled_event_id=10,
        ),
        "activity canceled": _event(
            21, EventType.ACTIVITY_TASK_CANCELED,
            scheduled_event_id=10, latest_cancel_requested_event_id=20,
            identity="unit test",
        ),
        "second activity scheduled": _event(
            30, EventType.ACTIVITY_TASK_SCHEDULED,
            activity_id="def", activity_type=ActivityType("Hyperactivity"),
        ),
        "child workflow initiated": _event(
            50, EventType.START_CHILD_WORKFLOW_EXECUTION_INITIATED,
            namespace="default", workflow_id="childWfId",
            workflow_type=WorkflowType("baz"),
        ),
        "child workflow started": _event(
            52, EventType.CHILD_WORKFLOW_EXECUTION_STARTED,
            namespace="default", initiated_event_id=50,
            workflow_execution=WorkflowExecution("childWfId", "childRunId"),
            workflow_type=WorkflowType("baz"),
        ),
        "child workflow completed": _event(
            60, EventType.CHILD_WORKFLOW_EXECUTION_COMPLETED,
            namespace="default",
            workflow_execution=WorkflowExecution("childWfId", "childRunId"),
            workflow_type=WorkflowType("baz"),
            initiated_event_id=50, started_event_id=52,
        ),
        "child workflow failed": _event(
            55, EventType.CHILD_WORKFLOW_EXECUTION_FAILED,
            failure=Failure(message="This child failed us"),
            retry_state=RetryState.MAXIMUM_ATTEMPTS_REACHED,
            namespace="default",
            workflow_execution=WorkflowExecution("childWfId", "childRunId"),
            workflow_type=WorkflowType("baz"),
            initiated_event_id=50, started_event_id=52,
        ),
        "child workflow canceled": _event(
            55, EventType.CHILD_WORKFLOW_EXECUTION_CANCELED,
            namespace="default",
            workflow_execution=WorkflowExecution("childWfId", "childRunId"),
            workflow_type=WorkflowType("baz"),
            initiated_event_id=50, started_event_id=52,
        ),
        "timer started": _event(
            20, EventType.TIMER_STARTED,
            timer_id="20", start_to_fire_timeout=timedelta(hours=1),
        ),
        "timer fired": _event(
            21, EventType.TIMER_FIRED, timer_id="20", started_event_id=20,
        ),
        "timer canceled": _event(
            21, EventType.TIMER_CANCELED,
            timer_id="20", started_event_id=20, identity="test",
        ),
    }


def _run(names):
    events = make_events()
    state = WorkflowExecutionState(execution=WorkflowExecution("foo", ""))
    for name in names:
        state.update(events[name])
    return state


@pytest.mark.parametrize(
    "names, expected",
    [
        (
            ["started"],
            WorkflowExecutionState(
                last_event_id=1, execution=WorkflowExecution("foo"),
                type=WorkflowType("foo"), status=WorkflowExecutionStatus.RUNNING,
                attempt=1,
            ),
        ),
        (
            ["started", "completed"],
            WorkflowExecutionState(
                last_event_id=100, execution=WorkflowExecution("foo"),
                type=WorkflowType("foo"), status=WorkflowExecutionStatus.COMPLETED,
                attempt=1,
            ),
        ),
        (
            ["started", "failed"],
            WorkflowExecutionState(
                last_event_id=89, execution=WorkflowExecution("foo"),
                type=WorkflowType("foo"), status=WorkflowExecutionStatus.FAILED,
                attempt=1,
                failure=Failure(message="Totally expected workflow failure"),
                retry_state=RetryState.NON_RETRYABLE_FAILURE,
            ),
        ),
        (
            ["started", "cancel requested"],
            WorkflowExecutionState(
                last_event_id=89, execution=WorkflowExecution("foo"),
                type=WorkflowType("foo"), status=WorkflowExecutionStatus.RUNNING,
                cancel_request=EventAttributes(cause="foobar", identity="unit test"),
                attempt=1,
            ),
        ),
        (
            ["started", "cancel requested", "canceled"],
            WorkflowExecutionState(
                last_event_id=90, execution=WorkflowExecution("foo"),
                type=WorkflowType("foo"), status=WorkflowExecutionStatus.CANCELED,
                cancel_request=EventAttributes(cause="foobar", identity="unit test"),
                attempt=1,
            ),
        ),
    ],
    ids=["started", "completed", "failed", "cancel requested", "canceled"],
)
def test_update_workflow(names, expected):
    assert _run(names) == expected


def _activity(status, attempt=0, **kwargs):
    return ActivityExecutionState(
        activity_id="abc", type=ActivityType("Mr ActivityFace"),
        status=status, attempt=attempt, **kwargs,
    )


@pytest.mark.parametrize(
    "names, expected",
    [
        (["started", "activity scheduled"],
         [_activity(ActivityExecutionStatus.SCHEDULED)]),
        (["started", "activity scheduled", "activity started"],
         [_activity(ActivityExecutionStatus.RUNNING, 1)]),
        (["started", "activity scheduled", "activity started", "activity failed"],
         [_activity(ActivityExecutionStatus.FAILED, 1, failure=Failure(message="I was a test"))]),
        (["started", "activity scheduled", "activity started", "activity completed"],
         [_activity(ActivityExecutionStatus.COMPLETED, 1)]),
        (["started", "activity scheduled", "second activity scheduled", "activity started"],
         [_activity(ActivityExecutionStatus.RUNNING, 1),
          ActivityExecutionState(activity_id="def", type=ActivityType("Hyperactivity"),
                                 status=ActivityExecutionStatus.SCHEDULED)]),
        (["started", "activity scheduled", "activity started", "activity cancel requested"],
         [_activity(ActivityExecutionStatus.CANCEL_REQUESTED, 1)]),
        (["started", "activity scheduled", "activity started",
          "activity cancel requested", "activity canceled"],
         [_activity(ActivityExecutionStatus.CANCELED, 1)]),
    ],
    ids=["scheduled", "started", "failed", "completed", "second scheduled",
         "cancel requested", "canceled"],
)
def test_update_activities(names, expected):
    assert _run(names).child_states == expected


def _child(status, run_id="childRunId", **kwargs):
    return WorkflowExecutionState(
        type=WorkflowType("baz"), status=status,
        execution=WorkflowExecution("childWfId", run_id),
        parent_workflow_execution=WorkflowExecution("foo"),
        **kwargs,
    )


@pytest.mark.parametrize(
    "names, expected",
    [
        (["started", "child workflow initiated"],
         [_child(WorkflowExecutionStatus.UNSPECIFIED, run_id="")]),
        (["started", "child workflow initiated", "child workflow started"],
         [_child(WorkflowExecutionStatus.RUNNING)]),
        (["started", "child workflow initiated", "child workflow started",
          "child workflow completed"],
         [_child(WorkflowExecutionStatus.COMPLETED)]),
        (["started", "child workflow initiated", "child workflow started",
          "child workflow failed"],
         [_child(WorkflowExecutionStatus.FAILED,
                 failure=Failure(message="This child failed us"),
                 retry_state=RetryState.MAXIMUM_ATTEMPTS_REACHED)]),
        (["started", "child workflow initiated", "child workflow started",
          "child workflow canceled"],
         [_child(WorkflowExecutionStatus.CANCELED)]),
    ],
    ids=["initiated", "started", "completed", "failed", "canceled"],
)
def test_update_child_workflows(names, expected):
    assert _run(names).child_states == expected


@pytest.mark.parametrize(
    "names, status",
    [
        (["started", "timer started"], TimerExecutionStatus.WAITING),
        (["started", "timer started", "timer fired"], TimerExecutionStatus.FIRED),
        (["started", "timer started", "timer canceled"], TimerExecutionStatus.CANCELED),
    ],
    ids=["started", "fired", "canceled"],
)
def test_update_timers(names, status):
    expected = [
        TimerExecutionState(
            name="Timer (1h0m0s)", timer_id="20",
            start_to_fire_timeout=timedelta(hours=1), status=status,
        )
    ]
    assert _run(names).child_states == expected


@pytest.mark.parametrize(
    "state, current, total",
    [
        (WorkflowExecutionState(last_event_id=1, history_length=5), 1, 5),
        (
            WorkflowExecutionState(
                last_event_id=5, history_length=10,
                child_states=[WorkflowExecutionState(last_event_id=1, history_length=3)],
            ),
            6, 13,
        ),
        (
            WorkflowExecutionState(
                last_event_id=5, history_length=10,
                child_states=[
                    WorkflowExecutionState(last_event_id=1, history_length=3),
                    ActivityExecutionState(),
                    TimerExecutionState(),
                    WorkflowExecutionState(last_event_id=1, history_length=3),
                ],
            ),
            7, 16,
        ),
        (
            WorkflowExecutionState(
                last_event_id=5, history_length=10,
                child_states=[
                    WorkflowExecutionState(last_event_id=1, history_length=3),
                    WorkflowExecutionState(
                        last_event_id=5, history_length=10,
                        child_states=[WorkflowExecutionState(last_event_id=1, history_length=3)],
                    ),
                ],
            ),
            12, 26,
        ),
    ],
    ids=["no children", "one child", "multiple children", "multiple depths"],
)
def test_number_of_events(state, current, total):
    assert state.number_of_events() == (current, total)


def test_is_closed_unspecified_raises():
    with pytest.raises(ValueError, match="unspecified state"):
        WorkflowExecutionState().is_closed()


def test_is_closed_running_and_completed():
    assert _run(["started"]).is_closed() is False
    assert _run(["started", "completed"]).is_closed() is True


def test_child_workflow_by_event_id():
    state = _run(["started", "child workflow initiated"])
    child = state.child_workflow_by_event_id(50)
    assert child is state.child_states[0]
    assert state.child_workflow_by_event_id(51) is None


def test_update_none_is_ignored():
    state = _run(["started"])
    state.update(None)
    assert state.last_event_id == 1


def test_terminated_records_termination_and_close_time():
    closed = datetime(2024, 1, 1, 12, 0, 0)
    state = _run(["started"])
    state.update(_event(7, EventType.WORKFLOW_EXECUTION_TERMINATED, closed, reason="stop"))
    assert state.status == WorkflowExecutionStatus.TERMINATED
    assert state.termination == EventAttributes(reason="stop")
    assert state.close_time == closed


def test_timed_out_and_continued_as_new():
    state = _run(["started"])
    state.update(_event(8, EventType.WORKFLOW_EXECUTION_TIMED_OUT,
                        retry_state=RetryState.TIMEOUT))
    assert state.status == WorkflowExecutionStatus.TIMED_OUT
    assert state.retry_state == RetryState.TIMEOUT
    other = _run(["started"])
    other.update(_event(9, EventType.WORKFLOW_EXECUTION_CONTINUED_AS_NEW))
    assert other.status == WorkflowExecutionStatus.CONTINUED_AS_NEW


def test_started_sets_run_id_policy_and_clears_failure():
    start = datetime(2024, 1, 1)
    state = WorkflowExecutionState(
        execution=WorkflowExecution("foo", ""), failure=Failure(message="old"),
    )
    state.update(_event(
        1, EventType.WORKFLOW_EXECUTION_STARTED, start,
        workflow_type=WorkflowType("foo"), original_execution_run_id="run-1",
        retry_policy=RetryPolicy(maximum_attempts=3),
        workflow_execution_timeout=timedelta(minutes=5),
    ))
    assert state.execution == WorkflowExecution("foo", "run-1")
    assert state.maximum_attempts == 3
    assert state.workflow_execution_timeout == timedelta(minutes=5)
    assert state.failure is None
    assert state.start_time == start
    assert state.name == "foo"


def test_existing_run_id_kept():
    state = WorkflowExecutionState(execution=WorkflowExecution("foo", "mine"))
    state.update(_event(1, EventType.WORKFLOW_EXECUTION_STARTED,
                        original_execution_run_id="other"))
    assert state.execution.run_id == "mine"


def test_duration_from_start_and_close():
    start = datetime(2024, 1, 1, 0, 0, 0)
    state = WorkflowExecutionState()
    state.update(_event(1, EventType.WORKFLOW_EXECUTION_STARTED, start))
    assert state.duration == timedelta(0)
    state.update(_event(2, EventType.WORKFLOW_EXECUTION_COMPLETED, start + timedelta(hours=1)))
    assert state.duration == timedelta(hours=1)


def test_unknown_activity_update_is_ignored():
    events = make_events()
    state = _run(["started"])
    state.update(events["activity started"])
    assert state.child_states == []
    assert state.last_event_id == 13