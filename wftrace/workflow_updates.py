"""Follow a workflow and its child workflows as their histories grow.

The client passed in must offer two methods:

* ``describe_workflow_execution(workflow_id, run_id)`` returning an object
  with a ``history_length`` attribute, and
* ``get_workflow_history(workflow_id, run_id, is_long_poll)`` returning an
  iterable of :class:`~wftrace.history.HistoryEvent`; errors are raised while
  iterating.
"""

from __future__ import annotations

import functools
import queue
import threading
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from wftrace.history import (
    EventType,
    HistoryEvent,
    WorkflowExecution,
    WorkflowExecutionStatus,
)
from wftrace.workflow_state import WorkflowExecutionState

_UPDATE = "update"
_DONE = "done"
_ERROR = "error"


@dataclass
class WorkflowExecutionUpdate:
    """A snapshot notification carrying the root workflow's state."""

    state: WorkflowExecutionState


class _TaskGroup:
    """Runs tasks on an executor and waits for all of them, nested ones too.

    The first error is kept and ``cancelled`` is set so other tasks can stop.
    """

    def __init__(self, executor: ThreadPoolExecutor):
        self._executor = executor
        self._cond = threading.Condition()
        self._pending = 0
        self._error: BaseException | None = None
        self.cancelled = threading.Event()

    def submit(self, task: Callable[[], Any]) -> None:
        with self._cond:
            self._pending += 1
        try:
            self._executor.submit(self._run, task)
        except RuntimeError:
            self._finish()
            raise

    def _run(self, task: Callable[[], Any]) -> None:
        try:
            task()
        except Exception as err:  # noqa: BLE001 - reported through wait()
            with self._cond:
                if self._error is None:
                    self._error = err
            self.cancelled.set()
        finally:
            self._finish()

    def _finish(self) -> None:
        with self._cond:
            self._pending -= 1
            self._cond.notify_all()

    def wait(self) -> BaseException | None:
        with self._cond:
            self._cond.wait_for(lambda: self._pending == 0)
            return self._error


class WorkflowStateJob:
    """Fetches a workflow's history into its state and spawns jobs for children.

    Child jobs start once this workflow has caught up with its history, which
    avoids fetching histories that are not needed (e.g. of closed children).
    """

    def __init__(
        self,
        client: Any,
        state: WorkflowExecutionState | None,
        fetch_all: bool,
        fold_status: Iterable[WorkflowExecutionStatus] | None,
        depth: int,
        on_update: Callable[[], None] | None,
    ):
        if state is None:
            raise ValueError("workflow state cannot be nil for a workflow state job")
        if on_update is None:
            raise ValueError("updateChan cannot be nil for a workflow state job")
        # Describing up front lets progress count the events of every workflow.
        description = client.describe_workflow_execution(
            state.execution.workflow_id, state.execution.run_id
        )
        state.history_length = description.history_length
        state.is_archived = description.history_length == 0

        self.client = client
        self.state = state
        self.fetch_all = fetch_all
        self.fold_status = list(fold_status or [])
        self.depth = depth
        self.on_update = on_update
        self.child_jobs: list[WorkflowStateJob] = []
        self.is_up_to_date = False

    def run(self, group: Any) -> None:
        """Process the workflow's events, submitting child jobs to ``group``."""
        state = self.state
        # Archived workflows cannot be long polled.
        events = self.client.get_workflow_history(
            state.execution.workflow_id, state.execution.run_id, not state.is_archived
        )
        for event in events:
            if group.cancelled.is_set():
                return
            if event is None:
                continue

            state.update(event)
            self.on_update()

            if event.event_type == EventType.CHILD_WORKFLOW_EXECUTION_STARTED and self.depth != 0:
                child = self.child_job(event)
                self.child_jobs.append(child)
                if self.is_up_to_date:
                    group.submit(functools.partial(child.run, group))

            if not self.is_up_to_date and event.event_id >= state.history_length and self.depth != 0:
                self.is_up_to_date = True
                for child in self.child_jobs:
                    if child.should_start():
                        group.submit(functools.partial(child.run, group))
                    else:
                        # A child that will not be fetched counts as complete.
                        child.state.last_event_id = child.state.history_length

    def child_job(self, event: HistoryEvent) -> WorkflowStateJob:
        """A new job for the child workflow started by ``event``."""
        attrs = event.attributes
        child = self.state.child_workflow_by_event_id(attrs.initiated_event_id)
        if child is None:
            execution = attrs.workflow_execution or WorkflowExecution()
            raise LookupError(
                f"child workflow ({execution.workflow_id}, {execution.run_id}) initiated "
                f"in event {attrs.initiated_event_id} not found in parent workflow's events"
            )
        return WorkflowStateJob(
            self.client,
            child,
            self.fetch_all,
            self.fold_status,
            self.depth - 1,
            self.on_update,
        )

    def should_start(self) -> bool:
        """Whether this workflow's history needs to be fetched at all."""
        if self.fetch_all:
            return True
        return self.state.status not in self.fold_status


class WorkflowExecutionUpdateIterator:
    """Yields an update each time any followed workflow's state changes.

    Call :meth:`has_next` before each :meth:`next`, or simply iterate.
    """

    def __init__(self, updates: queue.Queue, state: WorkflowExecutionState):
        self._updates = updates
        self._state = state
        self._called_has_next = False
        self._next_update: WorkflowExecutionUpdate | None = None
        self._error: BaseException | None = None
        self._finished = False

    def has_next(self) -> bool:
        """Wait for the next update; False once everything is done."""
        self._called_has_next = True
        if self._finished:
            return False
        kind, payload = self._updates.get()
        if kind == _UPDATE:
            self._next_update = WorkflowExecutionUpdate(state=self._state)
            return True
        if kind == _ERROR:
            self._error = payload
            self._finished = True
            return True
        self._finished = True
        return False

    def next(self) -> WorkflowExecutionUpdate | None:
        """The update found by :meth:`has_next`; raises any error that ended it."""
        if not self._called_has_next:
            raise RuntimeError("please call HasNext() first")
        self._called_has_next = False
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        update, self._next_update = self._next_update, None
        return update

    def __iter__(self) -> Iterator[WorkflowExecutionUpdate | None]:
        while self.has_next():
            yield self.next()


def get_workflow_execution_updates(
    client: Any,
    workflow_id: str,
    run_id: str,
    fetch_all: bool,
    fold_status: Iterable[WorkflowExecutionStatus] | None,
    depth: int,
    concurrency: int,
) -> WorkflowExecutionUpdateIterator:
    """Follow a workflow, and children down to ``depth`` (-1 for unlimited).

    ``concurrency`` histories are fetched at a time.
    """
    if concurrency < 1:
        raise ValueError(
            "invalid value for concurrency (expected non-zero positive integer, "
            f"got {concurrency})"
        )
    updates: queue.Queue = queue.Queue()
    state = WorkflowExecutionState(execution=WorkflowExecution(workflow_id, run_id))
    job = WorkflowStateJob(
        client, state, fetch_all, fold_status, depth, lambda: updates.put((_UPDATE, None))
    )

    executor = ThreadPoolExecutor(max_workers=concurrency)
    group = _TaskGroup(executor)

    def supervise() -> None:
        try:
            group.submit(functools.partial(job.run, group))
            error = group.wait()
        except Exception as err:  # noqa: BLE001 - handed to the iterator
            error = err
        executor.shutdown(wait=False)
        updates.put((_ERROR, error) if error is not None else (_DONE, None))

    threading.Thread(target=supervise, daemon=True).start()
    return WorkflowExecutionUpdateIterator(updates, state)