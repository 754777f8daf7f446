"""Follow a workflow and redraw its execution tree in the terminal."""

from __future__ import annotations

import queue
import signal
import sys
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, BinaryIO

from wftrace.history import WorkflowExecutionStatus
from wftrace.term_writer import TermWriter
from wftrace.workflow_state import WorkflowExecutionState
from wftrace.workflow_updates import (
    WorkflowExecutionUpdate,
    get_workflow_execution_updates,
)

_DONE = "done"
_SIGNAL = "signal"
_ERROR = "error"


@dataclass
class WorkflowTracerOptions:
    """What the tracer follows and how it is shown."""

    no_fold: bool = False
    fold_statuses: list[WorkflowExecutionStatus] = field(default_factory=list)
    depth: int = -1
    concurrency: int = 10
    update_period: timedelta = timedelta(seconds=1)


def _state_of(update: WorkflowExecutionUpdate | None) -> WorkflowExecutionState | None:
    return update.state if update is not None else None


class WorkflowTracer:
    """Fetches workflow updates in the background and prints them periodically.

    ``template`` objects passed to the print methods need an
    ``execute(writer, state, depth)`` method that renders a state.
    """

    def __init__(
        self,
        client: Any,
        options: WorkflowTracerOptions | None = None,
        output: BinaryIO | None = None,
        interrupt_signals: Iterable[int] = (),
    ):
        self.client = client
        self.options = options or WorkflowTracerOptions()
        self.output = output if output is not None else sys.stdout.buffer
        self.writer = TermWriter(self.output)
        self._update: WorkflowExecutionUpdate | None = None
        self._events: queue.Queue = queue.Queue()
        self._previous_handlers: dict[int, Any] = {}
        for signum in interrupt_signals:
            try:
                self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
            except ValueError:
                # Handlers can only be installed from the main thread.
                pass

    def _on_signal(self, signum: int, frame: Any) -> None:
        self._events.put((_SIGNAL, signum))

    def _restore_signals(self) -> None:
        for signum, handler in self._previous_handlers.items():
            try:
                signal.signal(signum, handler)
            except (ValueError, TypeError):
                pass
        self._previous_handlers.clear()

    def get_execution_updates(self, workflow_id: str, run_id: str) -> None:
        """Start receiving updates for a workflow in the background."""
        opts = self.options
        iterator = get_workflow_execution_updates(
            self.client,
            workflow_id,
            run_id,
            opts.no_fold,
            opts.fold_statuses,
            opts.depth,
            opts.concurrency,
        )

        def receive() -> None:
            while iterator.has_next():
                try:
                    self._update = iterator.next()
                except Exception as err:  # noqa: BLE001 - handed to print_updates
                    self._update = None
                    self._events.put((_ERROR, err))
            self._events.put((_DONE, None))

        threading.Thread(target=receive, daemon=True).start()

    def print_updates(self, template: Any, update_period: timedelta) -> int:
        """Redraw progress or the tree every period until done or interrupted.

        Returns the exit code for the final state; errors are raised.
        """
        period = update_period.total_seconds()
        if period <= 0:
            raise ValueError("non-positive interval for update period")
        is_up_to_date = False
        next_tick = time.monotonic() + period
        try:
            while True:
                timeout = max(0.0, next_tick - time.monotonic())
                try:
                    kind, payload = self._events.get(timeout=timeout)
                except queue.Empty:
                    next_tick = max(next_tick + period, time.monotonic())
                    state = _state_of(self._update)
                    if state is None:
                        continue
                    if not is_up_to_date:
                        current, total = state.number_of_events()
                        is_up_to_date = total > 0 and current >= total and not state.is_archived
                        self.writer.write_line(progress_string(current, total))
                    else:
                        template.execute(self.writer, state, 0)
                    self.writer.flush(True)
                    continue
                if kind == _ERROR:
                    raise payload
                return print_and_exit(self.writer, template, self._update)
        finally:
            self._restore_signals()


def progress_string(current_events: int, total_events: int) -> str:
    """The progress line shown while events are being processed."""
    if total_events == 0:
        if current_events == 0:
            return "Processing HistoryEvents"
        return f"Processing HistoryEvents ({current_events})"
    return f"Processing HistoryEvents ({current_events}/{total_events})"


def print_and_exit(
    writer: TermWriter, template: Any, update: WorkflowExecutionUpdate | None
) -> int:
    """Print the final state in full and return its exit code."""
    state = _state_of(update)
    if state is None:
        return 0
    template.execute(writer, state, 0)
    writer.flush(False)
    return get_exit_code(state)


def get_exit_code(state: WorkflowExecutionState | None) -> int:
    """Exit code for a workflow's status: 2 failed, 3 timed out, 4 unspecified."""
    if state is None:
        return 0
    return {
        WorkflowExecutionStatus.FAILED: 2,
        WorkflowExecutionStatus.TIMED_OUT: 3,
        WorkflowExecutionStatus.UNSPECIFIED: 4,
    }.get(state.status, 0)