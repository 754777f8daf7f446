# wftrace

`wftrace` builds the execution state of a workflow from its event history.
That state covers the workflow's activities, timers and child workflows. The
package can follow a live workflow in background threads and redraw progress
in place in the terminal. It also carries helpers that a command-line front
end for a workflow service needs:

- a structured printer for text cards, tables, JSON and JSON Lines;
- flag value types;
- payload construction.

## Modules

| Module | Contents |
| --- | --- |
| `wftrace.history` | Event model: `HistoryEvent`, `EventAttributes`, `EventType`, `WorkflowExecutionStatus`, `RetryState`, `WorkflowExecution`, `WorkflowType`, `ActivityType`, `Failure`, `RetryPolicy` |
| `wftrace.workflow_state` | `WorkflowExecutionState`, a workflow snapshot updated event by event |
| `wftrace.activity_state` | `ActivityExecutionState`, `TimerExecutionState` and their status enums, `get_duration`, `format_go_duration` |
| `wftrace.execution_icons` | Status icons: `execution_status`, `StatusIcon`, `STATUS_ICONS_LEGEND` |
| `wftrace.execution_format` | `should_fold_status`, `fmt_duration`, `fmt_time_since` |
| `wftrace.workflow_updates` | `get_workflow_execution_updates`, `WorkflowStateJob`, `WorkflowExecutionUpdateIterator` |
| `wftrace.workflow_tracer` | `WorkflowTracer`, `WorkflowTracerOptions`, `progress_string`, `print_and_exit`, `get_exit_code` |
| `wftrace.term_writer` | `TermWriter`, `move_cursor_up`, `get_terminal_size` |
| `wftrace.tail_buffer` | `strip_ansi`, `count_print_width`, `line_height`, `reverse_lines`, `tail_box_bound` |
| `wftrace.printer` | `Printer`, `StructuredOptions`, `TableOptions`, `Align`, `cli_field` |
| `wftrace.flagvalues` | `StringEnum`, `StringEnumArray`, `string_to_proto_enum`, `string_keys_values`, `string_keys_json_values` |
| `wftrace.payload` | `Payload`, `create_payloads` |

## Building a workflow state from events

Feed `HistoryEvent` objects to a `WorkflowExecutionState` in order. The state
tracks the workflow's status, times, failure and attempts. Activities, timers
and child workflows go into `child_states` in the order they appear.

```python
from wftrace.history import WorkflowExecution
from wftrace.workflow_state import WorkflowExecutionState

state = WorkflowExecutionState(execution=WorkflowExecution("my-workflow-id", ""))
for event in events:
    state.update(event)

current, total = state.number_of_events()  # summed over child workflows
state.is_closed()  # ValueError while the status is still UNSPECIFIED
```

## Following a live workflow

`get_workflow_execution_updates(client, workflow_id, run_id, fetch_all,
fold_status, depth, concurrency)` follows a workflow and returns an iterator
of updates. The `client` must provide two methods:

- `describe_workflow_execution(workflow_id, run_id)`, which returns an object
  with a `history_length` attribute;
- `get_workflow_history(workflow_id, run_id, is_long_poll)`, which returns an
  iterable of `HistoryEvent`.

Child workflows are followed down to `depth`; `-1` means any depth. The
histories of at most `concurrency` workflows are fetched at a time, and
`concurrency` below 1 raises `ValueError`. You can iterate over the result
directly, or call `has_next()` and then `next()`. If fetching fails, `next()`
raises the error.

`WorkflowTracer` runs these updates in the background. `print_updates(template,
update_period)` shows a progress line (`progress_string`) until every event
has been processed. After that, each period it calls the template's
`execute(writer, state, depth)`. When the updates end, or one of the given
interrupt signals arrives, it prints the final state in full. It then returns
`get_exit_code(state)`: 2 for failed, 3 for timed out, 4 for unspecified and
0 otherwise.

## Formatting

```python
from datetime import timedelta
from wftrace.execution_format import fmt_duration

fmt_duration(timedelta(hours=1))       # "1h0m0s"
fmt_duration(timedelta(days=2, hours=3))  # "2d3h"
```

`fmt_duration` rounds a duration to a unit that depends on its length:

- under a second, to milliseconds;
- under an hour, to seconds;
- under a day, to minutes.

Durations of a day or more are shown as days and hours, and from a week on as
weeks and days.

`execution_status(state)` returns the coloured icon for a state's status.
Colour is used only when standard output is a terminal and `NO_COLOR` is not
set.

## Writing to the terminal

`TermWriter` writes bytes to a binary stream. On each `flush` it erases the
output of the previous flush and writes what was buffered since. With
`trim=True` it keeps only the tail that fits the terminal height.

```python
import sys
from wftrace.term_writer import TermWriter

writer = TermWriter(sys.stdout.buffer).with_size(80, 24)
writer.write_line("Processing HistoryEvents (3/10)")
writer.flush(True)
```

`tail_box_bound(data, max_lines, max_width)` keeps the last whole lines that
fit in the box. It ignores ANSI escape codes when it measures width.

## Structured printing

`Printer` writes dataclasses, mappings, or lists of them to a text stream. The
`print_structured` output depends on the printer's settings:

- text cards by default;
- an aligned table when `StructuredOptions.table` is set;
- indented JSON, or JSON Lines when `json_indent` is empty, when `json=True`.

Wrap several values in `start_list()` / `end_list()` to print them as one JSON
list. Use `cli_field(cli=..., json=...)` to tag dataclass fields. The `cli`
tags are `omit`, `cardOmitEmpty`, `width=N` and `align=...`.

## Flag values and payloads

```python
from wftrace.flagvalues import string_keys_values, string_keys_json_values
from wftrace.payload import create_payloads

string_keys_values(["a=1", "b=x=y"])               # {"a": "1", "b": "x=y"}
string_keys_json_values(["n=5", 's="hi"'], False)  # {"n": 5.0, "s": "hi"}
create_payloads([b'{"k": 1}'], {"encoding": b"json/plain"}, False)
```

Bad input raises `ValueError` with a message that names the entry. This covers
a missing `=`, invalid or trailing JSON, and invalid base64.

## What the package does not do

- It has no command-line program.
- It does not connect to a workflow service itself. You supply the client.
- It does not draw the execution tree itself. `WorkflowTracer` needs a
  template object with an `execute` method to render states.