# crashscope

Building blocks for error and performance monitoring:

- **Scopes** (`crashscope.scope.Scope`) collect breadcrumbs, attachments, tags,
  contexts, extras, a user, a fingerprint, a level, the current request and
  event processors. `Scope.apply_to_event` merges that data into an `Event`.
- **Events** (`crashscope.events`) hold `Event`, `EventHint`, `Breadcrumb`,
  `Attachment`, `User`, `Request` and the `Level` enum.
- **Source context** (`crashscope.sourcereader.SourceReader`) reads the lines
  around a stack frame and caches each file.
- **Span recording** (`crashscope.span_recorder.SpanRecorder`) stores the
  spans of a transaction, up to a limit (1000 by default).
- **Profiling** (`crashscope.profiler`) samples the stacks of every thread at
  101 Hz into a 30-second ring buffer. `ProfileRecorder.get_slice` turns part
  of that buffer into a `ProfileTrace` (`crashscope.profile_types`), which
  `to_dict()` turns into a JSON-ready dict.
- **OpenTelemetry mapping** (`crashscope.otel_status`,
  `crashscope.span_attributes`) turns the status and attributes of a
  `ReadOnlySpan` into a `SpanStatus`, an operation, a description and a
  `TransactionSource`.

## Installation

```
pip install crashscope
```

## Scopes and events

```python
from crashscope.events import Breadcrumb, Event, Level, User
from crashscope.scope import Scope

scope = Scope()
scope.set_tag("region", "eu")
scope.set_user(User(id="42", email="someone@example.com"))
scope.set_level(Level.WARNING)
scope.add_breadcrumb(Breadcrumb(message="clicked checkout"), 100)

event = scope.apply_to_event(Event(message="payment failed"), None)
print(event.tags, event.level)
```

`clone()` copies a scope so that later changes stay local. An event processor
is a callable `(event, hint) -> event or None`; if it returns `None`, the event
is dropped and `apply_to_event` returns `None`.

`set_request` wraps the request's `body` stream so that up to 10 KiB of it is
kept as it is read; `set_request_body` sets that body directly. A body larger
than the limit is never copied into the event.

## Source context

```python
from crashscope.sourcereader import SourceReader

reader = SourceReader()
lines, index = reader.read_context_lines("app.py", 10, 3)
```

The call returns up to three lines on each side of line 10 (as `bytes`), and
the index of line 10 within that list. A file that cannot be read gives
`([], 0)`.

## Profiling

Times handed to the profiler are `time.perf_counter_ns()` values.

```python
import time
from crashscope.profiler import start_profiling

start = time.perf_counter_ns()
recorder = start_profiling(start)
...  # work
result = recorder.get_slice(start, time.perf_counter_ns())
recorder.stop(True)
if result is not None:
    print(result.caller_thread_id, result.trace.to_dict())
```

`start_profiling` returns `None` if the profiler thread failed to start.
`get_slice` returns `None` when fewer than two sampling rounds fall inside the
requested range. A custom ticker can be passed as `ticker_factory`; it is
called with the interval in seconds and must provide `wait(stop_event)`,
`ticked()` and `stop()`, as `TimeTicker` does.

## OpenTelemetry helpers

```python
from crashscope.otel_status import ReadOnlySpan, SpanKind, map_otel_status
from crashscope.span_attributes import parse_span_attributes

span = ReadOnlySpan(
    name="rootSpan",
    kind=SpanKind.SERVER,
    attributes={"http.method": "GET", "http.target": "/api/users?x=1"},
)
print(map_otel_status(span))        # ok
print(parse_span_attributes(span))  # op 'http.server', description 'GET /api/users', source url
```

`map_otel_status` prefers a recognised `http.status_code` or
`rpc.grpc.status_code` attribute and otherwise maps the span's `StatusCode`.

## What it does not do

crashscope only prepares data. It has no client, no transport and no
connection to any server: it does not send events, profiles or spans
anywhere, it does not sample transactions, and it does not hook into an
OpenTelemetry SDK by itself. `ReadOnlySpan` is a plain data class to fill in
from whatever spans you have.

## Running the tests

```
pip install -e ".[test]"
pytest
```