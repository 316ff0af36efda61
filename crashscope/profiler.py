"""Continuous sampling profiler over all running threads.

Times given to and returned by the profiler are ``time.perf_counter_ns()``
values.
"""

from __future__ import annotations

import inspect
import logging
import os.path
import queue
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from types import FrameType
from typing import Callable, Iterator, NamedTuple, Protocol

from .profile_types import Frame, ProfileSample, ProfileThreadMetadata, ProfileTrace

logger = logging.getLogger(__name__)

# 101 Hz rather than 100 Hz to avoid sampling in lockstep with periodic work.
SAMPLING_RATE_HZ = 101
SAMPLING_INTERVAL_NS = 1_000_000_000 // SAMPLING_RATE_HZ
RUNTIME_LIMIT_SECONDS = 30
RING_BUFFER_SIZE = RUNTIME_LIMIT_SECONDS * SAMPLING_RATE_HZ


class _Ticker(Protocol):
    def wait(self, stop_event: threading.Event) -> bool: ...

    def ticked(self) -> None: ...

    def stop(self) -> None: ...


TickerFactory = Callable[[float], _Ticker]


class _CapturedFrame(NamedTuple):
    module: str
    function: str
    path: str
    lineno: int


Record = tuple[int, tuple[_CapturedFrame, ...]]


def _module_name(path: str) -> str:
    name = inspect.getmodulename(path)
    if name is None:
        name = os.path.splitext(os.path.basename(path))[0]
    return name


def _walk_stack(frame: FrameType | None) -> Iterator[_CapturedFrame]:
    while frame is not None:
        code = frame.f_code
        yield _CapturedFrame(
            module=_module_name(code.co_filename),
            function=getattr(code, "co_qualname", code.co_name),
            path=code.co_filename,
            lineno=frame.f_lineno or 0,
        )
        frame = frame.f_back


def get_current_thread_id() -> int:
    """Identifier of the calling thread, as used in thread samples."""
    return threading.get_ident()


@dataclass
class ProfilerResult:
    caller_thread_id: int
    trace: ProfileTrace


@dataclass
class ProfileSamplesBucket:
    """All samples taken at one instant."""

    relative_time_ns: int
    stack_ids: list[int] = field(default_factory=list)
    thread_ids: list[int] = field(default_factory=list)


class TimeTicker:
    """Delivers ticks at a fixed interval, dropping ticks that were missed."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._next = time.monotonic() + interval
        self._stopped = False

    def wait(self, stop_event: threading.Event) -> bool:
        """Block until the next tick; False if stopped instead."""
        if self._stopped:
            return False
        delay = max(0.0, self._next - time.monotonic())
        if stop_event.wait(delay) or self._stopped:
            return False
        self._next += self.interval
        now = time.monotonic()
        if self._next < now:
            self._next = now + self.interval
        return True

    def ticked(self) -> None:
        """Called after a tick has been processed."""

    def stop(self) -> None:
        self._stopped = True


class ProfileRecorder:
    """Collects stack samples of every thread into a 30 second ring buffer."""

    def __init__(self, start_time: int) -> None:
        self.start_time = start_time
        self.buckets: deque[ProfileSamplesBucket] = deque(maxlen=RING_BUFFER_SIZE)

        self.frames: list[Frame] = []
        self.frame_indexes: dict[_CapturedFrame, int] = {}
        self.new_frames: list[Frame] = []

        self.stacks: list[list[int]] = []
        self.stack_indexes: dict[tuple[int, ...], int] = {}
        self.new_stacks: list[list[int]] = []

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._running = False
        self._stopped = False
        # When positive, on_tick fails once it counts down to 1 (failure injection).
        self._fault_countdown = 0

    def run(self, started: queue.Queue, ticker_factory: TickerFactory = TimeTicker) -> None:
        """Sample until stopped; puts True on ``started`` once running, False on failure."""
        self._running = True
        announced = False
        try:
            self.on_tick()
            ticker = ticker_factory(SAMPLING_INTERVAL_NS / 1e9)
            try:
                started.put(True)
                announced = True
                while ticker.wait(self._stop_event):
                    self.on_tick()
                    ticker.ticked()
            finally:
                ticker.stop()
        except Exception:
            logger.exception("Profiler failed while running")
        finally:
            if not announced:
                started.put(False)
            self._stopped = True
            self._done.set()

    def stop(self, wait: bool = True) -> None:
        if self._stopped:
            return
        self._stop_event.set()
        if wait and self._running:
            self._done.wait()

    def get_slice(self, start_time: int, end_time: int) -> ProfilerResult | None:
        """Samples taken between the two times, or None if there are too few."""
        if self.start_time > end_time or start_time > end_time:
            return None

        relative_start_ns = start_time - self.start_time if self.start_time < start_time else 0
        relative_end_ns = end_time - self.start_time

        samples_count, buckets_reversed, trace = self._get_buckets(
            relative_start_ns, relative_end_ns
        )
        if samples_count == 0 or trace is None:
            return None

        samples: list[ProfileSample] = []
        for bucket in buckets_reversed:
            elapsed = bucket.relative_time_ns - relative_start_ns
            for thread_id, stack_id in zip(bucket.thread_ids, bucket.stack_ids):
                samples.append(ProfileSample(elapsed, stack_id, thread_id))
                if thread_id not in trace.thread_metadata:
                    trace.thread_metadata[thread_id] = ProfileThreadMetadata(
                        name=f"Thread {thread_id}"
                    )
        samples.reverse()
        trace.samples = samples
        return ProfilerResult(caller_thread_id=get_current_thread_id(), trace=trace)

    def _get_buckets(
        self, relative_start_ns: int, relative_end_ns: int
    ) -> tuple[int, list[ProfileSamplesBucket], ProfileTrace | None]:
        with self._lock:
            collected: list[ProfileSamplesBucket] = []
            samples_count = 0
            prev: ProfileSamplesBucket | None = None
            for bucket in reversed(self.buckets):
                moment = bucket.relative_time_ns
                if prev is None and moment > relative_end_ns:
                    continue
                if moment < relative_start_ns:
                    break
                if prev is not None and moment > prev.relative_time_ns:
                    break
                samples_count += len(bucket.thread_ids)
                collected.append(bucket)
                prev = bucket

            if len(collected) < 2:
                return 0, [], None
            trace = ProfileTrace(frames=list(self.frames), stacks=list(self.stacks))
            return samples_count, collected, trace

    def on_tick(self) -> None:
        elapsed_ns = max(0, time.perf_counter_ns() - self.start_time)

        if self._fault_countdown > 0:
            if self._fault_countdown == 1:
                raise RuntimeError("injected profiler failure on tick")
            self._fault_countdown -= 1

        self.process_records(elapsed_ns, self.collect_records())

    def collect_records(self) -> list[Record]:
        """Capture the current stack (innermost frame first) of every thread."""
        current = sys._current_frames()
        return [
            (thread_id, tuple(_walk_stack(frame)))
            for thread_id, frame in sorted(current.items())
        ]

    def process_records(self, elapsed_ns: int, records: list[Record]) -> None:
        if not records:
            return

        self.new_frames = []
        self.new_stacks = []
        bucket = ProfileSamplesBucket(relative_time_ns=elapsed_ns)
        for thread_id, captured in records:
            bucket.stack_ids.append(self._add_stack_trace(captured))
            bucket.thread_ids.append(thread_id)

        with self._lock:
            self.stacks.extend(self.new_stacks)
            self.frames.extend(self.new_frames)
            self.buckets.append(bucket)

    def _add_stack_trace(self, captured: tuple[_CapturedFrame, ...]) -> int:
        stack = [self._add_frame(frame) for frame in captured]
        key = tuple(stack)
        index = self.stack_indexes.get(key)
        if index is None:
            index = len(self.stacks) + len(self.new_stacks)
            self.new_stacks.append(stack)
            self.stack_indexes[key] = index
        return index

    def _add_frame(self, captured: _CapturedFrame) -> int:
        index = self.frame_indexes.get(captured)
        if index is None:
            frame = Frame(
                function=captured.function,
                module=captured.module,
                filename=os.path.basename(captured.path),
                abs_path=captured.path,
                lineno=captured.lineno,
            )
            index = len(self.frames) + len(self.new_frames)
            self.new_frames.append(frame)
            self.frame_indexes[captured] = index
        return index


def start_profiling(
    start_time: int | None = None, ticker_factory: TickerFactory = TimeTicker
) -> ProfileRecorder | None:
    """Start a profiler thread; returns None if it failed to start."""
    recorder = ProfileRecorder(time.perf_counter_ns() if start_time is None else start_time)
    started: queue.Queue = queue.Queue(maxsize=1)
    thread = threading.Thread(
        target=recorder.run, args=(started, ticker_factory), name="profiler", daemon=True
    )
    thread.start()
    if started.get():
        return recorder
    thread.join()
    return None