import queue
import threading
import time

import pytest

from crashscope.profiler import (
    RING_BUFFER_SIZE,
    ProfileRecorder,
    TimeTicker,
    get_current_thread_id,
    start_profiling,
)


class ManualTicker:
    """Ticks on demand and waits for the profiler to acknowledge each tick."""

    def __init__(self, sleep_before_tick=0.001):
        self.sleep_before_tick = sleep_before_tick
        self._ticks = queue.Queue()
        self._acks = queue.Queue()

    def __call__(self, interval):
        return self

    def wait(self, stop_event):
        while not stop_event.is_set():
            try:
                self._ticks.get(timeout=0.01)
                return True
            except queue.Empty:
                continue
        return False

    def ticked(self):
        self._acks.put(True)

    def stop(self):
        self._acks.put(False)

    def tick(self):
        time.sleep(self.sleep_before_tick)
        self._ticks.put(True)
        try:
            return self._acks.get(timeout=1)
        except queue.Empty:
            return False


class FailingTicker(ManualTicker):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def ticked(self):
        self.calls += 1
        if self.calls == 2:
            raise RuntimeError("expected failure")
        super().ticked()


def validate_profile(trace, duration_ns):
    assert trace is not None
    assert trace.samples
    assert trace.stacks
    assert trace.frames
    assert trace.thread_metadata
    for sample in trace.samples:
        assert 0 <= sample.elapsed_since_start_ns <= duration_ns
        assert 0 <= sample.stack_id < len(trace.stacks)
        assert sample.thread_id in trace.thread_metadata
    for metadata in trace.thread_metadata.values():
        assert metadata.name
    for frame in trace.frames:
        assert frame.function
        assert " " not in frame.function
        assert len(frame.abs_path) + len(frame.filename) > 0
        assert frame.lineno > 0


def do_work_for(seconds):
    deadline = time.monotonic() + seconds
    total = 0
    while time.monotonic() < deadline:
        total += sum(i * i for i in range(1000))
        time.sleep(0)
    return total


def test_collection_real_ticker():
    start = time.perf_counter_ns()
    profiler = start_profiling(start)
    try:
        do_work_for(0.05)
        end = time.perf_counter_ns()
        result = profiler.get_slice(start, end)
        assert result is not None
        assert result.caller_thread_id == get_current_thread_id()
        validate_profile(result.trace, end - start)
    finally:
        profiler.stop(True)


def test_collection_custom_ticker():
    ticker = ManualTicker()
    start = time.perf_counter_ns()
    profiler = start_profiling(start, ticker)
    try:
        assert ticker.tick()
        end = time.perf_counter_ns()
        result = profiler.get_slice(start, end)
        assert result is not None
        assert result.caller_thread_id == threading.get_ident()
        validate_profile(result.trace, end - start)

        start = end
        assert ticker.tick()
        assert ticker.tick()
        end = time.perf_counter_ns()
        result = profiler.get_slice(start, end)
        assert result is not None
        validate_profile(result.trace, end - start)
    finally:
        profiler.stop(True)


def test_ring_buffer_overflow():
    ticker = ManualTicker(sleep_before_tick=0.0001)
    profiler = start_profiling(time.perf_counter_ns(), ticker)
    try:
        for _ in range(100):
            assert ticker.tick()
        start = time.perf_counter_ns()

        assert profiler.buckets.maxlen == 3030
        assert RING_BUFFER_SIZE == 3030
        for _ in range(RING_BUFFER_SIZE):
            assert ticker.tick()

        ticks_after_end = 5
        end = time.perf_counter_ns()
        for _ in range(ticks_after_end):
            assert ticker.tick()

        result = profiler.get_slice(start, end)
        assert result is not None
        validate_profile(result.trace, end - start)
        moments = {sample.elapsed_since_start_ns for sample in result.trace.samples}
        assert len(moments) == RING_BUFFER_SIZE - ticks_after_end
    finally:
        profiler.stop(True)


def test_stack_trace_includes_caller():
    ticker = ManualTicker()
    start = time.perf_counter_ns()
    profiler = start_profiling(start, ticker)
    try:
        assert ticker.tick()
        result = profiler.get_slice(start, time.perf_counter_ns())
        assert result is not None
        callers = [s for s in result.trace.samples if s.thread_id == result.caller_thread_id]
        assert callers
        stack = result.trace.stacks[callers[0].stack_id]
        functions = [result.trace.frames[i].function for i in stack]
        assert "test_stack_trace_includes_caller" in functions
        assert functions[0] != "test_stack_trace_includes_caller"
    finally:
        profiler.stop(True)


def test_collects_on_start():
    profiler = start_profiling(time.perf_counter_ns(), ManualTicker())
    profiler.stop(True)
    assert len(profiler.buckets) == 1
    assert profiler.buckets[-1].thread_ids


def test_failure_during_startup():
    def broken_factory(interval):
        raise RuntimeError("expected failure at startup")

    assert start_profiling(time.perf_counter_ns(), broken_factory) is None


def test_failure_on_tick():
    ticker = FailingTicker()
    start = time.perf_counter_ns()
    profiler = start_profiling(start, ticker)
    try:
        assert ticker.tick() is True
        assert ticker.tick() is False
        end = time.perf_counter_ns()
        result = profiler.get_slice(start, end)
        assert result is not None
        validate_profile(result.trace, end - start)
    finally:
        profiler.stop(True)


def test_failure_on_tick_direct():
    profiler = ProfileRecorder(time.perf_counter_ns())
    profiler._fault_countdown = 2

    profiler.on_tick()
    bucket = profiler.buckets[-1]

    with pytest.raises(RuntimeError):
        profiler.on_tick()
    assert profiler.buckets[-1] is bucket

    profiler._fault_countdown = 0
    profiler.on_tick()
    assert profiler.buckets[-1] is not bucket
    assert len(profiler.buckets) == 2


def count_samples(profiler):
    return sum(len(bucket.thread_ids) for bucket in profiler.buckets)


def test_internal_maps():
    profiler = ProfileRecorder(time.perf_counter_ns())

    assert len(profiler.frames) == 0
    assert len(profiler.frame_indexes) == 0
    assert len(profiler.new_frames) == 0
    assert len(profiler.stacks) == 0
    assert len(profiler.stack_indexes) == 0
    assert len(profiler.new_stacks) == 0
    assert count_samples(profiler) == 0
    assert profiler.buckets.maxlen == RING_BUFFER_SIZE

    profiler.on_tick()
    assert len(profiler.frames) > 0
    assert len(profiler.frame_indexes) > 0
    assert len(profiler.new_frames) > 0
    assert len(profiler.stacks) > 0
    assert len(profiler.stack_indexes) > 0
    assert len(profiler.new_stacks) > 0
    assert count_samples(profiler) > 0

    frames_len = len(profiler.frames)
    frame_indexes_len = len(profiler.frame_indexes)
    stacks_len = len(profiler.stacks)
    stack_indexes_len = len(profiler.stack_indexes)
    samples_len = count_samples(profiler)

    profiler.on_tick()
    assert len(profiler.frames) == frames_len + 1
    assert len(profiler.frame_indexes) == frame_indexes_len + 1
    assert len(profiler.new_frames) == 1
    assert len(profiler.stacks) == stacks_len + 1
    assert len(profiler.stack_indexes) == stack_indexes_len + 1
    assert len(profiler.new_stacks) == 1
    assert count_samples(profiler) == samples_len * 2

    profiler.on_tick()
    assert len(profiler.frames) == frames_len + 2
    assert len(profiler.frame_indexes) == frame_indexes_len + 2
    assert len(profiler.new_frames) == 1
    assert len(profiler.stacks) == stacks_len + 2
    assert len(profiler.stack_indexes) == stack_indexes_len + 2
    assert len(profiler.new_stacks) == 1
    assert count_samples(profiler) == samples_len * 3


def test_get_slice_rejects_inverted_range():
    profiler = ProfileRecorder(time.perf_counter_ns())
    profiler.on_tick()
    profiler.on_tick()
    now = time.perf_counter_ns()
    assert profiler.get_slice(now, now - 1) is None
    assert profiler.get_slice(profiler.start_time - 10, profiler.start_time - 5) is None


def test_get_slice_needs_two_buckets():
    start = time.perf_counter_ns()
    profiler = ProfileRecorder(start)
    profiler.on_tick()
    assert profiler.get_slice(start, time.perf_counter_ns()) is None
    profiler.on_tick()
    result = profiler.get_slice(start, time.perf_counter_ns())
    assert result is not None
    assert len({s.elapsed_since_start_ns for s in result.trace.samples}) == 2


def test_time_ticker_wait_and_stop():
    ticker = TimeTicker(0.001)
    stop_event = threading.Event()
    assert ticker.wait(stop_event) is True
    stop_event.set()
    assert ticker.wait(stop_event) is False
    other = TimeTicker(0.001)
    other.stop()
    assert other.wait(threading.Event()) is False