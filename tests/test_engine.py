"""Tests for single-size measurements."""

import dataclasses
import itertools
import threading
import time

import pytest

from complexity_bench.benchmark import engine as engine_module
from complexity_bench.benchmark.engine import BenchmarkEngine, EngineConfig, repetitions_for
from complexity_bench.config import Config
from complexity_bench.data.generator import InputGenerator
from complexity_bench.providers.base import (
    AlgorithmFault,
    ResourceError,
    StaleHandleError,
    TimeoutFault,
    UnsupportedParameterError,
)


COUNTER_SOURCE = """
    class Counter:
        def __init__(self):
            self.calls = 0

        def touch(self, arr: list[int]) -> int:
            self.calls += 1
            return len(arr)
"""


class FakeProbe:
    """Memory probe returning scripted readings."""

    def __init__(self, *readings):
        self.readings = list(readings)
        self.calls = 0

    def resident_bytes(self):
        self.calls += 1
        return self.readings.pop(0)


class FailingProbe:
    def resident_bytes(self):
        raise ResourceError("no process information")


@pytest.fixture()
def counter(load_algorithm):
    return load_algorithm("counter.py", COUNTER_SOURCE)


def make_engine(provider, config, memory_probe=None):
    return BenchmarkEngine(
        provider,
        generator=InputGenerator(seed=99),
        config=config,
        memory_probe=memory_probe or FakeProbe(),
    )


# ---------------------------------------------------------------------------
# Repetition policy and configuration
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "probe_ns, expected",
    [
        (0, 500),
        (1_000_000, 500),
        (1_000_001, 50),
        (10_000_000, 50),
        (10_000_001, 5),
        (3_000_000_000, 5),
    ],
)
def test_repetitions_for_probe_tiers(probe_ns, expected):
    assert repetitions_for(probe_ns, EngineConfig()) == expected


@pytest.mark.parametrize(
    "overrides",
    [
        {"warmup_runs": -1},
        {"invocation_timeout": 0},
        {"slow_repetitions": 0},
        {"fast_probe_ns": 20_000_000},
    ],
)
def test_engine_config_validation(overrides):
    with pytest.raises(ValueError):
        EngineConfig(**overrides)


def test_engine_defaults_come_from_config(provider):
    engine = BenchmarkEngine(provider)
    assert engine.config.warmup_runs == Config.WARMUP_RUNS
    assert engine.config.invocation_timeout == Config.INVOCATION_TIMEOUT


# ---------------------------------------------------------------------------
# Measuring
# ---------------------------------------------------------------------------


def test_fast_operation_gets_full_budget(provider, counter):
    engine = make_engine(provider, dataclasses.replace(EngineConfig(), measure_memory=False))

    metric = engine.measure(counter, counter.operation("touch"), 100)

    # 5 warm-up, 1 probe, 500 timed
    assert counter.instance.calls == 506
    assert metric.input_size == 100
    assert metric.time_ns > 0


def test_invocation_count_follows_config(provider, counter, quick_config):
    engine = make_engine(provider, quick_config)

    engine.measure(counter, counter.operation("touch"), 10)

    assert counter.instance.calls == 2 + 1 + 7


def test_time_is_strictly_positive_at_zero_size(provider, binary_search_path, quick_config):
    handle = provider.load(str(binary_search_path))
    metric = make_engine(provider, quick_config).measure(handle, handle.operation("search"), 0)

    assert metric.input_size == 0
    assert metric.time_ns >= 1


def test_every_invocation_sees_pristine_input(load_algorithm, provider, quick_config):
    handle = load_algorithm(
        "in_place_sort.py",
        """
        class InPlaceSort:
            def __init__(self):
                self.saw_sorted = []

            def sort(self, arr: list[float]) -> None:
                self.saw_sorted.append(arr == sorted(arr))
                arr.sort()
        """,
    )

    make_engine(provider, quick_config).measure(handle, handle.operation("sort"), 200)

    assert len(handle.instance.saw_sorted) == 10
    assert not any(handle.instance.saw_sorted)


def test_memory_delta_from_probe(provider, counter, quick_config):
    probe = FakeProbe(1_000, 5_000)
    config = dataclasses.replace(quick_config, measure_memory=True)

    metric = make_engine(provider, config, probe).measure(counter, counter.operation("touch"), 10)

    assert metric.memory_bytes == 4_000
    assert probe.calls == 2


def test_memory_delta_never_negative(provider, counter, quick_config):
    config = dataclasses.replace(quick_config, measure_memory=True)
    engine = make_engine(provider, config, FakeProbe(5_000, 1_000))

    assert engine.measure(counter, counter.operation("touch"), 10).memory_bytes == 0


def test_memory_disabled_skips_probe(provider, counter, quick_config):
    probe = FakeProbe()
    metric = make_engine(provider, quick_config, probe).measure(counter, counter.operation("touch"), 10)

    assert metric.memory_bytes == 0
    assert probe.calls == 0


def test_memory_query_failure(provider, counter, quick_config):
    config = dataclasses.replace(quick_config, measure_memory=True)
    engine = make_engine(provider, config, FailingProbe())

    with pytest.raises(ResourceError):
        engine.measure(counter, counter.operation("touch"), 10)


# ---------------------------------------------------------------------------
# Faults and timeouts
# ---------------------------------------------------------------------------


def test_operation_fault_aborts_measurement(load_algorithm, provider, quick_config):
    handle = load_algorithm(
        "divider.py",
        """
        class Divider:
            def divide(self, n: int) -> float:
                return n / 0
        """,
    )

    with pytest.raises(AlgorithmFault) as excinfo:
        make_engine(provider, quick_config).measure(handle, handle.operation("divide"), 10)

    assert isinstance(excinfo.value.cause, ZeroDivisionError)
    assert handle.usable


def test_unsupported_operation_is_rejected(provider, make_handle, make_operation, quick_config):
    operation = make_operation("lookup", supported=False)
    handle = make_handle(operations=[operation])

    with pytest.raises(UnsupportedParameterError):
        make_engine(provider, quick_config).measure(handle, operation, 10)


def test_runaway_operation_times_out(load_algorithm, provider, quick_config):
    handle = load_algorithm(
        "spinner.py",
        """
        class Spinner:
            def spin(self, n: int) -> int:
                while True:
                    n += 1
        """,
    )
    config = dataclasses.replace(quick_config, warmup_runs=0, invocation_timeout=0.3)
    engine = make_engine(provider, config)

    started = time.monotonic()
    with pytest.raises(TimeoutFault) as excinfo:
        engine.measure(handle, handle.operation("spin"), 10)
    elapsed = time.monotonic() - started

    assert 0.3 <= elapsed < 2.0
    assert excinfo.value.timeout == 0.3
    assert not handle.usable

    with pytest.raises(StaleHandleError):
        engine.measure(handle, handle.operation("spin"), 10)

    # The abandoned worker is interrupted and unwinds
    for _ in range(40):
        if not any(t.name == "invoke-Spinner" and t.is_alive() for t in threading.enumerate()):
            break
        time.sleep(0.05)
    else:
        pytest.fail("timed-out worker thread is still running")


WAITER_SOURCE = """
    import threading

    GATE = threading.Event()


    class Waiter:
        def wait(self, n: int) -> bool:
            return GATE.wait()
"""


def test_operation_blocked_in_native_wait_times_out(load_algorithm, provider, quick_config):
    handle = load_algorithm("waiter.py", WAITER_SOURCE)
    config = dataclasses.replace(quick_config, warmup_runs=0, invocation_timeout=0.3)

    def parked():
        return any(t.name == "invoke-Waiter" and t.is_alive() for t in threading.enumerate())

    started = time.monotonic()
    with pytest.raises(TimeoutFault):
        make_engine(provider, config).measure(handle, handle.operation("wait"), 10)
    elapsed = time.monotonic() - started

    assert 0.3 <= elapsed < 2.0
    assert not handle.usable
    # A lock wait cannot be interrupted; the worker stays behind
    assert parked()

    handle.module.GATE.set()
    for _ in range(40):
        if not parked():
            break
        time.sleep(0.05)
    else:
        pytest.fail("worker did not unwind after its wait returned")


@pytest.mark.slow
def test_operation_holding_the_interpreter_times_out_on_return(load_algorithm, provider, quick_config):
    handle = load_algorithm(
        "backtracker.py",
        """
        import re


        class Backtracker:
            def match(self, n: int) -> bool:
                return re.match(r"(a+)+$", "a" * 24 + "b") is not None
        """,
    )
    config = dataclasses.replace(quick_config, warmup_runs=0, invocation_timeout=0.05)

    # The match keeps the GIL, so the fault only arrives once it returns
    with pytest.raises(TimeoutFault):
        make_engine(provider, config).measure(handle, handle.operation("match"), 10)

    assert not handle.usable


GRID_SOURCE = """
    from . import cells


    class Grid:
        def __init__(self):
            self.seen = []

        def fill(self, n: int) -> None:
            from .cells import TAG
            self.seen.append(TAG)
"""


def test_measure_uses_the_handles_own_package(write_source, provider, quick_config):
    handles = []
    for tag in ("one", "two"):
        write_source(f"{tag}/gridkit/__init__.py")
        write_source(f"{tag}/gridkit/cells.py", f"TAG = '{tag}'\n")
        handles.append(provider.load(str(write_source(f"{tag}/gridkit/grid.py", GRID_SOURCE))))

    first, second = handles
    engine = make_engine(provider, quick_config)

    engine.measure(first, first.operation("fill"), 1)
    engine.measure(second, second.operation("fill"), 1)

    assert set(first.instance.seen) == {"one"}
    assert set(second.instance.seen) == {"two"}


def test_reply_past_the_deadline_is_a_timeout(provider, counter, quick_config, monkeypatch):
    # Every invocation appears to take 3s
    readings = itertools.cycle([0, 3_000_000_000])
    monkeypatch.setattr(engine_module.time, "perf_counter_ns", lambda: next(readings))
    config = dataclasses.replace(quick_config, warmup_runs=0, invocation_timeout=1.0)

    with pytest.raises(TimeoutFault):
        make_engine(provider, config).measure(counter, counter.operation("touch"), 10)

    assert not counter.usable
    assert counter.instance.calls == 1
