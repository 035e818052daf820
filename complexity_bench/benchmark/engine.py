"""
Benchmark engine: measures one operation at one input size.

Methodology, in order:
    1. Warm-up: untimed runs that absorb first-call costs
    2. Probe: one timed run that classifies the cost tier
    3. Repetition budget chosen from the tier
    4. Resident memory baseline after a full collection
    5. Timed repetitions on fresh argument copies, keeping the minimum
    6. Every single invocation runs under a hard timeout

The minimum is reported rather than the mean. Scheduler, collector and
interrupt noise only ever make a sample slower, so the minimum converges on
the operation's own cost while a mean drifts upward with outliers.
"""

import ctypes
import gc
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..config import Config
from ..data.generator import GeneratedArgs, InputGenerator
from ..providers.base import (
    AlgorithmFault,
    AlgorithmHandle,
    BaseProvider,
    InvocationCancelled,
    Operation,
    TimeoutFault,
)
from .metrics import Metric
from .utils import ResidentMemoryProbe

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for measurements."""
    warmup_runs: int = 5
    invocation_timeout: float = 2.0

    # Probe duration tiers (nanoseconds)
    fast_probe_ns: int = 1_000_000
    slow_probe_ns: int = 10_000_000

    # Repetitions per tier
    fast_repetitions: int = 500
    medium_repetitions: int = 50
    slow_repetitions: int = 5

    measure_memory: bool = True

    def __post_init__(self):
        if self.warmup_runs < 0:
            raise ValueError("warmup_runs must be >= 0")
        if self.invocation_timeout <= 0:
            raise ValueError("invocation_timeout must be positive")
        if min(self.fast_repetitions, self.medium_repetitions, self.slow_repetitions) < 1:
            raise ValueError("every repetition tier needs at least one repetition")
        if self.fast_probe_ns > self.slow_probe_ns:
            raise ValueError("fast_probe_ns must not exceed slow_probe_ns")


def repetitions_for(probe_ns: int, config: EngineConfig) -> int:
    """
    Repetition budget for a probe duration.

    > 10 ms: 5, (1 ms, 10 ms]: 50, <= 1 ms: 500 (with default tiers).
    """
    if probe_ns > config.slow_probe_ns:
        return config.slow_repetitions
    if probe_ns > config.fast_probe_ns:
        return config.medium_repetitions
    return config.fast_repetitions


def _raise_in_thread(thread: threading.Thread, exc_type: type) -> bool:
    """
    Schedule ``exc_type`` to be raised inside ``thread``.

    The exception is delivered at the thread's next bytecode boundary.
    A thread blocked inside C code (a read from stdin, a lock wait)
    only sees it once that call returns.
    """
    ident = thread.ident
    if ident is None:
        return False

    affected = ctypes.pythonapi.PyThreadState_SetAsyncExc(
        ctypes.c_ulong(ident), ctypes.py_object(exc_type)
    )
    if affected > 1:
        # Should never hit more than one thread; undo
        ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(ident), None)
        return False
    return affected == 1


class InvocationGuard:
    """
    Runs invocations on a dedicated daemon thread with a deadline.

    The caller waits up to ``timeout`` seconds per invocation. When the
    deadline passes the caller gets a TimeoutFault, the worker is abandoned
    and told to unwind via InvocationCancelled, and the handle is
    invalidated because its instance may be left half-updated.

    Python cannot preempt a thread stuck in native code. What that costs
    depends on whether the native call lets go of the GIL:

        - Blocking calls that release it (a lock wait, a read from stdin)
          only strand the worker. The caller still gets its TimeoutFault on
          time; the worker stays parked, holding whatever it allocated,
          until the call returns or the process exits.
        - Calls that keep it (a catastrophically backtracking regular
          expression, a C extension loop) stall every thread, the caller
          included. The TimeoutFault is raised once the call returns, and
          because the duration is checked against the deadline the late
          reply is never taken for a sample.

    Daemon status keeps a parked worker from blocking interpreter exit.
    """

    def __init__(self, provider: BaseProvider, handle: AlgorithmHandle, timeout: float):
        self.provider = provider
        self.handle = handle
        self.timeout = timeout
        self._requests: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def call(self, operation: Operation, args: GeneratedArgs) -> int:
        """
        Invoke once and return the invocation's duration in nanoseconds.

        Raises:
            AlgorithmFault: If the operation raised
            TimeoutFault: If it did not return within the timeout
        """
        if self._thread is None or not self._thread.is_alive():
            self._start_worker()

        reply: queue.Queue = queue.Queue(maxsize=1)
        self._requests.put((operation, args, reply))

        try:
            ok, value = reply.get(timeout=self.timeout)
        except queue.Empty:
            self._abandon(operation)
            raise TimeoutFault(operation.name, self.timeout) from None

        if not ok:
            raise value
        if value > self.timeout * 1_000_000_000:
            # The call held the interpreter past the deadline
            self._abandon(operation)
            raise TimeoutFault(operation.name, self.timeout)
        return value

    def close(self) -> None:
        """Let the worker exit once it is idle."""
        if self._thread is not None:
            self._requests.put(None)
            self._thread = None

    def _start_worker(self) -> None:
        self._requests = queue.Queue()
        self._thread = threading.Thread(
            target=self._serve,
            args=(self._requests,),
            name=f"invoke-{self.handle.name}",
            daemon=True,
        )
        self._thread.start()

    def _serve(self, requests: queue.Queue) -> None:
        try:
            while True:
                item = requests.get()
                if item is None:
                    return

                operation, args, reply = item
                try:
                    start = time.perf_counter_ns()
                    self.provider.invoke(self.handle, operation, args)
                    elapsed = time.perf_counter_ns() - start
                except AlgorithmFault as e:
                    reply.put((False, e))
                    continue
                reply.put((True, elapsed))
        except InvocationCancelled:
            logger.debug(f"Abandoned worker for {self.handle.name} unwound")

    def _abandon(self, operation: Operation) -> None:
        thread, self._thread = self._thread, None
        requests, self._requests = self._requests, queue.Queue()
        # Wakes a worker that finished just after the deadline and went idle
        requests.put(None)
        self.handle.invalidate(f"{operation.name} timed out after {self.timeout:.1f}s")

        if thread is not None and thread.is_alive():
            delivered = _raise_in_thread(thread, InvocationCancelled)
            logger.warning(
                f"{self.handle.name}.{operation.name} exceeded {self.timeout:.1f}s; "
                f"worker {'interrupted' if delivered else 'left parked'}"
            )


class BenchmarkEngine:
    """
    Measures an operation at a single input size.

    Features:
        - Warm-up and probe before timing
        - Probe-tiered repetition budget
        - Minimum-of-repetitions estimator
        - Approximate resident memory delta
        - Hard per-invocation timeout

    Example:
        engine = BenchmarkEngine(provider)
        metric = engine.measure(handle, operation, 10_000)
    """

    def __init__(
        self,
        provider: BaseProvider,
        generator: Optional[InputGenerator] = None,
        config: Optional[EngineConfig] = None,
        memory_probe: Optional[Any] = None,
    ):
        """
        Initialize benchmark engine.

        Args:
            provider: Provider that owns the handles being measured
            generator: Input generator (default: seeded from Config.RANDOM_SEED)
            config: Engine configuration (default: from Config)
            memory_probe: Object with ``resident_bytes()`` (default: psutil RSS)
        """
        self.provider = provider
        self.generator = generator or InputGenerator(seed=Config.RANDOM_SEED)
        self.config = config or Config.get_engine_config()
        self.memory_probe = memory_probe or ResidentMemoryProbe()

    def measure(self, handle: AlgorithmHandle, operation: Operation, n: int) -> Metric:
        """
        Measure one operation at input size N.

        Args:
            handle: Loaded algorithm (locked for the duration)
            operation: Operation with a supported signature
            n: Input size

        Returns:
            Metric with the minimum duration and memory delta

        Raises:
            UnsupportedParameterError: If the operation cannot be fed
            StaleHandleError: If an earlier timeout invalidated the handle
            AlgorithmFault: If the operation raised
            TimeoutFault: If one invocation exceeded the timeout
            ResourceError: If the memory query failed
        """
        signature = operation.require_signature()

        with handle.lock:
            handle.ensure_usable()
            self.provider.activate(handle)
            master = self.generator.generate(signature, n)

            guard = InvocationGuard(self.provider, handle, self.config.invocation_timeout)
            try:
                return self._run(guard, operation, master, n)
            finally:
                guard.close()

    def _run(self, guard: InvocationGuard, operation: Operation, master: GeneratedArgs, n: int) -> Metric:
        copy_args = self.generator.copy_args

        for _ in range(self.config.warmup_runs):
            guard.call(operation, copy_args(master))

        probe_ns = guard.call(operation, copy_args(master))
        repetitions = repetitions_for(probe_ns, self.config)
        logger.debug(f"{operation.name} N={n}: probe {probe_ns}ns -> {repetitions} repetitions")

        before = self._resident_bytes(collect=True)

        best_ns, runs = self._timed_repetitions(guard, operation, master, repetitions)

        after = self._resident_bytes()
        memory_delta = max(0, after - before)

        metric = Metric(input_size=n, time_ns=max(1, best_ns), memory_bytes=memory_delta)
        logger.debug(f"{operation.name} N={n}: min {metric.time_ns}ns over {runs} runs, +{memory_delta}B")
        return metric

    def _timed_repetitions(
        self,
        guard: InvocationGuard,
        operation: Operation,
        master: GeneratedArgs,
        repetitions: int,
    ) -> Tuple[int, int]:
        best_ns: Optional[int] = None
        runs = 0

        for _ in range(repetitions):
            args = self.generator.copy_args(master)
            elapsed = guard.call(operation, args)
            runs += 1
            if best_ns is None or elapsed < best_ns:
                best_ns = elapsed

        return best_ns, runs

    def _resident_bytes(self, collect: bool = False) -> int:
        if not self.config.measure_memory:
            return 0
        if collect:
            gc.collect()
        return self.memory_probe.resident_bytes()
