"""
Size sweeps: measure one operation across increasing input sizes.
"""

import logging
import queue
import threading
from typing import Callable, Dict, Iterator, List, Optional

from ..config import Config
from ..providers.base import (
    AlgorithmFault,
    AlgorithmHandle,
    BaseProvider,
    Operation,
    ResourceError,
    TimeoutFault,
)
from .engine import BenchmarkEngine
from .metrics import Metric, SweepResult

logger = logging.getLogger(__name__)

# Faults that end a sweep but keep what was measured so far
SWEEP_FAULTS = (AlgorithmFault, TimeoutFault, ResourceError)


class Sweep:
    """
    Lazy, finite, non-restartable iterator of Metrics for one operation.

    Each Metric is yielded as soon as it is measured. The sweep stops after
    the first Metric slower than the threshold, on cancellation, or on a
    fault; ``result`` keeps everything measured up to that point and the
    fault, if any.

    Example:
        sweep = controller.sweep(handle, op, 1000, 100000, 2000)
        for metric in sweep:
            plot(metric.input_size, metric.time_ns)
        if sweep.result.fault:
            show_error(sweep.result.fault)
    """

    def __init__(
        self,
        engine: BenchmarkEngine,
        handle: AlgorithmHandle,
        operation: Operation,
        start: int,
        stop: int,
        step: int,
        slow_threshold_ns: int,
    ):
        self.engine = engine
        self.handle = handle
        self.operation = operation
        self.result = SweepResult(
            algorithm=handle.name,
            operation=operation.name,
            start=start,
            stop=stop,
            step=step,
            slow_threshold_ns=slow_threshold_ns,
        )
        self._cancel = threading.Event()
        self._callbacks: List[Callable[[Metric], None]] = []
        self._steps = self._advance()

    def on_metric(self, callback: Callable[[Metric], None]) -> "Sweep":
        """
        Set metric callback.

        Args:
            callback: Function(metric) called for each Metric, in order
        """
        self._callbacks.append(callback)
        return self

    def cancel(self) -> None:
        """Stop before the next input size is started."""
        self._cancel.set()

    @property
    def fault(self) -> Optional[BaseException]:
        return self.result.fault

    def __iter__(self) -> Iterator[Metric]:
        return self

    def __next__(self) -> Metric:
        return next(self._steps)

    def run(self) -> SweepResult:
        """Drain the sweep and return its result."""
        for _ in self:
            pass
        return self.result

    def _advance(self) -> Iterator[Metric]:
        result = self.result
        logger.info(
            f"Sweep {result.algorithm}.{result.operation}: "
            f"N={result.start}..{result.stop} step {result.step}"
        )

        for n in range(result.start, result.stop + 1, result.step):
            if self._cancel.is_set():
                result.cancelled = True
                logger.info(f"Sweep {result.operation} cancelled before N={n}")
                return

            try:
                metric = self.engine.measure(self.handle, self.operation, n)
            except SWEEP_FAULTS as e:
                result.fault = e
                logger.warning(f"Sweep {result.operation} stopped at N={n}: {e}")
                return

            result.metrics.append(metric)
            # Set before the yield: the consumer may never call next() again
            slow = metric.time_ns > result.slow_threshold_ns
            if slow:
                result.stopped_early = True
                logger.info(
                    f"Stopping early: {result.operation} took {metric.time_ns}ns at N={n} "
                    f"(threshold {result.slow_threshold_ns}ns)"
                )

            for callback in self._callbacks:
                callback(metric)
            yield metric

            if slow:
                return

        logger.info(f"Sweep {result.operation} complete: {len(result.metrics)} points")


class BackgroundSweep:
    """
    Runs a Sweep on its own daemon thread.

    Metrics are handed to the consumer through a queue in the order they
    were produced. Iterating blocks until the next Metric or the end.
    """

    _DONE = object()

    def __init__(self, sweep: Sweep):
        self.sweep = sweep
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(
            target=self._work,
            name=f"sweep-{sweep.result.operation}",
            daemon=True,
        )

    def start(self) -> "BackgroundSweep":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self.sweep.cancel()

    @property
    def result(self) -> SweepResult:
        return self.sweep.result

    def join(self, timeout: Optional[float] = None) -> SweepResult:
        self._thread.join(timeout)
        return self.sweep.result

    def __iter__(self) -> Iterator[Metric]:
        while True:
            item = self._queue.get()
            if item is self._DONE:
                return
            yield item

    def _work(self) -> None:
        try:
            for metric in self.sweep:
                self._queue.put(metric)
        except Exception as e:
            # Anything the sweep itself does not classify still ends it visibly
            logger.exception(f"Background sweep {self.sweep.result.operation} failed")
            self.sweep.result.fault = e
        finally:
            self._queue.put(self._DONE)


class SweepController:
    """
    Drives the benchmark engine across input sizes.

    Example:
        controller = SweepController(engine)
        result = controller.sweep(handle, op, 1000, 20000, 1000).run()
    """

    def __init__(self, engine: BenchmarkEngine):
        self.engine = engine

    @property
    def provider(self) -> BaseProvider:
        return self.engine.provider

    def sweep(
        self,
        handle: AlgorithmHandle,
        operation: Operation,
        start: Optional[int] = None,
        stop: Optional[int] = None,
        step: Optional[int] = None,
        slow_threshold_ns: Optional[int] = None,
    ) -> Sweep:
        """
        Create a sweep. Nothing is measured until it is iterated.

        Args:
            handle: Loaded algorithm
            operation: Operation to measure
            start: First N (default: Config.SWEEP_START)
            stop: Last N, inclusive (default: Config.SWEEP_STOP)
            step: Increment (default: Config.SWEEP_STEP)
            slow_threshold_ns: Early-stop threshold (default: Config.SLOW_THRESHOLD_MS)

        Returns:
            Sweep iterator

        Raises:
            ValueError: If the range is invalid
            UnsupportedParameterError: If the operation cannot be fed
            StaleHandleError: If the handle was invalidated by a timeout
        """
        start = Config.SWEEP_START if start is None else start
        stop = Config.SWEEP_STOP if stop is None else stop
        step = Config.SWEEP_STEP if step is None else step
        if slow_threshold_ns is None:
            slow_threshold_ns = Config.slow_threshold_ns()

        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        if start < 0 or stop < start:
            raise ValueError(f"invalid range: start={start}, stop={stop}")

        operation.require_signature()
        handle.ensure_usable()

        return Sweep(self.engine, handle, operation, start, stop, step, slow_threshold_ns)

    def start(self, handle: AlgorithmHandle, operation: Operation, **kwargs) -> BackgroundSweep:
        """Create a sweep and run it on a dedicated thread."""
        return BackgroundSweep(self.sweep(handle, operation, **kwargs)).start()

    def compare_operations(
        self,
        handle: AlgorithmHandle,
        operation_names: List[str],
        **kwargs,
    ) -> Dict[str, SweepResult]:
        """
        Sweep several operations of one unit, one after another.

        A handle invalidated by a timeout is reloaded before the next
        operation.

        Args:
            handle: Loaded algorithm
            operation_names: Operations to compare
            **kwargs: Range and threshold passed to sweep()

        Returns:
            Dictionary mapping operation name to its SweepResult
        """
        results: Dict[str, SweepResult] = {}

        for name in operation_names:
            if not handle.usable:
                logger.info(f"Reloading {handle.name} after: {handle.invalid_reason}")
                handle = self.provider.reload(handle)

            operation = self.provider.select_operation(handle, name)
            logger.info(f"\n{'='*60}")
            logger.info(f"Sweeping operation: {operation.display_name}")
            logger.info(f"{'='*60}")

            results[name] = self.sweep(handle, operation, **kwargs).run()

        return results
