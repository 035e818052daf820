"""
Measurement records produced by the benchmark engine and sweeps.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Metric:
    """
    One measurement of an operation at a single input size.

    Attributes:
        input_size: N the arguments were generated for
        time_ns: Minimum wall-clock duration over the timed repetitions
        memory_bytes: Approximate resident memory growth across the
            timed batch (never negative, not an exact attribution)
    """
    input_size: int
    time_ns: int
    memory_bytes: int

    @property
    def time_ms(self) -> float:
        return self.time_ns / 1_000_000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "input_size": self.input_size,
            "time_ns": self.time_ns,
            "memory_bytes": self.memory_bytes,
        }


@dataclass
class SweepResult:
    """
    Ordered metrics of one sweep plus how it ended.

    The metrics list only ever grows by appending. It is truncated, not
    padded, when the sweep stops early, is cancelled, or hits a fault.
    """
    algorithm: str = ""
    operation: str = ""
    start: int = 0
    stop: int = 0
    step: int = 1
    slow_threshold_ns: int = 0
    metrics: List[Metric] = field(default_factory=list)
    fault: Optional[BaseException] = None
    stopped_early: bool = False
    cancelled: bool = False

    @property
    def completed(self) -> bool:
        """True when every size from start to stop was measured."""
        return (
            self.fault is None
            and not self.stopped_early
            and not self.cancelled
            and bool(self.metrics)
            and self.metrics[-1].input_size + self.step > self.stop
        )

    @property
    def max_input_size(self) -> int:
        return self.metrics[-1].input_size if self.metrics else 0

    @property
    def status(self) -> str:
        if self.fault is not None:
            return "fault"
        if self.cancelled:
            return "cancelled"
        if self.stopped_early:
            return "stopped_early"
        return "completed"

    def summary(self) -> Dict[str, Any]:
        """Aggregate figures for reports."""
        if not self.metrics:
            return {
                "points": 0,
                "max_input_size": 0,
                "min_time_ns": 0,
                "max_time_ns": 0,
                "peak_memory_bytes": 0,
            }

        times = [m.time_ns for m in self.metrics]
        return {
            "points": len(self.metrics),
            "max_input_size": self.max_input_size,
            "min_time_ns": min(times),
            "max_time_ns": max(times),
            "peak_memory_bytes": max(m.memory_bytes for m in self.metrics),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "algorithm": self.algorithm,
            "operation": self.operation,
            "range": {"start": self.start, "stop": self.stop, "step": self.step},
            "slow_threshold_ns": self.slow_threshold_ns,
            "status": self.status,
            "fault": (
                {"type": type(self.fault).__name__, "message": str(self.fault)}
                if self.fault is not None else None
            ),
            "summary": self.summary(),
            "metrics": [m.to_dict() for m in self.metrics],
        }
