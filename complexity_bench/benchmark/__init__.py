"""
Benchmark execution and reporting package.
"""

from .engine import BenchmarkEngine, EngineConfig, InvocationGuard, repetitions_for
from .metrics import Metric, SweepResult
from .sweep import Sweep, SweepController, BackgroundSweep
from .reporter import Reporter

__all__ = [
    "BenchmarkEngine",
    "EngineConfig",
    "InvocationGuard",
    "repetitions_for",
    "Metric",
    "SweepResult",
    "Sweep",
    "SweepController",
    "BackgroundSweep",
    "Reporter",
]
