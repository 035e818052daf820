"""
Configuration management for the Algorithm Complexity Benchmark.
Loads settings from environment variables and .env file.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

# Load .env file from project root
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Central configuration management."""

    # ==========================================================================
    # Measurement Settings
    # ==========================================================================
    WARMUP_RUNS: int = int(os.getenv("WARMUP_RUNS", "5"))
    INVOCATION_TIMEOUT: float = float(os.getenv("INVOCATION_TIMEOUT", "2.0"))
    MEASURE_MEMORY: bool = _flag(os.getenv("MEASURE_MEMORY", "true"))
    RANDOM_SEED: Optional[int] = _optional_int(os.getenv("RANDOM_SEED"))

    # ==========================================================================
    # Sweep Settings
    # ==========================================================================
    SWEEP_START: int = int(os.getenv("SWEEP_START", "1000"))
    SWEEP_STOP: int = int(os.getenv("SWEEP_STOP", "100000"))
    SWEEP_STEP: int = int(os.getenv("SWEEP_STEP", "2000"))
    SLOW_THRESHOLD_MS: float = float(os.getenv("SLOW_THRESHOLD_MS", "100"))

    # ==========================================================================
    # Loader Settings
    # ==========================================================================
    MAX_NAMESPACE_DEPTH: int = int(os.getenv("MAX_NAMESPACE_DEPTH", "5"))

    # Output directories
    OUTPUT_DIR: Path = PROJECT_ROOT / os.getenv("OUTPUT_DIR", "output")
    REPORT_DIR: Path = PROJECT_ROOT / os.getenv("REPORT_DIR", "reports")

    # ==========================================================================
    # Provider Configurations
    # ==========================================================================

    @classmethod
    def get_python_config(cls) -> Dict[str, Any]:
        """Get Python source-file provider configuration."""
        return {
            "max_namespace_depth": cls.MAX_NAMESPACE_DEPTH,
        }

    @classmethod
    def slow_threshold_ns(cls) -> int:
        """Early-stop threshold converted to nanoseconds."""
        return int(cls.SLOW_THRESHOLD_MS * 1_000_000)

    @classmethod
    def get_engine_config(cls):
        """Build an EngineConfig from the current settings."""
        # Imported lazily: the engine module reads Config for its defaults.
        from .benchmark.engine import EngineConfig

        return EngineConfig(
            warmup_runs=cls.WARMUP_RUNS,
            invocation_timeout=cls.INVOCATION_TIMEOUT,
            measure_memory=cls.MEASURE_MEMORY,
        )

    @classmethod
    def ensure_directories(cls):
        """Create output directories if they don't exist."""
        cls.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        cls.REPORT_DIR.mkdir(parents=True, exist_ok=True)
