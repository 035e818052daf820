"""
Utility functions for benchmark module.
Separated to avoid circular imports.
"""

import os
import socket
import platform
from datetime import datetime
from typing import Any, Dict, Optional

import psutil

from ..providers.base import ResourceError


class ResidentMemoryProbe:
    """
    Reads the resident set size of the current process.

    RSS covers every allocation in the process, including other threads
    and allocator slack, so deltas taken from it are approximate.
    """

    def __init__(self, pid: Optional[int] = None):
        self._pid = pid or os.getpid()
        self._process = None

    def resident_bytes(self) -> int:
        """
        Current resident set size in bytes.

        Raises:
            ResourceError: If the operating system refuses the query
        """
        try:
            if self._process is None:
                self._process = psutil.Process(self._pid)
            return int(self._process.memory_info().rss)
        except psutil.Error as e:
            raise ResourceError(f"Resident memory query failed: {e}") from e


def get_machine_info() -> Dict[str, Any]:
    """
    Get machine information for report context.

    Returns:
        Dictionary with machine details including:
        - hostname: Machine hostname
        - platform: OS platform info
        - python: Interpreter implementation and version
        - cpu_count: Logical CPUs
        - memory_total_gb: Physical memory
    """
    info: Dict[str, Any] = {
        "hostname": socket.gethostname(),
        "platform": f"{platform.system()} {platform.release()}",
        "python": f"{platform.python_implementation()} {platform.python_version()}",
        "cpu_count": psutil.cpu_count(logical=True) or 0,
        "memory_total_gb": 0.0,
    }

    try:
        info["memory_total_gb"] = round(psutil.virtual_memory().total / (1024 ** 3), 1)
    except psutil.Error:
        pass

    return info


def get_report_subdir_name() -> str:
    """
    Generate report subdirectory name based on date and hostname.

    Format: YYYYMMDD_hostname
    Example: 20251224_build-host-01

    Returns:
        Subdirectory name string
    """
    date_str = datetime.now().strftime("%Y%m%d")
    hostname = socket.gethostname().replace("_", "-").replace(os.sep, "-") or "localhost"
    return f"{date_str}_{hostname}"


def format_duration_ns(value: int) -> str:
    """Human-readable duration for console and Markdown output."""
    if value >= 1_000_000_000:
        return f"{value / 1_000_000_000:.2f}s"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f}ms"
    if value >= 1_000:
        return f"{value / 1_000:.1f}µs"
    return f"{value}ns"


def format_bytes(value: int) -> str:
    if value >= 1024 ** 2:
        return f"{value / 1024 ** 2:.1f}MB"
    if value >= 1024:
        return f"{value / 1024:.1f}KB"
    return f"{value}B"
