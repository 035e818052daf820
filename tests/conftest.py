"""Shared pytest fixtures for complexity benchmark tests.

Algorithm units are real Python source files written into ``tmp_path`` so
the provider's import machinery is exercised exactly as in normal use.
"""

import sys
import textwrap
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, List

import pytest

from complexity_bench.benchmark.engine import EngineConfig
from complexity_bench.providers.base import (
    AlgorithmHandle,
    Operation,
    OperationParameter,
    OperationSignature,
    ParameterKind,
)
from complexity_bench.providers.python_module import _REGISTERED, PythonModuleProvider


BINARY_SEARCH_SOURCE = '''
    from typing import List


    class BinarySearch:
        def search(self, arr: List[int], target: int) -> int:
            lo, hi = 0, len(arr) - 1
            while lo <= hi:
                mid = (lo + hi) // 2
                if arr[mid] == target:
                    return mid
                if arr[mid] < target:
                    lo = mid + 1
                else:
                    hi = mid - 1
            return -1
'''


@pytest.fixture(autouse=True)
def forget_registered_packages():
    """Drop packages that loads kept in sys.modules, so tests stay independent."""
    yield
    for top, namespace in list(_REGISTERED.items()):
        if sys.modules.get(top) is namespace.get(top):
            for name in [n for n in sys.modules if n == top or n.startswith(top + ".")]:
                del sys.modules[name]
    _REGISTERED.clear()


@pytest.fixture()
def write_source(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write dedented source to ``tmp_path / relative`` and return its path."""

    def _write(relative: str, source: str = "") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def provider() -> PythonModuleProvider:
    return PythonModuleProvider()


@pytest.fixture()
def load_algorithm(write_source, provider) -> Callable[..., AlgorithmHandle]:
    """Write a source file and load it through the provider."""

    def _load(relative: str, source: str, class_name: str = "") -> AlgorithmHandle:
        path = write_source(relative, source)
        locator = f"{path}:{class_name}" if class_name else str(path)
        return provider.load(locator)

    return _load


@pytest.fixture()
def binary_search_path(write_source) -> Path:
    return write_source("binary_search.py", BINARY_SEARCH_SOURCE)


@pytest.fixture()
def quick_config() -> EngineConfig:
    """Always-fast tier with small budgets, memory off."""
    return EngineConfig(
        warmup_runs=2,
        invocation_timeout=2.0,
        fast_probe_ns=10 ** 12,
        slow_probe_ns=10 ** 13,
        fast_repetitions=7,
        medium_repetitions=3,
        slow_repetitions=1,
        measure_memory=False,
    )


class Dummy:
    def run(self, arr):
        return None


@pytest.fixture()
def make_handle() -> Callable[..., AlgorithmHandle]:
    """Factory for handles that never touch the filesystem."""

    def _factory(*, operations: Any = None) -> AlgorithmHandle:
        if operations is None:
            operations = (_operation("run"),)
        return AlgorithmHandle(
            locator="dummy.py",
            unit=Dummy,
            instance=Dummy(),
            module=ModuleType("dummy"),
            module_name="dummy",
            search_root=Path("."),
            operations=tuple(operations),
        )

    return _factory


def _operation(name: str, supported: bool = True) -> Operation:
    if supported:
        return Operation(
            name=name,
            parameters=(OperationParameter("arr", List[int], ParameterKind.INT_ARRAY),),
            signature=OperationSignature((ParameterKind.INT_ARRAY,)),
        )
    return Operation(name=name, parameters=(OperationParameter("data", dict, None),))


@pytest.fixture()
def make_operation() -> Callable[..., Operation]:
    return _operation
