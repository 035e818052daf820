"""Tests for sweep report export."""

import csv
import io
import json

import pytest
from rich.console import Console

from complexity_bench.benchmark.metrics import Metric, SweepResult
from complexity_bench.benchmark.reporter import Reporter
from complexity_bench.benchmark.utils import get_report_subdir_name
from complexity_bench.providers.base import TimeoutFault


@pytest.fixture()
def result():
    return SweepResult(
        algorithm="BubbleSort",
        operation="sort",
        start=100,
        stop=500,
        step=200,
        slow_threshold_ns=100_000_000,
        metrics=[
            Metric(input_size=100, time_ns=2_500_000, memory_bytes=0),
            Metric(input_size=300, time_ns=22_000_000, memory_bytes=4096),
            Metric(input_size=500, time_ns=150_000_000, memory_bytes=8192),
        ],
        stopped_early=True,
    )


@pytest.fixture()
def reporter(tmp_path):
    return Reporter(output_dir=tmp_path, console=Console(file=io.StringIO(), width=120))


def test_reports_go_to_dated_host_directory(reporter, tmp_path):
    assert reporter.output_dir == tmp_path / get_report_subdir_name()


def test_no_directory_until_first_write(reporter):
    assert not reporter.output_dir.exists()


def test_json_export(reporter, result):
    path = reporter.generate_json(result)

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    assert data["algorithm"] == "BubbleSort"
    assert data["status"] == "stopped_early"
    assert data["range"] == {"start": 100, "stop": 500, "step": 200}
    assert [m["input_size"] for m in data["metrics"]] == [100, 300, 500]
    assert data["summary"]["peak_memory_bytes"] == 8192
    assert {"hostname", "python", "cpu_count"} <= set(data["test_environment"])


def test_csv_export(reporter, result):
    path = reporter.generate_csv(result, filename="bubble.csv")

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert path.endswith("bubble.csv")
    assert rows[0] == ["input_size", "time_ns", "memory_bytes"]
    assert rows[1:] == [["100", "2500000", "0"], ["300", "22000000", "4096"], ["500", "150000000", "8192"]]


def test_markdown_report(reporter, result):
    result.fault = TimeoutFault("sort", 2.0)
    path = reporter.generate_markdown(result)

    with open(path, encoding="utf-8") as f:
        content = f.read()

    assert "# Algorithm Complexity Report" in content
    assert "| 300 | 22.00ms | 22000000 | 4.0KB |" in content
    assert "TimeoutFault" in content


def test_comparison_report(reporter, result):
    other = SweepResult(
        algorithm="BubbleSort",
        operation="merge",
        start=100,
        stop=500,
        step=200,
        metrics=[Metric(input_size=100, time_ns=900, memory_bytes=0)],
    )

    path = reporter.generate_comparison_report({"sort": result, "merge": other})

    with open(path, encoding="utf-8") as f:
        content = f.read()

    assert "| sort | stopped_early | 3 | 500 |" in content
    assert "| merge | completed | 1 | 100 |" in content
    assert "| 300 | 22.00ms | - |" in content


def test_print_summary(reporter, result):
    reporter.print_summary(result)
    output = reporter.console.file.getvalue()

    assert "stopped_early" in output
    assert "Stopped early" in output
