"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner
from rich.console import Console

import main
from complexity_bench.config import Config
from main import cli


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_reports(tmp_path, monkeypatch):
    monkeypatch.setattr(Config, "REPORT_DIR", tmp_path / "reports")
    monkeypatch.setattr(Config, "OUTPUT_DIR", tmp_path / "output")
    monkeypatch.setattr(Config, "WARMUP_RUNS", 1)
    # Wide and colourless so assertions see whole lines
    monkeypatch.setattr(main, "console", Console(width=200, color_system=None))


def test_operations_lists_signatures(runner, binary_search_path):
    result = runner.invoke(cli, ["operations", str(binary_search_path)])

    assert result.exit_code == 0, result.output
    assert "BinarySearch" in result.output
    assert "search" in result.output
    assert "Measurable" in result.output


def test_operations_missing_file(runner, tmp_path):
    result = runner.invoke(cli, ["operations", str(tmp_path / "absent.py")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_run_without_export(runner, binary_search_path, tmp_path):
    result = runner.invoke(
        cli,
        ["run", str(binary_search_path), "-m", "search",
         "--start", "10", "--stop", "30", "--step", "10", "--seed", "1", "--no-export"],
    )

    assert result.exit_code == 0, result.output
    assert "N=      10" in result.output
    assert "N=      30" in result.output
    assert "completed" in result.output
    assert not (tmp_path / "reports").exists()


def test_run_exports_csv(runner, binary_search_path, tmp_path):
    result = runner.invoke(
        cli,
        ["run", str(binary_search_path), "-m", "search",
         "--start", "10", "--stop", "20", "--step", "10", "--format", "csv"],
    )

    assert result.exit_code == 0, result.output
    exported = list((tmp_path / "reports").rglob("*.csv"))
    assert len(exported) == 1
    assert exported[0].read_text(encoding="utf-8").splitlines()[0] == "input_size,time_ns,memory_bytes"


def test_run_unknown_operation(runner, binary_search_path):
    result = runner.invoke(cli, ["run", str(binary_search_path), "-m", "nope", "--no-export"])

    assert result.exit_code == 1
    assert "Unknown operation" in result.output


def test_run_reports_fault(runner, write_source):
    path = write_source(
        "exploder.py",
        """
        class Exploder:
            def explode(self, arr: list[int]) -> int:
                raise KeyError("missing")
        """,
    )

    result = runner.invoke(
        cli, ["run", str(path), "-m", "explode", "--start", "1", "--stop", "3", "--step", "1", "--no-export"]
    )

    assert result.exit_code == 2
    assert "KeyError" in result.output


def test_compare_writes_report(runner, write_source, tmp_path):
    path = write_source(
        "searches.py",
        """
        class Searches:
            def linear(self, arr: list[int], target: int) -> int:
                for i, value in enumerate(arr):
                    if value == target:
                        return i
                return -1

            def builtin(self, arr: list[int], target: int) -> bool:
                return target in arr
        """,
    )

    result = runner.invoke(
        cli, ["compare", str(path), "-m", "linear,builtin", "--start", "10", "--stop", "20", "--step", "10"]
    )

    assert result.exit_code == 0, result.output
    assert "Operation Comparison" in result.output
    assert list((tmp_path / "reports").rglob("sweep_comparison_*.md"))


def test_init_creates_directories(runner, tmp_path):
    result = runner.invoke(cli, ["init"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "reports").is_dir()
    assert (tmp_path / "output").is_dir()
    assert "MAX_NAMESPACE_DEPTH" in result.output
