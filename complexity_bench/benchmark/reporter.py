"""
Report generation for sweep results.
Supports Markdown, JSON and CSV output formats.
"""

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .metrics import SweepResult
from .utils import format_bytes, format_duration_ns, get_machine_info, get_report_subdir_name
from ..config import Config


class Reporter:
    """
    Generate sweep reports in various formats.

    Supports:
        - Markdown reports
        - JSON data export
        - CSV metric streams (input_size, time_ns, memory_bytes)
        - Console output
        - Multi-operation comparison reports

    Reports are organized by date and hostname:
        reports/YYYYMMDD_hostname/

    Example:
        reporter = Reporter()
        reporter.generate_markdown(result)
        reporter.generate_csv(result)
    """

    def __init__(self, output_dir: Optional[Path] = None, console: Optional[Console] = None):
        """
        Initialize reporter.

        Args:
            output_dir: Base directory for output files (default: Config.REPORT_DIR)
            console: Rich console for summaries (default: a new Console)
        """
        base_dir = Path(output_dir) if output_dir else Config.REPORT_DIR

        subdir_name = get_report_subdir_name()
        self.output_dir = base_dir / subdir_name

        self.console = console or Console()

        # Cache machine info for this reporter instance
        self._machine_info = get_machine_info()

    def _output_path(self, filename: str) -> Path:
        # Created on first write
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / filename

    def _default_name(self, result: SweepResult, kind: str, suffix: str) -> str:
        file_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{kind}_{result.algorithm}_{result.operation}_{file_timestamp}.{suffix}"

    def generate_json(self, result: SweepResult, filename: Optional[str] = None) -> str:
        """
        Generate JSON sweep results.

        Args:
            result: Sweep result to export
            filename: Output filename (optional)

        Returns:
            Path to generated file
        """
        output_path = self._output_path(filename or self._default_name(result, "sweep", "json"))

        data = {
            "generated_at": datetime.now().isoformat(),
            "test_environment": self._machine_info,
            **result.to_dict(),
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

        return str(output_path)

    def generate_csv(self, result: SweepResult, filename: Optional[str] = None) -> str:
        """
        Write the metric stream as CSV.

        Args:
            result: Sweep result to export
            filename: Output filename (optional)

        Returns:
            Path to generated file
        """
        output_path = self._output_path(filename or self._default_name(result, "sweep", "csv"))

        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["input_size", "time_ns", "memory_bytes"])
            for m in result.metrics:
                writer.writerow([m.input_size, m.time_ns, m.memory_bytes])

        return str(output_path)

    def generate_markdown(self, result: SweepResult, filename: Optional[str] = None) -> str:
        """
        Generate a Markdown sweep report.

        Args:
            result: Sweep result to report
            filename: Output filename (optional)

        Returns:
            Path to generated file
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        output_path = self._output_path(filename or self._default_name(result, "sweep_report", "md"))

        lines = []
        lines.append("# Algorithm Complexity Report")
        lines.append(f"\n**Algorithm:** {result.algorithm}")
        lines.append(f"**Operation:** {result.operation}")
        lines.append(f"**Generated:** {timestamp}")
        lines.append("\n---\n")

        lines.append(self._format_environment_section())
        lines.append(self._format_result_section(result))

        content = "\n".join(lines)

        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)

        return str(output_path)

    def generate_comparison_report(
        self,
        results: Dict[str, SweepResult],
        filename: Optional[str] = None,
    ) -> str:
        """
        Generate a comparison report for several operations.

        Args:
            results: Dictionary mapping operation name to results
            filename: Output filename (optional)

        Returns:
            Path to generated file
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        file_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        if not filename:
            filename = f"sweep_comparison_{file_timestamp}.md"

        output_path = self._output_path(filename)

        lines = []
        lines.append("# Operation Comparison Report")
        lines.append(f"\n**Generated:** {timestamp}")
        lines.append(f"**Operations:** {', '.join(results.keys())}")
        lines.append("\n---\n")
        lines.append(self._format_environment_section())

        lines.append("\n## Summary\n")
        lines.append("| Operation | Status | Points | Max N | Time at max N | Peak memory |")
        lines.append("|-----------|--------|--------|-------|---------------|-------------|")
        for name, result in results.items():
            last = result.metrics[-1] if result.metrics else None
            lines.append(
                f"| {name} | {result.status} | {len(result.metrics)} | {result.max_input_size} "
                f"| {format_duration_ns(last.time_ns) if last else '-'} "
                f"| {format_bytes(result.summary()['peak_memory_bytes'])} |"
            )

        lines.append("\n## Time by input size\n")
        lines.append(self._format_time_matrix(results))

        content = "\n".join(lines)

        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)

        return str(output_path)

    def _format_environment_section(self) -> str:
        info = self._machine_info
        lines = []
        lines.append("## Environment\n")
        lines.append("| Item | Value |")
        lines.append("|------|-------|")
        lines.append(f"| Hostname | {info['hostname']} |")
        lines.append(f"| Platform | {info['platform']} |")
        lines.append(f"| Python | {info['python']} |")
        lines.append(f"| Logical CPUs | {info['cpu_count']} |")
        lines.append(f"| Memory | {info['memory_total_gb']} GB |")
        return "\n".join(lines)

    def _format_result_section(self, result: SweepResult) -> str:
        """Format the overview and per-size table for Markdown."""
        summary = result.summary()
        lines = []

        lines.append("\n## Overview\n")
        lines.append("| Metric | Value |")
        lines.append("|--------|-------|")
        lines.append(f"| Range | {result.start}..{result.stop} step {result.step} |")
        lines.append(f"| Slow threshold | {format_duration_ns(result.slow_threshold_ns)} |")
        lines.append(f"| Status | {result.status} |")
        lines.append(f"| Points measured | {summary['points']} |")
        lines.append(f"| Largest N | {summary['max_input_size']} |")
        lines.append(f"| Peak memory delta | {format_bytes(summary['peak_memory_bytes'])} |")
        if result.fault is not None:
            lines.append(f"| Fault | {type(result.fault).__name__}: {result.fault} |")

        lines.append("\n## Measurements\n")
        lines.append("| N | Min time | Time (ns) | Memory delta |")
        lines.append("|---|----------|-----------|--------------|")
        for m in result.metrics:
            lines.append(
                f"| {m.input_size} | {format_duration_ns(m.time_ns)} | {m.time_ns} "
                f"| {format_bytes(m.memory_bytes)} |"
            )

        lines.append(
            "\n_Times are the minimum over repeated runs. Memory is the resident "
            "set growth across the timed batch and is approximate._"
        )
        return "\n".join(lines)

    def _format_time_matrix(self, results: Dict[str, SweepResult]) -> str:
        names = list(results.keys())
        sizes: List[int] = sorted({m.input_size for r in results.values() for m in r.metrics})
        by_size = {
            name: {m.input_size: m.time_ns for m in r.metrics}
            for name, r in results.items()
        }

        lines = []
        lines.append("| N |" + "|".join(f" {n} " for n in names) + "|")
        lines.append("|---|" + "|".join("------" for _ in names) + "|")
        for size in sizes:
            row = f"| {size} |"
            for name in names:
                value = by_size[name].get(size)
                row += f" {format_duration_ns(value) if value is not None else '-'} |"
            lines.append(row)
        return "\n".join(lines)

    def print_summary(self, result: SweepResult) -> None:
        """Print a summary to console."""
        summary = result.summary()

        table = Table(title=f"{result.algorithm}.{result.operation}")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Status", result.status)
        table.add_row("Points", str(summary["points"]))
        table.add_row("Largest N", str(summary["max_input_size"]))
        table.add_row("Fastest point", format_duration_ns(summary["min_time_ns"]))
        table.add_row("Slowest point", format_duration_ns(summary["max_time_ns"]))
        table.add_row("Peak memory delta", format_bytes(summary["peak_memory_bytes"]))
        self.console.print(table)

        if result.fault is not None:
            self.console.print(f"[red]Fault: {type(result.fault).__name__}: {escape(str(result.fault))}[/red]")
        elif result.stopped_early:
            self.console.print("[yellow]Stopped early: the operation crossed the slow threshold.[/yellow]")
