#!/usr/bin/env python3
"""
Algorithm Complexity Benchmark - CLI Entry Point

Usage:
    python main.py operations algos/sort/bubble_sort.py
    python main.py run algos/search/binary_search.py -m search --stop 20000
    python main.py compare algos/sort/sorter.py -m bubble,merge
"""

import sys
import logging
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from complexity_bench import __version__
from complexity_bench.config import Config
from complexity_bench.providers import get_provider
from complexity_bench.providers.base import BenchmarkError, LoadError, AlgorithmFault
from complexity_bench.data.generator import InputGenerator
from complexity_bench.benchmark.engine import BenchmarkEngine, EngineConfig
from complexity_bench.benchmark.sweep import SweepController
from complexity_bench.benchmark.reporter import Reporter
from complexity_bench.benchmark.utils import format_bytes, format_duration_ns

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

console = Console()


def setup_logging(verbose: bool = False, debug: bool = False):
    """Configure logging level."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    # Configure root logger
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )

    # Also set level for our modules
    for module in ['complexity_bench.providers', 'complexity_bench.benchmark', 'complexity_bench.data']:
        logging.getLogger(module).setLevel(level)


def _load(locator):
    """Load an algorithm or exit with a readable error."""
    try:
        provider = get_provider()
        handle = provider.load(locator)
    except LoadError as e:
        console.print(f"[red]Error loading {locator}: {escape(str(e))}[/red]")
        sys.exit(1)
    except AlgorithmFault as e:
        console.print(f"[red]Error constructing algorithm: {escape(str(e))}[/red]")
        sys.exit(1)
    except BenchmarkError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    console.print(f"✅ Loaded: [cyan]{handle.name}[/cyan] as [dim]{handle.module_name}[/dim]")
    return provider, handle


def _build_controller(provider, timeout, seed):
    config = Config.get_engine_config()
    if timeout is not None:
        config = EngineConfig(
            warmup_runs=config.warmup_runs,
            invocation_timeout=timeout,
            measure_memory=config.measure_memory,
        )
    generator = InputGenerator(seed=Config.RANDOM_SEED if seed is None else seed)
    engine = BenchmarkEngine(provider, generator=generator, config=config)
    return SweepController(engine)


def _sweep_kwargs(start, stop, step, slow_threshold_ms):
    return {
        "start": start,
        "stop": stop,
        "step": step,
        "slow_threshold_ns": (
            int(slow_threshold_ms * 1_000_000) if slow_threshold_ms is not None else None
        ),
    }


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output (INFO level)')
@click.option('--debug', is_flag=True, help='Enable debug output (DEBUG level, shows namespace trials and probes)')
@click.pass_context
def cli(ctx, verbose, debug):
    """
    Algorithm Complexity Benchmark Tool

    Load an algorithm class from a Python file, then measure how one of its
    operations scales with the size of its input.

    Use -v for verbose output, --debug for namespace trials and probe timings.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug
    setup_logging(verbose, debug)


@cli.command()
@click.argument('locator')
def operations(locator):
    """
    List the operations an algorithm declares.

    Example:
        python main.py operations algos/search/binary_search.py
    """
    provider, handle = _load(locator)

    table = Table(title=f"{handle.name} operations")
    table.add_column("Name", style="cyan")
    table.add_column("Signature")
    table.add_column("Status")

    for op in provider.list_operations(handle):
        if op.supported:
            status = "[green]✅ Measurable[/green]"
        else:
            status = f"[red]❌ Unsupported: {', '.join(op.unsupported_parameters)}[/red]"
        table.add_row(op.name, escape(op.display_name), status)

    console.print(table)


@cli.command()
@click.argument('locator')
@click.option('--method', '-m', required=True, help='Operation name to measure')
@click.option('--start', default=None, type=int, help='First input size (default: SWEEP_START)')
@click.option('--stop', default=None, type=int, help='Last input size, inclusive (default: SWEEP_STOP)')
@click.option('--step', default=None, type=int, help='Input size increment (default: SWEEP_STEP)')
@click.option('--slow-threshold-ms', default=None, type=float, help='Stop once a size takes longer (default: SLOW_THRESHOLD_MS)')
@click.option('--timeout', default=None, type=float, help='Per-invocation timeout in seconds')
@click.option('--seed', default=None, type=int, help='Random seed for input generation')
@click.option('--format', '-f', type=click.Choice(['json', 'csv', 'md', 'all']), default='all', help='Output format')
@click.option('--no-export', is_flag=True, help='Print results only, write no files')
def run(locator, method, start, stop, step, slow_threshold_ms, timeout, seed, format, no_export):
    """
    Sweep one operation across input sizes.

    Example:
        python main.py run algos/sort/bubble_sort.py -m sort --stop 20000 --step 1000
    """
    console.print(f"\n[bold blue]Algorithm Complexity Benchmark[/bold blue]")
    console.print(f"Algorithm: [cyan]{locator}[/cyan]")
    console.print(f"Operation: [cyan]{method}[/cyan]")
    console.print("")

    provider, handle = _load(locator)
    controller = _build_controller(provider, timeout, seed)

    try:
        operation = provider.select_operation(handle, method)
        sweep = controller.sweep(handle, operation, **_sweep_kwargs(start, stop, step, slow_threshold_ms))
    except (BenchmarkError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    console.print(f"Measuring: [cyan]{escape(operation.display_name)}[/cyan]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Running sweep...", total=None)

        for metric in sweep:
            progress.console.print(
                f"  N={metric.input_size:>8}  {format_duration_ns(metric.time_ns):>10}  "
                f"{format_bytes(metric.memory_bytes):>8}"
            )
            progress.update(task, description=f"Measured N={metric.input_size}")

        progress.update(task, completed=True)

    result = sweep.result

    # Generate reports
    reporter = Reporter(console=console)

    if not no_export:
        Config.ensure_directories()

        if format in ['json', 'all']:
            json_path = reporter.generate_json(result)
            console.print(f"📊 JSON results: [green]{json_path}[/green]")

        if format in ['csv', 'all']:
            csv_path = reporter.generate_csv(result)
            console.print(f"📈 CSV metrics: [green]{csv_path}[/green]")

        if format in ['md', 'all']:
            md_path = reporter.generate_markdown(result)
            console.print(f"📄 Markdown report: [green]{md_path}[/green]")

    # Print summary
    reporter.print_summary(result)

    if result.fault is not None:
        sys.exit(2)


@cli.command()
@click.argument('locator')
@click.option('--methods', '-m', required=True, help='Comma-separated operation names')
@click.option('--start', default=None, type=int, help='First input size')
@click.option('--stop', default=None, type=int, help='Last input size, inclusive')
@click.option('--step', default=None, type=int, help='Input size increment')
@click.option('--slow-threshold-ms', default=None, type=float, help='Early-stop threshold in milliseconds')
@click.option('--timeout', default=None, type=float, help='Per-invocation timeout in seconds')
@click.option('--seed', default=None, type=int, help='Random seed for input generation')
def compare(locator, methods, start, stop, step, slow_threshold_ms, timeout, seed):
    """
    Compare several operations of one algorithm.

    Example:
        python main.py compare algos/sort/sorter.py -m bubble,merge --stop 20000
    """
    method_names = [m.strip() for m in methods.split(',') if m.strip()]

    console.print(f"\n[bold blue]Operation Comparison[/bold blue]")
    console.print(f"Algorithm: [cyan]{locator}[/cyan]")
    console.print(f"Operations: [cyan]{', '.join(method_names)}[/cyan]")
    console.print("")

    provider, handle = _load(locator)
    controller = _build_controller(provider, timeout, seed)

    console.print("\n[bold]Running sweeps...[/bold]\n")

    try:
        results = controller.compare_operations(
            handle,
            method_names,
            **_sweep_kwargs(start, stop, step, slow_threshold_ms),
        )
    except (BenchmarkError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)

    # Generate comparison report
    Config.ensure_directories()
    reporter = Reporter(console=console)

    report_path = reporter.generate_comparison_report(results)
    console.print(f"\n📄 Comparison report: [green]{report_path}[/green]")

    _print_comparison_table(results)


def _print_comparison_table(results):
    """Print comparison results as a table."""
    console.print("\n[bold]Comparison Summary[/bold]\n")

    table = Table(title="Operation Comparison")
    table.add_column("Operation", style="cyan")
    table.add_column("Status")
    table.add_column("Points", justify="right")
    table.add_column("Max N", justify="right")
    table.add_column("Time at Max N", justify="right")
    table.add_column("Peak Memory", justify="right")

    for name, result in results.items():
        last = result.metrics[-1] if result.metrics else None
        table.add_row(
            name,
            result.status,
            str(len(result.metrics)),
            str(result.max_input_size),
            format_duration_ns(last.time_ns) if last else "-",
            format_bytes(result.summary()["peak_memory_bytes"]),
        )

    console.print(table)

    for name, result in results.items():
        if result.fault is not None:
            console.print(f"[yellow]⚠️  {name}: {escape(str(result.fault))}[/yellow]")


@cli.command('init')
def init():
    """Initialize output directories and show current settings."""
    console.print("\n[bold blue]Initializing Benchmark Project[/bold blue]\n")

    # Create directories
    Config.ensure_directories()
    console.print(f"✅ Created output directory: {Config.OUTPUT_DIR}")
    console.print(f"✅ Created reports directory: {Config.REPORT_DIR}")

    # Check .env
    env_file = Path(".env")
    if not env_file.exists():
        console.print("\n[yellow]⚠️  No .env file found; using defaults.[/yellow]")
        console.print("Copy .env.example to .env to change them:")
        console.print("  cp .env.example .env")
    else:
        console.print("✅ .env file exists")

    table = Table(title="Settings")
    table.add_column("Name", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("WARMUP_RUNS", str(Config.WARMUP_RUNS))
    table.add_row("INVOCATION_TIMEOUT", f"{Config.INVOCATION_TIMEOUT}s")
    table.add_row("SLOW_THRESHOLD_MS", f"{Config.SLOW_THRESHOLD_MS}ms")
    table.add_row("SWEEP", f"{Config.SWEEP_START}..{Config.SWEEP_STOP} step {Config.SWEEP_STEP}")
    table.add_row("MAX_NAMESPACE_DEPTH", str(Config.MAX_NAMESPACE_DEPTH))
    table.add_row("RANDOM_SEED", str(Config.RANDOM_SEED))
    table.add_row("MEASURE_MEMORY", str(Config.MEASURE_MEMORY))
    console.print(table)

    console.print("\n[bold]Next steps:[/bold]")
    console.print("1. Write an algorithm class with type-annotated methods")
    console.print("2. Run: python main.py operations path/to/algorithm.py")
    console.print("3. Run: python main.py run path/to/algorithm.py -m <operation>")


if __name__ == "__main__":
    cli()
