"""Rich console output helpers for the CLI.

This module provides user-friendly console output using Rich library
with progress bars, tables, and formatted messages.
"""

from collections.abc import Sequence

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from confusable_vision.domain import FontDescriptor, PairSummary
from confusable_vision.utils import ScoringStats

console = Console()

# Unicode symbols for consistent visual language
SYM_STEP = "▸"  # Step indicator
SYM_OK = "✓"  # Success
SYM_ERR = "✗"  # Error
SYM_DOT = "·"  # Separator/secondary info


def create_progress() -> Progress:
    """Create a rich progress bar for batch scoring.

    Returns:
        Configured Progress instance with bar and time elapsed.
    """
    return Progress(
        TextColumn("  "),
        BarColumn(bar_width=40, complete_style="green", finished_style="green"),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )


def print_header(version: str) -> None:
    """Print application header."""
    console.print(f"\n[bold]Confusable Vision[/bold] v{version}")
    console.print("─" * 44)


def print_step(message: str) -> None:
    """Print a processing step indicator."""
    console.print(f"\n{SYM_STEP} {message}")


def _format_time(seconds: float) -> str:
    """Format seconds into human-readable time string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        mins = int(seconds // 60)
        secs = seconds % 60
        return f"{mins}m {secs:.1f}s"


def print_batch_info(pairs: int, rows: int, workers: int, is_auto: bool = False) -> None:
    """Print batch size and pool configuration.

    Args:
        pairs: Number of confusable pairs
        rows: Number of (pair, font) combinations
        workers: Number of parallel workers
        is_auto: Whether the count was auto-detected
    """
    auto_suffix = " (auto)" if is_auto else ""
    console.print(f"  {pairs:,} pairs {SYM_DOT} {rows:,} pair/font rows")
    console.print(f"  {workers} workers{auto_suffix} {SYM_DOT} Ctrl+C to cancel")


def print_font_table(fonts: Sequence[FontDescriptor], title: str = "Fonts") -> None:
    """Print registered fonts as a table."""
    table = Table(title=title, title_justify="left")
    table.add_column("Family", no_wrap=True)
    table.add_column("Category", no_wrap=True)
    table.add_column("Available", no_wrap=True)
    table.add_column("Path", overflow="fold")

    for font in fonts:
        available = f"[green]{SYM_OK}[/green]" if font.available else f"[red]{SYM_ERR}[/red]"
        table.add_row(Text(font.family), font.category.value, available, Text(font.path))
    console.print(table)


def print_summary(
    stats: ScoringStats,
    distribution: dict[str, int],
    output_path: str | None = None,
) -> None:
    """Print the outcome of a scoring run.

    Args:
        stats: Statistics of the batch
        distribution: Pair counts per score bucket
        output_path: Where results were written, if anywhere
    """
    console.print(
        f"\n[bold green]{SYM_OK} Complete[/bold green] in {_format_time(stats.duration_seconds)}"
    )
    if output_path is not None:
        line = Text("  ")
        line.append(output_path, style="bold")
        console.print(line)

    error_style = "red" if stats.error_count > 0 else "green"
    console.print(
        f"  {stats.scored_count} scored {SYM_DOT} {stats.filtered_count} filtered {SYM_DOT} "
        f"[{error_style}]{stats.error_count} errors[/{error_style}]"
    )
    if stats.filtered_counts:
        reasons = f" {SYM_DOT} ".join(
            f"{reason} {count}" for reason, count in sorted(stats.filtered_counts.items())
        )
        console.print(f"  {reasons}")
    if stats.avg_item_time_ms is not None:
        console.print(f"  {stats.avg_item_time_ms:.1f}ms avg per item")

    console.print(
        f"  high {distribution['high']} {SYM_DOT} medium {distribution['medium']} {SYM_DOT} "
        f"low {distribution['low']} {SYM_DOT} no data {distribution['no_data']}"
    )


def print_top_pairs(summaries: Sequence[PairSummary], limit: int = 10) -> None:
    """Print the highest-scoring pairs."""
    ranked = sorted(
        (s for s in summaries if s.mean_score is not None),
        key=lambda s: s.mean_score or 0.0,
        reverse=True,
    )[:limit]
    if not ranked:
        return

    table = Table(title="Top pairs", title_justify="left")
    table.add_column("Source")
    table.add_column("Target")
    table.add_column("Mean SSIM", justify="right")
    table.add_column("Max SSIM", justify="right")
    table.add_column("Fonts", justify="right")
    for summary in ranked:
        table.add_row(
            Text(summary.source),
            Text(summary.target),
            f"{summary.mean_score:.4f}",
            f"{summary.max_score:.4f}" if summary.max_score is not None else "-",
            str(summary.valid_font_count),
        )
    console.print(table)


def print_gate(name: str, passed: bool, detail: str, skipped: bool = False) -> None:
    """Print one validation gate outcome."""
    if skipped:
        symbol = f"[yellow]{SYM_DOT}[/yellow]"
    elif passed:
        symbol = f"[green]{SYM_OK}[/green]"
    else:
        symbol = f"[red]{SYM_ERR}[/red]"
    line = Text.from_markup(f"  {symbol} ")
    line.append(name, style="bold")
    line.append(f" {SYM_DOT} {detail}")
    console.print(line)


def print_error(message: str, details: str | None = None) -> None:
    """Print error message.

    Args:
        message: Main error message
        details: Optional detailed error information
    """
    console.print(f"\n[bold red]{SYM_ERR} Error:[/bold red] {message}")
    if details:
        console.print(f"  {details}")


def print_cancellation_notice() -> None:
    """Print cancellation acknowledgment."""
    console.print(f"\n{SYM_DOT} Cancelling... waiting for in-progress chunks")
    console.print("  No output file created")
