"""CLI application entry point for confusable_vision.

This module provides the main CLI interface using Typer.
"""

import json
from pathlib import Path
from typing import Annotated

import typer

from confusable_vision import __version__
from confusable_vision.cli.output import (
    SYM_OK,
    console,
    create_progress,
    print_batch_info,
    print_cancellation_notice,
    print_error,
    print_font_table,
    print_gate,
    print_header,
    print_step,
    print_summary,
    print_top_pairs,
)
from confusable_vision.config import ConfusableVisionSettings, load_settings
from confusable_vision.core import (
    BatchScorer,
    build_requests,
    normalise_pair,
    run_validation,
    score_distribution,
    summarize_rows,
)
from confusable_vision.core.processor import resolve_max_workers
from confusable_vision.domain import ConfusablePair
from confusable_vision.exceptions import ConfusableVisionError, IntegrityViolationError
from confusable_vision.io import FontRegistry, load_font_definitions, load_pairs
from confusable_vision.utils import configure_logging

# Create the Typer app
app = typer.Typer(
    name="confusable-vision",
    help="Score visually confusable glyph pairs by rendering them and comparing with SSIM.",
    add_completion=False,
    no_args_is_help=True,
)

FontsOption = Annotated[
    Path | None,
    typer.Option(
        "--fonts",
        "-f",
        help="JSON list of font definitions (default: built-in list)",
    ),
]
SettingsOption = Annotated[
    Path | None,
    typer.Option(
        "--settings",
        "-s",
        help="JSON settings file",
    ),
]
LogFileOption = Annotated[
    Path | None,
    typer.Option(
        "--log-file",
        help="Write detailed logs to file",
    ),
]
LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Logging level (DEBUG|INFO|WARNING|ERROR)",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]Confusable Vision[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    _version: Annotated[  # noqa: ARG001
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Score visually confusable glyph pairs."""


def _build_settings(
    settings_path: Path | None,
    fonts_path: Path | None,
    workers: int | None = None,
    log_file: Path | None = None,
    log_level: str | None = None,
) -> ConfusableVisionSettings:
    """Merge the settings file with command-line overrides."""
    settings = load_settings(settings_path)

    if fonts_path is not None:
        settings.fonts.definitions = load_font_definitions(fonts_path)
    if workers is not None:
        settings.processing.max_workers = workers
    if log_file is not None:
        settings.logging.log_file = log_file
    if log_level is not None:
        settings.logging.log_level = log_level
    return settings


@app.command()
def score(
    pairs_file: Annotated[
        Path,
        typer.Argument(
            help="JSON list of {source, target} pairs",
            show_default=False,
        ),
    ],
    fonts: FontsOption = None,
    settings_file: SettingsOption = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write rows, pair summaries and distribution as JSON",
        ),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option(
            "--workers",
            "-j",
            help="Number of parallel workers (default: auto)",
            min=1,
        ),
    ] = None,
    log_file: LogFileOption = None,
    log_level: LogLevelOption = None,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Minimal console output",
        ),
    ] = False,
) -> None:
    """Score every pair in every font able to render it.

    Example:
        confusable-vision score pairs.json -o scores.json

    Each pair is tried in all available standard fonts plus specialized
    fonts that cover it, producing one row per (pair, font).
    """
    try:
        settings = _build_settings(settings_file, fonts, workers, log_file, log_level)
        pairs = load_pairs(pairs_file)

        if not quiet:
            print_header(__version__)
            print_step("Loading fonts")

        scorer = BatchScorer(settings)
        requests = build_requests(pairs, scorer.registry)
        total_rows = sum(len(request.fonts) for request in requests)

        if not quiet:
            console.print(f"  {len(scorer.registry.available_fonts())} fonts available")
            print_step("Scoring")
            print_batch_info(
                pairs=len(pairs),
                rows=total_rows,
                workers=resolve_max_workers(settings.processing.max_workers),
                is_auto=settings.processing.max_workers is None,
            )

        try:
            if not quiet:
                with create_progress() as progress:
                    task_id = progress.add_task("Scoring", total=None)

                    def update_progress(completed: int, total: int) -> None:
                        progress.update(task_id, completed=completed, total=total)

                    rows = scorer.score_batch(requests, progress_callback=update_progress)
            else:
                rows = scorer.score_batch(requests)
        except KeyboardInterrupt:
            if not quiet:
                print_cancellation_notice()
            raise typer.Exit(code=130) from None

        summaries = summarize_rows(rows)
        distribution = score_distribution(summaries)

        if output is not None:
            payload = {
                "rows": [row.to_dict() for row in rows],
                "pairs": [summary.to_dict() for summary in summaries],
                "distribution": distribution,
            }
            output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

        if not quiet:
            print_summary(scorer.stats, distribution, str(output) if output else None)
            print_top_pairs(summaries)

    except IntegrityViolationError as e:
        print_error("Worker results are inconsistent", details=str(e))
        raise typer.Exit(code=2)
    except ConfusableVisionError as e:
        print_error(str(e))
        raise typer.Exit(code=1)


@app.command("fonts")
def list_fonts(
    fonts: FontsOption = None,
    settings_file: SettingsOption = None,
    codepoint: Annotated[
        str | None,
        typer.Option(
            "--codepoint",
            "-c",
            help="Only list fonts covering this codepoint (hex, e.g. 0430 or U+0430)",
        ),
    ] = None,
) -> None:
    """List registered fonts, or the fonts covering one codepoint."""
    try:
        settings = _build_settings(settings_file, fonts)
    except ConfusableVisionError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    configure_logging(
        log_file=settings.logging.log_file,
        console_level=settings.logging.log_level,
        file_level=settings.logging.file_log_level,
    )
    registry = FontRegistry.from_config(settings.fonts)

    if codepoint is None:
        print_font_table(registry.list_fonts())
        return

    try:
        value = int(codepoint.upper().removeprefix("U+"), 16)
    except ValueError:
        print_error(f"Invalid codepoint: {codepoint}", details="Use hex, e.g. 0430 or U+0430")
        raise typer.Exit(code=1)

    covering = registry.query_coverage(value)
    if covering:
        print_font_table(covering, title=f"Fonts covering U+{value:04X}")
        return

    fallback = registry.discover_fallback(value)
    if fallback is None:
        console.print(f"  No font covers U+{value:04X}")
        raise typer.Exit(code=1)
    print_font_table([fallback], title=f"Fallback font for U+{value:04X}")


@app.command()
def validate(
    fonts: FontsOption = None,
    settings_file: SettingsOption = None,
) -> None:
    """Run the validation gates against installed fonts.

    Exits with status 1 if any gate fails.
    """
    try:
        settings = _build_settings(settings_file, fonts)
        scorer = BatchScorer(settings)
        print_header(__version__)
        print_step("Validation gates")
        results = run_validation(scorer)
    except ConfusableVisionError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    for result in results:
        print_gate(result.name, result.passed, result.detail, skipped=result.skipped)

    if not all(result.passed for result in results):
        raise typer.Exit(code=1)
    console.print(f"\n[bold green]{SYM_OK} All gates passed[/bold green]")


@app.command()
def render(
    source: Annotated[str, typer.Argument(help="Source character or sequence", show_default=False)],
    target: Annotated[str, typer.Argument(help="Target character", show_default=False)],
    font_family: Annotated[str, typer.Argument(help="Registered font family", show_default=False)],
    out_dir: Annotated[
        Path,
        typer.Option(
            "--out-dir",
            "-d",
            help="Directory for the debug PNGs",
        ),
    ] = Path("."),
    fonts: FontsOption = None,
    settings_file: SettingsOption = None,
) -> None:
    """Write raw and normalised renders of one pair for inspection."""
    try:
        pair = ConfusablePair(source, target)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    try:
        settings = _build_settings(settings_file, fonts)
        scorer = BatchScorer(settings)
        render_a = scorer.renderer.render_or_raise(pair.source, font_family)
        render_b = scorer.renderer.render_or_raise(pair.target, font_family)
        norm_a, norm_b = normalise_pair(
            render_a.image_bytes,
            render_b.image_bytes,
            target_size=settings.normalize.target_size,
            threshold=settings.normalize.ink_threshold,
            margin=settings.normalize.crop_margin,
        )
    except ConfusableVisionError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    out_dir.mkdir(parents=True, exist_ok=True)
    stem = "-".join(f"{ord(ch):04X}" for ch in pair.source) + "_" + f"{ord(pair.target):04X}"
    outputs = {
        f"{stem}_source.png": render_a.image_bytes,
        f"{stem}_target.png": render_b.image_bytes,
        f"{stem}_source_norm.png": norm_a.encoded_bytes,
        f"{stem}_target_norm.png": norm_b.encoded_bytes,
    }
    for name, data in outputs.items():
        (out_dir / name).write_bytes(data)
        console.print(f"  {out_dir / name}")


def cli() -> None:
    """Entry point for the CLI application."""
    app()


def main() -> None:
    """Entry point for the CLI application (alias for cli)."""
    cli()


if __name__ == "__main__":
    cli()
