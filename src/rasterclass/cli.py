"""rasterclass CLI entry point.

Usage:
    rasterclass INPUT_FOLDER OUTPUT_FILE [options]

Classifies every tagged image (.tiff/.tif) in INPUT_FOLDER and writes a
plain-text report to OUTPUT_FILE.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from rasterclass import __version__
from rasterclass.backends import load_backend
from rasterclass.constants import APP_NAME, ErrorPolicy, ExitCode
from rasterclass.core.engine import BatchSummary, ClassificationEngine, FileOutcome
from rasterclass.exceptions import RasterClassError
from rasterclass.utils.config import get_value, load_config, save_config, set_value

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

USAGE = f"Usage: {APP_NAME} <input_folder> <output_file>"


def _validate_positive(ctx: click.Context, param: click.Parameter, value: int | None) -> int | None:
    """Validate an optional integer option is positive."""
    if value is not None and value < 1:
        raise click.BadParameter("must be a positive integer")
    return value


def _validate_index(ctx: click.Context, param: click.Parameter, value: int | None) -> int | None:
    """Validate an optional device index is non-negative."""
    if value is not None and value < 0:
        raise click.BadParameter("must be zero or greater")
    return value


def _configure_logging(debug: bool) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=debug, rich_tracebacks=debug)],
        force=True,
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name=APP_NAME)
@click.argument("input_folder", required=False, type=click.Path(path_type=Path))
@click.argument("output_file", required=False, type=click.Path(path_type=Path))
@click.option("-b", "--backend", help="Backend: random, torchscript, onnx, or module:Class")
@click.option("-m", "--model", "model_path", type=click.Path(dir_okay=False), help="Model file for torchscript/onnx")
@click.option(
    "-n", "--classes", "class_count", type=int, callback=_validate_positive, help="Number of classes"
)
@click.option("-d", "--device", "device_index", type=int, callback=_validate_index, help="Accelerator index")
@click.option("--allow-cpu", is_flag=True, help="Run on the CPU if no accelerator is found")
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Record failing files in the report and keep going",
)
@click.option("--seed", type=int, help="Seed for the random backend")
@click.option("--softmax", is_flag=True, help="Convert model logits to probabilities")
@click.option(
    "-c", "--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Config file"
)
@click.option("--save-config", "write_config", is_flag=True, help="Save the effective settings to the config file")
@click.option("--no-progress", is_flag=True, help="Hide the progress bar")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(
    input_folder: Path | None,
    output_file: Path | None,
    backend: str | None,
    model_path: str | None,
    class_count: int | None,
    device_index: int | None,
    allow_cpu: bool,
    continue_on_error: bool,
    seed: int | None,
    softmax: bool,
    config_path: Path | None,
    write_config: bool,
    no_progress: bool,
    debug: bool,
) -> None:
    """Classify the tagged images in INPUT_FOLDER into OUTPUT_FILE.

    Examples:

        rasterclass ./scans results.txt

        rasterclass ./scans results.txt --backend onnx --model net.onnx --classes 1000

        rasterclass ./scans results.txt --allow-cpu --continue-on-error
    """
    if input_folder is None or output_file is None:
        err_console.print(USAGE, markup=False, highlight=False)
        sys.exit(ExitCode.GENERAL_ERROR)

    _configure_logging(debug)

    try:
        config = load_config(config_path)
        _apply_overrides(
            config,
            {
                "backend.name": backend,
                "backend.model_path": model_path,
                "backend.seed": seed,
                "backend.softmax": True if softmax else None,
                "general.class_count": class_count,
                "general.on_error": ErrorPolicy.CONTINUE.value if continue_on_error else None,
                "device.index": device_index,
                "device.require_accelerator": False if allow_cpu else None,
            },
        )

        if write_config:
            saved = save_config(config, config_path)
            console.print(f"[dim]Saved settings to {saved}[/dim]")

        engine = _build_engine(config)
        summary = _run_with_progress(engine, input_folder, output_file, show=not no_progress)

    except RasterClassError as e:
        err_console.print(f"Error: {e}", style="red", markup=False, highlight=False)
        if debug:
            logger.exception("Run aborted")
        sys.exit(ExitCode.GENERAL_ERROR)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(ExitCode.KEYBOARD_INTERRUPT)

    _print_summary(summary, output_file)
    if not summary.ok:
        sys.exit(ExitCode.PARTIAL_FAILURE)


def _apply_overrides(config: dict, overrides: dict[str, Any]) -> None:
    """Layer command-line values over the config. None means not given."""
    for key, value in overrides.items():
        if value is not None:
            set_value(config, key, value)


def _build_engine(config: dict) -> ClassificationEngine:
    backend = load_backend(
        get_value(config, "backend.name"),
        {
            "model_path": get_value(config, "backend.model_path"),
            "seed": get_value(config, "backend.seed"),
            "softmax": get_value(config, "backend.softmax"),
        },
    )
    return ClassificationEngine(
        backend,
        class_count=get_value(config, "general.class_count"),
        device_index=get_value(config, "device.index"),
        require_accelerator=get_value(config, "device.require_accelerator"),
        on_error=get_value(config, "general.on_error"),
        extensions=get_value(config, "input.extensions"),
        case_sensitive=get_value(config, "input.case_sensitive"),
    )


def _run_with_progress(
    engine: ClassificationEngine,
    input_folder: Path,
    output_file: Path,
    show: bool = True,
) -> BatchSummary:
    """Run the engine, with a progress bar on stderr unless hidden."""
    if not show:
        return engine.run(input_folder, output_file)

    total = len(engine.candidates(input_folder))

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=30),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        TimeElapsedColumn(),
        console=err_console,
        transient=False,
    ) as progress:
        task = progress.add_task("Classifying", total=total)

        def on_progress(path: Path, outcome: FileOutcome) -> None:
            """Advance the bar after each file."""
            style = "bold blue" if outcome.ok else "bold red"
            progress.update(task, advance=1, description=f"[{style}]{_truncate(path.name, 25)}")

        summary = engine.run(input_folder, output_file, on_progress=on_progress)
        progress.update(task, description="[bold green]Complete")

    return summary


def _print_summary(summary: BatchSummary, output_file: Path) -> None:
    if summary.candidates == 0:
        console.print("[yellow]No tagged images found[/yellow]")
    console.print(f"[green]Classified {summary.processed} image(s) into {output_file}[/green]")
    if summary.failed:
        console.print(f"[red]{summary.failed} image(s) failed:[/red]")
        for path, error in summary.errors:
            console.print(f"  - {path}: {error}", markup=False)


def _truncate(text: str, max_len: int) -> str:
    """Shorten ``text`` by cutting its middle."""
    if len(text) <= max_len:
        return text
    keep = max_len - 3
    head = (keep + 1) // 2
    return f"{text[:head]}...{text[len(text) - (keep - head):]}"


if __name__ == "__main__":
    main()
