"""
Command-line interface for Image Snapshot
"""

import logging
import shutil
import sys
import tempfile
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from image_snapshot import __version__
from image_snapshot.core.config import get_settings
from image_snapshot.core.exceptions import SnapshotError
from image_snapshot.core.paths import ArtifactStorage
from image_snapshot.snapshot.classifier import format_percentage
from image_snapshot.snapshot.models import Compared, ComparisonConfig
from image_snapshot.snapshot.outdated import (
    TOUCHED_FILES_NAME,
    find_outdated,
    read_touched_files,
    remove_outdated,
)
from image_snapshot.visual_testing.comparison import ComparisonRequest
from image_snapshot.visual_testing.runner import run_in_process

console = Console()


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Image Snapshot - visual regression baselines made simple"""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command()
@click.argument("baseline", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("received", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--threshold", default=0.0, type=float, help="Failure threshold")
@click.option(
    "--threshold-type",
    type=click.Choice(["pixel", "percent"]),
    default="pixel",
    help="Threshold unit: pixel count or fraction of pixels",
)
@click.option("--diff-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Where to write the diff image (default: next to RECEIVED)")
@click.option("--blur", default=0, type=int, help="Blur radius applied before comparing")
@click.option("--allow-size-mismatch", is_flag=True, help="Compare images of different sizes")
def compare(
    baseline: Path,
    received: Path,
    threshold: float,
    threshold_type: str,
    diff_dir: Path | None,
    blur: int,
    allow_size_mismatch: bool,
) -> None:
    """Compare RECEIVED against BASELINE and write a diff image"""
    try:
        config = ComparisonConfig(
            failure_threshold=threshold,
            failure_threshold_type=threshold_type,
            blur=blur,
            allow_size_mismatch=allow_size_mismatch,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    identifier = baseline.stem
    with tempfile.TemporaryDirectory(prefix="image-snapshot-") as work:
        work_dir = Path(work)
        storage = ArtifactStorage(
            snapshots_dir=work_dir,
            received_dir=work_dir,
            diff_dir=diff_dir or received.parent,
        )
        shutil.copy2(baseline, storage.baseline_path(identifier))
        request = ComparisonRequest.build(
            received.read_bytes(),
            identifier,
            storage,
            config,
            update_snapshot=False,
        )
        try:
            result = run_in_process(request)
        except SnapshotError as e:
            console.print(f"[bold red]{e}[/bold red]")
            sys.exit(2)

    if not isinstance(result, Compared):
        console.print(f"[yellow]Unexpected result: {result.kind}[/yellow]")
        sys.exit(2)

    table = Table(title=f"{baseline.name} vs {received.name}")
    table.add_column("Check", style="cyan")
    table.add_column("Value")
    table.add_row("Result", "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]")
    table.add_row("Differing pixels", str(result.diff_pixel_count))
    table.add_row("Difference", f"{format_percentage(result.diff_ratio)}%")
    if result.image_dimensions is not None:
        dims = result.image_dimensions
        table.add_row("Baseline size", f"{dims.baseline_width}x{dims.baseline_height}")
        table.add_row("Received size", f"{dims.received_width}x{dims.received_height}")
    if not result.passed:
        table.add_row("Diff image", str(result.diff_output_path))
    console.print(table)

    if not result.passed:
        sys.exit(1)


@main.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.option("--touched-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help=f"Touched-files record (default: ROOT/{TOUCHED_FILES_NAME})")
@click.option("--delete", is_flag=True, help="Delete outdated baselines")
def outdated(root: Path, touched_file: Path | None, delete: bool) -> None:
    """List baselines under ROOT that no test touched in the last tracked run"""
    record = touched_file or root / TOUCHED_FILES_NAME
    if not record.exists():
        console.print(
            f"[yellow]No touched-files record at {record}. "
            "Run pytest with --snapshot-track-outdated first.[/yellow]"
        )
        sys.exit(2)

    paths = find_outdated(root, read_touched_files(record))
    if not paths:
        console.print("[green]No outdated baselines[/green]")
        return

    for path in paths:
        console.print(f"  {path}", markup=False, soft_wrap=True)

    if delete:
        removed = remove_outdated(paths)
        console.print(f"[bold]Removed {removed} outdated baseline(s)[/bold]")
    else:
        console.print(f"[yellow]{len(paths)} outdated baseline(s)[/yellow] (use --delete to remove)")


if __name__ == "__main__":
    main()
