"""
Result classification

Turns a comparison result into a pass/fail verdict. Failure messages are
value objects that render on demand: encoding the diff image for the
console is only paid for when a reporter actually asks for the message.
"""

import base64
import io
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.text import Text

from image_snapshot.snapshot.models import (
    Compared,
    ComparisonConfig,
    ComparisonResult,
    ImageDimensions,
    MissingBaseline,
    Verdict,
)

INLINE_IMAGE_TERMINALS = ("iTerm.app", "WezTerm")
INLINE_DIFF_ENV = "ENABLE_INLINE_DIFF"
DATA_URI_PREFIX = "data:image/png;base64,"


def _render(text: Text, colors: bool) -> str:
    """Render rich text to a string, with ANSI styling only when colors are on"""
    if not colors:
        return text.plain
    console = Console(
        file=io.StringIO(),
        force_terminal=True,
        color_system="standard",
        no_color=False,
        highlight=False,
        width=10_000,
    )
    with console.capture() as capture:
        console.print(text, end="", soft_wrap=True)
    return capture.get()


def format_percentage(diff_ratio: float) -> str:
    """
    Render a ratio as a percentage in plain decimal notation.

    Float noise past the tenth decimal is dropped, so 0.023 gives "2.3" and
    1e-7 gives "0.00001".
    """
    text = f"{round(diff_ratio * 100, 10):.10f}"
    return text.rstrip("0").rstrip(".")


@dataclass(frozen=True)
class FailureMessage:
    """
    Failure message of a mismatching comparison.

    Holds the raw result fields and every rendering decision made at
    classification time, so calling it is pure and may happen any number of
    times.
    """

    diff_ratio: float
    diff_pixel_count: int
    diff_size: bool
    image_dimensions: ImageDimensions | None
    diff_output_path: Path | None
    inline_image_data: str | None
    allow_size_mismatch: bool = False
    dump_diff_to_console: bool = False
    dump_inline_diff_to_console: bool = False
    inline_terminal: bool = False
    colors: bool = False

    def __call__(self) -> str:
        return self.render()

    def render(self) -> str:
        text = Text()
        dims = self.image_dimensions
        if self.diff_size and not self.allow_size_mismatch and dims is not None:
            text.append(
                "Expected image to be the same size as the snapshot "
                f"({dims.baseline_width}x{dims.baseline_height}), but was different "
                f"({dims.received_width}x{dims.received_height}).\n"
            )
        else:
            text.append(
                "Expected image to match or be a close match to snapshot but was "
                f"{format_percentage(self.diff_ratio)}% different from snapshot "
                f"({self.diff_pixel_count} differing pixels).\n"
            )

        text.append("See diff for details:", style="bold red")
        text.append(" ")
        text.append(str(self.diff_output_path), style="red")

        inline = ""
        image_data = self.inline_image_data or ""
        if self.dump_inline_diff_to_console and self.inline_terminal:
            name = base64.b64encode(str(self.diff_output_path).encode()).decode()
            payload = image_data.removeprefix(DATA_URI_PREFIX)
            inline = f"\n\n\t\x1b]1337;File=name={name};inline=1;width=40:{payload}\x07\x1b\n\n"
        elif self.dump_diff_to_console or self.dump_inline_diff_to_console:
            text.append("\n")
            text.append(
                "Or paste below image diff string to your browser's URL bar.",
                style="bold red",
            )
            text.append(f"\n {image_data}")

        return _render(text, self.colors) + inline


@dataclass(frozen=True)
class MissingBaselineMessage:
    """Failure message for a baseline that may not be written (CI)"""

    baseline_path: Path | None = None
    colors: bool = False

    def __call__(self) -> str:
        text = Text("New snapshot was ")
        text.append("not written", style="bold red")
        text.append(
            ". The update flag must be explicitly passed to write a new snapshot.\n\n"
            " + This is likely because this test is run in a continuous integration (CI) "
            "environment in which snapshots are not written by default.\n\n"
        )
        return _render(text, self.colors)


def supports_inline_images(environ: Mapping[str, str]) -> bool:
    """Check if the terminal can display inline images"""
    return environ.get("TERM_PROGRAM") in INLINE_IMAGE_TERMINALS or INLINE_DIFF_ENV in environ


def use_colors(config: ComparisonConfig) -> bool:
    if config.no_colors is not None:
        return not config.no_colors
    return sys.stdout.isatty()


def classify(
    result: ComparisonResult,
    config: ComparisonConfig,
    environ: Mapping[str, str] | None = None,
    colors: bool | None = None,
) -> Verdict:
    """
    Map a comparison result to a verdict.

    Args:
        result: Comparison result (after any interactive update)
        config: Configuration of this invocation
        environ: Environment used to detect inline-image terminals
            (default: os.environ, captured now)
        colors: Force ANSI styling on or off (default: from config/terminal)

    Returns:
        Verdict with a lazily rendered message
    """
    colors = use_colors(config) if colors is None else colors

    if isinstance(result, MissingBaseline):
        return Verdict(
            passed=False,
            message=MissingBaselineMessage(baseline_path=result.baseline_path, colors=colors),
        )

    if not isinstance(result, Compared) or result.passed:
        return Verdict(passed=True)

    environ = os.environ if environ is None else environ
    return Verdict(
        passed=False,
        message=FailureMessage(
            diff_ratio=result.diff_ratio,
            diff_pixel_count=result.diff_pixel_count,
            diff_size=result.diff_size,
            image_dimensions=result.image_dimensions,
            diff_output_path=result.diff_output_path,
            inline_image_data=result.inline_image_data,
            allow_size_mismatch=config.allow_size_mismatch,
            dump_diff_to_console=config.dump_diff_to_console,
            dump_inline_diff_to_console=config.dump_inline_diff_to_console,
            inline_terminal=supports_inline_images(environ),
            colors=colors,
        ),
    )
