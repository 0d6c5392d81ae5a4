"""
Tests for result classification

Tests verdicts and the lazily rendered failure messages.
"""

from pathlib import Path

import pytest

from image_snapshot.snapshot.classifier import FailureMessage, classify, format_percentage
from image_snapshot.snapshot.models import (
    Added,
    Compared,
    ComparisonConfig,
    ImageDimensions,
    MissingBaseline,
    Updated,
)

DIFF_PATH = Path("/project/tests/__diff_output__/logo-diff.png")
DATA_URI = "data:image/png;base64,iVBORw0KGgo="


def _failed(**overrides) -> Compared:
    fields = {
        "passed": False,
        "diff_ratio": 0.023,
        "diff_pixel_count": 45,
        "diff_size": False,
        "image_dimensions": ImageDimensions(
            baseline_width=10, baseline_height=10, received_width=12, received_height=8
        ),
        "diff_output_path": DIFF_PATH,
        "inline_image_data": DATA_URI,
    }
    fields.update(overrides)
    return Compared(**fields)


PLAIN = ComparisonConfig(no_colors=True)


class TestPassingResults:
    """Test results that produce a passing verdict"""

    def test_added_passes(self):
        verdict = classify(Added(), PLAIN)

        assert verdict.passed is True
        assert verdict.message() == ""

    def test_updated_passes(self):
        verdict = classify(Updated(), PLAIN)

        assert verdict.passed is True
        assert verdict.message() == ""

    def test_matching_comparison_passes(self):
        verdict = classify(Compared(passed=True), PLAIN)

        assert verdict.passed is True
        assert bool(verdict) is True


class TestFailureMessage:
    """Test the failing comparison message"""

    def test_percentage_message(self):
        """Test the difference percentage and pixel count"""
        verdict = classify(_failed(), PLAIN, environ={})

        message = verdict.message()
        assert verdict.passed is False
        assert "2.3% different" in message
        assert "45 differing pixels" in message
        assert f"See diff for details: {DIFF_PATH}" in message

    def test_size_mismatch_message(self):
        message = classify(_failed(diff_size=True), PLAIN, environ={}).message()

        assert "same size as the snapshot (10x10), but was different (12x8)" in message
        assert "differing pixels" not in message

    def test_size_mismatch_allowed_reports_percentage(self):
        config = ComparisonConfig(no_colors=True, allow_size_mismatch=True)

        message = classify(_failed(diff_size=True), config, environ={}).message()

        assert "2.3% different" in message

    def test_message_is_idempotent(self):
        """Test that rendering twice yields the same string"""
        config = ComparisonConfig(no_colors=False, dump_diff_to_console=True)
        verdict = classify(_failed(), config, environ={})

        assert verdict.message() == verdict.message()

    def test_message_is_a_value_object(self):
        verdict = classify(_failed(), PLAIN, environ={})

        assert isinstance(verdict.message, FailureMessage)
        assert verdict.message.diff_pixel_count == 45

    def test_no_colors_renders_plain_text(self):
        message = classify(_failed(), PLAIN, environ={}).message()

        assert "\x1b[" not in message

    def test_colors_render_ansi_styles(self):
        message = classify(_failed(), ComparisonConfig(no_colors=False), environ={}).message()

        assert "\x1b[" in message
        assert "See diff for details:" in message

    def test_dump_diff_to_console_appends_data_uri(self):
        config = ComparisonConfig(no_colors=True, dump_diff_to_console=True)

        message = classify(_failed(), config, environ={}).message()

        assert "Or paste below image diff string to your browser's URL bar." in message
        assert DATA_URI in message

    def test_inline_diff_in_supported_terminal(self):
        """Test the iTerm inline image escape sequence"""
        config = ComparisonConfig(no_colors=True, dump_inline_diff_to_console=True)

        message = classify(_failed(), config, environ={"TERM_PROGRAM": "iTerm.app"}).message()

        assert "\x1b]1337;File=name=" in message
        assert ";inline=1;width=40:iVBORw0KGgo=\x07" in message
        assert "data:image/png" not in message

    def test_inline_diff_enabled_by_environment_flag(self):
        config = ComparisonConfig(no_colors=True, dump_inline_diff_to_console=True)

        message = classify(_failed(), config, environ={"ENABLE_INLINE_DIFF": "1"}).message()

        assert "\x1b]1337;File=" in message

    def test_inline_diff_falls_back_to_data_uri(self):
        """Test unsupported terminals get the browser string instead"""
        config = ComparisonConfig(no_colors=True, dump_inline_diff_to_console=True)

        message = classify(_failed(), config, environ={"TERM_PROGRAM": "Apple_Terminal"}).message()

        assert "\x1b]1337" not in message
        assert DATA_URI in message

    def test_environment_captured_at_classification(self):
        environ = {"TERM_PROGRAM": "WezTerm"}
        config = ComparisonConfig(no_colors=True, dump_inline_diff_to_console=True)
        verdict = classify(_failed(), config, environ=environ)

        environ.clear()

        assert "\x1b]1337;File=" in verdict.message()


class TestMissingBaseline:
    """Test the CI-oriented missing baseline verdict"""

    def test_missing_baseline_fails_with_ci_hint(self):
        verdict = classify(MissingBaseline(baseline_path=Path("logo.png")), PLAIN)

        message = verdict.message()
        assert verdict.passed is False
        assert "not written" in message
        assert "continuous integration" in message


class TestFormatPercentage:
    """Test percentage rendering in failure messages"""

    @pytest.mark.parametrize(
        "ratio,expected",
        [
            (0.023, "2.3"),
            (1.0, "100"),
            (0.0, "0"),
            (0.04, "4"),
            (1e-7, "0.00001"),
            (1 / 3, "33.3333333333"),
        ],
    )
    def test_plain_decimal_notation(self, ratio, expected):
        assert format_percentage(ratio) == expected

    def test_tiny_ratio_in_message(self):
        message = classify(_failed(diff_ratio=1e-7), PLAIN, environ={}).message()

        assert "0.00001% different" in message
        assert "e-" not in message.split("See diff")[0]
