"""
Snapshot models and data structures

Defines the comparison configuration, the tagged comparison result,
review outcomes and the verdict handed back to the test runner.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

IdentifierFactory = Callable[..., str | None]


class ComparisonConfig(BaseModel):
    """
    Every tunable of a single matcher invocation.

    Built once per call by layering call-level options over the
    matcher-level defaults (see ``merged``), then treated as immutable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Forwarded verbatim to the comparison engine
    custom_diff_config: dict[str, Any] = Field(default_factory=dict)
    custom_snapshot_identifier: str | IdentifierFactory | None = None

    custom_snapshots_dir: Path | None = None
    custom_received_dir: Path | None = None
    custom_diff_dir: Path | None = None
    store_received_on_failure: bool = True
    custom_received_postfix: str = "-received"

    only_diff: bool = False
    diff_direction: Literal["horizontal", "vertical"] = "horizontal"
    no_colors: bool | None = None

    failure_threshold: float = Field(default=0, ge=0)
    failure_threshold_type: Literal["pixel", "percent"] = "pixel"
    update_passed_snapshot: bool = False
    blur: int = Field(default=0, ge=0)
    run_in_process: bool = False

    dump_diff_to_console: bool = False
    dump_inline_diff_to_console: bool = False
    allow_size_mismatch: bool = False
    comparison_method: Literal["pixelmatch"] = "pixelmatch"

    @classmethod
    def merged(
        cls,
        common: "ComparisonConfig",
        overrides: Mapping[str, Any] | None = None,
    ) -> "ComparisonConfig":
        """
        Layer call-level options over matcher-level defaults.

        Call-level values win; ``custom_diff_config`` dictionaries are merged
        key by key. The result is validated once here.

        Raises:
            pydantic.ValidationError: If an option is unknown or invalid
        """
        overrides = dict(overrides or {})
        diff_config = {
            **common.custom_diff_config,
            **(overrides.pop("custom_diff_config", None) or {}),
        }
        values = {name: getattr(common, name) for name in cls.model_fields}
        values.update(overrides)
        values["custom_diff_config"] = diff_config
        return cls.model_validate(values)


class ImageDimensions(BaseModel):
    model_config = ConfigDict(frozen=True)

    baseline_width: int
    baseline_height: int
    received_width: int
    received_height: int


class Added(BaseModel):
    """No baseline existed; the received image was written as the baseline"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["added"] = "added"


class Updated(BaseModel):
    """The baseline was explicitly replaced"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["updated"] = "updated"


class Compared(BaseModel):
    """An existing baseline was compared against the received image"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["compared"] = "compared"
    passed: bool
    diff_ratio: float = 0.0
    diff_pixel_count: int = 0
    diff_size: bool = False
    image_dimensions: ImageDimensions | None = None
    diff_output_path: Path | None = None
    inline_image_data: str | None = None  # data:image/png;base64,... of the diff


class MissingBaseline(BaseModel):
    """No baseline exists and the update mode forbids writing one"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["missing_baseline"] = "missing_baseline"
    baseline_path: Path


ComparisonResult = Annotated[
    Added | Updated | Compared | MissingBaseline,
    Field(discriminator="kind"),
]

comparison_result_adapter: TypeAdapter[ComparisonResult] = TypeAdapter(ComparisonResult)


class ReviewOutcome(str, Enum):
    """How the interactive review loop ended"""

    NOT_OFFERED = "not_offered"
    DECLINED = "declined"
    TIMED_OUT = "timed_out"
    VIEWED_ONLY = "viewed_only"
    UPDATED = "updated"


def empty_message() -> str:
    return ""


@dataclass(frozen=True)
class Verdict:
    """
    Pass/fail verdict returned to the test runner.

    ``message`` is a zero-argument callable; it is only rendered when a
    reporter asks for it.
    """

    passed: bool
    message: Callable[[], str] = empty_message

    def __bool__(self) -> bool:
        return self.passed
