"""
Snapshot Comparison Engine

Uses Pillow for pixel-by-pixel comparison of a received image against its
baseline, writes the baseline, received and diff artifacts, and reports a
tagged comparison result.
"""

import base64
import io
import logging
from pathlib import Path
from typing import Any, Literal

from PIL import Image, ImageChops, ImageFilter, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, Field

from image_snapshot.core.exceptions import ComparisonEngineError
from image_snapshot.core.paths import ArtifactStorage
from image_snapshot.snapshot.models import (
    Added,
    Compared,
    ComparisonConfig,
    ComparisonResult,
    ImageDimensions,
    Updated,
)

logger = logging.getLogger(__name__)

DEFAULT_COLOR_THRESHOLD = 0.01
DIFF_COLOR = (255, 0, 0, 255)
DATA_URI_PREFIX = "data:image/png;base64,"


class ComparisonRequest(BaseModel):
    """Everything the engine needs for one comparison (serializable)"""

    model_config = ConfigDict(frozen=True)

    received_image: str  # base64-encoded PNG
    snapshot_identifier: str
    snapshots_dir: Path
    received_dir: Path
    diff_dir: Path
    received_postfix: str = "-received"
    store_received_on_failure: bool = True
    update_snapshot: bool = False
    update_passed_snapshot: bool = False
    custom_diff_config: dict[str, Any] = Field(default_factory=dict)
    failure_threshold: float = 0
    failure_threshold_type: Literal["pixel", "percent"] = "pixel"
    blur: int = 0
    allow_size_mismatch: bool = False
    only_diff: bool = False
    diff_direction: Literal["horizontal", "vertical"] = "horizontal"
    comparison_method: Literal["pixelmatch"] = "pixelmatch"

    @classmethod
    def build(
        cls,
        received: bytes,
        identifier: str,
        storage: ArtifactStorage,
        config: ComparisonConfig,
        update_snapshot: bool,
    ) -> "ComparisonRequest":
        return cls(
            received_image=base64.b64encode(received).decode("ascii"),
            snapshot_identifier=identifier,
            snapshots_dir=storage.snapshots_dir,
            received_dir=storage.received_dir,
            diff_dir=storage.diff_dir,
            received_postfix=storage.received_postfix,
            store_received_on_failure=config.store_received_on_failure,
            update_snapshot=update_snapshot,
            update_passed_snapshot=config.update_passed_snapshot,
            custom_diff_config=config.custom_diff_config,
            failure_threshold=config.failure_threshold,
            failure_threshold_type=config.failure_threshold_type,
            blur=config.blur,
            allow_size_mismatch=config.allow_size_mismatch,
            only_diff=config.only_diff,
            diff_direction=config.diff_direction,
            comparison_method=config.comparison_method,
        )

    def received_bytes(self) -> bytes:
        return base64.b64decode(self.received_image)

    def storage(self) -> ArtifactStorage:
        return ArtifactStorage(
            snapshots_dir=self.snapshots_dir,
            received_dir=self.received_dir,
            diff_dir=self.diff_dir,
            received_postfix=self.received_postfix,
        )


class ImageComparator:
    """
    Compares images using per-pixel analysis.

    Features:
    - Configurable per-channel color tolerance
    - Optional pre-comparison blur to ignore rendering noise
    - Size mismatches padded to a common canvas
    - Diff image generation highlighting differences
    """

    def __init__(self, color_threshold: float = DEFAULT_COLOR_THRESHOLD, blur: int = 0):
        """
        Initialize comparator.

        Args:
            color_threshold: Per-channel tolerance as a fraction of 255 (0.0-1.0)
            blur: Gaussian blur radius applied to both images before comparing
        """
        self.color_tolerance = int(color_threshold * 255)
        self.blur = blur

    def diff_mask(self, baseline_img: Image.Image, received_img: Image.Image) -> Image.Image:
        """
        Build a mask of differing pixels (255 = different).

        Both images must already share the same size and RGBA mode.
        """
        if self.blur:
            baseline_img = baseline_img.filter(ImageFilter.GaussianBlur(self.blur))
            received_img = received_img.filter(ImageFilter.GaussianBlur(self.blur))

        difference = ImageChops.difference(baseline_img, received_img)
        channels = difference.split()
        peak = channels[0]
        for channel in channels[1:]:
            peak = ImageChops.lighter(peak, channel)

        tolerance = self.color_tolerance
        return peak.point(lambda value: 255 if value > tolerance else 0)

    @staticmethod
    def align(
        baseline_img: Image.Image,
        received_img: Image.Image,
    ) -> tuple[Image.Image, Image.Image]:
        """Pad both images with transparency to a common canvas"""
        if baseline_img.size == received_img.size:
            return baseline_img, received_img

        width = max(baseline_img.width, received_img.width)
        height = max(baseline_img.height, received_img.height)

        def _pad(img: Image.Image) -> Image.Image:
            canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
            canvas.paste(img, (0, 0))
            return canvas

        return _pad(baseline_img), _pad(received_img)

    @staticmethod
    def generate_diff_image(
        baseline_img: Image.Image,
        received_img: Image.Image,
        mask: Image.Image,
        only_diff: bool = False,
        diff_direction: str = "horizontal",
    ) -> Image.Image:
        """
        Generate a diff image highlighting differences.

        The highlight is a faded grayscale baseline with differing pixels in
        red. Unless ``only_diff`` is set it is framed by the baseline and the
        received image, side by side or stacked.
        """
        width, height = baseline_img.size

        faded = Image.blend(
            baseline_img.convert("L").convert("RGBA"),
            Image.new("RGBA", (width, height), (255, 255, 255, 255)),
            0.8,
        )
        highlight = Image.composite(Image.new("RGBA", (width, height), DIFF_COLOR), faded, mask)

        if only_diff:
            return highlight

        panels = [baseline_img, highlight, received_img]
        if diff_direction == "vertical":
            composite = Image.new("RGBA", (width, height * 3), (0, 0, 0, 0))
            for index, panel in enumerate(panels):
                composite.paste(panel, (0, height * index))
        else:
            composite = Image.new("RGBA", (width * 3, height), (0, 0, 0, 0))
            for index, panel in enumerate(panels):
                composite.paste(panel, (width * index, 0))
        return composite


def _load_image(data: bytes, label: str) -> Image.Image:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        logger.error(f"Failed to load {label} image: {e}")
        raise ComparisonEngineError(f"Failed to load {label} image: {e}") from e


def _encode_png(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


def _is_pass(
    diff_pixel_count: int,
    diff_ratio: float,
    failure_threshold: float,
    failure_threshold_type: str,
) -> bool:
    if failure_threshold_type == "percent":
        return diff_ratio <= failure_threshold
    return diff_pixel_count <= failure_threshold


def diff_image_to_snapshot(request: ComparisonRequest) -> ComparisonResult:
    """
    Compare a received image against its baseline and persist artifacts.

    Args:
        request: Comparison request

    Returns:
        Added when no baseline existed, Updated when the baseline was
        rewritten, otherwise Compared

    Raises:
        ComparisonEngineError: If an image cannot be decoded
    """
    storage = request.storage()
    identifier = request.snapshot_identifier
    received = request.received_bytes()
    baseline_path = storage.baseline_path(identifier)

    if not storage.exists(baseline_path):
        storage.write(baseline_path, received)
        logger.info(f"Wrote new baseline: {baseline_path}")
        return Added()

    received_path = storage.received_path(identifier)
    diff_path = storage.diff_path(identifier)
    storage.remove(received_path)
    storage.remove(diff_path)

    logger.info(f"Comparing snapshot '{identifier}' against {baseline_path}")

    baseline_img = _load_image(storage.read(baseline_path), "baseline")
    received_img = _load_image(received, "received")

    dimensions = ImageDimensions(
        baseline_width=baseline_img.width,
        baseline_height=baseline_img.height,
        received_width=received_img.width,
        received_height=received_img.height,
    )
    has_size_mismatch = baseline_img.size != received_img.size

    comparator = ImageComparator(
        color_threshold=request.custom_diff_config.get("threshold", DEFAULT_COLOR_THRESHOLD),
        blur=request.blur,
    )
    baseline_img, received_img = comparator.align(baseline_img, received_img)
    mask = comparator.diff_mask(baseline_img, received_img)

    total_pixels = baseline_img.width * baseline_img.height
    diff_pixel_count = mask.histogram()[255]
    diff_ratio = diff_pixel_count / total_pixels if total_pixels else 0.0

    passed = _is_pass(
        diff_pixel_count,
        diff_ratio,
        request.failure_threshold,
        request.failure_threshold_type,
    )
    if has_size_mismatch and not request.allow_size_mismatch:
        passed = False

    logger.info(
        f"Comparison complete: passed={passed}, diff_pixels={diff_pixel_count}/{total_pixels}, "
        f"size_mismatch={has_size_mismatch}"
    )

    if not passed and not request.update_snapshot:
        if request.store_received_on_failure:
            storage.write(received_path, received)

        diff_png = _encode_png(
            comparator.generate_diff_image(
                baseline_img,
                received_img,
                mask,
                only_diff=request.only_diff,
                diff_direction=request.diff_direction,
            )
        )
        storage.write(diff_path, diff_png)
        logger.info(f"Saved diff image to: {diff_path}")

        return Compared(
            passed=False,
            diff_ratio=diff_ratio,
            diff_pixel_count=diff_pixel_count,
            diff_size=has_size_mismatch,
            image_dimensions=dimensions,
            diff_output_path=diff_path,
            inline_image_data=DATA_URI_PREFIX + base64.b64encode(diff_png).decode("ascii"),
        )

    if request.update_snapshot and (not passed or request.update_passed_snapshot):
        storage.write(baseline_path, received)
        logger.info(f"Updated baseline: {baseline_path}")
        return Updated()

    return Compared(
        passed=passed,
        diff_ratio=diff_ratio,
        diff_pixel_count=diff_pixel_count,
        diff_size=has_size_mismatch,
        image_dimensions=dimensions,
        diff_output_path=diff_path,
    )
