"""
Visual Testing Module

Provides the Pillow comparison engine and the in-process/subprocess
invoker used by the snapshot matcher.
"""

from image_snapshot.visual_testing.comparison import (
    ComparisonRequest,
    ImageComparator,
    diff_image_to_snapshot,
)
from image_snapshot.visual_testing.runner import invoke_comparison

__all__ = [
    "ComparisonRequest",
    "ImageComparator",
    "diff_image_to_snapshot",
    "invoke_comparison",
]
