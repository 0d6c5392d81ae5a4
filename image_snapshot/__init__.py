"""
Image Snapshot

Visual regression matcher for pytest: compares rendered images against
accepted baselines, stores received/diff artifacts and offers an
interactive review of failures.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from image_snapshot.core.exceptions import ComparisonEngineError, ConfigurationError
from image_snapshot.snapshot.identifier import RetryLedger
from image_snapshot.snapshot.matcher import (
    ImageSnapshotMatcher,
    MatchContext,
    configure_to_match_image_snapshot,
)
from image_snapshot.snapshot.models import ComparisonConfig, Verdict
from image_snapshot.snapshot.state import RunState, update_snapshot_state

__all__ = [
    "ComparisonConfig",
    "ComparisonEngineError",
    "ConfigurationError",
    "ImageSnapshotMatcher",
    "MatchContext",
    "RetryLedger",
    "RunState",
    "Verdict",
    "configure_to_match_image_snapshot",
    "update_snapshot_state",
]
