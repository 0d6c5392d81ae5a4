"""
Snapshot matching

Identifier resolution, run-state bookkeeping, result classification and
the interactive review loop.
"""

from image_snapshot.snapshot.classifier import FailureMessage, classify
from image_snapshot.snapshot.identifier import RetryLedger, resolve_identifier, split_test_name
from image_snapshot.snapshot.matcher import (
    ImageSnapshotMatcher,
    MatchContext,
    configure_to_match_image_snapshot,
)
from image_snapshot.snapshot.models import (
    Added,
    Compared,
    ComparisonConfig,
    MissingBaseline,
    ReviewOutcome,
    Updated,
    Verdict,
)
from image_snapshot.snapshot.review import ConfirmPrompt, ReviewWorkflow
from image_snapshot.snapshot.state import RunState, record_invocation, record_outcome

__all__ = [
    "Added",
    "Compared",
    "ComparisonConfig",
    "ConfirmPrompt",
    "FailureMessage",
    "ImageSnapshotMatcher",
    "MatchContext",
    "MissingBaseline",
    "RetryLedger",
    "ReviewOutcome",
    "ReviewWorkflow",
    "RunState",
    "Updated",
    "Verdict",
    "classify",
    "configure_to_match_image_snapshot",
    "record_invocation",
    "record_outcome",
    "resolve_identifier",
    "split_test_name",
]
