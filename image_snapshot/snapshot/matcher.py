"""
Image snapshot matcher

Orchestrates one assertion: identifier resolution, run-state bookkeeping,
the comparison itself, the optional interactive review and the final
verdict.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from image_snapshot.core.config import UpdateMode, get_settings
from image_snapshot.core.exceptions import ConfigurationError
from image_snapshot.core.paths import ArtifactStorage
from image_snapshot.snapshot.classifier import classify
from image_snapshot.snapshot.identifier import (
    RetryLedger,
    invocation_key,
    resolve_identifier,
    split_test_name,
)
from image_snapshot.snapshot.models import (
    Compared,
    ComparisonConfig,
    ComparisonResult,
    MissingBaseline,
    ReviewOutcome,
    Updated,
    Verdict,
)
from image_snapshot.snapshot.review import ReviewWorkflow
from image_snapshot.snapshot.state import (
    RunState,
    outcome_kind,
    record_invocation,
    record_outcome,
)
from image_snapshot.visual_testing.comparison import ComparisonRequest
from image_snapshot.visual_testing.runner import invoke_comparison

logger = logging.getLogger(__name__)


@dataclass
class MatchContext:
    """What the test runner knows about the current assertion"""

    test_path: Path
    current_test_name: str
    run_state: RunState
    retry_ledger: RetryLedger = field(default_factory=RetryLedger)
    update_mode: UpdateMode = "new"
    retry_times: int = 0
    is_not: bool = False


def _validated(common: ComparisonConfig, overrides: Mapping[str, Any]) -> ComparisonConfig:
    try:
        return ComparisonConfig.merged(common, overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid snapshot options: {e}") from e


class ImageSnapshotMatcher:
    """
    Matcher comparing received images against stored baselines.

    Example:
        matcher = configure_to_match_image_snapshot(failure_threshold=0.01,
                                                    failure_threshold_type="percent")
        verdict = matcher(png_bytes, context)
        if not verdict.passed:
            print(verdict.message())
    """

    def __init__(
        self,
        config: ComparisonConfig | None = None,
        review: ReviewWorkflow | None = None,
        review_enabled: bool | None = None,
    ):
        self.config = config or ComparisonConfig()
        self.review = review
        self.review_enabled = review_enabled

    def _review_workflow(self) -> ReviewWorkflow | None:
        settings = get_settings()
        enabled = settings.review_enabled() if self.review_enabled is None else self.review_enabled
        if not enabled:
            return None
        return self.review or ReviewWorkflow(timeout=settings.prompt_timeout_seconds)

    async def match(self, received: bytes, context: MatchContext, **options: Any) -> Verdict:
        """
        Compare ``received`` against its baseline.

        Args:
            received: PNG bytes of the image under test
            context: Test identity and session state
            **options: Call-level options overriding the matcher defaults

        Returns:
            Verdict; ordinary mismatches never raise

        Raises:
            ConfigurationError: On negated use, invalid options or retries
                without a unique identifier
        """
        if context.is_not:
            raise ConfigurationError("Negated image snapshot assertions are not supported")

        config = _validated(self.config, options)
        state = context.run_state

        counter = record_invocation(
            state, invocation_key(context.test_path, context.current_test_name)
        )
        identifier = resolve_identifier(
            test_path=context.test_path,
            current_test_name=context.current_test_name,
            counter=counter,
            retry_times=context.retry_times,
            custom_identifier=config.custom_snapshot_identifier,
            ledger=context.retry_ledger,
        )

        describe_name, _ = split_test_name(context.current_test_name)
        storage = ArtifactStorage.for_test(
            context.test_path,
            describe_name,
            custom_snapshots_dir=config.custom_snapshots_dir,
            custom_received_dir=config.custom_received_dir,
            custom_diff_dir=config.custom_diff_dir,
            received_postfix=config.custom_received_postfix,
        )
        baseline_path = storage.baseline_path(identifier)
        state.mark_touched(baseline_path)

        if context.update_mode == "none" and not storage.exists(baseline_path):
            logger.info(f"Baseline missing and updates disabled: {baseline_path}")
            return classify(MissingBaseline(baseline_path=baseline_path), config)

        request = ComparisonRequest.build(
            received,
            identifier,
            storage,
            config,
            update_snapshot=context.update_mode == "all",
        )
        result: ComparisonResult = await invoke_comparison(request, in_process=config.run_in_process)

        if isinstance(result, Compared) and not result.passed:
            outcome = await self._review(identifier, context.current_test_name, storage)
            if outcome is ReviewOutcome.UPDATED:
                result = Updated()

        current_run = context.retry_ledger.get(identifier)
        record_outcome(state, outcome_kind(result, current_run, context.retry_times))

        return classify(result, config)

    async def _review(
        self,
        identifier: str,
        test_name: str,
        storage: ArtifactStorage,
    ) -> ReviewOutcome:
        if not storage.exists(storage.received_path(identifier)):
            return ReviewOutcome.NOT_OFFERED
        workflow = self._review_workflow()
        if workflow is None:
            return ReviewOutcome.NOT_OFFERED
        outcome = await workflow.run(identifier, test_name, storage)
        logger.info(f"Review of '{identifier}' ended: {outcome.value}")
        return outcome

    def __call__(self, received: bytes, context: MatchContext, **options: Any) -> Verdict:
        """Synchronous entry point; must not be called from a running event loop"""
        return asyncio.run(self.match(received, context, **options))


def configure_to_match_image_snapshot(
    review: ReviewWorkflow | None = None,
    review_enabled: bool | None = None,
    **common: Any,
) -> ImageSnapshotMatcher:
    """
    Build a matcher with shared defaults.

    Args:
        review: Review workflow to use on failures (default: stdin prompts)
        review_enabled: Force the interactive review on or off
            (default: from settings)
        **common: Matcher-level ComparisonConfig options

    Returns:
        ImageSnapshotMatcher

    Raises:
        ConfigurationError: If an option is unknown or invalid
    """
    try:
        config = ComparisonConfig(**common)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid snapshot options: {e}") from e
    return ImageSnapshotMatcher(config=config, review=review, review_enabled=review_enabled)
