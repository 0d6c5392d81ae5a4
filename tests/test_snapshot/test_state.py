"""
Tests for run-state bookkeeping

Tests invocation counters, outcome mapping, retry deferral and
suppressed reporting.
"""

import threading
from pathlib import Path

import pytest

from image_snapshot.snapshot.models import Added, Compared, MissingBaseline, Updated
from image_snapshot.snapshot.state import (
    OutcomeKind,
    RunState,
    outcome_kind,
    record_invocation,
    record_outcome,
    update_snapshot_state,
)


def _counters(state: RunState) -> tuple[int, int, int, int]:
    summary = state.snapshot()
    return summary.matched, summary.added, summary.updated, summary.unmatched


class TestRecordInvocation:
    """Test per-test invocation counters"""

    def test_counter_starts_at_one(self):
        state = RunState()

        assert record_invocation(state, "TestHeader::test_logo") == 1
        assert record_invocation(state, "TestHeader::test_logo") == 2
        assert record_invocation(state, "TestHeader::test_title") == 1
        assert state.invocation_count("TestHeader::test_logo") == 2

    def test_counter_maintained_when_reporting_suppressed(self):
        state = RunState(suppress_reporting=True)

        record_invocation(state, "test_logo")

        assert record_invocation(state, "test_logo") == 2


class TestOutcomeKind:
    """Test mapping of results to counters"""

    @pytest.mark.parametrize(
        "result,expected",
        [
            (Added(), OutcomeKind.ADDED),
            (Updated(), OutcomeKind.UPDATED),
            (Compared(passed=True), OutcomeKind.MATCHED),
            (Compared(passed=False), OutcomeKind.UNMATCHED),
            (MissingBaseline(baseline_path=Path("x.png")), None),
        ],
    )
    def test_mapping_without_retries(self, result, expected):
        assert outcome_kind(result) is expected

    def test_failure_deferred_until_last_attempt(self):
        """Test that unmatched is only booked once retries are exhausted"""
        failed = Compared(passed=False)

        assert outcome_kind(failed, current_run=1, retry_times=2) is None
        assert outcome_kind(failed, current_run=2, retry_times=2) is None
        assert outcome_kind(failed, current_run=3, retry_times=2) is OutcomeKind.UNMATCHED

    def test_passes_are_never_deferred(self):
        assert outcome_kind(Compared(passed=True), current_run=1, retry_times=3) is OutcomeKind.MATCHED


class TestRecordOutcome:
    """Test counter updates"""

    def test_increments_exactly_one_counter(self):
        state = RunState()

        record_outcome(state, OutcomeKind.MATCHED)

        assert _counters(state) == (1, 0, 0, 0)

    def test_none_is_a_no_op(self):
        state = RunState()

        record_outcome(state, None)

        assert _counters(state) == (0, 0, 0, 0)

    def test_suppressed_reporting_leaves_counters(self):
        state = RunState(suppress_reporting=True)

        for kind in OutcomeKind:
            record_outcome(state, kind)

        assert _counters(state) == (0, 0, 0, 0)

    def test_concurrent_increments(self):
        """Test that concurrent tests never lose an increment"""
        state = RunState()

        def worker():
            for _ in range(250):
                record_outcome(state, OutcomeKind.MATCHED)
                record_invocation(state, "test_logo")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert state.matched == 2000
        assert state.invocation_count("test_logo") == 2000


class TestUpdateSnapshotState:
    """Test the direct state update helper"""

    def test_sets_counters(self):
        state = RunState()

        update_snapshot_state(state, matched=2, added=1)

        assert _counters(state) == (2, 1, 0, 0)

    def test_suppressed(self):
        state = RunState(suppress_reporting=True)

        update_snapshot_state(state, matched=5)

        assert state.matched == 0

    def test_rejects_unknown_counter(self):
        with pytest.raises(ValueError, match="Unknown"):
            update_snapshot_state(RunState(), bogus=1)

    def test_rejects_decrease(self):
        state = RunState(matched=3)

        with pytest.raises(ValueError, match="cannot decrease"):
            update_snapshot_state(state, matched=2)
