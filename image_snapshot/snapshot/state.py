"""
Run-state bookkeeping

Session-wide counters of matched/added/updated/unmatched snapshots and
per-test invocation counters. Tests may run concurrently against one
RunState, so every mutation happens under a lock.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from image_snapshot.snapshot.models import (
    Added,
    Compared,
    ComparisonResult,
    Updated,
)

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    """The counter a finished comparison is booked against"""

    MATCHED = "matched"
    ADDED = "added"
    UPDATED = "updated"
    UNMATCHED = "unmatched"


COUNTER_NAMES = frozenset(kind.value for kind in OutcomeKind)


@dataclass(frozen=True)
class RunSummary:
    """Immutable copy of the counters, for reporters"""

    matched: int
    added: int
    updated: int
    unmatched: int

    @property
    def total(self) -> int:
        return self.matched + self.added + self.updated + self.unmatched


@dataclass
class RunState:
    """
    Snapshot bookkeeping for one test session.

    Counters only ever grow. With ``suppress_reporting`` set, the outcome
    counters stay untouched; invocation counters are still maintained since
    identifier naming depends on them.
    """

    matched: int = 0
    added: int = 0
    updated: int = 0
    unmatched: int = 0
    counters: dict[str, int] = field(default_factory=dict)
    touched_files: set[Path] = field(default_factory=set)
    suppress_reporting: bool = False
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def snapshot(self) -> RunSummary:
        with self._lock:
            return RunSummary(
                matched=self.matched,
                added=self.added,
                updated=self.updated,
                unmatched=self.unmatched,
            )

    def mark_touched(self, path: Path) -> None:
        with self._lock:
            self.touched_files.add(Path(path).resolve())

    def invocation_count(self, test_key: str) -> int:
        with self._lock:
            return self.counters.get(test_key, 0)


def record_invocation(state: RunState, test_key: str) -> int:
    """
    Count one more matcher call for a test.

    ``test_key`` must be unique per test within the session (see
    ``identifier.invocation_key``).

    Must run before the identifier is resolved for that call.

    Returns:
        The invocation counter, starting at 1
    """
    with state._lock:
        count = state.counters.get(test_key, 0) + 1
        state.counters[test_key] = count
        return count


def outcome_kind(
    result: ComparisonResult,
    current_run: int = 0,
    retry_times: int = 0,
) -> OutcomeKind | None:
    """
    Map a comparison result to the counter it should be booked against.

    A failing comparison is only booked as unmatched on the final attempt;
    earlier attempts of a retried test return None.

    Args:
        result: Final comparison result (after review)
        current_run: Attempts recorded in the retry ledger for the identifier
        retry_times: Retries configured for the session

    Returns:
        OutcomeKind, or None when nothing should be recorded
    """
    if isinstance(result, Updated):
        return OutcomeKind.UPDATED
    if isinstance(result, Added):
        return OutcomeKind.ADDED
    if isinstance(result, Compared):
        if result.passed:
            return OutcomeKind.MATCHED
        if not retry_times or current_run > retry_times:
            return OutcomeKind.UNMATCHED
        logger.debug(f"Deferring unmatched bookkeeping (attempt {current_run} of {retry_times + 1})")
    return None


def record_outcome(state: RunState, kind: OutcomeKind | None) -> None:
    """Increment exactly one outcome counter"""
    if kind is None or state.suppress_reporting:
        return
    with state._lock:
        setattr(state, kind.value, getattr(state, kind.value) + 1)


def update_snapshot_state(state: RunState, **fields: int) -> RunState:
    """
    Overwrite counters on a run state unless reporting is suppressed.

    Example:
        update_snapshot_state(state, matched=state.matched + 1)
    """
    if state.suppress_reporting:
        return state
    with state._lock:
        for name, value in fields.items():
            if name not in COUNTER_NAMES:
                raise ValueError(f"Unknown run-state counter: {name}")
            if value < getattr(state, name):
                raise ValueError(f"Run-state counter '{name}' cannot decrease")
            setattr(state, name, value)
    return state
