"""
pytest integration

Registers the ``image_snapshot`` fixture, command line options and a
terminal summary of snapshot counters. One RunState and one RetryLedger are
shared by every test of the session.

Example:
    def test_header(image_snapshot, page):
        image_snapshot(page.screenshot())
"""

import logging
from pathlib import Path
from typing import Any

import pytest

from image_snapshot.core.config import UpdateMode, get_settings
from image_snapshot.snapshot.identifier import TEST_NAME_DELIMITER, RetryLedger
from image_snapshot.snapshot.matcher import (
    ImageSnapshotMatcher,
    MatchContext,
    configure_to_match_image_snapshot,
)
from image_snapshot.snapshot.models import Verdict
from image_snapshot.snapshot.outdated import (
    TOUCHED_FILES_NAME,
    find_outdated,
    write_touched_files,
)
from image_snapshot.snapshot.state import RunState

logger = logging.getLogger(__name__)

RUN_STATE_KEY = pytest.StashKey[RunState]()
RETRY_LEDGER_KEY = pytest.StashKey[RetryLedger]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("image-snapshot", "image snapshot matching")
    group.addoption(
        "--snapshot-update",
        dest="image_snapshot_update",
        choices=["none", "new", "all"],
        default=None,
        help="Baseline update mode (default: 'none' on CI, 'new' otherwise)",
    )
    group.addoption(
        "--snapshot-retries",
        dest="image_snapshot_retries",
        type=int,
        default=None,
        help="Retries per test; failures are booked on the last attempt only",
    )
    group.addoption(
        "--snapshot-track-outdated",
        dest="image_snapshot_track_outdated",
        action="store_true",
        default=False,
        help=f"Record touched baselines in {TOUCHED_FILES_NAME} and report untouched ones",
    )


def pytest_configure(config: pytest.Config) -> None:
    settings = get_settings()
    config.stash[RUN_STATE_KEY] = RunState(suppress_reporting=settings.suppress_reporting)
    config.stash[RETRY_LEDGER_KEY] = RetryLedger()


def update_mode(config: pytest.Config) -> UpdateMode:
    return config.getoption("image_snapshot_update") or get_settings().resolved_update_mode()


def retry_times(config: pytest.Config) -> int:
    """Retries from our option, then pytest-rerunfailures, then settings"""
    value = config.getoption("image_snapshot_retries")
    if value is None:
        value = getattr(config.option, "reruns", None)
    if value is None:
        value = get_settings().retry_times
    return int(value or 0)


def current_test_name(node: pytest.Item) -> str:
    _, _, name = node.nodeid.partition(TEST_NAME_DELIMITER)
    return name or node.name


class SnapshotAssertion:
    """Callable bound to one test; fails the test on a mismatching verdict"""

    def __init__(self, request: pytest.FixtureRequest, matcher: ImageSnapshotMatcher | None = None):
        self.request = request
        self.matcher = matcher or configure_to_match_image_snapshot()

    def configure(self, **common: Any) -> "SnapshotAssertion":
        """Replace the matcher-level defaults for this test"""
        self.matcher = configure_to_match_image_snapshot(**common)
        return self

    def context(self, is_not: bool = False) -> MatchContext:
        config = self.request.config
        return MatchContext(
            test_path=Path(self.request.node.path),
            current_test_name=current_test_name(self.request.node),
            run_state=config.stash[RUN_STATE_KEY],
            retry_ledger=config.stash[RETRY_LEDGER_KEY],
            update_mode=update_mode(config),
            retry_times=retry_times(config),
            is_not=is_not,
        )

    def __call__(self, received: bytes, **options: Any) -> Verdict:
        verdict = self.matcher(received, self.context(), **options)
        if not verdict.passed:
            pytest.fail(verdict.message(), pytrace=False)
        return verdict

    async def match_async(self, received: bytes, **options: Any) -> Verdict:
        """Variant for tests already running inside an event loop"""
        verdict = await self.matcher.match(received, self.context(), **options)
        if not verdict.passed:
            pytest.fail(verdict.message(), pytrace=False)
        return verdict


@pytest.fixture
def image_snapshot(request: pytest.FixtureRequest) -> SnapshotAssertion:
    """Assert that an image matches its stored baseline"""
    return SnapshotAssertion(request)


@pytest.fixture
def image_snapshot_run_state(request: pytest.FixtureRequest) -> RunState:
    """The session's snapshot run state"""
    return request.config.stash[RUN_STATE_KEY]


def pytest_terminal_summary(terminalreporter: Any, exitstatus: int, config: pytest.Config) -> None:
    state = config.stash.get(RUN_STATE_KEY, None)
    if state is None:
        return
    tracking = config.getoption("image_snapshot_track_outdated")
    summary = state.snapshot()
    if summary.total == 0 and not tracking:
        return

    terminalreporter.write_sep("-", "image snapshots")
    terminalreporter.write_line(
        f"{summary.matched} matched, {summary.added} added, "
        f"{summary.updated} updated, {summary.unmatched} unmatched"
    )

    if tracking:
        root = Path(config.rootpath)
        write_touched_files(root / TOUCHED_FILES_NAME, state.touched_files)
        outdated = find_outdated(root, state.touched_files)
        if outdated:
            terminalreporter.write_line(f"{len(outdated)} outdated baseline(s):", yellow=True)
            for path in outdated:
                terminalreporter.write_line(f"  {path}")
